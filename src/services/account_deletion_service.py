"""Account deletion flow, including the last-owner confirmation."""

import logging

from src.api.middleware.error_handler import (
    ActionInProgressError,
    APIError,
    ConflictError,
    OwnerConflictError,
)
from src.core.security import hash_credential
from src.schemas.account import (
    CredentialKind,
    CredentialPrompt,
    DeletionPhase,
    DeletionState,
    OwnerConflict,
    OwnerConflictPrompt,
)
from src.services.account_gateway import AccountGateway
from src.services.confirmation_prompt import ConfirmationPrompt
from src.services.notification_service import NotificationCenter

logger = logging.getLogger(__name__)

DELETE_TITLE = "Are_you_sure_you_want_to_delete_your_account"
PASSWORD_BODY = "For_your_security_you_must_enter_your_current_password_to_continue"
USERNAME_BODY = "If_you_are_sure_type_in_your_username"


class AccountDeletionFlow:
    """State machine for deleting the user's own account.

    IDLE -> AWAIT_CREDENTIAL -> IN_FLIGHT -> DONE, with a detour through
    AWAIT_OWNER_RESOLUTION when the server reports a last-owner conflict.
    The forced retry reuses the hashed credential captured in
    AWAIT_CREDENTIAL; it is dropped on DONE, FAILED and cancel.
    """

    def __init__(
        self,
        gateway: AccountGateway,
        prompt: ConfirmationPrompt,
        notifications: NotificationCenter,
        local_password: bool,
        erasure_type: str = "Delete",
    ) -> None:
        self.gateway = gateway
        self._prompt = prompt
        self._notifications = notifications
        self._local_password = local_password
        self.erasure_type = erasure_type
        self._state = DeletionState()

    @property
    def state(self) -> DeletionState:
        """Current flow state."""
        return self._state

    def _transition(self, state: DeletionState) -> None:
        logger.info("Account deletion: %s -> %s", self._state.phase.value, state.phase.value)
        self._state = state

    async def request_deletion(self) -> DeletionState:
        """Run the deletion flow from the user's delete request.

        Returns:
            DeletionState: The state the flow ended in (IDLE or DONE).

        Raises:
            ActionInProgressError: If a deletion is already under way.
            ConflictError: If the account was already deleted.
            PromptBusyError: If another prompt is open.
        """
        if self._state.phase is DeletionPhase.DONE:
            raise ConflictError("Account already deleted", error_type="account_deleted")
        if self._state.phase not in (DeletionPhase.IDLE, DeletionPhase.FAILED):
            raise ActionInProgressError("delete_account")

        kind = CredentialKind.PASSWORD if self._local_password else CredentialKind.USERNAME
        self._transition(DeletionState(phase=DeletionPhase.AWAIT_CREDENTIAL, credential_kind=kind))

        try:
            value = await self._prompt.show(
                CredentialPrompt(
                    title=DELETE_TITLE,
                    body=PASSWORD_BODY if kind is CredentialKind.PASSWORD else USERNAME_BODY,
                    is_secret=kind is CredentialKind.PASSWORD,
                )
            )
        except APIError:
            self._transition(DeletionState())
            raise

        if value is None:
            self._transition(DeletionState())
            return self._state

        return await self._attempt(hash_credential(value), kind, force=False)

    async def _attempt(self, hashed: str, kind: CredentialKind, force: bool) -> DeletionState:
        self._transition(
            DeletionState(
                phase=DeletionPhase.IN_FLIGHT,
                credential_kind=kind,
                hashed_credential=hashed,
            )
        )

        try:
            await self.gateway.delete_own_account(hashed, force=force)
        except OwnerConflictError as e:
            if force:
                return self._fail(e)
            return await self._resolve_owner_conflict(hashed, kind, e)
        except APIError as e:
            return self._fail(e)

        self._transition(DeletionState(phase=DeletionPhase.DONE, credential_kind=kind))
        self._notifications.success("User_has_been_deleted")
        return self._state

    async def _resolve_owner_conflict(
        self, hashed: str, kind: CredentialKind, conflict: OwnerConflictError
    ) -> DeletionState:
        self._transition(
            DeletionState(
                phase=DeletionPhase.AWAIT_OWNER_RESOLUTION,
                credential_kind=kind,
                hashed_credential=hashed,
                conflict=OwnerConflict(
                    should_change_owner=conflict.should_change_owner,
                    should_be_removed=conflict.should_be_removed,
                ),
            )
        )

        try:
            decision = await self._prompt.show(
                OwnerConflictPrompt(
                    title=f"Delete_User_Warning_{self.erasure_type}",
                    should_change_owner=conflict.should_change_owner,
                    should_be_removed=conflict.should_be_removed,
                )
            )
        except APIError:
            self._transition(DeletionState())
            raise

        if decision is None:
            self._transition(DeletionState())
            return self._state

        return await self._attempt(hashed, kind, force=True)

    def _fail(self, error: APIError) -> DeletionState:
        self._transition(
            DeletionState(
                phase=DeletionPhase.FAILED,
                credential_kind=self._state.credential_kind,
                error=error.message,
            )
        )
        self._notifications.error(error)
        self._transition(DeletionState())
        return self._state
