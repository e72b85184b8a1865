"""Profile save orchestration: diff building, re-authentication and submission."""

import copy
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from src.api.middleware.error_handler import APIError, ActionInProgressError
from src.core.security import hash_credential
from src.schemas.account import CredentialPrompt, EditabilityPolicy
from src.schemas.profile import ProfileDraft
from src.services.account_gateway import AccountGateway
from src.services.confirmation_prompt import ConfirmationPrompt
from src.services.editability_service import requires_reauthentication
from src.services.notification_service import NotificationCenter
from src.services.profile_draft_store import ProfileDraftStore

logger = logging.getLogger(__name__)


class Inclusion(str, Enum):
    """When a draft field is sent with the profile save."""

    ALWAYS = "always"
    ALWAYS_IF_ALLOWED = "always_if_allowed"
    ONLY_IF_CHANGED = "only_if_changed"
    ONLY_IF_PRESENT = "only_if_present"


@dataclass(frozen=True)
class FieldRule:
    """Inclusion rule for one draft field."""

    attribute: str
    wire_name: str
    inclusion: Inclusion
    permission: str | None = None
    fallback: Any = None


PROFILE_FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule("realname", "realname", Inclusion.ALWAYS_IF_ALLOWED, "can_change_real_name"),
    FieldRule("email", "email", Inclusion.ONLY_IF_CHANGED, "can_change_email"),
    FieldRule("password", "password", Inclusion.ONLY_IF_PRESENT, "can_change_password"),
    FieldRule("username", "username", Inclusion.ALWAYS_IF_ALLOWED, "can_change_username"),
    FieldRule("status_text", "statusText", Inclusion.ALWAYS_IF_ALLOWED, "can_change_status_message"),
    FieldRule("status_type", "statusType", Inclusion.ALWAYS),
    FieldRule("bio", "bio", Inclusion.ALWAYS, fallback=""),
)


def build_profile_diff(
    draft: ProfileDraft,
    snapshot: ProfileDraft,
    policy: EditabilityPolicy,
    rules: tuple[FieldRule, ...] = PROFILE_FIELD_RULES,
) -> dict[str, Any]:
    """Build the profile save payload from the rule table.

    Args:
        draft: Current draft.
        snapshot: Last-saved values.
        policy: Editability policy gating each field.
        rules: Field inclusion rules.

    Returns:
        dict: Payload keyed by wire field name (custom fields excluded).
    """
    diff: dict[str, Any] = {}
    for rule in rules:
        if rule.permission and not getattr(policy, rule.permission):
            continue

        value = getattr(draft, rule.attribute)
        if rule.inclusion is Inclusion.ONLY_IF_CHANGED and value == getattr(snapshot, rule.attribute):
            continue
        if rule.inclusion is Inclusion.ONLY_IF_PRESENT and not value:
            continue
        if rule.fallback is not None and not value:
            value = rule.fallback

        diff[rule.wire_name] = value
    return diff


def refreshed_snapshot(
    snapshot: ProfileDraft,
    draft: ProfileDraft,
    diff: dict[str, Any],
    rules: tuple[FieldRule, ...] = PROFILE_FIELD_RULES,
) -> ProfileDraft:
    """Snapshot after a successful save: submitted fields take the draft's values."""
    updates: dict[str, Any] = {
        rule.attribute: diff[rule.wire_name]
        for rule in rules
        if rule.wire_name in diff and rule.attribute != "password"
    }
    updates["custom_fields"] = copy.deepcopy(draft.custom_fields)
    updates["url"] = draft.url
    return snapshot.model_copy(
        update={**updates, "password": "", "confirmation_password": "", "avatar": ""},
        deep=True,
    )


class SaveOutcome(str, Enum):
    """Result of a save attempt."""

    SAVED = "saved"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ProfileSaveOrchestrator:
    """Saves the account page draft."""

    def __init__(
        self,
        gateway: AccountGateway,
        prompt: ConfirmationPrompt,
        notifications: NotificationCenter,
        local_password: bool,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            gateway: Remote account service.
            prompt: Shared confirmation prompt slot.
            notifications: Toast surface.
            local_password: Whether the account has a local password.
        """
        self.gateway = gateway
        self._prompt = prompt
        self._notifications = notifications
        self._local_password = local_password
        self._saving = False

    @property
    def is_saving(self) -> bool:
        """Whether a save is in progress (including its password prompt)."""
        return self._saving

    async def save(self, store: ProfileDraftStore, policy: EditabilityPolicy) -> SaveOutcome:
        """Save the draft held by ``store``.

        Asks for the current password first when the change requires it.
        Remote failures are reported through the notification center and
        leave the draft untouched.

        Raises:
            ActionInProgressError: If a save is already running.
            PromptBusyError: If re-authentication is needed while another prompt is open.
        """
        if self._saving:
            raise ActionInProgressError("save")

        self._saving = True
        try:
            return await self._save(store, policy)
        finally:
            self._saving = False

    async def _save(self, store: ProfileDraftStore, policy: EditabilityPolicy) -> SaveOutcome:
        draft = store.get()
        snapshot = store.snapshot

        typed_password: str | None = None
        if requires_reauthentication(draft, snapshot, self._local_password):
            typed_password = await self._prompt.show(
                CredentialPrompt(
                    title="Please_enter_your_password",
                    body="For_your_security_you_must_enter_your_current_password_to_continue",
                    is_secret=True,
                )
            )
            if typed_password is None:
                logger.info("Profile save cancelled at password confirmation")
                return SaveOutcome.CANCELLED

        diff = build_profile_diff(draft, snapshot, policy)
        if typed_password:
            diff["typedPassword"] = hash_credential(typed_password)

        try:
            if draft.avatar and policy.can_change_avatar:
                avatar_url = await self.gateway.upload_avatar(draft.avatar)
                store.set("avatar", "")
                store.set("url", avatar_url)
            await self.gateway.save_profile(diff, dict(draft.custom_fields))
        except APIError as e:
            logger.warning("Profile save failed: %s", e.message)
            self._notifications.error(e)
            return SaveOutcome.FAILED

        store.reset(refreshed_snapshot(snapshot, store.get(), diff))
        self._notifications.success("Profile_saved_successfully")
        return SaveOutcome.SAVED
