"""Account page controller and the registry of mounted pages."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable
from uuid import UUID

from src.api.middleware.error_handler import (
    ActionInProgressError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PromptBusyError,
)
from src.schemas.account import AccountPageState, AccountSettings, DeletionPhase, EditabilityPolicy
from src.schemas.profile import AccountSnapshot, ProfileDraft
from src.services.account_deletion_service import AccountDeletionFlow
from src.services.account_gateway import AccountGateway
from src.services.confirmation_prompt import ConfirmationPrompt
from src.services.editability_service import derive_policy
from src.services.notification_service import NotificationCenter
from src.services.profile_draft_store import ProfileDraftStore
from src.services.profile_save_service import ProfileSaveOrchestrator
from src.services.session_revocation_service import SessionRevocationAction

logger = logging.getLogger(__name__)


class AccountPageController:
    """Owns the account page state for one user.

    Actions that can open a prompt (save, delete) run as tasks. Each call
    returns once the action has finished or is parked on the prompt, so the
    prompt can be answered by a later call.
    """

    def __init__(
        self,
        gateway: AccountGateway,
        account: AccountSnapshot,
        settings: AccountSettings,
    ) -> None:
        """Mount the page for a loaded account.

        Raises:
            ConfigurationError: If the settings cannot produce a policy.
        """
        self.account = account
        self.policy: EditabilityPolicy = derive_policy(settings)
        self.prompt = ConfirmationPrompt()
        self.notifications = NotificationCenter()
        self.store = ProfileDraftStore(ProfileDraft.from_account(account))
        self.form_valid = True

        self._saver = ProfileSaveOrchestrator(gateway, self.prompt, self.notifications, account.local_password)
        self._deletion = AccountDeletionFlow(
            gateway,
            self.prompt,
            self.notifications,
            account.local_password,
            erasure_type=settings.message_erasure_type,
        )
        self._revocation = SessionRevocationAction(gateway, self.notifications)
        self._parked: asyncio.Task | None = None

    @property
    def is_account_deleted(self) -> bool:
        """Whether the deletion flow completed."""
        return self._deletion.state.phase is DeletionPhase.DONE

    @property
    def save_enabled(self) -> bool:
        """Whether the save control is enabled."""
        return (
            self.store.is_dirty()
            and self.form_valid
            and not self._revocation.in_flight
            and not self._saver.is_saving
        )

    def use_gateway(self, gateway: AccountGateway) -> None:
        """Route later remote calls, including a parked action's, through ``gateway``."""
        self._saver.gateway = gateway
        self._deletion.gateway = gateway
        self._revocation.gateway = gateway

    def apply_settings(self, settings: AccountSettings) -> None:
        """Re-derive the policy from a fresh settings snapshot."""
        self.policy = derive_policy(settings)
        self._deletion.erasure_type = settings.message_erasure_type

    def state(self, drain: bool = True) -> AccountPageState:
        """Render the page state.

        Args:
            drain: Hand over pending notifications (and clear them).
        """
        return AccountPageState(
            draft=self.store.get().public_view(),
            dirty=self.store.is_dirty(),
            form_valid=self.form_valid,
            save_enabled=self.save_enabled,
            saving=self._saver.is_saving,
            revoking=self._revocation.in_flight,
            policy=self.policy,
            prompt=self.prompt.state,
            deletion=self._deletion.state,
            notifications=self.notifications.drain() if drain else self.notifications.peek(),
        )

    def update_draft(self, changes: dict[str, Any]) -> None:
        """Apply field changes from the rendering layer.

        Raises:
            ActionInProgressError: While a save is running.
            ValidationError: For unknown fields or bad values.
        """
        if self._saver.is_saving:
            raise ActionInProgressError("save")
        for field, value in changes.items():
            self.store.set(field, value)

    def set_form_valid(self, valid: bool) -> None:
        """Record whether the rendered form currently validates."""
        self.form_valid = valid

    async def save(self) -> None:
        """Start saving the draft.

        Raises:
            ActionInProgressError: While a save or a session revocation is running.
            ConflictError: If the draft is unchanged or the form does not validate.
        """
        if self._saver.is_saving:
            raise ActionInProgressError("save")
        if self._revocation.in_flight:
            raise ActionInProgressError("revoke_sessions")
        if not self.save_enabled:
            raise ConflictError("Save is disabled: no changes or invalid form", error_type="save_disabled")
        await self._start(self._saver.save, self.store, self.policy)

    async def request_deletion(self) -> None:
        """Start the account deletion flow.

        Raises:
            AuthorizationError: If administrators disabled self-deletion.
        """
        if not self.policy.can_delete_own_account:
            raise AuthorizationError("Deleting your own account is not allowed")
        await self._start(self._deletion.request_deletion)

    async def revoke_sessions(self) -> None:
        """Sign out the user's other sessions."""
        await self._revocation.revoke()

    async def confirm_prompt(self, value: str = "") -> None:
        """Answer the open prompt and continue the parked action."""
        task = self._parked_task()
        self.prompt.confirm(value)
        await self._settle(task)

    async def cancel_prompt(self) -> None:
        """Cancel the open prompt and let the parked action unwind."""
        task = self._parked_task()
        self.prompt.cancel()
        await self._settle(task)

    async def close(self) -> None:
        """Unmount: cancel any open prompt so no credential outlives the page."""
        if self.prompt.is_active and self._parked is not None:
            await self.cancel_prompt()

    def _parked_task(self) -> asyncio.Task:
        if self._parked is None or not self.prompt.is_active:
            raise ConflictError("No confirmation prompt is open", error_type="no_prompt")
        return self._parked

    async def _start(self, action: Callable[..., Awaitable[Any]], *args: Any) -> None:
        if self.prompt.is_active:
            raise PromptBusyError()
        await self._settle(asyncio.create_task(action(*args)))

    async def _settle(self, task: asyncio.Task) -> None:
        shown = asyncio.create_task(self.prompt.wait_shown())
        try:
            await asyncio.wait({task, shown}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            shown.cancel()

        if task.done():
            self._parked = None
            # Re-raise errors the action did not report itself
            task.result()
        else:
            self._parked = task


@dataclass
class PageRegistryConfig:
    """Configuration for mounted page expiry."""

    max_size: int = 1000  # Maximum mounted pages
    ttl_seconds: int = 900  # Idle time before a page is unmounted
    cleanup_interval_seconds: int = 60

    @classmethod
    def from_settings(cls) -> "PageRegistryConfig":
        """Create config from application settings."""
        from src.core.config import get_settings
        settings = get_settings()
        return cls(
            max_size=settings.page_registry_max_size,
            ttl_seconds=settings.page_idle_ttl_seconds,
            cleanup_interval_seconds=settings.page_cleanup_interval_seconds,
        )


@dataclass
class PageEntry:
    """A mounted page with its idle expiration."""

    page: AccountPageController
    expires_at: float

    def is_expired(self) -> bool:
        """Check if the page has been idle past its TTL."""
        return time.time() >= self.expires_at


class AccountPageRegistry:
    """Mounted account pages, one per user, unmounted after sitting idle."""

    def __init__(self, config: PageRegistryConfig | None = None) -> None:
        self.config = config or PageRegistryConfig()
        self._pages: dict[UUID, PageEntry] = {}
        self._cleanup_task: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._pages)

    async def start_cleanup_task(self) -> None:
        """Start background cleanup task."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
            logger.info("Account page cleanup task started")

    async def stop_cleanup_task(self) -> None:
        """Stop background cleanup task."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
            logger.info("Account page cleanup task stopped")

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.cleanup_interval_seconds)
            count = await self.cleanup()
            if count > 0:
                logger.debug("Unmounted %d idle account pages", count)

    async def mount(self, user_id: UUID, gateway: AccountGateway) -> AccountPageController:
        """Return the user's page, loading account and settings on first use.

        Settings are re-read on every call so administrator changes apply
        from the next render.
        """
        settings = await gateway.fetch_settings()
        entry = self._pages.get(user_id)
        if entry is not None and entry.is_expired():
            await self.unmount(user_id)
            entry = None

        if entry is None:
            account = await gateway.fetch_account()
            await self._make_room()
            entry = PageEntry(AccountPageController(gateway, account, settings), self._deadline())
            self._pages[user_id] = entry
            logger.info("Account page mounted for %s", user_id)
        else:
            entry.page.use_gateway(gateway)
            entry.page.apply_settings(settings)
            entry.expires_at = self._deadline()
        return entry.page

    async def get(self, user_id: UUID, gateway: AccountGateway) -> AccountPageController:
        """Return the mounted page, bound to this request's gateway.

        Raises:
            NotFoundError: If the page is not mounted or sat idle too long.
        """
        entry = self._pages.get(user_id)
        if entry is not None and entry.is_expired():
            await self.unmount(user_id)
            entry = None
        if entry is None:
            raise NotFoundError("Account page is not open")

        entry.page.use_gateway(gateway)
        entry.expires_at = self._deadline()
        return entry.page

    async def unmount(self, user_id: UUID) -> None:
        """Discard the user's page and everything it holds."""
        entry = self._pages.pop(user_id, None)
        if entry is not None:
            await entry.page.close()
            logger.info("Account page unmounted for %s", user_id)

    async def cleanup(self) -> int:
        """Unmount every expired page.

        Returns:
            Number of pages unmounted.
        """
        expired = [user_id for user_id, entry in self._pages.items() if entry.is_expired()]
        for user_id in expired:
            await self.unmount(user_id)
        return len(expired)

    async def shutdown(self) -> None:
        """Stop the cleanup task and unmount every page."""
        await self.stop_cleanup_task()
        for user_id in list(self._pages):
            await self.unmount(user_id)

    def clear(self) -> None:
        """Drop every mounted page without closing it."""
        self._pages.clear()

    def _deadline(self) -> float:
        return time.time() + self.config.ttl_seconds

    async def _make_room(self) -> None:
        await self.cleanup()
        if len(self._pages) < self.config.max_size:
            return
        # Oldest deadline is the page idle the longest
        to_remove = len(self._pages) - self.config.max_size + 1
        oldest = sorted(self._pages.items(), key=lambda item: item[1].expires_at)[:to_remove]
        for user_id, _ in oldest:
            await self.unmount(user_id)
        logger.debug("Evicted %d account pages to make room", to_remove)


_registry: AccountPageRegistry | None = None


def get_account_page_registry() -> AccountPageRegistry:
    """Get or create the process-wide account page registry."""
    global _registry
    if _registry is None:
        _registry = AccountPageRegistry(PageRegistryConfig.from_settings())
    return _registry
