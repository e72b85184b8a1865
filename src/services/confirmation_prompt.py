"""The account page's single confirmation prompt slot."""

import asyncio
import logging

from src.api.middleware.error_handler import ConflictError, PromptBusyError
from src.schemas.account import NoPrompt, PromptConfig, PromptState

logger = logging.getLogger(__name__)


class ConfirmationPrompt:
    """Exclusive prompt slot shared by every action on the page.

    ``show`` parks the calling action until the user confirms or cancels.
    Only one prompt can be open; a second ``show`` is rejected with
    ``PromptBusyError`` instead of being queued.
    """

    def __init__(self) -> None:
        self._state: PromptState = NoPrompt()
        self._future: asyncio.Future[str | None] | None = None
        self._shown = asyncio.Event()

    @property
    def state(self) -> PromptState:
        """The prompt currently shown, or ``NoPrompt``."""
        return self._state

    @property
    def is_active(self) -> bool:
        """Whether a prompt is waiting for an answer."""
        return self._future is not None

    async def show(self, config: PromptConfig) -> str | None:
        """Open a prompt and wait for the answer.

        Args:
            config: What to display.

        Returns:
            str | None: The confirmed value, or None when the user cancelled.

        Raises:
            PromptBusyError: If another prompt is already open.
        """
        if self._future is not None:
            raise PromptBusyError()

        future: asyncio.Future[str | None] = asyncio.get_running_loop().create_future()
        self._future = future
        self._state = config
        self._shown.set()
        logger.info("Prompt opened: %s", config.kind)

        try:
            return await future
        finally:
            # Dismiss if the waiting action went away without an answer
            if self._future is future:
                self._dismiss()

    def confirm(self, value: str = "") -> None:
        """Answer the open prompt with a value."""
        self._resolve(value)

    def cancel(self) -> None:
        """Cancel the open prompt."""
        self._resolve(None)

    async def wait_shown(self) -> None:
        """Block until a prompt is open."""
        await self._shown.wait()

    def _resolve(self, value: str | None) -> None:
        future = self._future
        if future is None:
            raise ConflictError("No confirmation prompt is open", error_type="no_prompt")

        kind = self._state.kind
        self._dismiss()
        if not future.done():
            future.set_result(value)
        logger.info("Prompt %s: %s", "cancelled" if value is None else "confirmed", kind)

    def _dismiss(self) -> None:
        self._future = None
        self._state = NoPrompt()
        self._shown.clear()
