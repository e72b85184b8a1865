"""Collects toast notifications produced by account page actions."""

import logging

from src.api.middleware.error_handler import APIError, RemoteServiceError
from src.schemas.account import Notification

logger = logging.getLogger(__name__)


class NotificationCenter:
    """Buffers notifications until the client picks them up."""

    def __init__(self) -> None:
        self._pending: list[Notification] = []

    def success(self, message: str) -> None:
        """Queue a success notification."""
        logger.info("Notify success: %s", message)
        self._pending.append(Notification(type="success", message=message))

    def error(self, error: APIError) -> None:
        """Queue an error notification carrying the error unchanged."""
        logger.warning("Notify error: %s - %s", error.error_type, error.message)
        payload = error.payload if isinstance(error, RemoteServiceError) else None
        self._pending.append(
            Notification(
                type="error",
                message=error.message,
                error_type=error.error_type,
                payload=payload or None,
            )
        )

    def peek(self) -> list[Notification]:
        """Pending notifications, without removing them."""
        return list(self._pending)

    def drain(self) -> list[Notification]:
        """Return and clear pending notifications."""
        pending, self._pending = self._pending, []
        return pending
