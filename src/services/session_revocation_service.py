"""Sign-out of the user's other sessions."""

import logging

from src.api.middleware.error_handler import ActionInProgressError, APIError
from src.services.account_gateway import AccountGateway
from src.services.notification_service import NotificationCenter

logger = logging.getLogger(__name__)


class SessionRevocationAction:
    """Revokes other sessions, one request at a time."""

    def __init__(self, gateway: AccountGateway, notifications: NotificationCenter) -> None:
        self.gateway = gateway
        self._notifications = notifications
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        """Whether a revocation is running (the control is disabled)."""
        return self._in_flight

    async def revoke(self) -> bool:
        """Revoke every other session of the user.

        Returns:
            bool: True on success, False when the failure was reported.

        Raises:
            ActionInProgressError: If a revocation is already running.
        """
        if self._in_flight:
            raise ActionInProgressError("revoke_sessions")

        self._in_flight = True
        try:
            await self.gateway.revoke_other_sessions()
        except APIError as e:
            logger.warning("Session revocation failed: %s", e.message)
            self._notifications.error(e)
            return False
        finally:
            self._in_flight = False

        self._notifications.success("Logged_out_of_other_clients_successfully")
        return True
