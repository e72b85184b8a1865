"""Unit tests for session revocation and notifications."""

import asyncio
from unittest.mock import MagicMock

import pytest

from src.api.middleware.error_handler import ActionInProgressError, RemoteServiceError, ValidationError
from src.services.notification_service import NotificationCenter
from src.services.session_revocation_service import SessionRevocationAction


class TestRevoke:
    """Tests for SessionRevocationAction.revoke."""

    @pytest.mark.asyncio
    async def test_success_notifies(self, mock_gateway: MagicMock) -> None:
        """Test that a successful revocation is announced."""
        notifications = NotificationCenter()
        action = SessionRevocationAction(mock_gateway, notifications)

        assert await action.revoke() is True

        mock_gateway.revoke_other_sessions.assert_awaited_once()
        [notification] = notifications.drain()
        assert notification.type == "success"
        assert notification.message == "Logged_out_of_other_clients_successfully"
        assert action.in_flight is False

    @pytest.mark.asyncio
    async def test_failure_reports_error(self, mock_gateway: MagicMock) -> None:
        """Test that a failure is reported and the control is enabled again."""
        mock_gateway.revoke_other_sessions.side_effect = RemoteServiceError(
            "Session not found", code="session_not_found", payload={"status": 404}
        )
        notifications = NotificationCenter()
        action = SessionRevocationAction(mock_gateway, notifications)

        assert await action.revoke() is False

        [notification] = notifications.drain()
        assert notification.type == "error"
        assert notification.message == "Session not found"
        assert notification.error_type == "session_not_found"
        assert notification.payload == {"status": 404}
        assert action.in_flight is False

    @pytest.mark.asyncio
    async def test_second_call_while_in_flight(self, mock_gateway: MagicMock) -> None:
        """Test that the action is disabled while a revocation runs."""
        release = asyncio.Event()

        async def slow_revoke() -> None:
            await release.wait()

        mock_gateway.revoke_other_sessions.side_effect = slow_revoke
        action = SessionRevocationAction(mock_gateway, NotificationCenter())

        first = asyncio.create_task(action.revoke())
        await asyncio.sleep(0)
        assert action.in_flight is True

        with pytest.raises(ActionInProgressError):
            await action.revoke()

        release.set()
        assert await first is True
        assert mock_gateway.revoke_other_sessions.await_count == 1


class TestNotificationCenter:
    """Tests for NotificationCenter."""

    def test_drain_clears_and_peek_keeps(self) -> None:
        """Test that peek leaves notifications pending and drain empties them."""
        center = NotificationCenter()
        center.success("Profile_saved_successfully")

        assert len(center.peek()) == 1
        assert len(center.drain()) == 1
        assert center.drain() == []

    def test_local_error_has_no_payload(self) -> None:
        """Test that non-remote errors are reported without a payload."""
        center = NotificationCenter()
        center.error(ValidationError("Avatar must be a base64 data URI"))

        [notification] = center.drain()
        assert notification.error_type == "validation_error"
        assert notification.payload is None
