"""Integration tests for account page endpoints."""

from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from src.api.middleware.error_handler import OwnerConflictError, ReauthenticationError
from src.core.security import hash_credential
from src.schemas.account import AccountSettings

PAGE = "/api/v1/account/page"


class TestOpenPage:
    """Tests for GET and DELETE /api/v1/account/page."""

    def test_get_mounts_page(self, client: TestClient, mock_gateway: MagicMock) -> None:
        """Test that opening the page returns the seeded draft and policy."""
        response = client.get(PAGE)

        assert response.status_code == 200
        data = response.json()
        assert data["draft"]["realname"] == "Alice Example"
        assert data["draft"]["statusText"] == "Working"
        assert "password" not in data["draft"]
        assert data["dirty"] is False
        assert data["save_enabled"] is False
        assert data["prompt"] == {"kind": "none"}
        assert data["deletion"]["phase"] == "idle"
        assert data["policy"]["can_delete_own_account"] is True
        mock_gateway.fetch_account.assert_awaited_once()

    def test_actions_need_open_page(self, client: TestClient) -> None:
        """Test that actions on an unmounted page return 404."""
        response = client.post(f"{PAGE}/save")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_close_discards_draft(self, client: TestClient, mock_gateway: MagicMock) -> None:
        """Test that closing the page drops unsaved edits."""
        client.get(PAGE)
        client.patch(f"{PAGE}/draft", json={"bio": "unsaved"})

        assert client.delete(PAGE).status_code == 204

        data = client.get(PAGE).json()
        assert data["draft"]["bio"] == "Hello"
        assert mock_gateway.fetch_account.await_count == 2

    def test_settings_reread_on_render(self, client: TestClient, mock_gateway: MagicMock) -> None:
        """Test that a later GET picks up administrator changes."""
        client.get(PAGE)
        mock_gateway.fetch_settings.return_value = AccountSettings(allow_delete_own_account=True, ldap_enabled=True)

        data = client.get(PAGE).json()

        assert data["policy"]["can_change_username"] is False


class TestDraft:
    """Tests for PATCH /draft and PUT /validity."""

    def test_edit_makes_dirty(self, client: TestClient) -> None:
        """Test that editing a field enables save."""
        client.get(PAGE)

        response = client.patch(f"{PAGE}/draft", json={"statusText": "Away"})

        assert response.status_code == 200
        data = response.json()
        assert data["draft"]["statusText"] == "Away"
        assert data["dirty"] is True
        assert data["save_enabled"] is True

    def test_unknown_field_rejected(self, client: TestClient) -> None:
        """Test that unknown draft fields are rejected."""
        client.get(PAGE)

        response = client.patch(f"{PAGE}/draft", json={"nickname": "al"})

        assert response.status_code == 422

    def test_invalid_form_disables_save(self, client: TestClient) -> None:
        """Test that the rendering layer's validity gates save."""
        client.get(PAGE)
        client.patch(f"{PAGE}/draft", json={"bio": "Changed"})

        data = client.put(f"{PAGE}/validity", json={"valid": False}).json()

        assert data["form_valid"] is False
        assert data["save_enabled"] is False

    def test_save_refused_when_disabled(self, client: TestClient, mock_gateway: MagicMock) -> None:
        """Test that save is refused for an invalid form and nothing is sent."""
        client.get(PAGE)
        client.patch(f"{PAGE}/draft", json={"bio": "Changed"})
        client.put(f"{PAGE}/validity", json={"valid": False})

        response = client.post(f"{PAGE}/save")

        assert response.status_code == 409
        assert response.json()["error"] == "save_disabled"
        mock_gateway.save_profile.assert_not_awaited()

    def test_save_refused_without_changes(self, client: TestClient, mock_gateway: MagicMock) -> None:
        """Test that a clean page cannot be saved."""
        client.get(PAGE)

        response = client.post(f"{PAGE}/save")

        assert response.status_code == 409
        mock_gateway.save_profile.assert_not_awaited()


class TestSave:
    """Tests for POST /save with the password prompt."""

    def test_email_change_round_trip(self, client: TestClient, mock_gateway: MagicMock) -> None:
        """Test save, password prompt and confirmation across requests."""
        client.get(PAGE)
        client.patch(f"{PAGE}/draft", json={"email": "b@x.com"})

        data = client.post(f"{PAGE}/save").json()
        assert data["prompt"]["kind"] == "credential"
        assert data["prompt"]["is_secret"] is True
        assert data["saving"] is True

        data = client.post(f"{PAGE}/prompt/confirm", json={"value": "secret1"}).json()

        assert data["prompt"] == {"kind": "none"}
        assert data["dirty"] is False
        assert data["draft"]["email"] == "b@x.com"
        assert data["notifications"][0]["message"] == "Profile_saved_successfully"
        diff, _ = mock_gateway.save_profile.await_args.args
        assert diff["email"] == "b@x.com"
        assert diff["typedPassword"] == hash_credential("secret1")
        assert "password" not in diff

    def test_cancel_keeps_draft(self, client: TestClient, mock_gateway: MagicMock) -> None:
        """Test that cancelling the password prompt keeps the edit and calls nothing."""
        client.get(PAGE)
        client.patch(f"{PAGE}/draft", json={"email": "b@x.com"})
        client.post(f"{PAGE}/save")

        data = client.post(f"{PAGE}/prompt/cancel").json()

        assert data["prompt"] == {"kind": "none"}
        assert data["draft"]["email"] == "b@x.com"
        assert data["dirty"] is True
        mock_gateway.save_profile.assert_not_awaited()

    def test_rejected_password_notified(self, client: TestClient, mock_gateway: MagicMock) -> None:
        """Test that the server's error reaches the client unchanged."""
        mock_gateway.save_profile.side_effect = ReauthenticationError()
        client.get(PAGE)
        client.patch(f"{PAGE}/draft", json={"email": "b@x.com"})
        client.post(f"{PAGE}/save")

        data = client.post(f"{PAGE}/prompt/confirm", json={"value": "wrong"}).json()

        [notification] = data["notifications"]
        assert notification["type"] == "error"
        assert notification["error_type"] == "error-invalid-password"
        assert data["dirty"] is True

    def test_confirm_without_prompt(self, client: TestClient) -> None:
        """Test that answering with no prompt open is a conflict."""
        client.get(PAGE)

        response = client.post(f"{PAGE}/prompt/confirm", json={"value": "x"})

        assert response.status_code == 409
        assert response.json()["error"] == "no_prompt"


class TestDelete:
    """Tests for POST /delete."""

    def test_owner_conflict_then_deleted(self, client: TestClient, mock_gateway: MagicMock) -> None:
        """Test the full deletion flow with the last-owner warning."""
        mock_gateway.delete_own_account.side_effect = [
            OwnerConflictError(should_change_owner=True, should_be_removed=False),
            None,
        ]
        client.get(PAGE)

        data = client.post(f"{PAGE}/delete").json()
        assert data["deletion"]["phase"] == "await_credential"
        assert data["prompt"]["title"] == "Are_you_sure_you_want_to_delete_your_account"

        data = client.post(f"{PAGE}/prompt/confirm", json={"value": "secret1"}).json()
        assert data["deletion"]["phase"] == "await_owner_resolution"
        assert data["prompt"]["kind"] == "owner_conflict"
        assert data["prompt"]["title"] == "Delete_User_Warning_Delete"
        assert "hashed_credential" not in data["deletion"]

        data = client.post(f"{PAGE}/prompt/confirm", json={}).json()
        assert data["deletion"]["phase"] == "done"
        assert data["notifications"][0]["message"] == "User_has_been_deleted"

        # The page is unmounted once the account is gone
        assert client.post(f"{PAGE}/save").status_code == 404

    def test_prompt_busy(self, client: TestClient) -> None:
        """Test that deletion cannot start while the save prompt is open."""
        client.get(PAGE)
        client.patch(f"{PAGE}/draft", json={"email": "b@x.com"})
        client.post(f"{PAGE}/save")

        response = client.post(f"{PAGE}/delete")

        assert response.status_code == 409
        assert response.json()["error"] == "prompt_busy"
        client.post(f"{PAGE}/prompt/cancel")

    def test_disallowed(self, client: TestClient, mock_gateway: MagicMock) -> None:
        """Test that deletion is forbidden when administrators disable it."""
        mock_gateway.fetch_settings.return_value = AccountSettings()
        client.get(PAGE)

        response = client.post(f"{PAGE}/delete")

        assert response.status_code == 403


class TestRevokeSessions:
    """Tests for POST /sessions/revoke."""

    def test_success(self, client: TestClient, mock_gateway: MagicMock) -> None:
        """Test that revoking other sessions reports success."""
        client.get(PAGE)

        data = client.post(f"{PAGE}/sessions/revoke").json()

        mock_gateway.revoke_other_sessions.assert_awaited_once()
        assert data["revoking"] is False
        assert data["notifications"][0]["message"] == "Logged_out_of_other_clients_successfully"

    def test_uses_current_request_gateway(self, client: TestClient, mock_gateway: MagicMock) -> None:
        """Test that revocation signs out with the token of the revoking request."""
        from src.api.deps import get_account_gateway
        from src.main import app

        client.get(PAGE)
        refreshed = MagicMock()
        refreshed.revoke_other_sessions = AsyncMock(return_value=None)
        app.dependency_overrides[get_account_gateway] = lambda: refreshed

        response = client.post(f"{PAGE}/sessions/revoke")

        assert response.status_code == 200
        refreshed.revoke_other_sessions.assert_awaited_once()
        mock_gateway.revoke_other_sessions.assert_not_awaited()


class TestAuth:
    """Tests for authentication on account routes."""

    def test_missing_token(self, mock_gateway: MagicMock) -> None:
        """Test that requests without a bearer token are rejected."""
        from src.api.deps import get_account_gateway
        from src.main import app

        app.dependency_overrides[get_account_gateway] = lambda: mock_gateway
        try:
            with TestClient(app) as test_client:
                response = test_client.get(PAGE)
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 401
