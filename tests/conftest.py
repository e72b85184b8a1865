"""Pytest configuration and fixtures."""

import os
from collections.abc import Callable, Generator
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SUPABASE_SIGNING_KEY_JWK", "test-signing-key-jwk")

from src.schemas.account import AccountSettings  # noqa: E402
from src.schemas.auth import UserContext  # noqa: E402
from src.schemas.profile import AccountSnapshot  # noqa: E402

TEST_USER_ID = UUID("550e8400-e29b-41d4-a716-446655440000")


@pytest.fixture
def account_factory() -> Callable[..., AccountSnapshot]:
    """Build account snapshots with overridable fields."""

    def factory(**overrides: Any) -> AccountSnapshot:
        values: dict[str, Any] = {
            "user_id": TEST_USER_ID,
            "name": "Alice Example",
            "email": "a@x.com",
            "username": "alice",
            "avatar_url": "https://cdn.example.com/alice.png",
            "status_text": "Working",
            "status": "online",
            "bio": "Hello",
            "custom_fields": {"team": "core", "tags": ["a", "b"]},
            "local_password": True,
        }
        values.update(overrides)
        return AccountSnapshot(**values)

    return factory


@pytest.fixture
def account(account_factory: Callable[..., AccountSnapshot]) -> AccountSnapshot:
    """Account with a local password."""
    return account_factory()


@pytest.fixture
def account_settings() -> AccountSettings:
    """Settings allowing every change, including self-deletion."""
    return AccountSettings(allow_delete_own_account=True)


@pytest.fixture
def mock_gateway(account: AccountSnapshot, account_settings: AccountSettings) -> MagicMock:
    """Provide a mocked account gateway whose remote calls succeed."""
    gateway = MagicMock()
    gateway.fetch_account = AsyncMock(return_value=account)
    gateway.fetch_settings = AsyncMock(return_value=account_settings)
    gateway.save_profile = AsyncMock(return_value=None)
    gateway.upload_avatar = AsyncMock(return_value="https://cdn.example.com/new.png")
    gateway.delete_own_account = AsyncMock(return_value=None)
    gateway.revoke_other_sessions = AsyncMock(return_value=None)
    return gateway


@pytest.fixture
def test_user() -> UserContext:
    """Authenticated user for route tests."""
    return UserContext(user_id=TEST_USER_ID, email="a@x.com", role="authenticated", access_token="test-token")


@pytest.fixture
def client(mock_gateway: MagicMock, test_user: UserContext) -> Generator[TestClient, None, None]:
    """Provide a test client with auth and the account gateway overridden.

    The client is used as a context manager so every request shares one
    event loop; actions parked on a prompt survive between requests.
    """
    from src.api.deps import get_account_gateway, get_current_user
    from src.main import app
    from src.services.account_page_service import get_account_page_registry

    app.dependency_overrides[get_current_user] = lambda: test_user
    app.dependency_overrides[get_account_gateway] = lambda: mock_gateway
    get_account_page_registry().clear()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    get_account_page_registry().clear()
