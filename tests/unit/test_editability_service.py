"""Unit tests for editability rules."""

import pytest

from src.api.middleware.error_handler import ConfigurationError
from src.schemas.account import AccountSettings
from src.schemas.profile import AccountSnapshot, ProfileDraft
from src.services.editability_service import derive_policy, requires_reauthentication


class TestDerivePolicy:
    """Tests for derive_policy."""

    def test_copies_settings_flags(self) -> None:
        """Test that each policy flag follows its setting."""
        settings = AccountSettings(
            allow_real_name_change=False,
            allow_email_change=True,
            allow_password_change=False,
            allow_user_avatar_change=False,
            allow_user_status_message_change=True,
            allow_delete_own_account=True,
            require_name_for_signup=False,
        )

        policy = derive_policy(settings)

        assert policy.can_change_real_name is False
        assert policy.can_change_email is True
        assert policy.can_change_password is False
        assert policy.can_change_avatar is False
        assert policy.can_change_status_message is True
        assert policy.can_delete_own_account is True
        assert policy.require_name_on_signup is False

    @pytest.mark.parametrize(
        ("allow_username_change", "ldap_enabled", "expected"),
        [
            (True, False, True),
            (True, True, False),
            (False, False, False),
            (False, True, False),
        ],
    )
    def test_username_requires_setting_and_no_directory(
        self, allow_username_change: bool, ldap_enabled: bool, expected: bool
    ) -> None:
        """Test that directory sync always blocks username changes."""
        settings = AccountSettings(allow_username_change=allow_username_change, ldap_enabled=ldap_enabled)

        assert derive_policy(settings).can_change_username is expected

    def test_username_pattern_is_anchored(self) -> None:
        """Test that the names expression must match the whole username."""
        policy = derive_policy(AccountSettings(names_validation="[a-z]+"))

        assert policy.username_pattern.pattern == "^[a-z]+$"
        assert policy.username_pattern.match("alice")
        assert policy.username_pattern.match("alice!") is None

    def test_reads_setting_ids(self) -> None:
        """Test that settings validate from administrator setting ids."""
        settings = AccountSettings.model_validate({"LDAP_Enable": True, "UTF8_Names_Validation": "[0-9]+"})

        policy = derive_policy(settings)

        assert policy.can_change_username is False
        assert policy.username_pattern.match("123")

    def test_invalid_expression_is_configuration_error(self) -> None:
        """Test that a broken expression surfaces instead of being swallowed."""
        with pytest.raises(ConfigurationError) as exc_info:
            derive_policy(AccountSettings(names_validation="[a-z"))

        assert exc_info.value.error_type == "configuration_error"


class TestRequiresReauthentication:
    """Tests for requires_reauthentication."""

    @pytest.fixture
    def snapshot(self, account: AccountSnapshot) -> ProfileDraft:
        """Snapshot seeded from the test account."""
        return ProfileDraft.from_account(account)

    def test_email_change_with_local_password(self, snapshot: ProfileDraft) -> None:
        """Test that an email change needs the password."""
        draft = snapshot.model_copy(update={"email": "b@x.com"})

        assert requires_reauthentication(draft, snapshot, local_password=True) is True

    def test_new_password_with_local_password(self, snapshot: ProfileDraft) -> None:
        """Test that typing a new password needs the current one."""
        draft = snapshot.model_copy(update={"password": "n3w"})

        assert requires_reauthentication(draft, snapshot, local_password=True) is True

    def test_username_change_alone(self, snapshot: ProfileDraft) -> None:
        """Test that changing only the username never asks for the password."""
        draft = snapshot.model_copy(update={"username": "alice2", "realname": "Alice B"})

        assert requires_reauthentication(draft, snapshot, local_password=True) is False

    def test_without_local_password(self, snapshot: ProfileDraft) -> None:
        """Test that accounts without a local password are never asked."""
        draft = snapshot.model_copy(update={"email": "b@x.com", "password": "n3w"})

        assert requires_reauthentication(draft, snapshot, local_password=False) is False
