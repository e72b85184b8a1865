"""Editability rules derived from administrator settings."""

import re

from src.api.middleware.error_handler import ConfigurationError
from src.schemas.account import AccountSettings, EditabilityPolicy
from src.schemas.profile import ProfileDraft


def derive_policy(settings: AccountSettings) -> EditabilityPolicy:
    """Derive the editability policy for the account page.

    Username changes are refused whenever directory (LDAP) sync is enabled,
    regardless of the username setting.

    Args:
        settings: Administrator settings snapshot.

    Returns:
        EditabilityPolicy: The derived policy.

    Raises:
        ConfigurationError: If the names validation expression does not compile.
    """
    try:
        username_pattern = re.compile(f"^{settings.names_validation}$")
    except re.error as e:
        raise ConfigurationError(
            f"Invalid UTF8_Names_Validation expression: {e}",
            details=[{"loc": ["UTF8_Names_Validation"], "msg": str(e), "type": "invalid_regex"}],
        ) from e

    return EditabilityPolicy(
        can_change_real_name=settings.allow_real_name_change,
        can_change_email=settings.allow_email_change,
        can_change_password=settings.allow_password_change,
        can_change_username=settings.allow_username_change and not settings.ldap_enabled,
        can_change_avatar=settings.allow_user_avatar_change,
        can_change_status_message=settings.allow_user_status_message_change,
        can_delete_own_account=settings.allow_delete_own_account,
        require_name_on_signup=settings.require_name_for_signup,
        username_pattern=username_pattern,
    )


def requires_reauthentication(draft: ProfileDraft, snapshot: ProfileDraft, local_password: bool) -> bool:
    """Whether saving the draft must be confirmed with the current password."""
    return local_password and (draft.email != snapshot.email or bool(draft.password))
