"""Account page Pydantic schemas: settings, policy, prompts and page state."""

import re
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class AccountSettings(BaseModel):
    """Administrator settings consumed by the account page.

    Keys match the administrator setting ids so rows from the settings store
    can be validated directly; defaults match a fresh installation.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    allow_real_name_change: bool = Field(default=True, alias="Accounts_AllowRealNameChange")
    allow_user_status_message_change: bool = Field(default=True, alias="Accounts_AllowUserStatusMessageChange")
    allow_username_change: bool = Field(default=True, alias="Accounts_AllowUsernameChange")
    allow_email_change: bool = Field(default=True, alias="Accounts_AllowEmailChange")
    allow_password_change: bool = Field(default=True, alias="Accounts_AllowPasswordChange")
    allow_user_avatar_change: bool = Field(default=True, alias="Accounts_AllowUserAvatarChange")
    allow_delete_own_account: bool = Field(default=False, alias="Accounts_AllowDeleteOwnAccount")
    ldap_enabled: bool = Field(default=False, alias="LDAP_Enable")
    require_name_for_signup: bool = Field(default=True, alias="Accounts_RequireNameForSignUp")
    names_validation: str = Field(default="[0-9a-zA-Z-_.]+", alias="UTF8_Names_Validation")
    message_erasure_type: str = Field(default="Delete", alias="Message_ErasureType")

    @classmethod
    def setting_ids(cls) -> list[str]:
        """Administrator setting ids this model reads."""
        return [info.alias for info in cls.model_fields.values() if info.alias]


class EditabilityPolicy(BaseModel):
    """Which profile fields the user may change, derived from settings."""

    model_config = ConfigDict(frozen=True)

    can_change_real_name: bool
    can_change_email: bool
    can_change_password: bool
    can_change_username: bool
    can_change_avatar: bool
    can_change_status_message: bool
    can_delete_own_account: bool
    require_name_on_signup: bool
    username_pattern: re.Pattern[str]


# Prompt slot variants


class NoPrompt(BaseModel):
    """No prompt is open."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["none"] = "none"


class CredentialPrompt(BaseModel):
    """Single-line text or password entry."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["credential"] = "credential"
    title: str = Field(description="Translation key of the prompt title")
    body: str = Field(description="Translation key of the prompt text")
    is_secret: bool = Field(default=False, description="Mask the input (password entry)")


class OwnerConflictPrompt(BaseModel):
    """Warning shown when deletion would orphan rooms the user solely owns."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["owner_conflict"] = "owner_conflict"
    title: str = Field(description="Translation key of the warning title")
    confirm_label: str = Field(default="Continue", description="Translation key of the confirm button")
    should_change_owner: bool
    should_be_removed: bool


PromptConfig = Union[CredentialPrompt, OwnerConflictPrompt]
PromptState = Annotated[Union[NoPrompt, CredentialPrompt, OwnerConflictPrompt], Field(discriminator="kind")]


# Account deletion


class DeletionPhase(str, Enum):
    """Account deletion flow phases."""

    IDLE = "idle"
    AWAIT_CREDENTIAL = "await_credential"
    AWAIT_OWNER_RESOLUTION = "await_owner_resolution"
    IN_FLIGHT = "in_flight"
    DONE = "done"
    FAILED = "failed"


class CredentialKind(str, Enum):
    """What the user types to confirm account deletion."""

    PASSWORD = "password"
    USERNAME = "username"


class OwnerConflict(BaseModel):
    """Server-reported last-owner conflict payload."""

    model_config = ConfigDict(frozen=True)

    should_change_owner: bool
    should_be_removed: bool


class DeletionState(BaseModel):
    """Complete state of the account deletion flow.

    ``hashed_credential`` is excluded from every dump so it never leaves the
    process.
    """

    model_config = ConfigDict(frozen=True)

    phase: DeletionPhase = DeletionPhase.IDLE
    credential_kind: CredentialKind | None = None
    hashed_credential: str | None = Field(default=None, exclude=True, repr=False)
    conflict: OwnerConflict | None = None
    error: str | None = None


# Notifications and page state


class Notification(BaseModel):
    """A message for the toast surface."""

    type: Literal["success", "error"]
    message: str = Field(description="Translation key or server error message")
    error_type: str | None = Field(default=None, description="Error code for error notifications")
    payload: dict[str, Any] | None = Field(default=None, description="Server error payload, unchanged")


class PromptAnswer(BaseModel):
    """Value typed into the open prompt."""

    value: str = Field(default="", max_length=1024, description="Typed text or password")


class FormValidity(BaseModel):
    """Validity of the rendered form as reported by the client."""

    valid: bool


class AccountPageState(BaseModel):
    """Everything the client needs to render the account page."""

    draft: dict[str, Any] = Field(description="Draft values keyed by form field name")
    dirty: bool
    form_valid: bool
    save_enabled: bool
    saving: bool
    revoking: bool
    policy: EditabilityPolicy
    prompt: PromptState
    deletion: DeletionState
    notifications: list[Notification] = Field(default_factory=list)
