"""Profile Pydantic schemas for the account page draft and snapshot."""

from copy import deepcopy
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AccountSnapshot(BaseModel):
    """The authenticated user's account as loaded from the remote service."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID = Field(description="Auth user ID")
    name: str | None = Field(default=None, description="Display (real) name")
    email: str | None = Field(default=None, description="Primary email address")
    username: str | None = Field(default=None, description="Username")
    avatar_url: str | None = Field(default=None, description="Current avatar URL")
    status_text: str | None = Field(default=None, description="Custom status message")
    status: str | None = Field(default=None, description="Presence status type")
    bio: str | None = Field(default=None, description="Free-text biography")
    custom_fields: dict[str, Any] | None = Field(default=None, description="Administrator-defined custom fields")
    local_password: bool = Field(default=False, description="Whether a local password credential exists")


class ProfileDraft(BaseModel):
    """Editable copy of the profile fields shown on the account page.

    Instances are immutable; the draft store swaps in a new instance on every
    change, so a snapshot handed out earlier never changes underneath a diff.
    ``avatar`` holds a pending data URI, or is empty when no avatar change is
    pending.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    realname: str = ""
    email: str = ""
    username: str = ""
    password: str = ""
    confirmation_password: str = ""
    avatar: str = ""
    url: str = ""
    status_text: str = ""
    status_type: str = ""
    bio: str = ""
    custom_fields: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_account(cls, account: AccountSnapshot) -> "ProfileDraft":
        """Seed a draft from the loaded account."""
        return cls(
            realname=account.name or "",
            email=account.email or "",
            username=account.username or "",
            url=account.avatar_url or "",
            status_text=account.status_text or "",
            status_type=account.status or "",
            bio=account.bio or "",
            custom_fields=deepcopy(account.custom_fields or {}),
        )

    @classmethod
    def field_for(cls, name: str) -> str | None:
        """Resolve a field name or its camelCase alias to the attribute name."""
        if name in cls.model_fields:
            return name
        for attribute, info in cls.model_fields.items():
            if info.alias == name:
                return attribute
        return None

    def public_view(self) -> dict[str, Any]:
        """Draft values safe to hand back to the client (no typed passwords)."""
        return self.model_dump(by_alias=True, exclude={"password", "confirmation_password"})


class ProfileDraftPatch(BaseModel):
    """Partial draft update sent by the rendering layer."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    realname: str | None = None
    email: str | None = None
    username: str | None = None
    password: str | None = None
    confirmation_password: str | None = None
    avatar: str | None = None
    url: str | None = None
    status_text: str | None = None
    status_type: str | None = None
    bio: str | None = None
    custom_fields: dict[str, Any] | None = None

    def changes(self) -> dict[str, Any]:
        """Fields the client actually sent, keyed by attribute name."""
        return self.model_dump(exclude_unset=True)
