"""Remote account service used by the account page."""

import base64
import binascii
import json
import logging
from typing import Any, Protocol
from uuid import UUID

from supabase import Client

from src.api.middleware.error_handler import (
    AuthenticationError,
    ConfigurationError,
    OwnerConflictError,
    ReauthenticationError,
    RemoteServiceError,
    ValidationError,
)
from src.core.config import get_settings
from src.core.supabase import create_user_client, get_supabase_client
from src.schemas.account import AccountSettings
from src.schemas.profile import AccountSnapshot

logger = logging.getLogger(__name__)

OWNER_CONFLICT_CODE = "user-last-owner"
INVALID_PASSWORD_CODE = "error-invalid-password"


class AccountGateway(Protocol):
    """Remote calls the account page depends on."""

    async def fetch_account(self) -> AccountSnapshot: ...

    async def fetch_settings(self) -> AccountSettings: ...

    async def save_profile(self, diff: dict[str, Any], custom_fields: dict[str, Any]) -> None: ...

    async def upload_avatar(self, encoded_image: str) -> str: ...

    async def delete_own_account(self, hashed_credential: str, force: bool = False) -> None: ...

    async def revoke_other_sessions(self) -> None: ...


def decode_data_uri(encoded: str) -> tuple[str, bytes]:
    """Split a base64 data URI into its content type and bytes.

    Raises:
        ValidationError: If the value is not a base64 data URI.
    """
    header, sep, data = encoded.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise ValidationError("Avatar must be a base64 data URI")

    content_type = header[len("data:"):-len(";base64")] or "application/octet-stream"
    try:
        return content_type, base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("Avatar data is not valid base64") from e


def translate_remote_error(error: Exception) -> RemoteServiceError:
    """Map a Supabase/PostgREST exception onto the account error taxonomy.

    Account RPCs raise with the error key as the message and a JSON object
    as the detail, e.g. ``user-last-owner`` with
    ``{"shouldChangeOwner": true, "shouldBeRemoved": false}``.
    """
    if isinstance(error, RemoteServiceError):
        return error

    message = getattr(error, "message", None) or str(error)
    code = getattr(error, "code", None)
    raw_details = getattr(error, "details", None)

    payload: dict[str, Any] = {}
    if isinstance(raw_details, dict):
        payload = raw_details
    elif isinstance(raw_details, str) and raw_details:
        try:
            parsed = json.loads(raw_details)
            payload = parsed if isinstance(parsed, dict) else {"detail": parsed}
        except json.JSONDecodeError:
            payload = {"detail": raw_details}

    key = message if message in (OWNER_CONFLICT_CODE, INVALID_PASSWORD_CODE) else code

    if key == OWNER_CONFLICT_CODE:
        return OwnerConflictError(
            should_change_owner=bool(payload.get("shouldChangeOwner")),
            should_be_removed=bool(payload.get("shouldBeRemoved")),
        )
    if key == INVALID_PASSWORD_CODE:
        return ReauthenticationError(payload=payload or None)

    return RemoteServiceError(message, code=str(code or "remote_error"), payload=payload or None)


class SupabaseAccountGateway:
    """Account gateway backed by Supabase.

    Profile writes and deletion go through RPCs executed with the user's own
    JWT; session revocation uses the admin API.
    """

    def __init__(self, user_id: UUID, access_token: str) -> None:
        """Initialize the gateway for one authenticated user.

        Args:
            user_id: The auth user ID from the validated token.
            access_token: The raw bearer token.
        """
        self.user_id = user_id
        self._access_token = access_token
        self._client: Client | None = None
        self.settings = get_settings()

    @property
    def client(self) -> Client:
        """Supabase client acting as the user."""
        if self._client is None:
            self._client = create_user_client(self._access_token)
        return self._client

    async def fetch_account(self) -> AccountSnapshot:
        """Load the user's account and profile row.

        Returns:
            AccountSnapshot: Current account values.

        Raises:
            AuthenticationError: If the token no longer maps to a user.
            RemoteServiceError: If the profile cannot be read.
        """
        try:
            user_response = get_supabase_client().auth.get_user(self._access_token)
        except Exception as e:
            logger.warning("Fetching auth user failed for %s: %s", self.user_id, e)
            raise AuthenticationError("Session user not found") from e

        user = user_response.user if user_response else None
        if user is None:
            raise AuthenticationError("Session user not found")

        try:
            response = (
                self.client.table(self.settings.profiles_table)
                .select("*")
                .eq("user_id", str(self.user_id))
                .maybe_single()
                .execute()
            )
        except Exception as e:
            raise translate_remote_error(e) from e

        row: dict[str, Any] = response.data if response and response.data else {}
        providers = (user.app_metadata or {}).get("providers") or []

        return AccountSnapshot(
            user_id=self.user_id,
            name=row.get("name") or (user.user_metadata or {}).get("full_name"),
            email=user.email,
            username=row.get("username"),
            avatar_url=row.get("avatar_url"),
            status_text=row.get("status_text"),
            status=row.get("status"),
            bio=row.get("bio"),
            custom_fields=row.get("custom_fields"),
            local_password="email" in providers,
        )

    async def fetch_settings(self) -> AccountSettings:
        """Load the administrator settings the account page reads.

        Missing rows fall back to the defaults.

        Raises:
            ConfigurationError: If a stored value has the wrong type.
        """
        try:
            response = (
                get_supabase_client()
                .table(self.settings.settings_table)
                .select("id, value")
                .in_("id", AccountSettings.setting_ids())
                .execute()
            )
        except Exception as e:
            raise translate_remote_error(e) from e

        values = {row["id"]: row["value"] for row in response.data or []}
        try:
            return AccountSettings.model_validate(values)
        except ValueError as e:
            raise ConfigurationError(f"Invalid account settings: {e}") from e

    async def save_profile(self, diff: dict[str, Any], custom_fields: dict[str, Any]) -> None:
        """Submit the profile diff."""
        try:
            self.client.rpc(
                "save_user_profile",
                {"settings": diff, "custom_fields": custom_fields},
            ).execute()
        except Exception as e:
            raise translate_remote_error(e) from e

        logger.info("Profile saved for %s (fields: %s)", self.user_id, sorted(diff))

    async def upload_avatar(self, encoded_image: str) -> str:
        """Store a new avatar and point the profile at it.

        Args:
            encoded_image: Base64 data URI of the image.

        Returns:
            str: Public URL of the stored avatar.
        """
        content_type, content = decode_data_uri(encoded_image)
        path = f"{self.user_id}/avatar"
        bucket = self.client.storage.from_(self.settings.avatar_bucket)

        try:
            bucket.upload(path, content, {"content-type": content_type, "upsert": "true"})
            public_url = bucket.get_public_url(path)
            (
                self.client.table(self.settings.profiles_table)
                .update({"avatar_url": public_url})
                .eq("user_id", str(self.user_id))
                .execute()
            )
        except Exception as e:
            raise translate_remote_error(e) from e

        logger.info("Avatar uploaded for %s (%d bytes)", self.user_id, len(content))
        return public_url

    async def delete_own_account(self, hashed_credential: str, force: bool = False) -> None:
        """Delete the user's account.

        Raises:
            OwnerConflictError: If the user is the last owner of a room and ``force`` is false.
            RemoteServiceError: On any other failure.
        """
        try:
            self.client.rpc(
                "delete_user_own_account",
                {"password": hashed_credential, "confirm_relinquish": force},
            ).execute()
        except Exception as e:
            raise translate_remote_error(e) from e

        logger.info("Account deleted: %s (force=%s)", self.user_id, force)

    async def revoke_other_sessions(self) -> None:
        """Sign out every session except the current one."""
        try:
            get_supabase_client().auth.admin.sign_out(self._access_token, "others")
        except Exception as e:
            raise translate_remote_error(e) from e

        logger.info("Other sessions revoked for %s", self.user_id)
