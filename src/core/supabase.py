"""Supabase client factories for account operations."""

from functools import lru_cache

from supabase import Client, create_client
from supabase.lib.client_options import SyncClientOptions
from supabase_auth import SyncMemoryStorage

from src.core.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    """Get cached Supabase client singleton.

    Uses the secret key, which bypasses RLS at the PostgREST level. Only
    use it for reads and admin calls where the caller identity has already
    been verified from the request JWT.

    Returns:
        Client: Supabase client instance.
    """
    settings = get_settings()
    return create_client(
        settings.supabase_url,
        settings.supabase_secret_key,
    )


def create_user_client(access_token: str) -> Client:
    """Create a fresh Supabase client that calls PostgREST as the given user.

    RPCs such as ``save_user_profile`` and ``delete_user_own_account`` rely on
    ``auth.uid()``, so they must run with the user's own JWT rather than the
    shared singleton.

    Args:
        access_token: The user's access token from the Authorization header.

    Returns:
        Client: Isolated Supabase client with the user's Authorization header.
    """
    settings = get_settings()
    options = SyncClientOptions(
        storage=SyncMemoryStorage(),
        auto_refresh_token=False,
        persist_session=False,
    )
    client = create_client(
        settings.supabase_url,
        settings.supabase_secret_key,
        options=options,
    )
    client.postgrest.auth(access_token)
    return client
