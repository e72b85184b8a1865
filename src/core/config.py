"""Application configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="account-profile-backend", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")
    supabase_signing_key_jwk: str = Field(..., description="Supabase signing key JWK (JSON string) for JWT token verification")

    # Account page
    avatar_bucket: str = Field(default="avatars", description="Storage bucket receiving uploaded avatars")
    settings_table: str = Field(default="settings", description="Table holding administrator settings rows")
    profiles_table: str = Field(default="profiles", description="Table holding user profile rows")
    max_request_body_size: int = Field(
        default=5 * 1024 * 1024,
        description="Maximum request body size in bytes (bounds avatar data URIs)",
    )
    page_idle_ttl_seconds: int = Field(
        default=900,
        description="Seconds an untouched account page stays mounted before it is discarded",
    )
    page_registry_max_size: int = Field(default=1000, description="Maximum number of mounted account pages")
    page_cleanup_interval_seconds: int = Field(
        default=60,
        description="Seconds between sweeps for idle account pages",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
