"""Application configuration.

All deployment specific values (database location, token secret, object
storage credentials) are read once from the environment or a ``.env`` file
into an :class:`AppConfig` instance.  The instance is handed explicitly to
the pieces that need it: the auth helpers receive it as a FastAPI
dependency and the media store is constructed from it.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = "development"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./family_moments.db"
    database_timeout_seconds: float = 30.0
    sql_echo: bool = False

    # Tokens
    secret_key: str = "super-secret-key"
    algorithm: str = "HS256"
    access_token_expire_days: int = 7

    cors_origins: list[str] = ["http://localhost:3000"]

    # Object storage (any S3 compatible service)
    media_bucket: str = "family-moments"
    media_endpoint_url: Optional[str] = None
    media_region: Optional[str] = "us-east-1"
    media_access_key_id: Optional[str] = None
    media_secret_access_key: Optional[str] = None
    media_public_base_url: Optional[str] = None
    media_folder: str = "family-photos"
    media_timeout_seconds: float = 30.0
    max_upload_bytes: int = 100 * 1024 * 1024


@lru_cache
def get_config() -> AppConfig:
    """Return the process wide configuration (FastAPI dependency)."""
    return AppConfig()
