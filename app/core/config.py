"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the credential manager and
the change-notification channel share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import os

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


_SETTINGS_CONFIG = SettingsConfigDict(populate_by_name=True, extra="ignore")


class GoogleSettings(BaseSettings):
    """Configuration required for interacting with Google APIs."""

    model_config = _SETTINGS_CONFIG

    client_id: str = Field(..., validation_alias="GOOGLE_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="GOOGLE_CLIENT_SECRET")
    redirect_uri: AnyHttpUrl = Field(..., validation_alias="GOOGLE_REDIRECT_URI")
    drive_root_folder_id: str = Field(
        "root",
        validation_alias="GOOGLE_DRIVE_ROOT_FOLDER_ID",
        description="Folder watched for changes; defaults to the Drive root.",
    )


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    model_config = _SETTINGS_CONFIG

    scopes: tuple[str, ...] = (
        "https://www.googleapis.com/auth/drive",
        "https://www.googleapis.com/auth/drive.file",
    )
    http_timeout_seconds: float = Field(10.0, validation_alias="GOOGLE_HTTP_TIMEOUT")


class DriveWatchSettings(BaseSettings):
    """Push-notification channel configuration."""

    model_config = _SETTINGS_CONFIG

    webhook_url: Optional[AnyHttpUrl] = Field(
        None,
        validation_alias="DRIVE_WEBHOOK_URL",
        description="Public HTTPS address Google posts change notifications to.",
    )
    channel_ttl_seconds: int = Field(
        7 * 24 * 60 * 60, validation_alias="DRIVE_CHANNEL_TTL_SECONDS"
    )
    renewal_lead_seconds: int = Field(
        24 * 60 * 60, validation_alias="DRIVE_CHANNEL_RENEWAL_LEAD_SECONDS"
    )
    auto_start: bool = Field(False, validation_alias="DRIVE_WATCH_AUTO_START")


class ArchiveSettings(BaseSettings):
    """Guards applied while walking remote folder trees."""

    model_config = _SETTINGS_CONFIG

    max_depth: int = Field(32, validation_alias="ARCHIVE_MAX_DEPTH")
    max_nodes: int = Field(10_000, validation_alias="ARCHIVE_MAX_NODES")


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = _SETTINGS_CONFIG

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    database_path: str = Field(
        "data/drive_integration.db", validation_alias="APP_DB_PATH"
    )
    credential_history_limit: Optional[int] = Field(
        None,
        validation_alias="CREDENTIAL_HISTORY_LIMIT",
        description="Keep only the newest N credential rows; unbounded when unset.",
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    google: GoogleSettings = Field(default_factory=GoogleSettings)
    drive_watch: DriveWatchSettings = Field(default_factory=DriveWatchSettings)
    archive: ArchiveSettings = Field(default_factory=ArchiveSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "ArchiveSettings",
    "DriveWatchSettings",
    "GoogleSettings",
    "OAuthSettings",
    "SecuritySettings",
    "get_settings",
]
