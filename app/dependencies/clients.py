"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from datetime import timedelta
from functools import lru_cache

from app.clients import (
    CredentialStore,
    GoogleDriveClient,
    GoogleOAuthClient,
    SQLiteSyncQueue,
)
from app.core.config import AppSettings, get_settings
from app.services import (
    ArchiveBuilder,
    ChangeNotificationManager,
    CredentialCipher,
    CredentialLifecycleManager,
    DriveContext,
    RenewalScheduler,
    SyncTrigger,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings()


@lru_cache()
def get_drive_context() -> DriveContext:
    """Provide the process-wide credential/channel context."""
    return DriveContext()


@lru_cache()
def get_credential_cipher() -> CredentialCipher:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.google.client_secret
    return CredentialCipher(secret=secret)


@lru_cache()
def get_credential_store() -> CredentialStore:
    """Provide the SQLite credential history."""
    return CredentialStore(_settings().database_path, get_credential_cipher())


@lru_cache()
def get_google_oauth_client() -> GoogleOAuthClient:
    """Create a singleton Google OAuth client."""
    settings = _settings()
    return GoogleOAuthClient(settings.google, settings.oauth)


@lru_cache()
def get_credential_manager() -> CredentialLifecycleManager:
    """Provide the credential lifecycle manager."""
    return CredentialLifecycleManager(
        store=get_credential_store(),
        oauth_client=get_google_oauth_client(),
        context=get_drive_context(),
        history_limit=_settings().credential_history_limit,
    )


@lru_cache()
def get_drive_client() -> GoogleDriveClient:
    """Provide Google Drive client instance."""
    return GoogleDriveClient(get_credential_manager())


@lru_cache()
def get_renewal_scheduler() -> RenewalScheduler:
    """Provide the scheduler that fires channel renewals."""
    return RenewalScheduler()


@lru_cache()
def get_sync_queue() -> SQLiteSyncQueue:
    """Provide SQLite-backed sync request queue."""
    return SQLiteSyncQueue(_settings().database_path)


@lru_cache()
def get_sync_trigger() -> SyncTrigger:
    return SyncTrigger(get_sync_queue())


@lru_cache()
def get_channel_manager() -> ChangeNotificationManager:
    """Provide the push-notification channel manager."""
    settings = _settings()
    return ChangeNotificationManager(
        drive_client=get_drive_client(),
        context=get_drive_context(),
        scheduler=get_renewal_scheduler(),
        sync_consumer=get_sync_trigger(),
        root_resource_id=settings.google.drive_root_folder_id,
        channel_ttl=timedelta(seconds=settings.drive_watch.channel_ttl_seconds),
        renewal_lead=timedelta(seconds=settings.drive_watch.renewal_lead_seconds),
    )


def get_archive_builder() -> ArchiveBuilder:
    """Build an archive builder using the shared Drive client."""
    return ArchiveBuilder(get_drive_client(), _settings().archive)


__all__ = [
    "get_app_settings",
    "get_archive_builder",
    "get_channel_manager",
    "get_credential_cipher",
    "get_credential_manager",
    "get_credential_store",
    "get_drive_client",
    "get_drive_context",
    "get_google_oauth_client",
    "get_renewal_scheduler",
    "get_sync_queue",
    "get_sync_trigger",
]
