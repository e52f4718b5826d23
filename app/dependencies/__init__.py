"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_app_settings,
    get_archive_builder,
    get_channel_manager,
    get_credential_cipher,
    get_credential_manager,
    get_credential_store,
    get_drive_client,
    get_drive_context,
    get_google_oauth_client,
    get_renewal_scheduler,
    get_sync_queue,
    get_sync_trigger,
)

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
