"""Expose constructed client wrappers."""

from .credential_store import CredentialStore
from .google_auth import GoogleOAuthClient
from .google_drive import GoogleDriveClient
from .sync_queue import SQLiteSyncQueue

__all__ = [
    "CredentialStore",
    "GoogleDriveClient",
    "GoogleOAuthClient",
    "SQLiteSyncQueue",
]
