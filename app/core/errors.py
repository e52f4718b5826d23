"""
Error taxonomy shared by the Drive integration clients and services.
"""

from __future__ import annotations


class DriveIntegrationError(Exception):
    """Base class for every failure raised by the Drive integration."""


class AuthExchangeError(DriveIntegrationError):
    """Raised when the provider rejects an authorization code."""


class AuthRefreshError(DriveIntegrationError):
    """Raised when a refresh token is revoked or missing.

    This is terminal: a human has to go through the consent screen again.
    """


class CredentialsUnavailableError(DriveIntegrationError):
    """Raised when no usable credential has been persisted yet."""


class ProviderTransportError(DriveIntegrationError):
    """Raised when a call to the provider fails; never retried internally."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ChannelRegistrationError(DriveIntegrationError):
    """Raised when a push-notification channel cannot be registered."""


class ItemFetchError(DriveIntegrationError):
    """Raised when a single archive item cannot be fetched."""

    def __init__(self, file_id: str, reason: str) -> None:
        super().__init__(f"{file_id}: {reason}")
        self.file_id = file_id
        self.reason = reason


class PermissionGrantError(DriveIntegrationError):
    """Raised when an uploaded file exists but could not be made public."""


class ArchiveLimitError(DriveIntegrationError):
    """Raised when a folder traversal exceeds the configured node ceiling."""


__all__ = [
    "ArchiveLimitError",
    "AuthExchangeError",
    "AuthRefreshError",
    "ChannelRegistrationError",
    "CredentialsUnavailableError",
    "DriveIntegrationError",
    "ItemFetchError",
    "PermissionGrantError",
    "ProviderTransportError",
]
