"""
Acquire, persist and refresh the delegated Google Drive credentials.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from google.oauth2.credentials import Credentials

from app.clients.credential_store import CredentialStore
from app.clients.google_auth import GoogleOAuthClient
from app.core.errors import (
    AuthRefreshError,
    CredentialsUnavailableError,
    ProviderTransportError,
)
from app.models.credentials import CredentialRecord, utcnow
from app.services.context import DriveContext

logger = logging.getLogger(__name__)


class CredentialLifecycleManager:
    """Owns the authorization-code exchange, refresh and expiry checks.

    The manager never hands out an access token past its known expiry
    without first attempting exactly one refresh.
    """

    _EXPIRY_LEEWAY = timedelta(seconds=60)

    def __init__(
        self,
        *,
        store: CredentialStore,
        oauth_client: GoogleOAuthClient,
        context: DriveContext,
        history_limit: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._context = context
        self._history_limit = history_limit
        self._clock = clock
        self._refresh_lock = asyncio.Lock()

    def build_authorization_url(self) -> str:
        return self._oauth.build_authorization_url()

    async def exchange_code(self, code: str) -> CredentialRecord:
        """Trade a one-time authorization code for a persisted token pair."""
        issued_at = self._clock()
        access_token, refresh_token, expires_in = await self._oauth.exchange_authorization_code(code)
        record = CredentialRecord(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=issued_at + timedelta(seconds=expires_in),
            created_at=issued_at,
        )
        if refresh_token is None:
            logger.warning("Authorization completed without a refresh token")
        self._persist(record)
        self._context.reauthorization_required = False
        logger.info("Stored new Google credentials expiring at %s", record.expires_at.isoformat())
        return record

    async def refresh(self) -> CredentialRecord:
        """Mint a new access token from the held refresh token."""
        async with self._refresh_lock:
            source = self._context.credentials or self._store.query_most_recent()
            return await self._refresh_from(source)

    async def load_persisted(self) -> bool:
        """Load the newest stored credential, refreshing it once if expired."""
        async with self._refresh_lock:
            if self._context.reauthorization_required:
                return False
            # Another caller may have loaded or refreshed while we waited.
            if self._context.credentials is not None:
                return True

            record = self._store.query_most_recent()
            if record is None:
                return False

            if record.is_expired(self._clock(), self._EXPIRY_LEEWAY):
                try:
                    await self._refresh_from(record)
                except (AuthRefreshError, ProviderTransportError) as exc:
                    logger.error("Persisted credentials could not be refreshed: %s", exc)
                    return False
                return True

            self._context.credentials = record
            return True

    async def is_authenticated(self) -> bool:
        if self._context.credentials is not None:
            return True
        return await self.load_persisted()

    async def get_credentials(self) -> Credentials:
        """Return Google credentials carrying a non-expired access token."""
        if self._context.credentials is None and not await self.load_persisted():
            if self._context.reauthorization_required:
                raise AuthRefreshError("Google access was revoked; re-authorization required.")
            raise CredentialsUnavailableError("Google Drive is not connected.")

        record = self._context.credentials
        if record is None or record.is_expired(self._clock(), self._EXPIRY_LEEWAY):
            async with self._refresh_lock:
                record = self._context.credentials
                if record is None:
                    if self._context.reauthorization_required:
                        raise AuthRefreshError(
                            "Google access was revoked; re-authorization required."
                        )
                    raise CredentialsUnavailableError("Google Drive is not connected.")
                if record.is_expired(self._clock(), self._EXPIRY_LEEWAY):
                    record = await self._refresh_from(record)

        # No refresh token: the Google library must not refresh behind our back.
        return Credentials(token=record.access_token, scopes=list(self._oauth.scopes))

    def status(self) -> Dict[str, Any]:
        record = self._context.credentials
        return {
            "authenticated": record is not None,
            "reauthorization_required": self._context.reauthorization_required,
            "expires_at": record.expires_at.isoformat() if record else None,
        }

    async def _refresh_from(self, source: Optional[CredentialRecord]) -> CredentialRecord:
        if source is None or not source.refresh_token:
            self._mark_reauthorization_required("no refresh token is held")
            raise AuthRefreshError("No refresh token available; re-authorization required.")

        refreshed_at = self._clock()
        try:
            access_token, rotated_token, expires_in = await self._oauth.refresh_access_token(
                source.refresh_token
            )
        except AuthRefreshError as exc:
            self._mark_reauthorization_required(str(exc))
            raise

        expires_at = refreshed_at + timedelta(seconds=expires_in)
        if expires_at <= self._clock():
            raise AuthRefreshError(
                f"Provider issued a token that is already expired (expires_in={expires_in})."
            )

        record = CredentialRecord(
            access_token=access_token,
            refresh_token=rotated_token or source.refresh_token,
            expires_at=expires_at,
            created_at=refreshed_at,
        )
        self._persist(record)
        logger.info("Refreshed Google access token; new expiry %s", expires_at.isoformat())
        return record

    def _persist(self, record: CredentialRecord) -> None:
        self._store.insert(record)
        self._context.credentials = record
        if self._history_limit:
            self._store.prune(keep=self._history_limit)

    def _mark_reauthorization_required(self, reason: str) -> None:
        logger.error(
            "Google refresh token rejected (%s); an operator must re-authorize the app",
            reason,
        )
        self._context.credentials = None
        self._context.reauthorization_required = True


__all__ = ["CredentialLifecycleManager"]
