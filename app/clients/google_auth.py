"""
Google OAuth utilities.

These helpers build the consent URL and talk to the token endpoint; persisting
and refreshing credentials is the job of ``CredentialLifecycleManager``.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple
from urllib.parse import urlencode

import httpx

from app.core.config import GoogleSettings, OAuthSettings
from app.core.errors import AuthExchangeError, AuthRefreshError, ProviderTransportError

logger = logging.getLogger(__name__)

TokenGrant = Tuple[str, Optional[str], int]


class GoogleOAuthClient:
    """Build Google authorization URLs, exchange codes and refresh tokens."""

    AUTH_BASE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"

    def __init__(
        self,
        google_settings: GoogleSettings,
        oauth_settings: OAuthSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._google = google_settings
        self._oauth = oauth_settings
        self._transport = transport

    @property
    def scopes(self) -> tuple[str, ...]:
        return tuple(self._oauth.scopes)

    def build_authorization_url(self) -> str:
        """Construct the Google OAuth consent URL.

        Offline access plus a forced consent prompt make Google issue a new
        refresh token on every authorization.
        """
        params = {
            "client_id": self._google.client_id,
            "redirect_uri": str(self._google.redirect_uri),
            "response_type": "code",
            "scope": " ".join(self._oauth.scopes),
            "access_type": "offline",
            "prompt": "consent",
        }
        query = urlencode(params)
        return f"{self.AUTH_BASE_URL}?{query}"

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        """
        Exchange an authorization code for tokens.

        Returns a tuple of (access_token, refresh_token, expires_in_seconds).
        The refresh token may be ``None`` if Google chose not to issue one.
        """
        payload = {
            "code": code,
            "client_id": self._google.client_id,
            "client_secret": self._google.client_secret,
            "redirect_uri": str(self._google.redirect_uri),
            "grant_type": "authorization_code",
        }
        response = await self._post_token(payload)

        if 400 <= response.status_code < 500:
            raise AuthExchangeError(_error_description(response))
        if response.status_code != httpx.codes.OK:
            raise ProviderTransportError(
                f"Token endpoint returned {response.status_code} during code exchange.",
                status_code=response.status_code,
            )

        token_payload = response.json()
        access_token = token_payload.get("access_token")
        expires_in = token_payload.get("expires_in")
        if not access_token or not expires_in:
            raise AuthExchangeError("Incomplete token payload returned from Google.")

        return access_token, token_payload.get("refresh_token"), int(expires_in)

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        """Mint a new access token from a stored refresh token."""
        payload = {
            "client_id": self._google.client_id,
            "client_secret": self._google.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        response = await self._post_token(payload)

        # invalid_grant: the refresh token was revoked or has expired.
        if 400 <= response.status_code < 500:
            raise AuthRefreshError(_error_description(response))
        if response.status_code != httpx.codes.OK:
            raise ProviderTransportError(
                f"Token endpoint returned {response.status_code} during refresh.",
                status_code=response.status_code,
            )

        token_payload = response.json()
        access_token = token_payload.get("access_token")
        expires_in = token_payload.get("expires_in")
        if not access_token or not expires_in:
            raise AuthRefreshError("Incomplete refresh payload returned from Google.")

        return access_token, token_payload.get("refresh_token"), int(expires_in)

    async def _post_token(self, payload: dict) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                timeout=self._oauth.http_timeout_seconds, transport=self._transport
            ) as client:
                return await client.post(self.TOKEN_URL, data=payload)
        except httpx.HTTPError as exc:
            logger.error("Token endpoint request failed: %s", exc)
            raise ProviderTransportError(f"Token endpoint unreachable: {exc}") from exc


def _error_description(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if not isinstance(body, dict):
        return response.text
    error = body.get("error", "unknown_error")
    description = body.get("error_description")
    return f"{error}: {description}" if description else str(error)


__all__ = ["GoogleOAuthClient", "TokenGrant"]
