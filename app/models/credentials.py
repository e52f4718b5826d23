"""
Domain models for OAuth credential persistence.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    """Timezone-aware current time used as the default clock."""
    return datetime.now(timezone.utc)


class CredentialRecord(BaseModel):
    """A snapshot of access/refresh token material; one row per issuance."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: datetime
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("expires_at", "created_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def is_expired(
        self, now: datetime | None = None, leeway: timedelta = timedelta(0)
    ) -> bool:
        """Return True when the access token is past (or within ``leeway`` of) expiry."""
        current = now or utcnow()
        return self.expires_at <= current + leeway


__all__ = ["CredentialRecord", "utcnow"]
