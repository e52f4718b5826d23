"""Schemas for the push-notification channel endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import AnyHttpUrl, BaseModel, Field


class WatchStartRequest(BaseModel):
    """Optional override for the webhook address the channel posts to."""

    webhook_url: Optional[AnyHttpUrl] = Field(
        default=None,
        description="Defaults to DRIVE_WEBHOOK_URL when omitted.",
    )


__all__ = ["WatchStartRequest"]
