"""
Domain models for Drive channels, remote nodes and archive jobs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.credentials import utcnow

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


class ChannelState(str, Enum):
    """Lifecycle of the push-notification channel."""

    UNREGISTERED = "unregistered"
    ACTIVE = "active"
    RENEWING = "renewing"
    STOPPED = "stopped"


class NotificationChannel(BaseModel):
    """A provider-side watch subscription held by this process."""

    model_config = ConfigDict(frozen=True)

    channel_id: str
    resource_id: str
    expires_at: datetime
    address: str
    created_at: datetime = Field(default_factory=utcnow)

    def is_live(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) < self.expires_at


class NotificationEvent(BaseModel):
    """Header fields Google sends with every push notification."""

    channel_id: Optional[str] = None
    resource_state: Optional[str] = None
    resource_id: Optional[str] = None
    message_number: Optional[str] = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "NotificationEvent":
        lowered = {key.lower(): value for key, value in headers.items()}
        return cls(
            channel_id=lowered.get("x-goog-channel-id"),
            resource_state=lowered.get("x-goog-resource-state"),
            resource_id=lowered.get("x-goog-resource-id"),
            message_number=lowered.get("x-goog-message-number"),
        )


class RemoteNode(BaseModel):
    """Read-only mirror of a file or folder in the provider's tree."""

    id: str
    name: str
    mime_type: str = ""
    parent_id: Optional[str] = None

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE


class ItemStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True)
class ArchiveItemOutcome:
    """Result of attempting to add one requested item to an archive."""

    file_id: str
    path: Optional[str]
    status: ItemStatus
    reason: Optional[str] = None


@dataclass(slots=True)
class ArchiveResult:
    """Finalized archive bytes plus the per-item outcome list."""

    name: str
    content: bytes
    items: List[ArchiveItemOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> List[ArchiveItemOutcome]:
        return [item for item in self.items if item.status is ItemStatus.SUCCEEDED]

    @property
    def failed(self) -> List[ArchiveItemOutcome]:
        return [item for item in self.items if item.status is ItemStatus.FAILED]


@dataclass(slots=True)
class PublishResult:
    """Outcome of uploading an archive and opening it for anonymous reads.

    ``public`` is False when the upload succeeded but the permission grant
    did not; the file then exists in Drive but is private.
    """

    file_id: str
    name: str
    public_view_url: str
    public_download_url: str
    public: bool
    permission_error: Optional[str] = None

    @property
    def status(self) -> str:
        return "public" if self.public else "created_not_public"


__all__ = [
    "ArchiveItemOutcome",
    "ArchiveResult",
    "ChannelState",
    "FOLDER_MIME_TYPE",
    "ItemStatus",
    "NotificationChannel",
    "NotificationEvent",
    "PublishResult",
    "RemoteNode",
]
