"""Public schema exports."""

from .archive import (
    ArchiveItemSchema,
    ArchivePublishRequest,
    ArchivePublishResponse,
    ArchiveRequest,
    PublishedFileSchema,
)
from .drive import WatchStartRequest

__all__ = [
    "ArchiveItemSchema",
    "ArchivePublishRequest",
    "ArchivePublishResponse",
    "ArchiveRequest",
    "PublishedFileSchema",
    "WatchStartRequest",
]
