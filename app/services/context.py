"""Process-wide holder for the current credential and channel snapshots."""

from __future__ import annotations

from typing import Optional

from app.models.credentials import CredentialRecord
from app.models.drive import NotificationChannel


class DriveContext:
    """Shared state for the credential and channel managers.

    Attributes are only ever reassigned to whole immutable values, so a
    reader sees either the previous snapshot or the next one.
    """

    def __init__(self) -> None:
        self.credentials: Optional[CredentialRecord] = None
        self.channel: Optional[NotificationChannel] = None
        self.reauthorization_required: bool = False


__all__ = ["DriveContext"]
