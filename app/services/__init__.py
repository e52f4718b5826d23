"""Service layer exports."""

from .archive_builder import ArchiveBuilder
from .context import DriveContext
from .credential_cipher import CredentialCipher
from .credentials import CredentialLifecycleManager
from .drive_watch import ChangeNotificationManager
from .scheduling import RenewalScheduler, ScheduledCallback
from .sync_trigger import SyncTrigger

__all__ = [
    "ArchiveBuilder",
    "ChangeNotificationManager",
    "CredentialCipher",
    "CredentialLifecycleManager",
    "DriveContext",
    "RenewalScheduler",
    "ScheduledCallback",
    "SyncTrigger",
]
