"""Synchronization consumer notified by the Drive change channel."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from app.clients.sync_queue import SQLiteSyncQueue

logger = logging.getLogger(__name__)


class SyncTrigger:
    """Record a sync request for the reconciliation worker.

    Requests are not coalesced; the worker reconciles the whole tree, so
    duplicates and reordering are harmless.
    """

    def __init__(self, queue: SQLiteSyncQueue) -> None:
        self._queue = queue

    async def sync_now(self) -> None:
        await asyncio.to_thread(
            self._queue.enqueue_sync_request,
            {
                "reason": "drive_notification",
                "requested_at": datetime.now(timezone.utc).isoformat(),
            },
        )
        logger.info("Queued Drive synchronization request")


__all__ = ["SyncTrigger"]
