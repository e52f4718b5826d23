"""
Fire-once delayed callbacks used for channel renewal.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[None]]


class ScheduledCallback:
    """Handle to a pending job; cancelling an already-fired job is a no-op."""

    def __init__(self, scheduler: AsyncIOScheduler, job_id: str, run_at: datetime) -> None:
        self._scheduler = scheduler
        self.job_id = job_id
        self.run_at = run_at

    def cancel(self) -> None:
        try:
            self._scheduler.remove_job(self.job_id)
        except JobLookupError:
            pass


class RenewalScheduler:
    """Schedule coroutine callbacks at absolute times on the asyncio loop."""

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None, timezone: str = "UTC") -> None:
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone)

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Renewal scheduler started")

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Renewal scheduler shutdown requested")

    def schedule(self, run_at: datetime, callback: Callback, *, name: str) -> ScheduledCallback:
        """Run ``callback`` once at ``run_at`` (immediately if already past)."""
        now = datetime.now(timezone.utc)
        if run_at < now:
            run_at = now
        job_id = f"{name}-{uuid.uuid4().hex}"
        self._scheduler.add_job(
            callback,
            trigger=DateTrigger(run_date=run_at),
            id=job_id,
            name=name,
            misfire_grace_time=None,
        )
        logger.info("Scheduled %s at %s", name, run_at.isoformat())
        return ScheduledCallback(self._scheduler, job_id, run_at)


__all__ = ["Callback", "RenewalScheduler", "ScheduledCallback"]
