"""
Push-notification channel lifecycle for the watched Drive folder.

A channel is registered with ``files.watch``, renewed by a single timer that
fires ``renewal_lead`` before the provider-imposed expiry, and torn down with
``channels.stop``. Inbound webhook events for the held channel trigger the
synchronization consumer.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Protocol, Set

from app.clients.google_drive import GoogleDriveClient
from app.core.errors import (
    ChannelRegistrationError,
    DriveIntegrationError,
    ProviderTransportError,
)
from app.models.credentials import utcnow
from app.models.drive import ChannelState, NotificationChannel, NotificationEvent
from app.services.context import DriveContext
from app.services.scheduling import Callback

logger = logging.getLogger(__name__)

_SYNC_STATES = frozenset({"change", "sync"})


class SyncConsumer(Protocol):
    def sync_now(self) -> Any:
        ...


class CancellableTask(Protocol):
    def cancel(self) -> None:
        ...


class TaskScheduler(Protocol):
    def schedule(self, run_at: datetime, callback: Callback, *, name: str) -> CancellableTask:
        ...


class ChangeNotificationManager:
    """Register, renew and tear down the Drive push-notification channel."""

    def __init__(
        self,
        *,
        drive_client: GoogleDriveClient,
        context: DriveContext,
        scheduler: TaskScheduler,
        sync_consumer: SyncConsumer,
        root_resource_id: str,
        channel_ttl: timedelta = timedelta(days=7),
        renewal_lead: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._drive = drive_client
        self._context = context
        self._scheduler = scheduler
        self._sync = sync_consumer
        self._root_id = root_resource_id
        self._ttl = channel_ttl
        self._lead = renewal_lead
        self._clock = clock
        self._lock = asyncio.Lock()
        self._renewal: Optional[CancellableTask] = None
        self._state = ChannelState.UNREGISTERED
        self._pending_syncs: Set[asyncio.Task] = set()
        self.last_error: Optional[str] = None

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def channel(self) -> Optional[NotificationChannel]:
        return self._context.channel

    async def start(self, webhook_url: str) -> bool:
        """Register a new channel; returns False (no retry) when that fails."""
        async with self._lock:
            if self._context.channel is not None:
                await self._teardown()
            return await self._register(webhook_url)

    async def stop(self) -> None:
        async with self._lock:
            await self._teardown()
            self._state = ChannelState.STOPPED

    def handle_notification(self, event: NotificationEvent) -> None:
        """Webhook entry point; drops events for channels we no longer hold."""
        channel = self._context.channel
        if channel is None or event.channel_id != channel.channel_id:
            logger.warning(
                "Dropping notification for unknown channel %s (state=%s)",
                event.channel_id,
                event.resource_state,
            )
            return
        if not channel.is_live(self._clock()):
            logger.warning("Dropping notification for expired channel %s", channel.channel_id)
            return

        if event.resource_state not in _SYNC_STATES:
            logger.debug(
                "Ignoring %s notification for channel %s", event.resource_state, channel.channel_id
            )
            return

        logger.info(
            "Drive %s notification #%s; triggering sync",
            event.resource_state,
            event.message_number,
        )
        result = self._sync.sync_now()
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._pending_syncs.add(task)
            task.add_done_callback(self._sync_finished)

    def status(self) -> Dict[str, Any]:
        channel = self._context.channel
        return {
            "state": self._state.value,
            "channel_id": channel.channel_id if channel else None,
            "resource_id": channel.resource_id if channel else None,
            "expires_at": channel.expires_at.isoformat() if channel else None,
            "last_error": self.last_error,
        }

    async def _register(self, webhook_url: str) -> bool:
        try:
            channel = await self._watch(webhook_url)
        except DriveIntegrationError as exc:
            self._state = ChannelState.UNREGISTERED
            self.last_error = str(exc)
            logger.error("Push notification registration failed: %s", exc)
            return False

        self._context.channel = channel
        self._state = ChannelState.ACTIVE
        self.last_error = None
        self._schedule_renewal(channel)
        logger.info(
            "Push notifications active on channel %s until %s",
            channel.channel_id,
            channel.expires_at.isoformat(),
        )
        return True

    async def _watch(self, webhook_url: str) -> NotificationChannel:
        channel_id = f"channel-{uuid.uuid4().hex}"
        requested_expiry = self._clock() + self._ttl
        try:
            response = await self._drive.watch(
                self._root_id,
                channel_id=channel_id,
                address=webhook_url,
                expiration_ms=int(requested_expiry.timestamp() * 1000),
            )
        except ProviderTransportError as exc:
            raise ChannelRegistrationError(f"files.watch rejected: {exc}") from exc

        resource_id = response.get("resourceId")
        if not resource_id:
            raise ChannelRegistrationError("files.watch response did not include a resourceId.")

        # Google may shorten the requested lifetime; trust its answer.
        expires_at = requested_expiry
        expiration = response.get("expiration")
        if expiration:
            expires_at = datetime.fromtimestamp(int(expiration) / 1000, tz=requested_expiry.tzinfo)
        if expires_at <= self._clock():
            raise ChannelRegistrationError(
                f"files.watch returned an already expired channel (expiration={expiration})."
            )

        return NotificationChannel(
            channel_id=response.get("id", channel_id),
            resource_id=resource_id,
            expires_at=expires_at,
            address=webhook_url,
        )

    def _schedule_renewal(self, channel: NotificationChannel) -> None:
        self._cancel_renewal()
        now = self._clock()
        remaining = channel.expires_at - now
        if remaining > self._lead:
            run_at = channel.expires_at - self._lead
        else:
            # Lifetime shorter than the lead: renew halfway, never immediately.
            run_at = now + remaining / 2
            logger.warning(
                "Channel %s lives only %s; renewing at %s instead of %s before expiry",
                channel.channel_id,
                remaining,
                run_at.isoformat(),
                self._lead,
            )
        address = channel.address

        async def _renew() -> None:
            await self._renew(address)

        self._renewal = self._scheduler.schedule(run_at, _renew, name="drive-channel-renewal")

    async def _renew(self, webhook_url: str) -> None:
        async with self._lock:
            self._renewal = None
            self._state = ChannelState.RENEWING
            logger.info("Renewing push notification channel")
            await self._teardown()
            if not await self._register(webhook_url):
                logger.error(
                    "Channel renewal failed; no active change notifications until the "
                    "next manual start (%s)",
                    self.last_error,
                )

    async def _teardown(self) -> None:
        self._cancel_renewal()
        channel = self._context.channel
        if channel is None:
            return
        # Forget the channel before the remote call so nothing keeps routing to it.
        self._context.channel = None
        try:
            await self._drive.stop_channel(channel.channel_id, channel.resource_id)
            logger.info("Stopped push notification channel %s", channel.channel_id)
        except DriveIntegrationError as exc:
            logger.error("Failed to stop channel %s remotely: %s", channel.channel_id, exc)

    def _cancel_renewal(self) -> None:
        if self._renewal is not None:
            self._renewal.cancel()
            self._renewal = None

    def _sync_finished(self, task: asyncio.Task) -> None:
        self._pending_syncs.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Synchronization consumer failed: %s", task.exception())


__all__ = ["ChangeNotificationManager", "SyncConsumer", "TaskScheduler"]
