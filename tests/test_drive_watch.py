from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import asyncio
from datetime import datetime, timedelta

import pytest

from app.core.errors import ProviderTransportError
from app.models.drive import ChannelState, NotificationEvent
from app.services.context import DriveContext
from app.services.drive_watch import ChangeNotificationManager

WEBHOOK = "https://hooks.example.com/api/drive/notifications"


class FakeDriveClient:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.watch_failures: list[Exception | None] = []
        self.stop_error: Exception | None = None
        self._counter = 0

    async def watch(self, root_id, *, channel_id, address, expiration_ms):
        self.calls.append(("watch", root_id, channel_id, address, expiration_ms))
        failure = self.watch_failures.pop(0) if self.watch_failures else None
        if failure is not None:
            raise failure
        self._counter += 1
        return {
            "kind": "api#channel",
            "id": channel_id,
            "resourceId": f"resource-{self._counter}",
            "expiration": str(expiration_ms),
        }

    async def stop_channel(self, channel_id, resource_id):
        self.calls.append(("stop", channel_id, resource_id))
        if self.stop_error is not None:
            raise self.stop_error

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]


class ManualTask:
    def __init__(self, run_at: datetime, callback) -> None:
        self.run_at = run_at
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    def __init__(self) -> None:
        self.tasks: list[ManualTask] = []

    def schedule(self, run_at, callback, *, name):
        task = ManualTask(run_at, callback)
        self.tasks.append(task)
        return task

    @property
    def pending(self) -> list[ManualTask]:
        return [task for task in self.tasks if not task.cancelled and not task.fired]

    async def run_due(self, now: datetime) -> None:
        for task in [task for task in self.pending if task.run_at <= now]:
            task.fired = True
            await task.callback()


class RecordingConsumer:
    def __init__(self) -> None:
        self.calls = 0

    def sync_now(self) -> None:
        self.calls += 1


@pytest.fixture
def drive() -> FakeDriveClient:
    return FakeDriveClient()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def consumer() -> RecordingConsumer:
    return RecordingConsumer()


@pytest.fixture
def manager(drive, scheduler, consumer, clock) -> ChangeNotificationManager:
    return ChangeNotificationManager(
        drive_client=drive,
        context=DriveContext(),
        scheduler=scheduler,
        sync_consumer=consumer,
        root_resource_id="root-folder",
        clock=clock,
    )


def _event(manager: ChangeNotificationManager, state: str | None, channel_id: str | None = None):
    return NotificationEvent(
        channel_id=channel_id or manager.channel.channel_id,
        resource_state=state,
        resource_id=manager.channel.resource_id,
    )


@pytest.mark.asyncio
async def test_start_registers_channel_and_schedules_one_renewal(manager, drive, scheduler, clock) -> None:
    assert manager.state is ChannelState.UNREGISTERED

    assert await manager.start(WEBHOOK) is True

    _, root_id, channel_id, address, expiration_ms = drive.calls[0]
    assert root_id == "root-folder"
    assert address == WEBHOOK
    assert expiration_ms == int((clock() + timedelta(days=7)).timestamp() * 1000)
    assert manager.state is ChannelState.ACTIVE
    assert manager.channel.channel_id == channel_id
    assert manager.channel.expires_at == clock() + timedelta(days=7)
    assert len(scheduler.pending) == 1
    assert scheduler.pending[0].run_at == clock() + timedelta(days=6)


@pytest.mark.asyncio
async def test_failed_registration_stays_unregistered(manager, drive, scheduler) -> None:
    drive.watch_failures.append(ProviderTransportError("webhook address not verified", status_code=400))

    assert await manager.start(WEBHOOK) is False

    assert manager.state is ChannelState.UNREGISTERED
    assert manager.channel is None
    assert scheduler.pending == []
    assert "webhook address not verified" in manager.last_error
    assert drive.names() == ["watch"]


@pytest.mark.asyncio
async def test_stop_without_channel_is_a_noop(manager, drive) -> None:
    await manager.stop()
    await manager.stop()

    assert drive.calls == []
    assert manager.state is ChannelState.STOPPED


@pytest.mark.asyncio
async def test_stop_clears_local_state_even_when_remote_stop_fails(manager, drive, scheduler) -> None:
    await manager.start(WEBHOOK)
    drive.stop_error = ProviderTransportError("timeout")

    await manager.stop()

    assert manager.channel is None
    assert manager.state is ChannelState.STOPPED
    assert scheduler.pending == []
    assert drive.names() == ["watch", "stop"]


@pytest.mark.asyncio
async def test_restart_while_active_replaces_channel(manager, drive, scheduler) -> None:
    await manager.start(WEBHOOK)
    first = manager.channel

    await manager.start(WEBHOOK)

    assert drive.names() == ["watch", "stop", "watch"]
    assert drive.calls[1][1] == first.channel_id
    assert manager.channel.channel_id != first.channel_id
    assert len(scheduler.pending) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("state", ["change", "sync", "add", "update", None])
async def test_foreign_channel_never_triggers_sync(manager, consumer, state) -> None:
    await manager.start(WEBHOOK)

    manager.handle_notification(_event(manager, state, channel_id="channel-from-before-renewal"))

    assert consumer.calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("state", ["change", "sync"])
async def test_relevant_states_trigger_sync_once(manager, consumer, state) -> None:
    await manager.start(WEBHOOK)

    manager.handle_notification(_event(manager, state))

    assert consumer.calls == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("state", ["add", "remove", "update", "trash", None])
async def test_other_states_are_accepted_and_ignored(manager, consumer, state) -> None:
    await manager.start(WEBHOOK)

    manager.handle_notification(_event(manager, state))

    assert consumer.calls == 0


def test_notification_without_channel_is_dropped(manager, consumer) -> None:
    manager.handle_notification(NotificationEvent(channel_id="anything", resource_state="change"))

    assert consumer.calls == 0


@pytest.mark.asyncio
async def test_notification_for_expired_channel_is_dropped(manager, consumer, clock) -> None:
    await manager.start(WEBHOOK)
    event = _event(manager, "change")
    clock.advance(timedelta(days=8))

    manager.handle_notification(event)

    assert consumer.calls == 0


@pytest.mark.asyncio
async def test_renewal_stops_then_restarts_before_expiry(manager, drive, scheduler, clock) -> None:
    await manager.start(WEBHOOK)
    original = manager.channel

    clock.advance(timedelta(days=6))
    await scheduler.run_due(clock())

    assert clock() < original.expires_at
    assert drive.names() == ["watch", "stop", "watch"]
    assert drive.calls[1][1:] == (original.channel_id, original.resource_id)
    assert drive.calls[2][3] == WEBHOOK
    assert manager.state is ChannelState.ACTIVE
    assert manager.channel.channel_id != original.channel_id
    assert manager.channel.expires_at == clock() + timedelta(days=7)
    assert len(scheduler.pending) == 1


@pytest.mark.asyncio
async def test_failed_renewal_ends_unregistered(manager, drive, scheduler, clock, consumer) -> None:
    await manager.start(WEBHOOK)
    original = manager.channel
    drive.watch_failures.append(ProviderTransportError("quota exceeded", status_code=403))

    clock.advance(timedelta(days=6))
    await scheduler.run_due(clock())

    assert drive.names() == ["watch", "stop", "watch"]
    assert manager.state is ChannelState.UNREGISTERED
    assert manager.channel is None
    assert scheduler.pending == []
    assert "quota exceeded" in manager.last_error

    manager.handle_notification(
        NotificationEvent(channel_id=original.channel_id, resource_state="change")
    )
    assert consumer.calls == 0


@pytest.mark.asyncio
async def test_provider_may_shorten_channel_lifetime(manager, drive, scheduler, clock) -> None:
    shortened = clock() + timedelta(hours=30)

    async def short_watch(root_id, *, channel_id, address, expiration_ms):
        return {
            "id": channel_id,
            "resourceId": "resource-short",
            "expiration": str(int(shortened.timestamp() * 1000)),
        }

    drive.watch = short_watch

    await manager.start(WEBHOOK)

    assert manager.channel.expires_at == shortened
    assert scheduler.pending[0].run_at == clock() + timedelta(hours=6)


@pytest.mark.asyncio
async def test_lifetime_below_renewal_lead_renews_halfway(manager, drive, scheduler, clock) -> None:
    one_day_cap = clock() + timedelta(hours=23)

    async def capped_watch(root_id, *, channel_id, address, expiration_ms):
        drive.calls.append(("watch", root_id, channel_id, address, expiration_ms))
        return {
            "id": channel_id,
            "resourceId": "resource-capped",
            "expiration": str(int(one_day_cap.timestamp() * 1000)),
        }

    drive.watch = capped_watch

    await manager.start(WEBHOOK)
    for _ in range(5):
        await scheduler.run_due(clock())

    assert drive.names() == ["watch"]
    assert manager.state is ChannelState.ACTIVE
    assert len(scheduler.pending) == 1
    assert scheduler.pending[0].run_at == clock() + timedelta(hours=11, minutes=30)

    clock.advance(timedelta(hours=11, minutes=30))
    await scheduler.run_due(clock())

    assert drive.names() == ["watch", "stop", "watch"]
    assert manager.state is ChannelState.ACTIVE


@pytest.mark.asyncio
async def test_already_expired_channel_is_rejected(manager, drive, scheduler, clock) -> None:
    async def stale_watch(root_id, *, channel_id, address, expiration_ms):
        drive.calls.append(("watch", root_id, channel_id, address, expiration_ms))
        return {
            "id": channel_id,
            "resourceId": "resource-stale",
            "expiration": str(int(clock().timestamp() * 1000)),
        }

    drive.watch = stale_watch

    assert await manager.start(WEBHOOK) is False

    assert manager.state is ChannelState.UNREGISTERED
    assert manager.channel is None
    assert scheduler.pending == []
    assert "already expired" in manager.last_error


@pytest.mark.asyncio
async def test_async_consumer_is_fire_and_forget(drive, scheduler, clock) -> None:
    started = asyncio.Event()

    class SlowConsumer:
        async def sync_now(self) -> None:
            started.set()
            await asyncio.sleep(0)

    manager = ChangeNotificationManager(
        drive_client=drive,
        context=DriveContext(),
        scheduler=scheduler,
        sync_consumer=SlowConsumer(),
        root_resource_id="root-folder",
        clock=clock,
    )
    await manager.start(WEBHOOK)

    manager.handle_notification(_event(manager, "change"))
    assert not started.is_set()

    await asyncio.wait_for(started.wait(), timeout=1)
