import asyncio

import pytest

from walletsync.core.scheduler import SchedulerState, SyncScheduler
from walletsync.core.sync import RefreshReport


class FakeCore:
    def __init__(self, error=None):
        self.error = error
        self.gate = None
        self.started = asyncio.Event()
        self.calls = 0
        self.completed = 0

    async def refresh_all(self):
        self.calls += 1
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        self.completed += 1
        return RefreshReport(refreshed=["w1"])


@pytest.mark.asyncio
async def test_start_and_stop_transitions():
    core = FakeCore()
    scheduler = SyncScheduler(core)
    assert scheduler.state is SchedulerState.IDLE

    await scheduler.start(interval_seconds=0.01)
    assert scheduler.is_running
    await asyncio.sleep(0.05)
    await scheduler.stop()

    assert scheduler.state is SchedulerState.IDLE
    assert core.calls >= 2
    assert scheduler.stats.tick_count == core.calls


@pytest.mark.asyncio
async def test_stop_is_idempotent_and_start_twice_is_noop():
    scheduler = SyncScheduler(FakeCore())
    await scheduler.stop()

    await scheduler.start(interval_seconds=60)
    await scheduler.start(interval_seconds=1)
    assert scheduler.interval_seconds == 60

    await scheduler.stop()
    await scheduler.stop()
    assert scheduler.state is SchedulerState.IDLE


@pytest.mark.asyncio
async def test_start_rejects_non_positive_interval():
    scheduler = SyncScheduler(FakeCore())

    with pytest.raises(ValueError):
        await scheduler.start(interval_seconds=0)
    assert scheduler.state is SchedulerState.IDLE


@pytest.mark.asyncio
async def test_overlapping_tick_is_skipped():
    core = FakeCore()
    core.gate = asyncio.Event()
    scheduler = SyncScheduler(core)

    running = asyncio.create_task(scheduler.tick())
    await core.started.wait()
    assert await scheduler.tick() is None
    assert scheduler.stats.skipped_ticks == 1

    core.gate.set()
    report = await running
    assert report.refreshed == ["w1"]
    assert core.calls == 1


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_refresh():
    core = FakeCore()
    core.gate = asyncio.Event()
    scheduler = SyncScheduler(core)
    await scheduler.start(interval_seconds=60)
    await core.started.wait()

    stopping = asyncio.create_task(scheduler.stop())
    await asyncio.sleep(0.01)
    assert not stopping.done()
    assert core.completed == 0

    core.gate.set()
    await stopping
    assert core.completed == 1
    assert scheduler.stats.last_report is not None


@pytest.mark.asyncio
async def test_crashing_cycle_keeps_scheduler_alive():
    core = FakeCore(error=RuntimeError("boom"))
    scheduler = SyncScheduler(core)
    await scheduler.start(interval_seconds=0.01)
    await asyncio.sleep(0.05)

    assert scheduler.is_running
    assert scheduler.stats.consecutive_errors >= 2
    assert scheduler.stats.last_error == "boom"
    await scheduler.stop()


@pytest.mark.asyncio
async def test_status_reports_last_cycle():
    scheduler = SyncScheduler(FakeCore())
    await scheduler.tick()

    status = scheduler.status()

    assert status["state"] == "idle"
    assert status["tick_count"] == 1
    assert status["last_report"]["refreshed"] == 1
    assert status["last_report"]["failed"] == 0
