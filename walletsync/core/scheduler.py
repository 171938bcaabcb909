from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from ..config import settings

if TYPE_CHECKING:
    from .sync import RefreshReport, WalletSyncCore


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass(slots=True)
class TickStats:
    tick_count: int = 0
    skipped_ticks: int = 0
    consecutive_errors: int = 0
    last_started: Optional[datetime] = None
    last_completed: Optional[datetime] = None
    last_error: Optional[str] = None
    last_report: Optional["RefreshReport"] = None


class SyncScheduler:
    """Fixed-period background refresh of every tracked wallet.

    Ticks never overlap: a tick that fires while the previous ``refresh_all``
    is still running is skipped. ``stop`` lets an in-flight tick finish.
    """

    def __init__(
        self,
        core: "WalletSyncCore",
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.core = core
        self.logger = logger or logging.getLogger("sync_scheduler")
        self._state = SchedulerState.IDLE
        self._interval = settings.refresh_interval_seconds
        self._loop_task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()
        self._tick_lock = asyncio.Lock()
        self._lifecycle_lock = asyncio.Lock()
        self._started_at: Optional[datetime] = None
        self.stats = TickStats()

    # ---------------------------
    # Lifecycle
    # ---------------------------
    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    @property
    def interval_seconds(self) -> float:
        return self._interval

    async def start(self, interval_seconds: Optional[float] = None) -> None:
        async with self._lifecycle_lock:
            if self._state is SchedulerState.RUNNING:
                return
            if interval_seconds is not None:
                if interval_seconds <= 0:
                    raise ValueError("interval_seconds must be positive")
                self._interval = float(interval_seconds)
            self._stop_event = asyncio.Event()
            self._state = SchedulerState.RUNNING
            self._started_at = datetime.now(timezone.utc)
            self.logger.info("Sync scheduler starting with %.1fs interval", self._interval)
            self._loop_task = asyncio.create_task(self._run_loop(), name="wallet-sync-scheduler")

    async def stop(self) -> None:
        async with self._lifecycle_lock:
            if self._state is SchedulerState.IDLE:
                return
            self._state = SchedulerState.IDLE
            self._stop_event.set()
            self.logger.info("Sync scheduler stopping")
            if self._loop_task:
                # The loop exits on its own once the current tick (if any) commits.
                await self._loop_task
                self._loop_task = None

    # ---------------------------
    # Ticks
    # ---------------------------
    async def _run_loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while self._state is SchedulerState.RUNNING:
            await self.tick()
            next_tick += self._interval
            now = loop.time()
            if next_tick < now:
                # Fell behind by more than one period; drop the missed ticks.
                missed = int((now - next_tick) // self._interval) + 1
                self.stats.skipped_ticks += missed
                next_tick += missed * self._interval
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=next_tick - now)
            except asyncio.TimeoutError:
                continue

    async def tick(self) -> Optional["RefreshReport"]:
        """Run one refresh cycle unless one is already in flight."""
        if self._tick_lock.locked():
            self.stats.skipped_ticks += 1
            self.logger.debug("Skipping tick; previous refresh still running")
            return None

        async with self._tick_lock:
            stats = self.stats
            stats.last_started = datetime.now(timezone.utc)
            started = time.perf_counter()
            try:
                report = await self.core.refresh_all()
            except Exception as exc:  # noqa: BLE001
                stats.last_error = str(exc)
                stats.consecutive_errors += 1
                self.logger.error("Refresh cycle crashed: %s", exc, exc_info=True)
                return None
            finally:
                stats.tick_count += 1
                stats.last_completed = datetime.now(timezone.utc)

            stats.last_report = report
            stats.last_error = None
            stats.consecutive_errors = 0
            self.logger.info(
                "Refresh cycle finished: %d refreshed, %d failed in %dms",
                len(report.refreshed),
                len(report.failures),
                int((time.perf_counter() - started) * 1000),
            )
            return report

    # ---------------------------
    # Introspection
    # ---------------------------
    def status(self) -> dict[str, Any]:
        stats = self.stats
        report = stats.last_report
        return {
            "state": self._state.value,
            "interval_seconds": self._interval,
            "started_at": _iso(self._started_at),
            "tick_count": stats.tick_count,
            "skipped_ticks": stats.skipped_ticks,
            "consecutive_errors": stats.consecutive_errors,
            "last_started": _iso(stats.last_started),
            "last_completed": _iso(stats.last_completed),
            "last_error": stats.last_error,
            "last_report": report.summary() if report else None,
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.astimezone(timezone.utc).isoformat() if value else None
