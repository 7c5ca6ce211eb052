"""Periodic and on-demand refresh of monitors.

Three timers run on one event loop:

- the full cycle, every hour, plus one run shortly after start-up;
- the cash-result poll, every 30 seconds.

Award monitors are refreshed by fetching both legs concurrently and running
the tracker; monitors within a cycle go one at a time so the award API is
never hit in bursts. Cash monitors only get a (re-)queued cash-check request.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional
from weakref import WeakValueDictionary

from . import config
from .alerts import AlertQueue
from .fetchers.base import BaseFetcher, FetchError
from .handshake import CashHandshake
from .models import Monitor
from .store import MonitorStore
from .tracker import track_awards

logger = logging.getLogger(__name__)


@dataclass
class RefreshSummary:
    """Outcome of one full refresh cycle."""
    refreshed: int = 0
    cash_requested: int = 0
    failed: int = 0
    alerts: int = 0
    errors: list[str] = field(default_factory=list)


class Scheduler:
    """Drives monitor refreshes and the cash-result poll."""

    def __init__(
        self,
        store: MonitorStore,
        queue: AlertQueue,
        fetcher: BaseFetcher,
        handshake: Optional[CashHandshake] = None,
        refresh_interval: float = config.REFRESH_INTERVAL,
        startup_delay: float = config.STARTUP_DELAY,
        poll_interval: float = config.CASH_POLL_INTERVAL,
    ):
        self.store = store
        self.queue = queue
        self.fetcher = fetcher
        self.handshake = handshake or CashHandshake(store, queue)
        self.refresh_interval = refresh_interval
        self.startup_delay = startup_delay
        self.poll_interval = poll_interval
        # One refresh per monitor at a time; a lock lives only while in use
        self._locks: WeakValueDictionary[str, asyncio.Lock] = WeakValueDictionary()
        self._stopping: Optional[asyncio.Event] = None

    # -- refresh ------------------------------------------------------------

    def _lock_for(self, monitor_id: str) -> asyncio.Lock:
        lock = self._locks.get(monitor_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[monitor_id] = lock
        return lock

    async def refresh_monitor(self, monitor: Monitor) -> list[str]:
        """Refresh one monitor and queue its alerts.

        The monitor is re-read once its lock is held, so a refresh that
        finished in the meantime is the baseline. Returns the alert lines
        produced (none if the monitor was deleted). Fetch errors propagate
        and leave the stored monitor untouched.
        """
        async with self._lock_for(monitor.id):
            monitor = self.store.get_monitor(monitor.id)
            if monitor is None:
                return []
            if monitor.is_cash:
                self.handshake.request(monitor)
                return []

            outbound, ret = await asyncio.gather(
                self.fetcher.fetch_leg(monitor.outbound, monitor.cabins, monitor.avail_type),
                self.fetcher.fetch_leg(monitor.return_leg, monitor.cabins, monitor.avail_type),
            )
            messages = track_awards(monitor, outbound, ret)
            if not self.store.save_tracking(monitor):
                return []
            self.queue.append(monitor.id, monitor.label, messages)
            return messages

    async def refresh_one(self, monitor_id: str) -> list[str]:
        """On-demand refresh of a single monitor."""
        return await self.refresh_monitor(self.store.require(monitor_id))

    async def refresh_all(self) -> RefreshSummary:
        """Refresh every monitor; one failure never stops the cycle."""
        summary = RefreshSummary()
        monitors = self.store.list_monitors()
        logger.info("Refresh cycle: %d monitor(s)", len(monitors))

        for monitor in monitors:
            try:
                if monitor.is_cash:
                    # Re-read so a request made since the cycle began counts as pending
                    current = self.store.get_monitor(monitor.id)
                    if current is not None and self.handshake.request(current):
                        summary.cash_requested += 1
                    continue
                messages = await self.refresh_monitor(monitor)
            except FetchError as e:
                logger.error("Refresh failed for %s: %s", monitor.label, e)
                summary.failed += 1
                summary.errors.append(f"{monitor.label}: {e}")
                continue
            except Exception as e:
                logger.exception("Refresh failed for %s", monitor.label)
                summary.failed += 1
                summary.errors.append(f"{monitor.label}: {e}")
                continue
            summary.refreshed += 1
            summary.alerts += len(messages)

        logger.info(
            "Refresh cycle done: %d refreshed, %d cash request(s), %d failed, %d alert line(s)",
            summary.refreshed, summary.cash_requested, summary.failed, summary.alerts,
        )
        return summary

    def poll_cash_results(self) -> int:
        return self.handshake.poll()

    # -- timers -------------------------------------------------------------

    async def _guarded(self, name: str, job: Callable[[], Awaitable]) -> None:
        try:
            await job()
        except Exception:
            logger.exception("%s failed", name)

    async def _sleep(self, seconds: float) -> bool:
        """Sleep unless stopped first. Returns False once stopping."""
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False

    async def _every(self, seconds: float, name: str, job: Callable[[], Awaitable]) -> None:
        while await self._sleep(seconds):
            await self._guarded(name, job)

    async def _once_after(self, seconds: float, name: str, job: Callable[[], Awaitable]) -> None:
        if await self._sleep(seconds):
            await self._guarded(name, job)

    async def _poll_job(self) -> None:
        self.poll_cash_results()

    async def run_forever(self) -> None:
        """Run the timers until :meth:`stop` is called."""
        self._stopping = asyncio.Event()
        tasks = [
            asyncio.create_task(self._once_after(self.startup_delay, "startup refresh", self.refresh_all)),
            asyncio.create_task(self._every(self.refresh_interval, "hourly refresh", self.refresh_all)),
            asyncio.create_task(self._every(self.poll_interval, "cash poll", self._poll_job)),
        ]
        logger.info(
            "Scheduler started (refresh every %ss, cash poll every %ss)",
            self.refresh_interval, self.poll_interval,
        )
        try:
            await self._stopping.wait()
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Scheduler stopped")

    def stop(self) -> None:
        if self._stopping is not None:
            self._stopping.set()
