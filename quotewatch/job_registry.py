"""
Job registry: at most one recurring monitor timer per symbol.

Classes:
    MonitorJob    The live timer for one symbol (symbol, interval, started_at, ticks_fired)
    JobRegistry   install() replaces any previous job for the symbol; shutdown() cancels all

Timer model:
    - One asyncio task per symbol sleeps until the next deadline, spawns the tick as its own
      task and goes back to sleep, like setInterval. A slow tick never delays the next firing,
      so ticks for one symbol can overlap when the fetch outlasts the interval.
    - Cancelling a job stops future firings only. Ticks already spawned run to completion.
    - install() does cancel-then-install without awaiting, so no other coroutine can observe
      two live timers for the same symbol.
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from quotewatch.errors import InvalidInterval
from quotewatch.observability import ACTIVE_JOBS

logger = logging.getLogger(__name__)

TickCallback = Callable[[], Awaitable[None]]


@dataclass
class MonitorJob:
    symbol: str
    interval: float
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    ticks_fired: int = 0
    _timer: asyncio.Task | None = field(default=None, repr=False, compare=False)
    _cancelled: bool = field(default=False, repr=False, compare=False)

    @property
    def active(self) -> bool:
        # Task.cancel() only requests cancellation; done() flips on the next loop turn
        return self._timer is not None and not self._cancelled and not self._timer.done()

    def cancel(self) -> None:
        self._cancelled = True
        if self._timer is not None:
            self._timer.cancel()


class JobRegistry:
    def __init__(self) -> None:
        self._jobs: dict[str, MonitorJob] = {}
        self._lock = threading.Lock()
        # Strong refs so the loop doesn't garbage-collect running ticks
        self._inflight: set[asyncio.Task] = set()

    def install(self, symbol: str, interval: float, tick: TickCallback) -> MonitorJob:
        """
        Start a timer firing `tick` every `interval` seconds, replacing any job for `symbol`.
        Must be called from the event loop that should run the timer.
        """
        try:
            seconds = float(interval)
        except OverflowError:
            raise InvalidInterval("Interval too large") from None
        if not (seconds > 0 and math.isfinite(seconds)):
            raise InvalidInterval(f"Interval must be > 0 (got {interval})")

        loop = asyncio.get_running_loop()
        with self._lock:
            previous = self._jobs.pop(symbol, None)
            if previous is not None:
                previous.cancel()
                logger.info("Replacing monitor job", extra={"symbol": symbol})
            job = MonitorJob(symbol=symbol, interval=seconds)
            job._timer = loop.create_task(self._run_timer(job, tick), name=f"monitor:{symbol}")
            self._jobs[symbol] = job
            ACTIVE_JOBS.set(len(self._jobs))

        logger.info("Monitor job installed", extra={"symbol": symbol, "interval_s": job.interval})
        return job

    async def _run_timer(self, job: MonitorJob, tick: TickCallback) -> None:
        loop = asyncio.get_running_loop()
        next_fire = loop.time() + job.interval
        while True:
            await asyncio.sleep(max(0.0, next_fire - loop.time()))
            job.ticks_fired += 1
            task = loop.create_task(tick(), name=f"tick:{job.symbol}:{job.ticks_fired}")
            self._inflight.add(task)
            task.add_done_callback(self._on_tick_done)

            next_fire += job.interval
            now = loop.time()
            if next_fire <= now:
                # Loop was starved; skip missed firings instead of bursting
                next_fire = now + job.interval

    def _on_tick_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Tick task %s failed", task.get_name(), exc_info=exc)

    def get(self, symbol: str) -> MonitorJob | None:
        with self._lock:
            return self._jobs.get(symbol)

    def jobs(self) -> list[MonitorJob]:
        with self._lock:
            return sorted(self._jobs.values(), key=lambda j: j.symbol)

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def shutdown(self) -> None:
        """Cancel every timer and any tick still running. Used at process exit only."""
        with self._lock:
            jobs = list(self._jobs.values())
            self._jobs.clear()
            ACTIVE_JOBS.set(0)
        for job in jobs:
            job.cancel()
        pending = [job._timer for job in jobs if job._timer is not None]
        pending.extend(self._inflight)
        for task in self._inflight:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Monitor jobs stopped: %d", len(jobs))
