"""Periodic task scheduler with in-flight guards.

The scheduler owns one timer per named task plus a one-second countdown
ticker. A tick spawns the task's job in the background; if the previous
execution of the same task is still running the tick is dropped, never
queued.

Countdowns are cosmetic. They are exposed for display and never gate a tick.

Usage:
    scheduler = Scheduler(store, jobs=jobs.as_jobs(), intervals={"priceRefresh": 60, ...})
    await scheduler.start("bitcoin")
    await scheduler.switch_symbol("ethereum")
    await scheduler.stop()
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping, Optional

from core.refresh.store import StateStore
from core.types import ScheduledTask, Symbol

logger = logging.getLogger(__name__)


class TickOutcome(str, Enum):
    FIRED = "fired"  # execution spawned
    SKIPPED = "skipped"  # previous execution still in flight, or scheduler stopped
    COMPLETED = "completed"
    CACHE_HIT = "cache_hit"  # cached data still valid, nothing fetched
    FAILED = "failed"


Job = Callable[..., Awaitable[Optional[TickOutcome]]]


class Scheduler:
    """Explicitly owned set of periodic tasks for one selected symbol."""

    def __init__(
        self,
        store: StateStore,
        jobs: Mapping[str, Job],
        intervals: Mapping[str, int],
        *,
        clock: Callable[[], datetime] = datetime.now,
        countdown_step: float = 1.0,
    ):
        missing = set(jobs) - set(intervals)
        if missing:
            raise ValueError(f"No interval configured for: {sorted(missing)}")

        self._store = store
        self._jobs = dict(jobs)
        self._tasks = {name: ScheduledTask(name=name, interval_seconds=intervals[name]) for name in jobs}
        self._clock = clock
        self._countdown_step = countdown_step
        self._timers: list[asyncio.Task] = []
        self._symbol: Optional[Symbol] = None
        self._running = False
        self.last_outcomes: dict[str, TickOutcome] = {}
        # start, switch_symbol and stop run one at a time
        self._lifecycle_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def symbol(self) -> Optional[Symbol]:
        return self._symbol

    @property
    def tasks(self) -> Mapping[str, ScheduledTask]:
        return MappingProxyType(self._tasks)

    def get_countdown(self, name: str) -> int:
        """Seconds until the task's next natural tick (advisory)."""
        task = self._tasks.get(name)
        if task is None:
            raise KeyError(f"Unknown task: {name}")
        return task.countdown

    def advance_countdowns(self) -> None:
        """One-second step: decrement, wrapping to the interval at the bottom."""
        for task in self._tasks.values():
            task.countdown = task.interval_seconds if task.countdown <= 1 else task.countdown - 1

    def reset_countdowns(self) -> None:
        for task in self._tasks.values():
            task.countdown = task.interval_seconds

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, symbol: Symbol) -> None:
        """Select ``symbol``, fire every task immediately, then keep cadence."""
        async with self._lifecycle_lock:
            if self._running:
                await self._switch(symbol)
            else:
                self._start(symbol)

    async def switch_symbol(self, symbol: Symbol) -> None:
        """Cancel everything for the old symbol and refresh the new one now."""
        async with self._lifecycle_lock:
            if self._running:
                await self._switch(symbol)
            else:
                self._start(symbol)

    async def stop(self) -> None:
        """Cancel timers and running executions and wait for them to unwind."""
        async with self._lifecycle_lock:
            if not self._running:
                return
            self._running = False
            self._store.invalidate()
            await self._cancel_all()
            logger.info("🛑 Scheduler stopped")

    def _start(self, symbol: Symbol) -> None:
        self._symbol = symbol
        self._store.begin_context(symbol)
        self._running = True
        self.reset_countdowns()
        logger.info(f"🚀 Scheduler started for {symbol}")
        self._fire_all()
        self._spawn_timers()

    async def _switch(self, symbol: Symbol) -> None:
        previous = self._symbol
        await self._cancel_all()
        if not self._running:
            # force_stop() landed while the old executions were unwinding
            return
        self._symbol = symbol
        self._store.begin_context(symbol)
        self.reset_countdowns()
        logger.info(f"🔄 Switched {previous} -> {symbol}")
        self._fire_all()
        self._spawn_timers()

    def force_stop(self) -> None:
        """Cancel everything without waiting for the cancellations to land."""
        self._running = False
        self._store.invalidate()
        for timer in self._timers:
            timer.cancel()
        self._timers = []
        for task in self._tasks.values():
            if task.handle is not None:
                task.handle.cancel()
                task.handle = None
        logger.warning("🛑 Scheduler force-stopped")

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    def tick(self, name: str, **job_kwargs: Any) -> TickOutcome:
        """Fire ``name`` unless it is still in flight."""
        task = self._tasks.get(name)
        if task is None:
            raise KeyError(f"Unknown task: {name}")

        if not self._running or self._symbol is None:
            logger.debug(f"{name}: scheduler not running, tick ignored")
            return TickOutcome.SKIPPED

        if task.in_flight:
            logger.info(f"⏭️ {name}: previous run still in flight, tick dropped")
            return TickOutcome.SKIPPED

        task.last_fired_at = self._clock()
        task.handle = asyncio.create_task(
            self._execute(task, self._symbol, self._store.epoch, job_kwargs),
            name=f"{name}:{self._symbol}",
        )
        return TickOutcome.FIRED

    async def _execute(
        self,
        task: ScheduledTask,
        symbol: Symbol,
        epoch: int,
        job_kwargs: Mapping[str, Any],
    ) -> TickOutcome:
        try:
            outcome = await self._jobs[task.name](symbol, epoch, **job_kwargs) or TickOutcome.COMPLETED
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error(f"{task.name} failed for {symbol}: {exc}", exc_info=True)
            outcome = TickOutcome.FAILED
        finally:
            if task.handle is asyncio.current_task():
                task.handle = None

        if self._store.is_current(epoch):
            self.last_outcomes[task.name] = outcome
        return outcome

    def _fire_all(self) -> None:
        for name in self._tasks:
            self.tick(name)

    def _spawn_timers(self) -> None:
        for task in self._tasks.values():
            self._timers.append(asyncio.create_task(self._periodic(task.name), name=f"timer:{task.name}"))
        self._timers.append(asyncio.create_task(self._run_countdowns(), name="timer:countdown"))

    async def _periodic(self, name: str) -> None:
        interval = self._tasks[name].interval_seconds
        while True:
            await asyncio.sleep(interval)
            self.tick(name)

    async def _run_countdowns(self) -> None:
        while True:
            await asyncio.sleep(self._countdown_step)
            self.advance_countdowns()

    async def _cancel_all(self) -> None:
        pending: list[asyncio.Task] = []
        for timer in self._timers:
            timer.cancel()
            pending.append(timer)
        self._timers = []
        for task in self._tasks.values():
            if task.handle is not None:
                task.handle.cancel()
                pending.append(task.handle)
                task.handle = None
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
