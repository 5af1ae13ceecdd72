"""Tests for the periodic scheduler: in-flight guard, countdowns, switch and stop."""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.refresh.scheduler import Scheduler, TickOutcome
from core.refresh.store import SNAPSHOTS, StateStore

LONG = {"priceRefresh": 3600, "forecastRefresh": 3600, "candleCheck": 3600}


class RecordingJobs:
    """Jobs that record calls and optionally block on a gate."""

    def __init__(self, store: StateStore) -> None:
        self.store = store
        self.calls: list[tuple[str, str]] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.fail: set[str] = set()

    def job(self, name: str):
        async def run(symbol: str, epoch: int, **kwargs):
            self.calls.append((name, symbol))
            gate = self.gates.get(name)
            if gate is not None:
                await gate.wait()
            if name in self.fail:
                raise RuntimeError(f"{name} exploded")
            self.store.publish(name, symbol, epoch=epoch)
            return None

        return run

    def as_jobs(self):
        return {name: self.job(name) for name in LONG}

    def count(self, name: str) -> int:
        return sum(1 for n, _ in self.calls if n == name)


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def store() -> StateStore:
    return StateStore()


@pytest.fixture
def jobs(store: StateStore) -> RecordingJobs:
    return RecordingJobs(store)


@pytest.fixture
def scheduler(store: StateStore, jobs: RecordingJobs) -> Scheduler:
    return Scheduler(store, jobs.as_jobs(), LONG)


@pytest.mark.asyncio
async def test_start_fires_every_task_immediately(scheduler, jobs, store) -> None:
    await scheduler.start("bitcoin")
    await _settle()

    assert sorted(jobs.calls) == sorted((name, "bitcoin") for name in LONG)
    assert store.get("priceRefresh") == "bitcoin"
    assert scheduler.last_outcomes["priceRefresh"] is TickOutcome.COMPLETED
    assert all(t.last_fired_at is not None for t in scheduler.tasks.values())

    await scheduler.stop()


@pytest.mark.asyncio
async def test_tick_while_in_flight_is_dropped(scheduler, jobs) -> None:
    gate = asyncio.Event()
    jobs.gates["priceRefresh"] = gate
    await scheduler.start("bitcoin")
    await _settle()

    assert scheduler.tasks["priceRefresh"].in_flight
    assert scheduler.tick("priceRefresh") is TickOutcome.SKIPPED
    assert scheduler.tick("priceRefresh") is TickOutcome.SKIPPED
    assert jobs.count("priceRefresh") == 1

    handle = scheduler.tasks["priceRefresh"].handle
    gate.set()
    await handle

    assert not scheduler.tasks["priceRefresh"].in_flight
    assert scheduler.tick("priceRefresh") is TickOutcome.FIRED
    await _settle()
    assert jobs.count("priceRefresh") == 2

    await scheduler.stop()


@pytest.mark.asyncio
async def test_failed_job_does_not_stop_future_ticks(scheduler, jobs) -> None:
    jobs.fail.add("forecastRefresh")
    await scheduler.start("bitcoin")
    await _settle()

    assert scheduler.last_outcomes["forecastRefresh"] is TickOutcome.FAILED
    assert scheduler.is_running

    jobs.fail.clear()
    assert scheduler.tick("forecastRefresh") is TickOutcome.FIRED
    await _settle()
    assert scheduler.last_outcomes["forecastRefresh"] is TickOutcome.COMPLETED

    await scheduler.stop()


@pytest.mark.asyncio
async def test_job_outcome_is_recorded(store) -> None:
    async def cached(symbol, epoch, **kwargs):
        return TickOutcome.CACHE_HIT

    scheduler = Scheduler(store, {"candleCheck": cached}, {"candleCheck": 3600})
    await scheduler.start("bitcoin")
    await _settle()

    assert scheduler.last_outcomes["candleCheck"] is TickOutcome.CACHE_HIT
    await scheduler.stop()


@pytest.mark.asyncio
async def test_tick_forwards_job_kwargs(store) -> None:
    seen = []

    async def job(symbol, epoch, force=False):
        seen.append(force)

    scheduler = Scheduler(store, {"candleCheck": job}, {"candleCheck": 3600})
    await scheduler.start("bitcoin")
    await _settle()
    scheduler.tick("candleCheck", force=True)
    await _settle()

    assert seen == [False, True]
    await scheduler.stop()


# ========== countdowns ==========


def test_countdown_decrements_and_wraps(store) -> None:
    async def noop(symbol, epoch):
        return None

    scheduler = Scheduler(store, {"priceRefresh": noop}, {"priceRefresh": 3})
    seen = []
    for _ in range(5):
        seen.append(scheduler.get_countdown("priceRefresh"))
        scheduler.advance_countdowns()

    assert seen == [3, 2, 1, 3, 2]


def test_countdown_unknown_task(scheduler) -> None:
    with pytest.raises(KeyError):
        scheduler.get_countdown("nope")


@pytest.mark.asyncio
async def test_countdown_ticker_runs_while_started(store, jobs) -> None:
    scheduler = Scheduler(store, jobs.as_jobs(), LONG, countdown_step=0.01)
    await scheduler.start("bitcoin")
    await asyncio.sleep(0.05)

    assert scheduler.get_countdown("priceRefresh") < 3600
    await scheduler.stop()


@pytest.mark.asyncio
async def test_countdown_does_not_gate_ticks(scheduler, jobs) -> None:
    await scheduler.start("bitcoin")
    await _settle()

    assert scheduler.get_countdown("priceRefresh") == 3600
    assert scheduler.tick("priceRefresh") is TickOutcome.FIRED
    await _settle()
    assert jobs.count("priceRefresh") == 2

    await scheduler.stop()


# ========== switch / stop ==========


@pytest.mark.asyncio
async def test_switch_resets_countdowns_and_refreshes_new_symbol(scheduler, jobs, store) -> None:
    await scheduler.start("bitcoin")
    await _settle()
    for _ in range(10):
        scheduler.advance_countdowns()

    await scheduler.switch_symbol("ethereum")
    await _settle()

    assert scheduler.symbol == "ethereum"
    assert all(scheduler.get_countdown(name) == 3600 for name in LONG)
    assert ("priceRefresh", "ethereum") in jobs.calls
    assert store.get("priceRefresh") == "ethereum"

    await scheduler.stop()


@pytest.mark.asyncio
async def test_concurrent_switches_leave_one_set_of_timers(scheduler, jobs, store) -> None:
    gate = asyncio.Event()
    for name in LONG:
        jobs.gates[name] = gate
    await scheduler.start("bitcoin")
    await _settle()

    await asyncio.gather(scheduler.switch_symbol("ethereum"), scheduler.switch_symbol("solana"))
    await _settle()

    assert scheduler.symbol == "solana"
    # one periodic timer per task plus the countdown ticker
    assert len(scheduler._timers) == len(LONG) + 1
    assert all(not t.done() for t in scheduler._timers)
    for name in LONG:
        assert sum(1 for n, s in jobs.calls if n == name and s == "solana") == 1

    gate.set()
    await _settle()
    assert store.get("priceRefresh") == "solana"

    await scheduler.stop()
    assert scheduler._timers == []


@pytest.mark.asyncio
async def test_stop_racing_switch_stays_stopped(scheduler, jobs) -> None:
    jobs.gates["priceRefresh"] = asyncio.Event()
    await scheduler.start("bitcoin")
    await _settle()

    await asyncio.gather(scheduler.switch_symbol("ethereum"), scheduler.stop())
    await _settle()

    assert not scheduler.is_running
    assert scheduler._timers == []


@pytest.mark.asyncio
async def test_switch_mid_fetch_discards_late_result(store) -> None:
    """Bitcoin's fetch resolves after the switch; its result must not land."""
    gate = asyncio.Event()
    leaked: list[asyncio.Future] = []

    async def slow_publish(symbol, epoch):
        await gate.wait()
        return store.publish(SNAPSHOTS, symbol, epoch=epoch)

    async def price_job(symbol, epoch):
        if symbol == "bitcoin":
            inner = asyncio.ensure_future(slow_publish(symbol, epoch))
            leaked.append(inner)
            await asyncio.shield(inner)
        else:
            store.publish(SNAPSHOTS, symbol, epoch=epoch)

    scheduler = Scheduler(store, {"priceRefresh": price_job}, {"priceRefresh": 3600})
    await scheduler.start("bitcoin")
    await _settle()

    await scheduler.switch_symbol("ethereum")
    await _settle()
    assert store.get(SNAPSHOTS) == "ethereum"

    gate.set()
    accepted = await leaked[0]

    assert accepted is False
    assert store.get(SNAPSHOTS) == "ethereum"
    await scheduler.stop()


@pytest.mark.asyncio
async def test_switch_cancels_in_flight_execution(scheduler, jobs) -> None:
    jobs.gates["forecastRefresh"] = asyncio.Event()
    await scheduler.start("bitcoin")
    await _settle()
    old_handle = scheduler.tasks["forecastRefresh"].handle

    await scheduler.switch_symbol("ethereum")

    assert old_handle.cancelled()
    await scheduler.stop()


@pytest.mark.asyncio
async def test_stop_releases_everything(scheduler, jobs, store) -> None:
    gate = asyncio.Event()
    jobs.gates["priceRefresh"] = gate
    await scheduler.start("bitcoin")
    await _settle()
    epoch_before = store.epoch

    await scheduler.stop()

    assert not scheduler.is_running
    assert all(t.handle is None for t in scheduler.tasks.values())
    assert scheduler._timers == []
    assert store.epoch > epoch_before
    assert scheduler.tick("priceRefresh") is TickOutcome.SKIPPED

    gate.set()
    await _settle()
    assert store.get("priceRefresh") is None


@pytest.mark.asyncio
async def test_stop_is_idempotent(scheduler) -> None:
    await scheduler.start("bitcoin")
    await scheduler.stop()
    await scheduler.stop()
    assert not scheduler.is_running


@pytest.mark.asyncio
async def test_force_stop_cancels_without_waiting(scheduler, jobs) -> None:
    jobs.gates["priceRefresh"] = asyncio.Event()
    await scheduler.start("bitcoin")
    await _settle()
    handle = scheduler.tasks["priceRefresh"].handle

    scheduler.force_stop()
    await _settle()

    assert not scheduler.is_running
    assert handle.cancelled()
    assert scheduler.tasks["priceRefresh"].handle is None


@pytest.mark.asyncio
async def test_start_twice_switches(scheduler, jobs) -> None:
    await scheduler.start("bitcoin")
    await scheduler.start("solana")
    await _settle()

    assert scheduler.symbol == "solana"
    await scheduler.stop()


def test_missing_interval_is_rejected(store) -> None:
    async def noop(symbol, epoch):
        return None

    with pytest.raises(ValueError, match="No interval"):
        Scheduler(store, {"priceRefresh": noop}, {})


@pytest.mark.asyncio
async def test_last_fired_at_uses_clock(store, jobs) -> None:
    fixed = datetime(2024, 3, 1, 12, 0)
    scheduler = Scheduler(store, jobs.as_jobs(), LONG, clock=lambda: fixed)
    await scheduler.start("bitcoin")

    assert scheduler.tasks["candleCheck"].last_fired_at == fixed
    await scheduler.stop()
