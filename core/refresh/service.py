"""Market data service: the public face of the refresh pipeline.

Wires the state store, scheduler jobs and recommendation engine together
and exposes the calls a UI layer needs. The service is constructed
explicitly and owned by its caller; there is no module-level instance in
``core``.

Usage:
    async with DashboardFeedClient(config.api_base_url) as client:
        service = MarketDataService.from_client(client, config)
        await service.start("bitcoin")
        rec = service.get_recommendation()
        await service.stop()
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Optional

from core.config import RefreshConfig
from core.market_data.http_feeds import DashboardFeedClient
from core.market_data.interfaces import CandleFeed, ForecastFeed, NewsFeed, SnapshotFeed
from core.refresh.jobs import CANDLE_CHECK, RefreshJobs, failure_notes
from core.refresh.scheduler import Scheduler, TickOutcome
from core.refresh.store import (
    ERRORS,
    FORECAST,
    NEWS,
    RECOMMENDATION,
    SNAPSHOTS,
    TECHNICAL,
    UNIVERSE,
    StateStore,
)
from core.signals.recommendation import compute_recommendation
from core.signals.weights import get_weights
from core.types import RankedSnapshot, Recommendation, Symbol, round_half_up

logger = logging.getLogger(__name__)

# Slots the recommendation depends on
DEPENDENCY_SLOTS = frozenset({SNAPSHOTS, TECHNICAL, FORECAST, NEWS, ERRORS})


class MarketDataService:
    def __init__(
        self,
        *,
        snapshot_feed: SnapshotFeed,
        candle_feed: CandleFeed,
        forecast_feed: ForecastFeed,
        news_feed: NewsFeed,
        config: Optional[RefreshConfig] = None,
        store: Optional[StateStore] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or RefreshConfig()
        self.weights = get_weights(self.config.weights)
        self.store = store or StateStore()
        self.jobs = RefreshJobs(
            self.store,
            snapshot_feed=snapshot_feed,
            candle_feed=candle_feed,
            forecast_feed=forecast_feed,
            news_feed=news_feed,
            config=self.config,
            clock=clock,
        )
        self.scheduler = Scheduler(self.store, self.jobs.as_jobs(), self.jobs.intervals(), clock=clock)
        self._unsubscribe = self.store.subscribe(self._on_store_change)

    @classmethod
    def from_client(cls, client: DashboardFeedClient, config: Optional[RefreshConfig] = None) -> "MarketDataService":
        """Build a service whose four feeds are served by one HTTP client."""
        return cls(
            snapshot_feed=client,
            candle_feed=client,
            forecast_feed=client,
            news_feed=client,
            config=config,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self.scheduler.is_running

    @property
    def symbol(self) -> Optional[Symbol]:
        return self.scheduler.symbol

    async def start(self, symbol: Optional[Symbol] = None) -> None:
        await self.scheduler.start(symbol or self.scheduler.symbol or self.config.default_symbol)

    async def stop(self) -> None:
        await self.scheduler.stop()

    def force_stop(self) -> None:
        self.scheduler.force_stop()

    async def on_symbol_selected(self, symbol: Symbol) -> None:
        """Reset the scheduler for ``symbol`` and refresh every feed now."""
        symbol = symbol.strip()
        if not symbol:
            raise ValueError("symbol must not be empty")
        if self.is_running and symbol == self.symbol:
            logger.debug(f"{symbol} already selected")
            return
        await self.scheduler.switch_symbol(symbol)

    def force_candle_refresh(self) -> TickOutcome:
        """Refetch candles even if today's dataset is cached."""
        return self.scheduler.tick(CANDLE_CHECK, force=True)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_recommendation(self, symbol: Optional[Symbol] = None) -> Recommendation:
        """Latest recommendation for ``symbol`` (default: the selected one).

        Symbols other than the selected one only have market-wide data, so
        their recommendation is built from news sentiment alone.
        """
        if symbol is None or symbol == self.symbol:
            rec = self.store.get(RECOMMENDATION)
            return rec if rec is not None else self._compute_current()
        return compute_recommendation(
            self.store.get(NEWS),
            None,
            None,
            None,
            weights=self.weights,
            horizon_minutes=self.config.forecast_horizon_minutes,
        )

    def get_ranked_universe(self) -> list[RankedSnapshot]:
        return list(self.store.get(UNIVERSE, ()))

    def get_countdown(self, task_name: str) -> int:
        return self.scheduler.get_countdown(task_name)

    def status(self) -> dict[str, Any]:
        """Serializable collector status."""
        return {
            "running": self.is_running,
            "symbol": self.symbol,
            "epoch": self.store.epoch,
            "tasks": {
                name: {
                    "interval_seconds": task.interval_seconds,
                    "countdown": task.countdown,
                    "in_flight": task.in_flight,
                    "last_fired_at": task.last_fired_at.isoformat() if task.last_fired_at else None,
                    "last_outcome": (
                        self.scheduler.last_outcomes[name].value if name in self.scheduler.last_outcomes else None
                    ),
                }
                for name, task in self.scheduler.tasks.items()
            },
            "errors": dict(self.store.get(ERRORS) or {}),
        }

    # ------------------------------------------------------------------
    # Recompute
    # ------------------------------------------------------------------

    def _compute_current(self) -> Recommendation:
        history = self.store.get(SNAPSHOTS) or ()
        rec = compute_recommendation(
            self.store.get(NEWS),
            self.store.get(TECHNICAL),
            self.store.get(FORECAST),
            history[-1] if history else None,
            weights=self.weights,
            horizon_minutes=self.config.forecast_horizon_minutes,
        )
        notes = failure_notes(self.store.get(ERRORS))
        if notes:
            rec = replace(rec, reasoning=rec.reasoning + notes)
        return rec

    def _on_store_change(self, slot: str) -> None:
        if slot not in DEPENDENCY_SLOTS or self.symbol is None:
            return
        rec = self._compute_current()
        if self.store.publish(RECOMMENDATION, rec, epoch=self.store.epoch):
            logger.info(f"📊 {self.symbol}: {rec.action} ({round_half_up(rec.confidence)}% confidence)")
