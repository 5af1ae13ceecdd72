"""Job bodies for the three scheduled tasks.

- priceRefresh: selected symbol's snapshot history, market news sentiment and
  the universe fan-out, concurrently and independently
- forecastRefresh: selected symbol's forecast
- candleCheck: candle dataset, refetched only when the staleness policy says so

A failed feed is logged and recorded in the store's error slot; the previous
value stays in place.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Mapping

from core.config import RefreshConfig
from core.errors import FetchFailure
from core.market_data.interfaces import CandleFeed, ForecastFeed, NewsFeed, SnapshotFeed
from core.market_data.staleness import is_stale
from core.refresh.fanout import FanOutAggregator
from core.refresh.scheduler import Job, TickOutcome
from core.refresh.store import CANDLES, FORECAST, NEWS, SNAPSHOTS, TECHNICAL, UNIVERSE, StateStore
from core.signals.technical import derive_votes
from core.types import Symbol

logger = logging.getLogger(__name__)

PRICE_REFRESH = "priceRefresh"
FORECAST_REFRESH = "forecastRefresh"
CANDLE_CHECK = "candleCheck"


class RefreshJobs:
    def __init__(
        self,
        store: StateStore,
        *,
        snapshot_feed: SnapshotFeed,
        candle_feed: CandleFeed,
        forecast_feed: ForecastFeed,
        news_feed: NewsFeed,
        config: RefreshConfig,
        aggregator: FanOutAggregator | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.snapshot_feed = snapshot_feed
        self.candle_feed = candle_feed
        self.forecast_feed = forecast_feed
        self.news_feed = news_feed
        self.config = config
        self.aggregator = aggregator or FanOutAggregator(snapshot_feed, limit=config.universe_limit)
        self.clock = clock

    def as_jobs(self) -> dict[str, Job]:
        return {
            PRICE_REFRESH: self.refresh_prices,
            FORECAST_REFRESH: self.refresh_forecast,
            CANDLE_CHECK: self.check_candles,
        }

    def intervals(self) -> dict[str, int]:
        return {
            PRICE_REFRESH: self.config.price_interval,
            FORECAST_REFRESH: self.config.forecast_interval,
            CANDLE_CHECK: self.config.candle_interval,
        }

    # ------------------------------------------------------------------
    # priceRefresh
    # ------------------------------------------------------------------

    async def refresh_prices(self, symbol: Symbol, epoch: int) -> TickOutcome:
        results = await asyncio.gather(
            self._refresh_snapshots(symbol, epoch),
            self._refresh_news(epoch),
            self._refresh_universe(epoch),
            return_exceptions=True,
        )
        ok = True
        for result in results:
            if isinstance(result, BaseException):
                logger.error(f"priceRefresh part failed for {symbol}: {result!r}")
                ok = False
            elif not result:
                ok = False
        return TickOutcome.COMPLETED if ok else TickOutcome.FAILED

    async def _refresh_snapshots(self, symbol: Symbol, epoch: int) -> bool:
        try:
            history = await self.snapshot_feed.fetch_snapshot(symbol)
            if not history:
                raise FetchFailure("snapshot", "empty history", symbol=symbol)
        except FetchFailure as exc:
            return self._failed("snapshot", exc, epoch)

        self.store.publish(SNAPSHOTS, tuple(sorted(history, key=lambda s: s.observed_at)), epoch=epoch)
        self.store.clear_failure("snapshot", epoch=epoch)
        return True

    async def _refresh_news(self, epoch: int) -> bool:
        try:
            sentiment = await self.news_feed.fetch_news_sentiment(self.config.news_window_days)
        except FetchFailure as exc:
            return self._failed("news", exc, epoch)

        self.store.publish(NEWS, sentiment, epoch=epoch)
        self.store.clear_failure("news", epoch=epoch)
        return True

    async def _refresh_universe(self, epoch: int) -> bool:
        ranked = await self.aggregator.refresh_universe(self.config.universe)
        if not ranked and self.config.universe:
            return self._failed("universe", FetchFailure("universe", "no symbol could be fetched"), epoch)

        self.store.publish(UNIVERSE, tuple(ranked), epoch=epoch)
        self.store.clear_failure("universe", epoch=epoch)
        return True

    # ------------------------------------------------------------------
    # forecastRefresh
    # ------------------------------------------------------------------

    async def refresh_forecast(self, symbol: Symbol, epoch: int) -> TickOutcome:
        try:
            forecast = await self.forecast_feed.fetch_forecast(symbol)
        except FetchFailure as exc:
            self._failed("forecast", exc, epoch)
            return TickOutcome.FAILED

        self.store.publish(FORECAST, forecast, epoch=epoch)
        self.store.clear_failure("forecast", epoch=epoch)
        return TickOutcome.COMPLETED

    # ------------------------------------------------------------------
    # candleCheck
    # ------------------------------------------------------------------

    async def check_candles(self, symbol: Symbol, epoch: int, *, force: bool = False) -> TickOutcome:
        """Refetch the candle dataset at most once per calendar day unless forced."""
        today = self.clock().date()
        cached = self.store.get(CANDLES)
        if not force and not is_stale(cached, today):
            logger.info(f"candleCheck: {symbol} candles from {cached.fetched_on} still fresh")
            return TickOutcome.CACHE_HIT

        try:
            dataset = await self.candle_feed.fetch_candle_dataset(symbol, self.config.candle_time_period)
        except FetchFailure as exc:
            self._failed("candles", exc, epoch)
            return TickOutcome.FAILED

        dataset = replace(dataset, fetched_on=today)
        if self.store.publish(CANDLES, dataset, epoch=epoch):
            self.store.publish(TECHNICAL, derive_votes(dataset), epoch=epoch)
            self.store.clear_failure("candles", epoch=epoch)
            logger.info(f"candleCheck: {symbol} {len(dataset.records)} candles stored for {today}")
        return TickOutcome.COMPLETED

    def _failed(self, feed: str, exc: Exception, epoch: int) -> bool:
        logger.warning(f"Refresh failed, keeping previous value: {exc}")
        self.store.record_failure(feed, str(exc), epoch=epoch)
        return False


def failure_notes(errors: Mapping[str, str] | None) -> tuple[str, ...]:
    """Reasoning lines describing failed feeds."""
    if not errors:
        return ()
    return tuple(f"{feed} refresh failed, using last known data ({message})" for feed, message in sorted(errors.items()))
