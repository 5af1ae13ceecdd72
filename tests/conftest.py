"""Shared test fixtures for pytest.

Provides sample market data and an in-memory fake implementing all four
feed protocols.
"""

from __future__ import annotations

import asyncio
import sys
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.config import RefreshConfig
from core.errors import FetchFailure
from core.types import (
    CandleDataset,
    CandleRecord,
    ForecastResult,
    NewsSentiment,
    Prediction,
    Snapshot,
    TechnicalVotes,
)

BASE_TIME = datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)


def make_snapshot(
    symbol: str,
    price: float,
    market_cap: float = 1_000_000.0,
    minutes: int = 0,
) -> Snapshot:
    """Helper to create a snapshot with minimal required fields."""
    return Snapshot(
        symbol=symbol,
        price=price,
        market_cap=market_cap,
        volume_24h=1000.0,
        change_1h=None,
        change_24h=None,
        change_7d=None,
        high_24h=None,
        low_24h=None,
        observed_at=BASE_TIME + timedelta(minutes=minutes),
        ticker=symbol[:3].upper(),
        name=symbol.title(),
    )


def make_records(closes: list[float], **latest_fields) -> tuple[CandleRecord, ...]:
    """Daily candle records for the given closes; ``latest_fields`` go on the last one."""
    records = []
    for i, close in enumerate(closes):
        extra = latest_fields if i == len(closes) - 1 else {}
        records.append(
            CandleRecord(
                timestamp=BASE_TIME + timedelta(days=i),
                open=close,
                high=close,
                low=close,
                close=close,
                volume=1000.0,
                **extra,
            )
        )
    return tuple(records)


class FakeFeed:
    """In-memory snapshot / candle / forecast / news feed.

    - ``fail`` holds keys ("snapshot:<sym>", "candles:<sym>", "forecast:<sym>",
      "news") whose next calls raise ``FetchFailure``
    - ``gates`` holds ``asyncio.Event``s a call with that key waits on
    - ``calls`` counts calls per key
    """

    def __init__(self) -> None:
        self.histories: dict[str, list[Snapshot]] = {}
        self.candles: dict[str, CandleDataset] = {}
        self.forecasts: dict[str, ForecastResult] = {}
        self.news: Optional[NewsSentiment] = None
        self.fail: set[str] = set()
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: Counter = Counter()

    async def _enter(self, key: str, symbol: Optional[str] = None) -> None:
        self.calls[key] += 1
        gate = self.gates.get(key)
        if gate is not None:
            await gate.wait()
        if key in self.fail:
            raise FetchFailure(key.split(":")[0], "simulated outage", symbol=symbol)

    async def fetch_snapshot(self, symbol: str) -> list[Snapshot]:
        await self._enter(f"snapshot:{symbol}", symbol)
        if symbol not in self.histories:
            raise FetchFailure("snapshot", "unknown coin", symbol=symbol)
        return list(self.histories[symbol])

    async def fetch_candle_dataset(self, symbol: str, time_period: str) -> CandleDataset:
        await self._enter(f"candles:{symbol}", symbol)
        if symbol not in self.candles:
            raise FetchFailure("candles", "no candles", symbol=symbol)
        return self.candles[symbol]

    async def fetch_forecast(self, symbol: str) -> ForecastResult:
        await self._enter(f"forecast:{symbol}", symbol)
        if symbol not in self.forecasts:
            raise FetchFailure("forecast", "no forecast", symbol=symbol)
        return self.forecasts[symbol]

    async def fetch_news_sentiment(self, window_days: int) -> NewsSentiment:
        await self._enter("news")
        if self.news is None:
            raise FetchFailure("news", "no news")
        return self.news


@pytest.fixture
def bullish_feed() -> FakeFeed:
    """Feed where bitcoin is strongly bullish on all three signals.

    news 8/1/10 -> 95, four BUY votes -> 100, +10% forecast -> 85.
    """
    feed = FakeFeed()
    feed.histories["bitcoin"] = [
        make_snapshot("bitcoin", 95.0, market_cap=2_000_000.0, minutes=0),
        make_snapshot("bitcoin", 100.0, market_cap=2_000_000.0, minutes=1),
    ]
    feed.histories["ethereum"] = [
        make_snapshot("ethereum", 50.0, market_cap=1_000_000.0, minutes=0),
        make_snapshot("ethereum", 40.0, market_cap=1_000_000.0, minutes=1),
    ]
    feed.candles["bitcoin"] = CandleDataset(
        symbol="bitcoin",
        time_period="1y",
        records=make_records([100.0] * 5),
        provider_votes=TechnicalVotes(momentum="BUY", trend="BUY", moving_average="BUY", band="BUY"),
    )
    feed.forecasts["bitcoin"] = ForecastResult(
        symbol="bitcoin",
        predictions=(Prediction(horizon_minutes=60, predicted_price=110.0),),
        current_price=100.0,
    )
    feed.news = NewsSentiment(total=10, positive_count=8, negative_count=1, neutral_count=1)
    return feed


@pytest.fixture
def small_config() -> RefreshConfig:
    return RefreshConfig(universe=("bitcoin", "ethereum"))


class FixedClock:
    """Settable clock for calendar-day staleness tests."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def today(self) -> date:
        return self.now.date()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 3, 1, 12, 0))
