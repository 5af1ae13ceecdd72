from __future__ import annotations

from typing import Optional, Protocol, Sequence

from core.types import CandleDataset, ForecastResult, NewsSentiment, Snapshot


class SnapshotFeed(Protocol):
    """Market data history for one symbol, ascending by ``observed_at``."""

    async def fetch_snapshot(self, symbol: str) -> Sequence[Snapshot]:
        raise NotImplementedError


class CandleFeed(Protocol):
    """OHLCV records plus indicator columns for one symbol."""

    async def fetch_candle_dataset(self, symbol: str, time_period: str) -> CandleDataset:
        raise NotImplementedError


class ForecastFeed(Protocol):
    """Short-horizon price predictions for one symbol."""

    async def fetch_forecast(self, symbol: str) -> ForecastResult:
        raise NotImplementedError


class NewsFeed(Protocol):
    """Market-wide news sentiment counts over a window of days."""

    async def fetch_news_sentiment(self, window_days: int) -> NewsSentiment:
        raise NotImplementedError


class KeyValueStore(Protocol):
    """String key-value storage used by the portfolio tracker."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError
