"""Market data feeds, validation and the candle staleness policy."""

from core.market_data.interfaces import CandleFeed, ForecastFeed, KeyValueStore, NewsFeed, SnapshotFeed
from core.market_data.staleness import is_stale
from core.market_data.universe import DEFAULT_UNIVERSE

__all__ = [
    "CandleFeed",
    "ForecastFeed",
    "KeyValueStore",
    "NewsFeed",
    "SnapshotFeed",
    "is_stale",
    "DEFAULT_UNIVERSE",
]
