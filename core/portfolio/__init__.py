"""Portfolio tracking over a key-value store."""

from core.portfolio.storage import InMemoryKeyValueStore, JsonFileKeyValueStore
from core.portfolio.tracker import Holding, PortfolioConfig, PortfolioTracker

__all__ = [
    "Holding",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "PortfolioConfig",
    "PortfolioTracker",
]
