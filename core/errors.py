"""Error taxonomy for the refresh pipeline.

Only two conditions are modelled as exceptions. Schedule overlaps and cache
hits are ordinary outcomes (see ``core.refresh.scheduler.TickOutcome``).
"""

from __future__ import annotations


class MarketDataError(Exception):
    """Base class for market data errors."""


class FetchFailure(MarketDataError):
    """A feed (or one symbol of a feed) could not be fetched or parsed."""

    def __init__(self, feed: str, message: str, *, symbol: str | None = None) -> None:
        self.feed = feed
        self.symbol = symbol
        where = f"{feed}:{symbol}" if symbol else feed
        super().__init__(f"{where}: {message}")


class InsufficientData(MarketDataError, ValueError):
    """Not enough data points to derive a metric."""
