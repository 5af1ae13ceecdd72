"""Concurrent snapshot fan-out over the coin universe.

One fetch per symbol, all in flight at once. A symbol that fails (network,
malformed payload, fewer than two points) is left out; it never blocks or
aborts the others. There are no retries inside a pass; the next scheduled
pass is the retry.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from core.errors import FetchFailure
from core.market_data.interfaces import SnapshotFeed
from core.types import RankedSnapshot, Snapshot, Symbol

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50


def rank_snapshot(symbol: Symbol, history: Sequence[Snapshot]) -> Optional[RankedSnapshot]:
    """Build a ranked row from a symbol's snapshot history.

    The 24h change compares the two most recent points, whatever their actual
    time gap.
    """
    points = sorted(history, key=lambda s: s.observed_at)
    if len(points) < 2:
        logger.debug(f"{symbol}: {len(points)} point(s), need 2 for a change")
        return None

    latest, previous = points[-1], points[-2]
    if previous.price <= 0:
        logger.debug(f"{symbol}: previous price is {previous.price}, skipping")
        return None

    return RankedSnapshot(
        symbol=symbol,
        price=latest.price,
        market_cap=latest.market_cap,
        change_24h=(latest.price - previous.price) / previous.price * 100,
        observed_at=latest.observed_at,
        ticker=latest.ticker,
        name=latest.name,
    )


class FanOutAggregator:
    def __init__(self, feed: SnapshotFeed, *, limit: int = DEFAULT_LIMIT):
        if limit <= 0:
            raise ValueError("limit must be > 0")
        self.feed = feed
        self.limit = limit

    async def refresh_universe(self, symbols: Sequence[Symbol]) -> list[RankedSnapshot]:
        """Fetch every symbol concurrently and rank by market cap (descending)."""
        results = await asyncio.gather(
            *(self._fetch_one(symbol) for symbol in symbols),
            return_exceptions=True,
        )

        ranked: list[RankedSnapshot] = []
        failed = 0
        for symbol, result in zip(symbols, results):
            if isinstance(result, BaseException):
                logger.warning(f"{symbol}: unexpected fan-out error: {result!r}")
                failed += 1
            elif result is None:
                failed += 1
            else:
                ranked.append(result)

        ranked.sort(key=lambda r: r.market_cap, reverse=True)
        logger.info(f"Universe refresh: {len(ranked)}/{len(symbols)} ok, {failed} skipped")
        return ranked[: self.limit]

    async def _fetch_one(self, symbol: Symbol) -> Optional[RankedSnapshot]:
        try:
            history = await self.feed.fetch_snapshot(symbol)
        except FetchFailure as exc:
            logger.warning(f"Fan-out fetch failed: {exc}")
            return None
        return rank_snapshot(symbol, history)
