"""Refresh orchestration: state store, fan-out, scheduler and service."""

from core.refresh.fanout import FanOutAggregator, rank_snapshot
from core.refresh.jobs import CANDLE_CHECK, FORECAST_REFRESH, PRICE_REFRESH, RefreshJobs
from core.refresh.scheduler import Scheduler, TickOutcome
from core.refresh.service import MarketDataService
from core.refresh.store import StateStore

__all__ = [
    "CANDLE_CHECK",
    "FORECAST_REFRESH",
    "PRICE_REFRESH",
    "FanOutAggregator",
    "MarketDataService",
    "RefreshJobs",
    "Scheduler",
    "StateStore",
    "TickOutcome",
    "rank_snapshot",
]
