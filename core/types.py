from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal, Optional

Symbol = str
Action = Literal["BUY", "SELL", "NEUTRAL"]
Vote = Literal["BUY", "SELL", "HOLD"]
SignalSource = Literal["news", "technical", "forecast"]
TaskName = Literal["priceRefresh", "forecastRefresh", "candleCheck"]


@dataclass(frozen=True)
class Snapshot:
    symbol: Symbol
    price: float
    market_cap: float
    volume_24h: float
    change_1h: Optional[float]
    change_24h: Optional[float]
    change_7d: Optional[float]
    high_24h: Optional[float]
    low_24h: Optional[float]
    observed_at: datetime
    ticker: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class RankedSnapshot:
    symbol: Symbol
    price: float
    market_cap: float
    change_24h: float  # percent, derived from the two most recent points
    observed_at: datetime
    ticker: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class CandleRecord:
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float
    sma_20: Optional[float] = None
    sma_50: Optional[float] = None
    bb_upper: Optional[float] = None
    bb_middle: Optional[float] = None
    bb_lower: Optional[float] = None
    rsi: Optional[float] = None


@dataclass(frozen=True)
class IndicatorReading:
    code: str
    vote: Vote
    value: str
    reason: str


@dataclass(frozen=True)
class TechnicalVotes:
    """One vote per indicator family. ``None`` means the indicator had no data."""

    momentum: Optional[Vote] = None
    trend: Optional[Vote] = None
    moving_average: Optional[Vote] = None
    band: Optional[Vote] = None

    def as_dict(self) -> dict[str, Optional[Vote]]:
        return {
            "momentum": self.momentum,
            "trend": self.trend,
            "moving_average": self.moving_average,
            "band": self.band,
        }


@dataclass(frozen=True)
class CandleDataset:
    symbol: Symbol
    time_period: str
    records: tuple[CandleRecord, ...]
    fetched_on: Optional[date] = None
    provider_votes: Optional[TechnicalVotes] = None


@dataclass(frozen=True)
class Prediction:
    horizon_minutes: int
    predicted_price: float


@dataclass(frozen=True)
class ForecastResult:
    symbol: Symbol
    predictions: tuple[Prediction, ...]
    current_price: Optional[float] = None


@dataclass(frozen=True)
class NewsSentiment:
    total: int
    positive_count: int
    negative_count: int
    neutral_count: int
    window_days: int = 1


@dataclass(frozen=True)
class Signal:
    source: SignalSource
    score: float  # 0-100, unrounded
    reasoning: tuple[str, ...] = ()


@dataclass(frozen=True)
class SignalContribution:
    """Per-source contribution to the overall score."""

    source: SignalSource
    score: float  # 0-100
    weight: float  # normalized weight
    contribution: float  # weight * score


@dataclass(frozen=True)
class Recommendation:
    action: Action
    confidence: float  # 0-95, unrounded
    overall: float
    news: float
    technical: float
    forecast: float
    reasoning: tuple[str, ...] = ()
    contributions: tuple[SignalContribution, ...] = ()

    @property
    def breakdown(self) -> dict[str, float]:
        return {"news": self.news, "technical": self.technical, "forecast": self.forecast}

    @property
    def weights(self) -> dict[str, float]:
        """Normalized weight each source carried in ``overall``."""
        return {c.source: c.weight for c in self.contributions}

    def to_dict(self) -> dict[str, object]:
        """Presentation form: scores rounded half-up to integers."""
        return {
            "action": self.action,
            "confidence": round_half_up(self.confidence),
            "breakdown": {k: round_half_up(v) for k, v in self.breakdown.items()},
            "weights": {k: round(v, 4) for k, v in self.weights.items()},
            "reasoning": list(self.reasoning),
        }


@dataclass
class ScheduledTask:
    """Mutable scheduling state for one named periodic task."""

    name: TaskName
    interval_seconds: int
    last_fired_at: Optional[datetime] = None
    countdown: int = 0
    handle: Optional[asyncio.Task] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.countdown <= 0:
            self.countdown = self.interval_seconds

    @property
    def in_flight(self) -> bool:
        handle = self.handle
        return handle is not None and not handle.done()


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (80.5 -> 81)."""
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def clamp_score(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(value, high))
