"""Runtime configuration for the refresh service.

Defaults reproduce the dashboard cadences. Every field can be overridden from
the environment with ``RefreshConfig.from_env()``:

- CRYPTOTERM_API_BASE_URL - base URL of the dashboard backend feeds
- CRYPTOTERM_DEFAULT_SYMBOL - symbol selected on start (default: bitcoin)
- CRYPTOTERM_PRICE_INTERVAL / CRYPTOTERM_FORECAST_INTERVAL /
  CRYPTOTERM_CANDLE_INTERVAL - task cadences in seconds
- CRYPTOTERM_CANDLE_PERIOD - candle dataset time period (1m, 3m, 6m, 1y, 2y)
- CRYPTOTERM_NEWS_WINDOW_DAYS - sentiment window
- CRYPTOTERM_HTTP_TIMEOUT - per-request timeout in seconds
- CRYPTOTERM_WEIGHTS - recommendation source weights, e.g.
  ``news=0.5,technical=0.3,forecast=0.2`` (unlisted sources keep their default)
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from core.market_data.universe import DEFAULT_UNIVERSE

CANDLE_TIME_PERIODS = ("1m", "3m", "6m", "1y", "2y")


def parse_weights(raw: str) -> dict[str, float]:
    """Parse ``source=weight`` pairs separated by commas.

    Raises:
        ValueError: On a malformed pair or a non-numeric weight
    """
    weights: dict[str, float] = {}
    for pair in raw.split(","):
        if not pair.strip():
            continue
        source, sep, value = pair.partition("=")
        if not sep or not source.strip():
            raise ValueError(f"invalid weight {pair.strip()!r}, expected source=weight")
        weights[source.strip()] = float(value)
    return weights


@dataclass(frozen=True)
class RefreshConfig:
    """Configuration for ``MarketDataService`` and its scheduler."""

    api_base_url: str = "http://127.0.0.1:3000"
    default_symbol: str = "bitcoin"

    # Task cadences in seconds
    price_interval: int = 60
    forecast_interval: int = 300
    candle_interval: int = 3600

    candle_time_period: str = "1y"
    news_window_days: int = 1
    forecast_horizon_minutes: int = 1440

    universe: tuple[str, ...] = field(default_factory=lambda: DEFAULT_UNIVERSE)
    universe_limit: int = 50

    http_timeout: float = 10.0

    # Per-source recommendation weights; None keeps the 0.3 / 0.4 / 0.3 default
    weights: Optional[Mapping[str, float]] = None

    def __post_init__(self) -> None:
        for name in ("price_interval", "forecast_interval", "candle_interval"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")
        if self.candle_time_period not in CANDLE_TIME_PERIODS:
            raise ValueError(
                f"candle_time_period must be one of {', '.join(CANDLE_TIME_PERIODS)}, got {self.candle_time_period!r}"
            )
        if self.universe_limit < 1:
            raise ValueError(f"universe_limit must be >= 1, got {self.universe_limit}")
        if self.weights is not None:
            for source, weight in self.weights.items():
                if not math.isfinite(weight) or weight < 0:
                    raise ValueError(f"weight for {source!r} must be finite and >= 0, got {weight}")

    @classmethod
    def from_env(cls) -> "RefreshConfig":
        defaults = cls()
        env = os.environ
        raw_weights = env.get("CRYPTOTERM_WEIGHTS")
        return cls(
            api_base_url=env.get("CRYPTOTERM_API_BASE_URL", defaults.api_base_url).rstrip("/"),
            default_symbol=env.get("CRYPTOTERM_DEFAULT_SYMBOL", defaults.default_symbol),
            price_interval=int(env.get("CRYPTOTERM_PRICE_INTERVAL", defaults.price_interval)),
            forecast_interval=int(env.get("CRYPTOTERM_FORECAST_INTERVAL", defaults.forecast_interval)),
            candle_interval=int(env.get("CRYPTOTERM_CANDLE_INTERVAL", defaults.candle_interval)),
            candle_time_period=env.get("CRYPTOTERM_CANDLE_PERIOD", defaults.candle_time_period),
            news_window_days=int(env.get("CRYPTOTERM_NEWS_WINDOW_DAYS", defaults.news_window_days)),
            http_timeout=float(env.get("CRYPTOTERM_HTTP_TIMEOUT", defaults.http_timeout)),
            weights=parse_weights(raw_weights) if raw_weights else None,
        )
