"""Boundary validation for feed payloads.

Every payload coming out of a feed is parsed here into the typed dataclasses
of ``core.types`` before it can reach the state store. Anything structurally
wrong raises ``FetchFailure``; nothing half-parsed is ever returned.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from core.errors import FetchFailure
from core.types import (
    CandleDataset,
    CandleRecord,
    ForecastResult,
    NewsSentiment,
    Prediction,
    Snapshot,
    TechnicalVotes,
    Vote,
)

_VOTE_ALIASES: dict[str, Vote] = {
    "BUY": "BUY",
    "SELL": "SELL",
    "HOLD": "HOLD",
    "NEUTRAL": "HOLD",
}

_PROVIDER_VOTE_KEYS = {
    "momentum": "rsi_signal",
    "trend": "macd_signal",
    "moving_average": "moving_average_signal",
    "band": "bollinger_signal",
}


def _number(row: Mapping[str, Any], key: str, feed: str, symbol: Optional[str]) -> float:
    value = row.get(key)
    if value is None or isinstance(value, bool):
        raise FetchFailure(feed, f"missing or invalid field {key!r}", symbol=symbol)
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise FetchFailure(feed, f"field {key!r} is not numeric: {value!r}", symbol=symbol) from exc
    if not math.isfinite(number):
        raise FetchFailure(feed, f"field {key!r} is not finite", symbol=symbol)
    return number


def _optional_number(row: Mapping[str, Any], key: str, feed: str, symbol: Optional[str]) -> Optional[float]:
    if row.get(key) is None:
        return None
    return _number(row, key, feed, symbol)


def _count(row: Mapping[str, Any], key: str, feed: str) -> int:
    value = _number(row, key, feed, None)
    if value < 0 or value != int(value):
        raise FetchFailure(feed, f"field {key!r} must be a non-negative integer, got {value}")
    return int(value)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string or epoch milliseconds into an aware datetime."""
    if isinstance(value, bool):
        raise ValueError(f"invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError) as exc:
            raise ValueError(f"timestamp out of range: {value!r}") from exc
    if isinstance(value, str) and value:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise ValueError(f"invalid timestamp: {value!r}")


def _timestamp(row: Mapping[str, Any], keys: Iterable[str], feed: str, symbol: Optional[str]) -> datetime:
    for key in keys:
        if row.get(key) is not None:
            try:
                return parse_timestamp(row[key])
            except ValueError as exc:
                raise FetchFailure(feed, str(exc), symbol=symbol) from exc
    raise FetchFailure(feed, f"missing timestamp (expected one of {', '.join(keys)})", symbol=symbol)


def _unwrap(payload: Any, feed: str, key: str, symbol: Optional[str] = None) -> Any:
    """Check the ``{"success": ..., key: ...}`` envelope and return ``payload[key]``."""
    if not isinstance(payload, Mapping):
        raise FetchFailure(feed, f"unexpected response format: {type(payload).__name__}", symbol=symbol)
    if payload.get("success") is False:
        raise FetchFailure(feed, str(payload.get("error") or "provider reported failure"), symbol=symbol)
    if key not in payload:
        raise FetchFailure(feed, f"response missing {key!r}", symbol=symbol)
    return payload[key]


def parse_snapshot_history(symbol: str, payload: Any) -> list[Snapshot]:
    """Parse a ``/api/crypto`` response into snapshots sorted by ``observed_at``."""
    rows = _unwrap(payload, "snapshot", "data", symbol)
    if not isinstance(rows, list):
        raise FetchFailure("snapshot", "data is not a list", symbol=symbol)

    snapshots = []
    for row in rows:
        if not isinstance(row, Mapping):
            raise FetchFailure("snapshot", "row is not an object", symbol=symbol)
        snapshots.append(
            Snapshot(
                symbol=str(row.get("id") or symbol),
                price=_number(row, "price_usd", "snapshot", symbol),
                market_cap=_number(row, "market_cap", "snapshot", symbol),
                volume_24h=_optional_number(row, "volume_24h", "snapshot", symbol) or 0.0,
                change_1h=_optional_number(row, "price_change_1h", "snapshot", symbol),
                change_24h=_optional_number(row, "price_change_24h", "snapshot", symbol),
                change_7d=_optional_number(row, "price_change_7d", "snapshot", symbol),
                high_24h=_optional_number(row, "high_24h", "snapshot", symbol),
                low_24h=_optional_number(row, "low_24h", "snapshot", symbol),
                observed_at=_timestamp(row, ("timestamp", "last_updated"), "snapshot", symbol),
                ticker=str(row["symbol"]).upper() if row.get("symbol") else None,
                name=str(row["name"]) if row.get("name") else None,
            )
        )

    # Stable sort keeps provider order for equal timestamps
    snapshots.sort(key=lambda s: s.observed_at)
    return snapshots


def parse_candle_dataset(symbol: str, time_period: str, payload: Any) -> CandleDataset:
    """Parse a ``/api/candle-chart?action=indicators`` response."""
    data = _unwrap(payload, "candles", "data", symbol)
    if not isinstance(data, Mapping):
        raise FetchFailure("candles", "data is not an object", symbol=symbol)
    rows = data.get("candles")
    if not isinstance(rows, list):
        raise FetchFailure("candles", "data.candles is not a list", symbol=symbol)

    records = []
    for row in rows:
        if not isinstance(row, Mapping):
            raise FetchFailure("candles", "candle is not an object", symbol=symbol)
        records.append(
            CandleRecord(
                timestamp=_timestamp(row, ("timestamp", "date"), "candles", symbol),
                open=_number(row, "open", "candles", symbol),
                high=_number(row, "high", "candles", symbol),
                low=_number(row, "low", "candles", symbol),
                close=_number(row, "close", "candles", symbol),
                volume=_optional_number(row, "volume", "candles", symbol) or 0.0,
                sma_20=_optional_number(row, "sma_20", "candles", symbol),
                sma_50=_optional_number(row, "sma_50", "candles", symbol),
                bb_upper=_optional_number(row, "bb_upper", "candles", symbol),
                bb_middle=_optional_number(row, "bb_middle", "candles", symbol),
                bb_lower=_optional_number(row, "bb_lower", "candles", symbol),
                rsi=_optional_number(row, "rsi", "candles", symbol),
            )
        )
    records.sort(key=lambda r: r.timestamp)

    return CandleDataset(
        symbol=symbol,
        time_period=str(data.get("time_period") or time_period),
        records=tuple(records),
    )


def parse_provider_votes(payload: Any) -> Optional[TechnicalVotes]:
    """Parse a ``/api/candle-chart?action=signals`` response.

    Returns None when the provider has no signals. Unknown vote values count
    as a missing vote rather than a failure.
    """
    if not isinstance(payload, Mapping) or payload.get("success") is False:
        return None
    container = payload.get("signals")
    if isinstance(container, Mapping) and isinstance(container.get("signals"), Mapping):
        container = container["signals"]
    if not isinstance(container, Mapping):
        return None

    votes: dict[str, Optional[Vote]] = {}
    for family, key in _PROVIDER_VOTE_KEYS.items():
        raw = container.get(key)
        votes[family] = _VOTE_ALIASES.get(str(raw).upper()) if raw is not None else None
    if all(v is None for v in votes.values()):
        return None
    return TechnicalVotes(**votes)


def parse_forecast(symbol: str, payload: Any) -> ForecastResult:
    """Parse a ``/api/forecast`` response."""
    data = _unwrap(payload, "forecast", "data", symbol)
    if not isinstance(data, Mapping):
        raise FetchFailure("forecast", "data is not an object", symbol=symbol)
    if data.get("error"):
        raise FetchFailure("forecast", str(data["error"]), symbol=symbol)
    rows = data.get("predictions")
    if not isinstance(rows, list):
        raise FetchFailure("forecast", "predictions is not a list", symbol=symbol)

    predictions = []
    for row in rows:
        if not isinstance(row, Mapping):
            raise FetchFailure("forecast", "prediction is not an object", symbol=symbol)
        predictions.append(
            Prediction(
                horizon_minutes=int(_number(row, "minutes_ahead", "forecast", symbol)),
                predicted_price=_number(row, "predicted_price", "forecast", symbol),
            )
        )

    return ForecastResult(
        symbol=symbol,
        predictions=tuple(predictions),
        current_price=_optional_number(data, "current_price", "forecast", symbol),
    )


def parse_news_sentiment(payload: Any, window_days: int = 1) -> NewsSentiment:
    """Parse a ``/api/news-analysis`` response."""
    data = _unwrap(payload, "news", "data")
    if not isinstance(data, Mapping):
        raise FetchFailure("news", "data is not an object")
    summary = data.get("summary")
    if not isinstance(summary, Mapping):
        raise FetchFailure("news", "data.summary is not an object")

    total = _count(data, "total", "news")
    positive = _count(summary, "positive_count", "news")
    negative = _count(summary, "negative_count", "news")
    neutral = _count(summary, "neutral_count", "news") if summary.get("neutral_count") is not None else 0
    if positive + negative > total:
        raise FetchFailure("news", f"positive+negative ({positive + negative}) exceeds total ({total})")

    return NewsSentiment(
        total=total,
        positive_count=positive,
        negative_count=negative,
        neutral_count=neutral,
        window_days=window_days,
    )
