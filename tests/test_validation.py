"""Tests for feed payload validation."""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.errors import FetchFailure
from core.market_data.validation import (
    parse_candle_dataset,
    parse_forecast,
    parse_news_sentiment,
    parse_provider_votes,
    parse_snapshot_history,
    parse_timestamp,
)


def _snapshot_row(**overrides):
    row = {
        "id": "bitcoin",
        "symbol": "btc",
        "name": "Bitcoin",
        "price_usd": 50000,
        "market_cap": 1_000_000_000,
        "volume_24h": 123.0,
        "price_change_24h": 1.5,
        "timestamp": "2024-01-01T00:00:00Z",
    }
    row.update(overrides)
    return row


# ========== timestamps ==========


def test_parse_timestamp_accepts_iso_with_z() -> None:
    assert parse_timestamp("2024-01-01T00:00:00Z") == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_parse_timestamp_accepts_epoch_millis() -> None:
    assert parse_timestamp(1704067200000) == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_parse_timestamp_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        parse_timestamp("yesterday")


@pytest.mark.parametrize("value", [1e20, float("inf"), -1e20])
def test_parse_timestamp_out_of_range_is_value_error(value) -> None:
    with pytest.raises(ValueError):
        parse_timestamp(value)


# ========== snapshots ==========


def test_snapshot_history_sorted_chronologically() -> None:
    payload = {
        "success": True,
        "data": [
            _snapshot_row(price_usd=2, timestamp="2024-01-01T00:02:00Z"),
            _snapshot_row(price_usd=1, timestamp="2024-01-01T00:01:00Z"),
        ],
    }
    history = parse_snapshot_history("bitcoin", payload)

    assert [s.price for s in history] == [1.0, 2.0]
    assert history[0].ticker == "BTC"
    assert history[0].name == "Bitcoin"
    assert history[0].change_24h == 1.5
    assert history[0].change_1h is None


def test_snapshot_missing_price_is_fetch_failure() -> None:
    row = _snapshot_row()
    del row["price_usd"]
    with pytest.raises(FetchFailure, match="price_usd"):
        parse_snapshot_history("bitcoin", {"success": True, "data": [row]})


def test_snapshot_non_numeric_market_cap_is_fetch_failure() -> None:
    with pytest.raises(FetchFailure, match="market_cap"):
        parse_snapshot_history("bitcoin", {"success": True, "data": [_snapshot_row(market_cap="lots")]})


def test_snapshot_success_false_is_fetch_failure() -> None:
    with pytest.raises(FetchFailure, match="rate limited"):
        parse_snapshot_history("bitcoin", {"success": False, "error": "rate limited"})


def test_snapshot_non_object_payload_is_fetch_failure() -> None:
    with pytest.raises(FetchFailure):
        parse_snapshot_history("bitcoin", ["not", "an", "object"])


def test_snapshot_out_of_range_epoch_is_fetch_failure() -> None:
    with pytest.raises(FetchFailure, match="out of range"):
        parse_snapshot_history("bitcoin", {"success": True, "data": [_snapshot_row(timestamp=1e20)]})


# ========== candles ==========


def test_candle_dataset_parses_indicator_columns() -> None:
    payload = {
        "success": True,
        "data": {
            "candles": [
                {"date": "2024-01-02", "open": 2, "high": 3, "low": 1, "close": 2.5, "volume": 10, "sma_20": 2.1},
                {"date": "2024-01-01", "open": 1, "high": 2, "low": 0.5, "close": 1.5, "volume": 10},
            ]
        },
    }
    dataset = parse_candle_dataset("bitcoin", "1y", payload)

    assert dataset.time_period == "1y"
    assert dataset.fetched_on is None
    assert [r.close for r in dataset.records] == [1.5, 2.5]
    assert dataset.records[-1].sma_20 == 2.1
    assert dataset.records[0].rsi is None


def test_candle_dataset_requires_candles_list() -> None:
    with pytest.raises(FetchFailure, match="candles"):
        parse_candle_dataset("bitcoin", "1y", {"success": True, "data": {"candles": None}})


# ========== provider votes ==========


def test_provider_votes_map_neutral_to_hold() -> None:
    payload = {
        "success": True,
        "signals": {
            "signals": {
                "rsi_signal": "BUY",
                "macd_signal": "SELL",
                "moving_average_signal": "NEUTRAL",
            }
        },
    }
    votes = parse_provider_votes(payload)

    assert votes is not None
    assert votes.momentum == "BUY"
    assert votes.trend == "SELL"
    assert votes.moving_average == "HOLD"
    assert votes.band is None


def test_provider_votes_none_when_absent() -> None:
    assert parse_provider_votes({"success": True, "signals": {}}) is None
    assert parse_provider_votes({"success": False}) is None
    assert parse_provider_votes(None) is None


# ========== forecast ==========


def test_forecast_parses_predictions() -> None:
    payload = {
        "success": True,
        "data": {
            "current_price": 100,
            "predictions": [
                {"minutes_ahead": 60, "predicted_price": 101},
                {"minutes_ahead": 1440, "predicted_price": 110},
            ],
        },
    }
    forecast = parse_forecast("bitcoin", payload)

    assert forecast.current_price == 100.0
    assert [(p.horizon_minutes, p.predicted_price) for p in forecast.predictions] == [(60, 101.0), (1440, 110.0)]


def test_forecast_error_field_is_fetch_failure() -> None:
    with pytest.raises(FetchFailure, match="model offline"):
        parse_forecast("bitcoin", {"success": True, "data": {"error": "model offline"}})


# ========== news ==========


def test_news_sentiment_parses_summary_counts() -> None:
    payload = {
        "success": True,
        "data": {"total": 10, "summary": {"positive_count": 8, "negative_count": 1, "neutral_count": 1}},
    }
    sentiment = parse_news_sentiment(payload, window_days=1)

    assert (sentiment.total, sentiment.positive_count, sentiment.negative_count, sentiment.neutral_count) == (
        10,
        8,
        1,
        1,
    )


def test_news_counts_exceeding_total_is_fetch_failure() -> None:
    payload = {"success": True, "data": {"total": 2, "summary": {"positive_count": 2, "negative_count": 1}}}
    with pytest.raises(FetchFailure, match="exceeds total"):
        parse_news_sentiment(payload)


def test_news_missing_summary_is_fetch_failure() -> None:
    with pytest.raises(FetchFailure, match="summary"):
        parse_news_sentiment({"success": True, "data": {"total": 3}})
