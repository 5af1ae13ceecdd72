"""Tests for the weighted multi-factor recommendation."""

from __future__ import annotations

import itertools
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from conftest import make_snapshot

from core.signals.recommendation import combine_signals, compute_recommendation, decide_action
from core.types import ForecastResult, NewsSentiment, Prediction, Signal, TechnicalVotes, round_half_up

ALL_BUY = TechnicalVotes(momentum="BUY", trend="BUY", moving_average="BUY", band="BUY")
ALL_SELL = TechnicalVotes(momentum="SELL", trend="SELL", moving_average="SELL", band="SELL")


def _forecast(predicted: float) -> ForecastResult:
    return ForecastResult(symbol="bitcoin", predictions=(Prediction(horizon_minutes=60, predicted_price=predicted),))


def test_worked_example_buy_81() -> None:
    """news=50 (no data), technical=100, forecast=85 -> overall 80.5 -> BUY, confidence 81."""
    rec = compute_recommendation(
        news=None,
        technical=ALL_BUY,
        forecast=_forecast(110.0),
        snapshot=make_snapshot("bitcoin", 100.0),
    )

    assert rec.action == "BUY"
    assert rec.overall == pytest.approx(80.5)
    assert rec.confidence == pytest.approx(80.5)
    assert rec.breakdown == pytest.approx({"news": 50.0, "technical": 100.0, "forecast": 85.0})

    presented = rec.to_dict()
    assert presented["confidence"] == 81
    assert presented["breakdown"] == {"news": 50, "technical": 100, "forecast": 85}
    assert presented["weights"] == {"news": 0.3, "technical": 0.4, "forecast": 0.3}
    assert presented["reasoning"] == [
        "No recent news data available",
        "4/4 technical indicators bullish",
        "Forecast predicts +10.0% price increase",
    ]


def test_custom_weights_carried_into_recommendation() -> None:
    rec = compute_recommendation(
        news=None,
        technical=ALL_BUY,
        forecast=_forecast(110.0),
        snapshot=make_snapshot("bitcoin", 100.0),
        weights={"news": 0.0, "technical": 1.0, "forecast": 0.0},
    )

    assert rec.overall == pytest.approx(100.0)
    assert rec.weights == {"news": 0.0, "technical": 1.0, "forecast": 0.0}
    assert [c.source for c in rec.contributions] == ["news", "technical", "forecast"]
    assert rec.contributions[1].contribution == pytest.approx(100.0)
    assert sum(c.contribution for c in rec.contributions) == pytest.approx(rec.overall)


def test_strong_buy_confidence_capped_at_95() -> None:
    rec = compute_recommendation(
        news=NewsSentiment(total=10, positive_count=10, negative_count=0, neutral_count=0),
        technical=ALL_BUY,
        forecast=_forecast(200.0),
        snapshot=make_snapshot("bitcoin", 100.0),
    )
    assert rec.action == "BUY"
    assert rec.overall == pytest.approx(100.0)
    assert rec.confidence == 95.0


def test_strong_sell() -> None:
    rec = compute_recommendation(
        news=NewsSentiment(total=10, positive_count=0, negative_count=10, neutral_count=0),
        technical=ALL_SELL,
        forecast=_forecast(50.0),
        snapshot=make_snapshot("bitcoin", 100.0),
    )
    assert rec.action == "SELL"
    assert rec.overall == pytest.approx(0.0)
    assert rec.confidence == 95.0


def test_no_data_is_neutral_with_zero_confidence() -> None:
    rec = compute_recommendation(None, None, None, None)
    assert rec.action == "NEUTRAL"
    assert rec.overall == 50.0
    assert rec.confidence == 0.0
    assert len(rec.reasoning) == 3


def test_forecast_current_price_used_without_snapshot() -> None:
    forecast = ForecastResult(
        symbol="bitcoin",
        predictions=(Prediction(horizon_minutes=60, predicted_price=110.0),),
        current_price=100.0,
    )
    rec = compute_recommendation(None, None, forecast, None)
    assert rec.forecast == pytest.approx(85.0)


def test_snapshot_price_wins_over_forecast_price() -> None:
    forecast = ForecastResult(
        symbol="bitcoin",
        predictions=(Prediction(horizon_minutes=60, predicted_price=110.0),),
        current_price=50.0,
    )
    rec = compute_recommendation(None, None, forecast, make_snapshot("bitcoin", 110.0))
    assert rec.forecast == pytest.approx(50.0)


@pytest.mark.parametrize(
    "overall, action, confidence",
    [
        (70.0, "BUY", 70.0),
        (69.9, "NEUTRAL", 39.8),
        (30.0, "SELL", 70.0),
        (30.1, "NEUTRAL", 39.8),
        (50.0, "NEUTRAL", 0.0),
        (99.0, "BUY", 95.0),
        (1.0, "SELL", 95.0),
    ],
)
def test_decide_action_thresholds(overall, action, confidence) -> None:
    got_action, got_confidence = decide_action(overall)
    assert got_action == action
    assert got_confidence == pytest.approx(confidence)


def test_scores_and_confidence_always_bounded() -> None:
    grid = [0.0, 12.5, 29.9, 30.0, 50.0, 70.0, 87.3, 100.0]
    for news, technical, forecast in itertools.product(grid, repeat=3):
        rec = combine_signals(
            Signal(source="news", score=news),
            Signal(source="technical", score=technical),
            Signal(source="forecast", score=forecast),
        )
        assert 0.0 <= rec.overall <= 100.0
        assert 0.0 <= rec.confidence <= 95.0
        assert rec.action in ("BUY", "SELL", "NEUTRAL")


def test_custom_weights_are_normalized() -> None:
    rec = combine_signals(
        Signal(source="news", score=100.0),
        Signal(source="technical", score=0.0),
        Signal(source="forecast", score=0.0),
        weights={"news": 2.0, "technical": 1.0, "forecast": 1.0},
    )
    assert rec.overall == pytest.approx(50.0)


@pytest.mark.parametrize("value, expected", [(80.5, 81), (80.49, 80), (0.5, 1), (94.5, 95), (0.0, 0)])
def test_round_half_up(value, expected) -> None:
    assert round_half_up(value) == expected
