"""Short-horizon forecast sub-score."""

from __future__ import annotations

from typing import Optional

from core.types import ForecastResult, Prediction, Signal, clamp_score

NEUTRAL_SCORE = 50.0
DEFAULT_HORIZON_MINUTES = 1440  # 24h
STRONG_MOVE_PCT = 5.0


def nearest_prediction(
    forecast: ForecastResult,
    horizon_minutes: int = DEFAULT_HORIZON_MINUTES,
) -> Optional[Prediction]:
    """Pick the closest prediction that lands within the horizon."""
    candidates = [p for p in forecast.predictions if 0 <= p.horizon_minutes <= horizon_minutes]
    if not candidates:
        return None
    return min(candidates, key=lambda p: p.horizon_minutes)


def score_forecast(
    forecast: Optional[ForecastResult],
    current_price: Optional[float],
    horizon_minutes: int = DEFAULT_HORIZON_MINUTES,
) -> Signal:
    """Score the predicted move against the current price.

    - change > +5%: 75 + min(change, 25)
    - change < -5%: 25 + max(change, -25)
    - otherwise: 50 + change*5
    """
    if forecast is None or not current_price or current_price <= 0:
        return Signal(source="forecast", score=NEUTRAL_SCORE, reasoning=("No forecast data available",))

    prediction = nearest_prediction(forecast, horizon_minutes)
    if prediction is None:
        return Signal(source="forecast", score=NEUTRAL_SCORE, reasoning=("No short-term forecast available",))

    change = (prediction.predicted_price - current_price) / current_price * 100

    if change > STRONG_MOVE_PCT:
        score = 75 + min(change, 25)
        reason = f"Forecast predicts +{change:.1f}% price increase"
    elif change < -STRONG_MOVE_PCT:
        score = 25 + max(change, -25)
        reason = f"Forecast predicts {change:.1f}% price decrease"
    else:
        score = 50 + change * 5
        sign = "+" if change > 0 else ""
        reason = f"Forecast predicts {sign}{change:.1f}% price change"

    return Signal(source="forecast", score=clamp_score(score), reasoning=(reason,))
