"""Multi-factor recommendation.

Combines the news, technical and forecast sub-scores into one BUY / SELL /
NEUTRAL call. All arithmetic stays unrounded; rounding happens only in
``Recommendation.to_dict``.

Usage:
    from core.signals.recommendation import compute_recommendation

    rec = compute_recommendation(news=sentiment, technical=votes, forecast=fc, snapshot=snap)
    print(rec.action, rec.to_dict()["confidence"])
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from core.signals.forecast import DEFAULT_HORIZON_MINUTES, score_forecast
from core.signals.news import score_news
from core.signals.scoring import weighted_score
from core.signals.technical import score_technical
from core.signals.weights import DEFAULT_WEIGHTS
from core.types import (
    Action,
    ForecastResult,
    NewsSentiment,
    Recommendation,
    Signal,
    Snapshot,
    TechnicalVotes,
    clamp_score,
)

logger = logging.getLogger(__name__)

BUY_THRESHOLD = 70.0
SELL_THRESHOLD = 30.0
MAX_CONFIDENCE = 95.0


def decide_action(overall: float) -> tuple[Action, float]:
    """Map an overall score to (action, confidence).

    - overall >= 70: BUY, confidence = overall
    - overall <= 30: SELL, confidence = 100 - overall
    - otherwise: NEUTRAL, confidence = |50 - overall| * 2

    Confidence is capped at 95.
    """
    if overall >= BUY_THRESHOLD:
        action: Action = "BUY"
        confidence = overall
    elif overall <= SELL_THRESHOLD:
        action = "SELL"
        confidence = 100 - overall
    else:
        action = "NEUTRAL"
        confidence = abs(50 - overall) * 2
    return action, clamp_score(confidence, high=MAX_CONFIDENCE)


def combine_signals(
    news: Signal,
    technical: Signal,
    forecast: Signal,
    weights: Optional[Mapping[str, float]] = None,
) -> Recommendation:
    overall, contributions = weighted_score((news, technical, forecast), weights or DEFAULT_WEIGHTS)
    action, confidence = decide_action(overall)

    return Recommendation(
        action=action,
        confidence=confidence,
        overall=overall,
        news=news.score,
        technical=technical.score,
        forecast=forecast.score,
        reasoning=news.reasoning + technical.reasoning + forecast.reasoning,
        contributions=contributions,
    )


def compute_recommendation(
    news: Optional[NewsSentiment],
    technical: Optional[TechnicalVotes],
    forecast: Optional[ForecastResult],
    snapshot: Optional[Snapshot],
    *,
    weights: Optional[Mapping[str, float]] = None,
    horizon_minutes: int = DEFAULT_HORIZON_MINUTES,
) -> Recommendation:
    """Compute a recommendation from whatever inputs are available.

    Any missing input degrades its sub-score to a neutral 50. The current
    price comes from the snapshot, or from the forecast when no snapshot
    has been fetched yet.
    """
    current_price = snapshot.price if snapshot is not None else None
    if current_price is None and forecast is not None:
        current_price = forecast.current_price

    rec = combine_signals(
        score_news(news),
        score_technical(technical),
        score_forecast(forecast, current_price, horizon_minutes),
        weights=weights,
    )
    logger.debug(f"Recommendation: {rec.action} overall={rec.overall:.2f} confidence={rec.confidence:.2f}")
    return rec
