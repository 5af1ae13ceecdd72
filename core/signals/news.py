"""News sentiment sub-score."""

from __future__ import annotations

from typing import Optional

from core.types import NewsSentiment, Signal, clamp_score, round_half_up

NEUTRAL_SCORE = 50.0
STRONG_RATIO = 0.6


def score_news(sentiment: Optional[NewsSentiment]) -> Signal:
    """Score market news sentiment on 0-100.

    - positive ratio > 0.6: 75 + ratio*25 (75-100)
    - negative ratio > 0.6: 25 - ratio*25 (0-25)
    - otherwise: 40 + (positive - negative)*20 (20-60)
    - no articles: neutral 50
    """
    if sentiment is None or sentiment.total <= 0:
        return Signal(source="news", score=NEUTRAL_SCORE, reasoning=("No recent news data available",))

    pr = sentiment.positive_count / sentiment.total
    nr = sentiment.negative_count / sentiment.total

    if pr > STRONG_RATIO:
        score = 75 + pr * 25
        reason = f"{round_half_up(pr * 100)}% positive news sentiment"
    elif nr > STRONG_RATIO:
        score = 25 - nr * 25
        reason = f"{round_half_up(nr * 100)}% negative news sentiment"
    else:
        score = 40 + (pr - nr) * 20
        reason = (
            f"Mixed news sentiment ({round_half_up(pr * 100)}% positive, "
            f"{round_half_up(nr * 100)}% negative)"
        )

    return Signal(source="news", score=clamp_score(score), reasoning=(reason,))
