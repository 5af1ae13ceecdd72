"""Recommendation signals.

Three sub-scores (news, technical, forecast) on a 0-100 scale, weighted into
one overall score and mapped to BUY / SELL / NEUTRAL.
"""

from core.signals.forecast import nearest_prediction, score_forecast
from core.signals.news import score_news
from core.signals.recommendation import combine_signals, compute_recommendation, decide_action
from core.signals.scoring import SignalContribution, normalize_weights, weighted_score
from core.signals.technical import derive_votes, score_technical
from core.signals.weights import DEFAULT_WEIGHTS, get_weights

__all__ = [
    "DEFAULT_WEIGHTS",
    "SignalContribution",
    "combine_signals",
    "compute_recommendation",
    "decide_action",
    "derive_votes",
    "get_weights",
    "nearest_prediction",
    "normalize_weights",
    "score_forecast",
    "score_news",
    "score_technical",
    "weighted_score",
]
