"""Source weights for the overall recommendation score.

Technical analysis carries the largest weight (0.4); news and forecast get 0.3 each.

Usage:
    from core.signals.weights import get_weights

    weights = get_weights()                       # defaults
    weights = get_weights({"news": 0.5})          # override one source
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from core.signals.scoring import normalize_weights

logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS: dict[str, float] = {
    "news": 0.3,
    "technical": 0.4,
    "forecast": 0.3,
}


def get_weights(overrides: Optional[Mapping[str, float]] = None) -> dict[str, float]:
    """Return normalized source weights.

    Args:
        overrides: Optional per-source weights; unknown sources are ignored

    Returns:
        Normalized weights (sum = 1.0)
    """
    weights = DEFAULT_WEIGHTS.copy()
    if overrides:
        unknown = set(overrides) - set(DEFAULT_WEIGHTS)
        if unknown:
            logger.warning(f"Ignoring weights for unknown sources: {sorted(unknown)}")
        weights.update({k: float(v) for k, v in overrides.items() if k in DEFAULT_WEIGHTS})
    return normalize_weights(weights)
