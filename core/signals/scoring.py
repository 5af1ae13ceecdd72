from __future__ import annotations

import math
from typing import Mapping, Sequence

from core.types import Signal, SignalContribution, clamp_score


def normalize_weights(weights: Mapping[str, float]) -> dict[str, float]:
    """Normalize weights to sum to 1.0.

    Weights that already sum to 1.0 are returned unchanged so the weighted sum
    stays exact for the default 0.3/0.4/0.3 split.

    Raises:
        ValueError: If total weight is <= 0
    """
    total = sum(weights.values())
    if total <= 0:
        raise ValueError("weights total must be > 0")
    if math.isclose(total, 1.0, rel_tol=0.0, abs_tol=1e-12):
        return dict(weights)
    return {k: v / total for k, v in weights.items()}


def weighted_score(
    signals: Sequence[Signal],
    weights: Mapping[str, float],
) -> tuple[float, tuple[SignalContribution, ...]]:
    """Combine signals into an unrounded 0-100 score.

    Args:
        signals: One signal per source, in the order they should be summed
        weights: Source name -> weight (auto-normalized)

    Returns:
        (overall score, per-source contributions)

    Edge cases:
        - A signal whose source has no weight contributes 0
        - Scores are clamped to 0-100 before weighting
    """
    normalized = normalize_weights(weights)

    contributions = []
    accum = 0.0
    for signal in signals:
        weight = normalized.get(signal.source, 0.0)
        score = clamp_score(signal.score)
        contribution = score * weight
        accum += contribution
        contributions.append(
            SignalContribution(source=signal.source, score=score, weight=weight, contribution=contribution)
        )

    return clamp_score(accum), tuple(contributions)
