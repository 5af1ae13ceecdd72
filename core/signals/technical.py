"""Technical-indicator consensus sub-score.

Four independent votes feed the score: momentum (RSI), trend (MACD),
moving-average alignment (SMA 20/50) and bands (Bollinger). Provider votes
win; missing ones are computed locally from the candle records.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from core.errors import InsufficientData
from core.indicators import (
    generate_bollinger_reading,
    generate_ma_reading,
    generate_macd_reading,
    generate_rsi_reading,
)
from core.types import CandleDataset, CandleRecord, IndicatorReading, Signal, TechnicalVotes, Vote

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 50.0

_LOCAL_READERS: dict[str, Callable[[Sequence[CandleRecord]], IndicatorReading]] = {
    "momentum": generate_rsi_reading,
    "trend": generate_macd_reading,
    "moving_average": generate_ma_reading,
    "band": generate_bollinger_reading,
}


def derive_votes(dataset: Optional[CandleDataset]) -> Optional[TechnicalVotes]:
    """Build the four votes for a dataset.

    Returns None when there is no dataset. An indicator without enough
    records yields a missing (None) vote.
    """
    if dataset is None:
        return None

    provider = dataset.provider_votes.as_dict() if dataset.provider_votes else {}
    votes: dict[str, Optional[Vote]] = {}

    for family, reader in _LOCAL_READERS.items():
        if provider.get(family) is not None:
            votes[family] = provider[family]
            continue
        try:
            votes[family] = reader(dataset.records).vote
        except InsufficientData as exc:
            logger.debug(f"{dataset.symbol}: no {family} vote ({exc})")
            votes[family] = None

    return TechnicalVotes(**votes)


def score_technical(votes: Optional[TechnicalVotes]) -> Signal:
    """Score the share of bullish votes among decisive (BUY/SELL) votes."""
    if votes is None:
        return Signal(source="technical", score=NEUTRAL_SCORE, reasoning=("No technical analysis data available",))

    cast = [v for v in votes.as_dict().values() if v is not None]
    bullish = sum(1 for v in cast if v == "BUY")
    bearish = sum(1 for v in cast if v == "SELL")
    decisive = bullish + bearish

    if decisive == 0:
        return Signal(source="technical", score=NEUTRAL_SCORE, reasoning=("Technical indicators neutral",))

    return Signal(
        source="technical",
        score=bullish / decisive * 100,
        reasoning=(f"{bullish}/{decisive} technical indicators bullish",),
    )
