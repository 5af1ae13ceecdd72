"""
RSI (Relative Strength Index) indicator module.

This is the reference implementation for the indicator-to-vote pipeline; the
other indicator modules follow the same compute/generate split.

Usage:
    from core.indicators.rsi import compute_rsi, generate_rsi_reading

    rsi_value = compute_rsi(records, period=14)
    reading = generate_rsi_reading(records, period=14, oversold=30, overbought=70)
"""

from __future__ import annotations

from typing import Sequence

from core.errors import InsufficientData
from core.types import CandleRecord, IndicatorReading


def compute_rsi(records: Sequence[CandleRecord], period: int = 14) -> float:
    """
    Calculate RSI (Relative Strength Index) from candle data.

    Formula:
        RSI = 100 - (100 / (1 + RS))
        where RS = Average Gain / Average Loss over period

    A zero average loss would make RS undefined. It is capped instead:
    100 when there were gains, 50 for a perfectly flat series.

    Args:
        records: Candle records, oldest first (at least period+1 of them)
        period: Lookback period (default: 14)

    Returns:
        RSI value (0-100)

    Raises:
        ValueError: If period is invalid
        InsufficientData: If there are not enough records
    """
    if period < 1:
        raise ValueError(f"period must be >= 1, got {period}")

    if len(records) < period + 1:
        raise InsufficientData(f"need at least {period + 1} candles for RSI({period}), got {len(records)}")

    gains = []
    losses = []

    for i in range(1, len(records)):
        change = records[i].close - records[i - 1].close
        if change > 0:
            gains.append(change)
            losses.append(0.0)
        else:
            gains.append(0.0)
            losses.append(abs(change))

    # Simple average for the first period, Wilder's smoothing afterwards
    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period

    for i in range(period, len(gains)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period

    if avg_loss == 0:
        return 100.0 if avg_gain > 0 else 50.0

    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def generate_rsi_reading(
    records: Sequence[CandleRecord],
    period: int = 14,
    oversold: float = 30.0,
    overbought: float = 70.0,
) -> IndicatorReading:
    """
    Generate the momentum vote from RSI.

    Vote interpretation:
        - RSI < oversold (default 30): BUY (oversold condition)
        - RSI > overbought (default 70): SELL (overbought condition)
        - otherwise: HOLD

    A provider-computed ``rsi`` column on the latest record is used as-is.

    Raises:
        ValueError: If thresholds are inverted
        InsufficientData: If RSI cannot be computed
    """
    if oversold >= overbought:
        raise ValueError(f"oversold ({oversold}) must be < overbought ({overbought})")

    latest_rsi = records[-1].rsi if records else None
    rsi = latest_rsi if latest_rsi is not None else compute_rsi(records, period=period)

    if rsi < oversold:
        vote = "BUY"
        reason = f"RSI({period}) at {rsi:.2f} is oversold (below {oversold:.0f})"
    elif rsi > overbought:
        vote = "SELL"
        reason = f"RSI({period}) at {rsi:.2f} is overbought (above {overbought:.0f})"
    else:
        vote = "HOLD"
        reason = f"RSI({period}) at {rsi:.2f} is in neutral range ({oversold:.0f}-{overbought:.0f})"

    return IndicatorReading(code="RSI", vote=vote, value=f"{rsi:.2f}", reason=reason)
