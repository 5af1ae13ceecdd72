"""
MACD (Moving Average Convergence Divergence) indicator module.

This follows the RSI pattern: ``compute_macd`` returns raw values and
``generate_macd_reading`` turns them into the trend vote.
"""

from __future__ import annotations

from typing import Sequence

from core.errors import InsufficientData
from core.types import CandleRecord, IndicatorReading


def _ema_series(values: Sequence[float], period: int) -> list[float]:
    """EMA seeded with the SMA of the first ``period`` values.

    Returns one value per input from index ``period - 1`` onwards.
    """
    multiplier = 2.0 / (period + 1)
    ema = sum(values[:period]) / period
    series = [ema]
    for value in values[period:]:
        ema = (value - ema) * multiplier + ema
        series.append(ema)
    return series


def compute_macd(
    records: Sequence[CandleRecord],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> tuple[float, float, float]:
    """
    Calculate MACD from candle data.

    Formula:
        MACD Line = EMA(fast_period) - EMA(slow_period)
        Signal Line = EMA(MACD Line, signal_period)
        Histogram = MACD Line - Signal Line

    Returns:
        Tuple of (macd_line, signal_line, histogram)

    Raises:
        ValueError: If periods are invalid
        InsufficientData: If there are fewer than slow_period + signal_period records
    """
    if fast_period < 1 or slow_period < 1 or signal_period < 1:
        raise ValueError("All periods must be >= 1")

    if fast_period >= slow_period:
        raise ValueError(f"fast_period ({fast_period}) must be < slow_period ({slow_period})")

    min_records = slow_period + signal_period
    if len(records) < min_records:
        raise InsufficientData(f"need at least {min_records} candles for MACD, got {len(records)}")

    closes = [r.close for r in records]
    fast = _ema_series(closes, fast_period)
    slow = _ema_series(closes, slow_period)

    # Align both series on the slow EMA start
    offset = slow_period - fast_period
    macd_values = [f - s for f, s in zip(fast[offset:], slow)]
    signal_line = _ema_series(macd_values, signal_period)[-1]
    macd_line = macd_values[-1]

    return macd_line, signal_line, macd_line - signal_line


def generate_macd_reading(
    records: Sequence[CandleRecord],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> IndicatorReading:
    """
    Generate the trend vote from MACD.

    Vote interpretation:
        - Histogram > 0 (MACD above signal line): BUY
        - Histogram < 0 (MACD below signal line): SELL
        - Histogram == 0: HOLD

    Raises:
        InsufficientData: If MACD cannot be computed
    """
    macd_line, signal_line, histogram = compute_macd(
        records, fast_period=fast_period, slow_period=slow_period, signal_period=signal_period
    )

    if histogram > 0:
        vote = "BUY"
        reason = f"MACD bullish: MACD({macd_line:.2f}) > Signal({signal_line:.2f}), Hist={histogram:.2f}"
    elif histogram < 0:
        vote = "SELL"
        reason = f"MACD bearish: MACD({macd_line:.2f}) < Signal({signal_line:.2f}), Hist={histogram:.2f}"
    else:
        vote = "HOLD"
        reason = f"MACD neutral: MACD({macd_line:.2f}) = Signal({signal_line:.2f})"

    return IndicatorReading(code="MACD", vote=vote, value=f"{histogram:.4f}", reason=reason)
