"""
Bollinger Bands indicator module.

Follows the RSI pattern; produces the band-based vote.
"""

from __future__ import annotations

from typing import Sequence

from core.errors import InsufficientData
from core.types import CandleRecord, IndicatorReading


def compute_bollinger_bands(
    records: Sequence[CandleRecord],
    period: int = 20,
    std_dev: float = 2.0,
) -> tuple[float, float, float]:
    """
    Calculate Bollinger Bands from candle data.

    Formula:
        Middle Band = SMA(close, period)
        Upper Band = Middle Band + (std_dev * standard deviation)
        Lower Band = Middle Band - (std_dev * standard deviation)

    Returns:
        Tuple of (upper_band, middle_band, lower_band)

    Raises:
        ValueError: If parameters are invalid
        InsufficientData: If there are fewer than ``period`` records
    """
    if period < 1:
        raise ValueError(f"period must be >= 1, got {period}")

    if std_dev <= 0:
        raise ValueError(f"std_dev must be > 0, got {std_dev}")

    if len(records) < period:
        raise InsufficientData(f"need at least {period} candles for Bollinger({period},{std_dev}), got {len(records)}")

    closes = [r.close for r in records[-period:]]
    middle_band = sum(closes) / period
    variance = sum((price - middle_band) ** 2 for price in closes) / period
    standard_deviation = variance**0.5

    upper_band = middle_band + (std_dev * standard_deviation)
    lower_band = middle_band - (std_dev * standard_deviation)

    return upper_band, middle_band, lower_band


def generate_bollinger_reading(
    records: Sequence[CandleRecord],
    period: int = 20,
    std_dev: float = 2.0,
) -> IndicatorReading:
    """
    Generate the band-based vote.

    Vote interpretation:
        - Close at/below lower band: BUY (oversold)
        - Close at/above upper band: SELL (overbought)
        - Within the bands, or zero bandwidth: HOLD

    Provider ``bb_upper``/``bb_lower`` columns on the latest record win over
    local computation.
    """
    latest = records[-1] if records else None
    if latest is not None and latest.bb_upper is not None and latest.bb_lower is not None:
        upper_band, lower_band = latest.bb_upper, latest.bb_lower
    else:
        upper_band, _, lower_band = compute_bollinger_bands(records, period=period, std_dev=std_dev)

    current_price = latest.close

    if upper_band <= lower_band:
        vote = "HOLD"
        reason = f"Bollinger({period},{std_dev}) bands collapsed (no volatility)"
    elif current_price <= lower_band:
        vote = "BUY"
        reason = f"Bollinger({period},{std_dev}) price at/below lower band (${current_price:.2f} <= ${lower_band:.2f})"
    elif current_price >= upper_band:
        vote = "SELL"
        reason = f"Bollinger({period},{std_dev}) price at/above upper band (${current_price:.2f} >= ${upper_band:.2f})"
    else:
        vote = "HOLD"
        reason = f"Bollinger({period},{std_dev}) price within bands (${lower_band:.2f} - ${upper_band:.2f})"

    return IndicatorReading(code="BOLLINGER", vote=vote, value=f"${current_price:.2f}", reason=reason)
