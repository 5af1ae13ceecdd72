"""
Moving-average indicator module (fast vs. slow SMA).

Unlike a pure crossover detector this votes on the current alignment of the two
averages, so it contributes on every candle, not only on cross days.
"""

from __future__ import annotations

from typing import Sequence

from core.errors import InsufficientData
from core.types import CandleRecord, IndicatorReading


def compute_sma(records: Sequence[CandleRecord], period: int) -> float:
    """Simple moving average of the last ``period`` closes."""
    if period < 1:
        raise ValueError(f"period must be >= 1, got {period}")
    if len(records) < period:
        raise InsufficientData(f"need at least {period} candles for SMA({period}), got {len(records)}")
    return sum(r.close for r in records[-period:]) / period


def generate_ma_reading(
    records: Sequence[CandleRecord],
    fast_period: int = 20,
    slow_period: int = 50,
) -> IndicatorReading:
    """
    Generate the moving-average vote.

    Vote interpretation:
        - SMA(fast) > SMA(slow): BUY (uptrend alignment)
        - SMA(fast) < SMA(slow): SELL (downtrend alignment)
        - equal: HOLD

    Provider ``sma_20``/``sma_50`` columns on the latest record are used when
    present (they are only meaningful for the default 20/50 periods).
    """
    if fast_period >= slow_period:
        raise ValueError(f"fast_period ({fast_period}) must be < slow_period ({slow_period})")

    latest = records[-1] if records else None
    if (
        latest is not None
        and latest.sma_20 is not None
        and latest.sma_50 is not None
        and (fast_period, slow_period) == (20, 50)
    ):
        fast_ma, slow_ma = latest.sma_20, latest.sma_50
    else:
        fast_ma = compute_sma(records, fast_period)
        slow_ma = compute_sma(records, slow_period)

    if fast_ma > slow_ma:
        vote = "BUY"
        reason = f"MA({fast_period})={fast_ma:.2f} above MA({slow_period})={slow_ma:.2f}"
    elif fast_ma < slow_ma:
        vote = "SELL"
        reason = f"MA({fast_period})={fast_ma:.2f} below MA({slow_period})={slow_ma:.2f}"
    else:
        vote = "HOLD"
        reason = f"MA({fast_period}) equals MA({slow_period}) at {fast_ma:.2f}"

    return IndicatorReading(code="MA_CROSS", vote=vote, value=f"{fast_ma - slow_ma:.2f}", reason=reason)
