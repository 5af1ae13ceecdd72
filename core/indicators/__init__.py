from __future__ import annotations

from .bollinger import compute_bollinger_bands, generate_bollinger_reading
from .macd import compute_macd, generate_macd_reading
from .moving_average import compute_sma, generate_ma_reading
from .rsi import compute_rsi, generate_rsi_reading

__all__ = [
    "compute_bollinger_bands",
    "compute_macd",
    "compute_rsi",
    "compute_sma",
    "generate_bollinger_reading",
    "generate_ma_reading",
    "generate_macd_reading",
    "generate_rsi_reading",
]
