"""Core domain modules.

This package contains the building blocks of the market data collector:

- market_data: feed clients, payload validation and the candle staleness rule
- indicators: RSI, MACD, Bollinger and moving-average votes from candles
- signals: news / technical / forecast scoring and the weighted recommendation
- refresh: state store, scheduler, universe fan-out and the service facade
- portfolio: holdings tracking over a key-value store
"""
