"""FastAPI application for the market data collector and recommendations.

This module provides a small HTTP API for a dashboard UI:
- GET /health - Liveness and collector state
- GET /coins - Selectable coins (CoinGecko, cached, static fallback)
- GET /data-collector - Collector status (tasks, countdowns, feed errors)
- POST /data-collector - start | stop | force-stop the collector, or refresh-candles
  to refetch the candle dataset now regardless of the daily cache
- POST /symbol - Select the active coin (resets and refreshes every feed)
- GET /recommendation - BUY / SELL / NEUTRAL with confidence and breakdown
- GET /universe - Top coins by market cap with 24h change
- GET /countdown/{task_name} - Seconds until a task's next tick
- GET /portfolio - Holdings valued at the latest prices
- POST /portfolio/holdings - Add (or merge) a holding
- DELETE /portfolio/holdings/{coin_id} - Remove a holding
- DELETE /portfolio - Clear all holdings

Configuration comes from CRYPTOTERM_* environment variables (see core.config).
No authentication (local network only).
"""

from __future__ import annotations

import logging
import os
import threading
import time
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Path, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from core.config import RefreshConfig
from core.errors import FetchFailure
from core.market_data.coingecko_client import CoinGeckoClient
from core.market_data.http_feeds import DashboardFeedClient
from core.portfolio import InMemoryKeyValueStore, JsonFileKeyValueStore, PortfolioTracker
from core.refresh import MarketDataService
from core.types import RankedSnapshot

logger = logging.getLogger(__name__)

# Global collector service (created on first use)
_service: MarketDataService | None = None
_feed_client: DashboardFeedClient | None = None

# Global CoinGecko client (singleton)
_coingecko_client: CoinGeckoClient | None = None

# Global portfolio tracker
_portfolio: PortfolioTracker | None = None

# Global coin list cache
_coins_cache: list[dict[str, Any]] = []
_coins_cache_time: float = 0
_coins_cache_lock = threading.Lock()
COINS_CACHE_TTL = 600  # 10 minutes in seconds

# Static fallback coin list
FALLBACK_COINS: list[dict[str, Any]] = [
    {"id": "bitcoin", "symbol": "BTC", "name": "Bitcoin"},
    {"id": "ethereum", "symbol": "ETH", "name": "Ethereum"},
    {"id": "tether", "symbol": "USDT", "name": "Tether"},
    {"id": "binancecoin", "symbol": "BNB", "name": "BNB"},
    {"id": "solana", "symbol": "SOL", "name": "Solana"},
    {"id": "ripple", "symbol": "XRP", "name": "XRP"},
    {"id": "usd-coin", "symbol": "USDC", "name": "USDC"},
    {"id": "cardano", "symbol": "ADA", "name": "Cardano"},
    {"id": "dogecoin", "symbol": "DOGE", "name": "Dogecoin"},
    {"id": "tron", "symbol": "TRX", "name": "TRON"},
]


def _get_service() -> MarketDataService:
    """Get or initialize the collector service."""
    global _service, _feed_client
    if _service is None:
        config = RefreshConfig.from_env()
        _feed_client = DashboardFeedClient(config.api_base_url, timeout=config.http_timeout)
        _service = MarketDataService.from_client(_feed_client, config)
    return _service


def _get_coingecko_client() -> CoinGeckoClient:
    """Get or initialize the CoinGecko client singleton."""
    global _coingecko_client
    if _coingecko_client is None:
        _coingecko_client = CoinGeckoClient(timeout=10)
    return _coingecko_client


def _get_portfolio() -> PortfolioTracker:
    """Get or initialize the portfolio tracker.

    Holdings persist to CRYPTOTERM_PORTFOLIO_PATH when set, otherwise memory.
    """
    global _portfolio
    if _portfolio is None:
        path = os.environ.get("CRYPTOTERM_PORTFOLIO_PATH")
        store = JsonFileKeyValueStore(path) if path else InMemoryKeyValueStore()
        _portfolio = PortfolioTracker(store)
    return _portfolio


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    if _service is not None:
        await _service.stop()
    if _feed_client is not None:
        await _feed_client.aclose()


app = FastAPI(
    title="Cryptoterm API",
    description="API for the market data collector, recommendations and portfolio",
    version="1.0.0",
    lifespan=lifespan,
)


def _ranked_to_response(row: RankedSnapshot) -> dict[str, Any]:
    return {
        "id": row.symbol,
        "symbol": row.ticker,
        "name": row.name,
        "current_price": row.price,
        "market_cap": row.market_cap,
        "price_change_percentage_24h": row.change_24h,
        "last_updated": row.observed_at.isoformat(),
    }


class CollectorActionRequest(BaseModel):
    action: str = Field(..., description="start | stop | force-stop | refresh-candles")
    symbol: Optional[str] = Field(None, description="Symbol to start with (start only)")


class SymbolRequest(BaseModel):
    symbol: str = Field(..., min_length=1, description="CoinGecko coin id, e.g. bitcoin")


class AddHoldingRequest(BaseModel):
    coin_id: str = Field(..., min_length=1)
    amount: Decimal
    purchase_price: Decimal


@app.get("/health")
async def health() -> dict[str, Any]:
    """Liveness check with collector state."""
    service = _get_service()
    return {
        "status": "ok",
        "collector": {"running": service.is_running, "symbol": service.symbol},
    }


# =============================================================================
# Coins
# =============================================================================


def _refresh_coins_cache() -> list[dict[str, Any]]:
    """Fetch and cache the selectable coin list from CoinGecko.

    Falls back to the stale cache, then to a static list, on error.
    """
    global _coins_cache, _coins_cache_time

    current_time = time.time()

    with _coins_cache_lock:
        if _coins_cache and (current_time - _coins_cache_time) < COINS_CACHE_TTL:
            logger.debug("Using cached coin list")
            return _coins_cache

    try:
        logger.info("Fetching coin list from CoinGecko")
        coins = _get_coingecko_client().get_available_coins(limit=_get_service().config.universe_limit)
        if coins:
            with _coins_cache_lock:
                _coins_cache = coins
                _coins_cache_time = current_time
            logger.info(f"Updated coin cache with {len(coins)} coins")
            return coins
        logger.warning("CoinGecko returned empty data, using fallback")
        return FALLBACK_COINS

    except FetchFailure as e:
        logger.error(f"Failed to fetch coin list: {e}")
        with _coins_cache_lock:
            if _coins_cache:
                logger.info("Using stale cache due to API error")
                return _coins_cache
        logger.info("Using static fallback coin list")
        return FALLBACK_COINS


@app.get("/coins")
async def get_coins() -> dict[str, Any]:
    """Get the selectable coins.

    Returns:
        {
            "coins": [{"id": "bitcoin", "symbol": "BTC", "name": "Bitcoin"}, ...],
            "cached": true,
            "source": "coingecko",
            "last_updated": 1234567890
        }
    """
    with _coins_cache_lock:
        cache_time_before = _coins_cache_time

    coins = _refresh_coins_cache()

    with _coins_cache_lock:
        using_cache = (_coins_cache_time == cache_time_before) and cache_time_before > 0

    source = "coingecko" if coins is not FALLBACK_COINS else "fallback"

    return {
        "coins": coins,
        "cached": using_cache,
        "source": source,
        "last_updated": int(_coins_cache_time * 1000) if _coins_cache_time > 0 else None,
    }


# =============================================================================
# Collector
# =============================================================================


@app.get("/data-collector")
async def get_collector_status() -> dict[str, Any]:
    return _get_service().status()


@app.post("/data-collector")
async def control_collector(request: CollectorActionRequest) -> dict[str, Any]:
    """Start, stop or force-stop the collector, or force a candle refetch.

    Raises:
        HTTPException: If the action is unknown, or candles are refreshed while stopped.
    """
    service = _get_service()

    if request.action == "start":
        if service.is_running:
            return {"success": True, "message": "Collector already running", "status": service.status()}
        await service.start(request.symbol)
        message = f"Collector started for {service.symbol}"
    elif request.action == "stop":
        await service.stop()
        message = "Collector stopped"
    elif request.action == "force-stop":
        service.force_stop()
        message = "Collector force-stopped"
    elif request.action == "refresh-candles":
        if not service.is_running:
            raise HTTPException(
                status_code=409,
                detail={"error": "conflict", "message": "Collector is not running"},
            )
        outcome = service.force_candle_refresh()
        message = f"Candle refresh {outcome.value} for {service.symbol}"
    else:
        raise HTTPException(
            status_code=400,
            detail={"error": "validation_error", "message": f"Invalid action: {request.action}"},
        )

    logger.info(message)
    return {"success": True, "message": message, "status": service.status()}


@app.post("/symbol")
async def select_symbol(request: SymbolRequest) -> dict[str, Any]:
    """Select the active coin; every feed refreshes immediately."""
    service = _get_service()
    try:
        await service.on_symbol_selected(request.symbol)
    except ValueError as e:
        raise HTTPException(
            status_code=400,
            detail={"error": "validation_error", "message": str(e)},
        ) from e
    return {"success": True, "symbol": service.symbol, "status": service.status()}


@app.get("/recommendation")
async def get_recommendation(
    symbol: Optional[str] = Query(None, description="Coin id (default: selected coin)"),
) -> dict[str, Any]:
    service = _get_service()
    rec = service.get_recommendation(symbol)
    return {"symbol": symbol or service.symbol, **rec.to_dict()}


@app.get("/universe")
async def get_universe() -> dict[str, Any]:
    rows = _get_service().get_ranked_universe()
    return {"coins": [_ranked_to_response(r) for r in rows], "count": len(rows)}


@app.get("/countdown/{task_name}")
async def get_countdown(
    task_name: str = Path(..., description="priceRefresh | forecastRefresh | candleCheck"),
) -> dict[str, Any]:
    try:
        seconds = _get_service().get_countdown(task_name)
    except KeyError as e:
        raise HTTPException(
            status_code=404,
            detail={"error": "not_found", "message": f"Unknown task: {task_name}"},
        ) from e
    return {"task": task_name, "seconds": seconds}


# =============================================================================
# Portfolio
# =============================================================================


@app.get("/portfolio")
async def get_portfolio() -> dict[str, Any]:
    tracker = _get_portfolio()
    universe = _get_service().get_ranked_universe()
    if universe:
        tracker.revalue(universe)
    return tracker.summary()


@app.post("/portfolio/holdings")
async def add_holding(request: AddHoldingRequest) -> dict[str, Any]:
    """Add a holding; an existing one is merged at the average price.

    Raises:
        HTTPException: If amount or price is not positive.
    """
    tracker = _get_portfolio()
    known = {r.symbol: r for r in _get_service().get_ranked_universe()}
    coin = known.get(request.coin_id)

    try:
        holding = tracker.add_holding(
            request.coin_id,
            request.amount,
            request.purchase_price,
            symbol=coin.ticker if coin else None,
            name=coin.name if coin else None,
            current_price=coin.price if coin else None,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=400,
            detail={"error": "validation_error", "message": str(e)},
        ) from e

    return {"success": True, "holding": holding.to_dict()}


@app.delete("/portfolio/holdings/{coin_id}")
async def remove_holding(coin_id: str = Path(..., description="Coin id")) -> dict[str, Any]:
    if not _get_portfolio().remove_holding(coin_id):
        raise HTTPException(
            status_code=404,
            detail={"error": "not_found", "message": f"No holding for {coin_id}"},
        )
    return {"success": True, "removed": coin_id}


@app.delete("/portfolio")
async def clear_portfolio() -> dict[str, Any]:
    _get_portfolio().clear()
    return {"success": True}


@app.exception_handler(Exception)
async def global_exception_handler(_request, exc):
    """Global exception handler to ensure consistent error responses."""
    logger.error(f"Unhandled API error: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred",
        },
    )
