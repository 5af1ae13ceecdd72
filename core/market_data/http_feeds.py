"""HTTP client for the dashboard backend feeds.

One ``httpx.AsyncClient`` serves all four feeds:

- GET /api/crypto?coinId=<id>                         snapshot history
- GET /api/candle-chart?coinId=<id>&action=update     refresh stored candles (best effort)
- GET /api/candle-chart?coinId=<id>&action=indicators candles + indicator columns
- GET /api/candle-chart?coinId=<id>&action=signals    provider indicator votes (optional)
- GET /api/forecast?coinId=<id>&source=minio|generate stored forecast, else a fresh one
- GET /api/news-analysis?days=<n>                     sentiment counts

Transport and parse errors surface as ``FetchFailure``.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Optional

import httpx

from core.errors import FetchFailure
from core.market_data.validation import (
    parse_candle_dataset,
    parse_forecast,
    parse_news_sentiment,
    parse_provider_votes,
    parse_snapshot_history,
)
from core.types import CandleDataset, ForecastResult, NewsSentiment, Snapshot

logger = logging.getLogger(__name__)


class DashboardFeedClient:
    """Async client implementing the snapshot, candle, forecast and news feeds."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers={"Accept": "application/json", "User-Agent": "cryptoterm/1.0"},
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "DashboardFeedClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def _get_json(self, feed: str, path: str, params: dict[str, Any], symbol: Optional[str] = None) -> Any:
        client = await self._get_client()
        try:
            resp = await client.get(path, params=params)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            raise FetchFailure(feed, f"HTTP {exc.response.status_code} from {path}", symbol=symbol) from exc
        except httpx.TimeoutException as exc:
            raise FetchFailure(feed, f"{path} timed out", symbol=symbol) from exc
        except httpx.HTTPError as exc:
            raise FetchFailure(feed, f"{path} failed: {exc}", symbol=symbol) from exc
        except ValueError as exc:
            raise FetchFailure(feed, f"{path} returned invalid JSON", symbol=symbol) from exc

    async def fetch_snapshot(self, symbol: str) -> list[Snapshot]:
        payload = await self._get_json("snapshot", "/api/crypto", {"coinId": symbol}, symbol)
        return parse_snapshot_history(symbol, payload)

    async def fetch_candle_dataset(self, symbol: str, time_period: str) -> CandleDataset:
        try:
            update = await self._get_json(
                "candles", "/api/candle-chart", {"coinId": symbol, "action": "update"}, symbol
            )
            if isinstance(update, dict) and update.get("success") is False:
                logger.warning(f"Candle update failed for {symbol}, using stored data: {update.get('error')}")
        except FetchFailure as exc:
            logger.warning(f"Candle update failed for {symbol}, using stored data: {exc}")

        payload = await self._get_json(
            "candles",
            "/api/candle-chart",
            {"coinId": symbol, "action": "indicators", "timePeriod": time_period},
            symbol,
        )
        dataset = parse_candle_dataset(symbol, time_period, payload)

        try:
            signals = await self._get_json(
                "candles", "/api/candle-chart", {"coinId": symbol, "action": "signals"}, symbol
            )
        except FetchFailure as exc:
            logger.info(f"No provider signals for {symbol}: {exc}")
            return dataset
        return replace(dataset, provider_votes=parse_provider_votes(signals))

    async def fetch_forecast(self, symbol: str) -> ForecastResult:
        try:
            stored = await self._get_json("forecast", "/api/forecast", {"coinId": symbol, "source": "minio"}, symbol)
            return parse_forecast(symbol, stored)
        except FetchFailure as exc:
            logger.info(f"No stored forecast for {symbol} ({exc}), generating a new one")

        generated = await self._get_json(
            "forecast", "/api/forecast", {"coinId": symbol, "source": "generate"}, symbol
        )
        return parse_forecast(symbol, generated)

    async def fetch_news_sentiment(self, window_days: int) -> NewsSentiment:
        payload = await self._get_json("news", "/api/news-analysis", {"days": window_days})
        return parse_news_sentiment(payload, window_days=window_days)
