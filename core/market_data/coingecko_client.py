"""CoinGecko client for the list of selectable coins.

Uses the free tier API (no API key required).
Rate limit: 10-30 calls/minute on free tier, so callers should cache.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from core.errors import FetchFailure

logger = logging.getLogger(__name__)


class CoinGeckoClient:
    """Client for CoinGecko API (free tier, no API key)."""

    BASE_URL = "https://api.coingecko.com/api/v3"
    DEFAULT_TIMEOUT = 10  # seconds

    def __init__(self, *, timeout: int = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/json",
                "User-Agent": "cryptoterm/1.0",
            }
        )

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()

    def __enter__(self) -> "CoinGeckoClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    def get_available_coins(self, *, limit: int = 50, vs_currency: str = "usd") -> list[dict[str, Any]]:
        """Fetch the top ``limit`` coins by market cap.

        Args:
            limit: Number of coins to fetch (max 250 per page on free tier)
            vs_currency: Quote currency (default: usd)

        Returns:
            List of ``{"id", "symbol", "name"}`` dicts in market cap order,
            e.g. ``{"id": "bitcoin", "symbol": "BTC", "name": "Bitcoin"}``

        Raises:
            FetchFailure: If the request fails or the response is malformed
        """
        url = f"{self.BASE_URL}/coins/markets"
        params = {
            "vs_currency": vs_currency,
            "order": "market_cap_desc",
            "per_page": min(limit, 250),  # API max per page
            "page": 1,
            "sparkline": "false",
        }

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as exc:
            raise FetchFailure("coins", f"CoinGecko API request failed: {exc}") from exc
        except ValueError as exc:
            raise FetchFailure("coins", "CoinGecko returned invalid JSON") from exc

        if not isinstance(data, list):
            raise FetchFailure("coins", f"Unexpected response format: {type(data).__name__}")

        coins = []
        for coin in data:
            if not isinstance(coin, dict) or not coin.get("id"):
                continue
            coins.append(
                {
                    "id": str(coin["id"]),
                    "symbol": str(coin.get("symbol", "")).upper(),
                    "name": str(coin.get("name", "")),
                }
            )

        logger.info(f"Fetched {len(coins)} coins from CoinGecko")
        return coins
