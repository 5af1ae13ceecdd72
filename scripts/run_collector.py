#!/usr/bin/env python3
"""Run the market data collector headless.

Refreshes prices, forecast and candles for one coin on their cadences and
logs the recommendation whenever it changes.

Usage:
    python scripts/run_collector.py [--symbol SYMBOL] [--duration SECONDS]

Environment:
    CRYPTOTERM_API_BASE_URL - Dashboard backend (default: http://127.0.0.1:3000)
    CRYPTOTERM_* - See core/config.py

Examples:
    python scripts/run_collector.py --symbol ethereum
    python scripts/run_collector.py --symbol solana --duration 600 --debug
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

# Ensure imports work when invoked as a script
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from core.config import CANDLE_TIME_PERIODS, RefreshConfig  # noqa: E402
from core.market_data.http_feeds import DashboardFeedClient  # noqa: E402
from core.refresh import MarketDataService  # noqa: E402

logger = logging.getLogger("run_collector")


async def run(config: RefreshConfig, symbol: str, duration: float | None) -> None:
    async with DashboardFeedClient(config.api_base_url, timeout=config.http_timeout) as client:
        service = MarketDataService.from_client(client, config)
        await service.start(symbol)
        try:
            if duration is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(duration)
        finally:
            await service.stop()
            rec = service.get_recommendation()
            logger.info(f"Final recommendation for {symbol}: {rec.to_dict()}")


def main() -> int:
    """Run the collector from command line."""
    parser = argparse.ArgumentParser(description="Run the market data collector for one coin")
    parser.add_argument("--symbol", help="CoinGecko coin id (default: CRYPTOTERM_DEFAULT_SYMBOL or bitcoin)")
    parser.add_argument("--api-base-url", help="Dashboard backend base URL")
    parser.add_argument("--candle-period", choices=CANDLE_TIME_PERIODS, help="Candle dataset time period")
    parser.add_argument("--duration", type=float, help="Stop after N seconds (default: run until interrupted)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        config = RefreshConfig.from_env()
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 1
    if args.api_base_url:
        config = replace(config, api_base_url=args.api_base_url.rstrip("/"))
    if args.candle_period:
        config = replace(config, candle_time_period=args.candle_period)

    try:
        asyncio.run(run(config, args.symbol or config.default_symbol, args.duration))
    except KeyboardInterrupt:
        logger.info("Interrupted, collector stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
