#!/usr/bin/env python3
"""Run the FastAPI collector API server.

Usage:
    python scripts/run_api.py [--host HOST] [--port PORT] [--api-base-url URL]

Environment:
    CRYPTOTERM_API_BASE_URL - Dashboard backend feeding the collector
    CRYPTOTERM_PORTFOLIO_PATH - Optional JSON file for portfolio holdings

Examples:
    python scripts/run_api.py
    python scripts/run_api.py --host 0.0.0.0 --port 8000
    python scripts/run_api.py --api-base-url http://dashboard:3000 --portfolio-path ~/.cryptoterm/portfolio.json
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

import uvicorn

# Ensure imports work when invoked as a script
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))


def main() -> int:
    """Run the API server."""
    parser = argparse.ArgumentParser(
        description="Serve the collector, recommendation and portfolio endpoints."
    )
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to (default: 8000)")
    parser.add_argument(
        "--api-base-url",
        help="Dashboard backend URL (overrides CRYPTOTERM_API_BASE_URL)",
    )
    parser.add_argument(
        "--portfolio-path",
        help="Persist holdings to this JSON file (overrides CRYPTOTERM_PORTFOLIO_PATH)",
    )
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    args = parser.parse_args()

    # api.main reads its configuration from the environment on first request
    if args.api_base_url:
        os.environ["CRYPTOTERM_API_BASE_URL"] = args.api_base_url
    if args.portfolio_path:
        os.environ["CRYPTOTERM_PORTFOLIO_PATH"] = str(Path(args.portfolio_path).expanduser())

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    base = f"http://{args.host}:{args.port}"
    print(f"Starting collector API on {base}")
    print(f"  feeds from {os.environ.get('CRYPTOTERM_API_BASE_URL', 'default dashboard URL')}")
    print(f"  POST {base}/symbol {{\"symbol\": \"bitcoin\"}} to start collecting")
    print(f"  GET  {base}/recommendation")
    print()

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload, log_level="info")
    return 0


if __name__ == "__main__":
    sys.exit(main())
