#!/usr/bin/env python3
"""Wallet Reconciliation Script.

Reconciles one user's wallets across the identity cache, the backend
registry and chain state, then prints the connection state and portfolio.
Useful to diagnose a user whose wallet shows as disconnected.

Usage:
    python scripts/reconcile.py --user USER_ID --token AUTH_TOKEN [--clear-cache]

Options:
    --user         Platform user ID
    --token        Registry auth token (default: REGISTRY_AUTH_TOKEN env var)
    --clear-cache  Clear the user's cached wallet identity afterwards
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dotenv import load_dotenv

load_dotenv()

from walletsync.api.contracts import ConnectionContract, ErrorContract, PortfolioContract
from walletsync.session import SessionManager

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


async def main():
    parser = argparse.ArgumentParser(description="Wallet Reconciliation")
    parser.add_argument("--user", type=str, required=True, help="Platform user ID to reconcile")
    parser.add_argument(
        "--token",
        type=str,
        default=os.getenv("REGISTRY_AUTH_TOKEN", ""),
        help="Registry auth token",
    )
    parser.add_argument(
        "--clear-cache", action="store_true", help="Clear the cached wallet identity afterwards"
    )
    args = parser.parse_args()

    if not args.token:
        logger.warning("No registry token given; the registry will be treated as unreachable")

    manager = SessionManager()
    await manager.database.create_tables()

    try:
        session = await manager.open(args.user, args.token)

        cached = await session.cache.snapshot()
        report = {
            "user_id": args.user,
            "cache": sorted(cached),
            "connection": ConnectionContract.from_state(session.connection).model_dump(),
            "portfolio": None,
            "error": None,
        }
        portfolio = PortfolioContract.from_state(session.portfolio)
        if portfolio is not None:
            report["portfolio"] = portfolio.model_dump()
        error = ErrorContract.from_err(session.store.last_error)
        if error is not None:
            report["error"] = error.model_dump()

        print(json.dumps(report, indent=2))

        if args.clear_cache:
            await manager.logout(session.session_id)
            logger.info(f"Cleared cached wallet identity for user {args.user}")
    finally:
        await manager.close_all()
        await manager.database.dispose()


if __name__ == "__main__":
    asyncio.run(main())
