"""TTL cleanup CLI — ``interview-cleanup``.

Connects to the configured store and physically deletes records whose TTL
has elapsed.  Intended for cron jobs; the in-memory backend has nothing to
clean across processes, so this is only useful with ``STORE_BACKEND=sql``.

Examples::

    # Purge expired records from PostgreSQL
    STORE_BACKEND=sql DATABASE_URL=postgresql://... interview-cleanup

    # Verbose
    interview-cleanup --log-level DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

logger = logging.getLogger(__name__)


async def run_cleanup() -> int:
    """Purge expired records and return how many were removed."""
    # Lazy imports to avoid loading DB machinery at module import time
    from interview_store.config import get_store_backend

    backend = get_store_backend()
    if backend != "sql":
        logger.warning("STORE_BACKEND=%s keeps no shared state; nothing to purge", backend)
        return 0

    from interview_store.sql_store import SqlKeyValueStore

    store = SqlKeyValueStore()
    try:
        affected = await store.purge_expired()
        logger.info("Cleanup complete: action=purge_expired, affected_rows=%d", affected)
        return affected
    finally:
        await store.close()


def cli() -> None:
    """Console-script entry point: ``interview-cleanup``."""
    parser = argparse.ArgumentParser(
        prog="interview-cleanup",
        description="Delete expired interview records from the store.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    affected = asyncio.run(run_cleanup())
    print(f"Affected rows: {affected}")
    sys.exit(0)
