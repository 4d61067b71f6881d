#!/usr/bin/env python3
"""
Create the exchange tables and indexes in PostgreSQL.

Usage:
    DATABASE_URL=postgresql://... python scripts/init_db.py

The statements are idempotent (CREATE ... IF NOT EXISTS) and safe to re-run.
"""

import asyncio
import logging
import sys

from voucherswap.conf.config import settings
from voucherswap.core.logging import setup_logging
from voucherswap.services.storage.postgres import PostgresStore
from voucherswap.services.storage.schema import SCHEMA_STATEMENTS

logger = logging.getLogger("init_db")


async def run_schema_creation() -> None:
    store = PostgresStore()
    try:
        await store.create_schema()
    finally:
        await store.close()
    logger.info("Applied %d schema statements", len(SCHEMA_STATEMENTS))


def main() -> int:
    setup_logging(level="INFO")
    if not settings.postgres_enabled:
        logger.error("DATABASE_URL is not set")
        return 1
    asyncio.run(run_schema_creation())
    return 0


if __name__ == "__main__":
    sys.exit(main())
