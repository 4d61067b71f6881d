"""PostgreSQL connection pool manager for the exchange store."""

from __future__ import annotations

import logging

from psycopg_pool import AsyncConnectionPool

from voucherswap.conf.config import settings

logger = logging.getLogger(__name__)

_pool: AsyncConnectionPool | None = None


def get_postgres_url() -> str:
    """Get PostgreSQL connection URL from settings."""
    if not settings.DATABASE_URL:
        raise ValueError("DATABASE_URL must be set for PostgreSQL connection")
    return settings.DATABASE_URL


async def get_postgres_pool() -> AsyncConnectionPool:
    """
    Get or create the PostgreSQL connection pool (singleton).

    Raises:
        RuntimeError: If pool creation fails
    """
    global _pool

    if _pool is not None:
        return _pool

    url = get_postgres_url()
    min_size = settings.POSTGRES_POOL_MIN_SIZE
    max_size = settings.POSTGRES_POOL_MAX_SIZE
    max_idle = settings.POSTGRES_POOL_MAX_IDLE

    try:
        pool = AsyncConnectionPool(
            url,
            min_size=min_size,
            max_size=max_size,
            max_idle=max_idle,
            open=False,
        )
        await pool.open()
    except Exception as e:
        logger.error("Failed to create PostgreSQL connection pool: %s", e)
        raise RuntimeError(f"Failed to create PostgreSQL pool: {e}") from e

    _pool = pool
    logger.info(
        "PostgreSQL connection pool created: min=%d, max=%d, max_idle=%d",
        min_size,
        max_size,
        max_idle,
    )
    return _pool


async def close_postgres_pool() -> None:
    """Close the PostgreSQL connection pool."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("PostgreSQL connection pool closed")


async def health_check() -> bool:
    """Check if PostgreSQL connection is healthy."""
    try:
        pool = await get_postgres_pool()
        async with pool.connection() as conn:
            await conn.execute("SELECT 1")
        return True
    except Exception as e:
        logger.error("PostgreSQL health check failed: %s", e)
        return False
