from .base import ExchangeStore, StoreSession
from .memory import InMemorySession, InMemoryStore
from .postgres_pool import close_postgres_pool, get_postgres_pool, get_postgres_url, health_check


def create_store() -> ExchangeStore:
    """Factory: PostgreSQL when DATABASE_URL is configured, in-memory otherwise."""
    from voucherswap.conf.config import settings

    if settings.postgres_enabled:
        from .postgres import PostgresStore

        return PostgresStore()
    return InMemoryStore()


__all__ = [
    "ExchangeStore",
    "StoreSession",
    "InMemorySession",
    "InMemoryStore",
    "close_postgres_pool",
    "get_postgres_pool",
    "get_postgres_url",
    "health_check",
    "create_store",
]
