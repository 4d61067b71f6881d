"""ASGI app exposing the exchange's inbound events and operator endpoints.

This module is a thin orchestrator that:
1. Manages the FastAPI app lifecycle (service, store pool, notification drain)
2. Includes routers for all endpoints
3. Registers the error mapping
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from voucherswap.conf.config import settings, validate_required_settings
from voucherswap.core.logging import setup_logging
from voucherswap.server.dependencies import get_exchange_service
from voucherswap.server.exceptions import register_exception_handlers
from voucherswap.server.routers import admin_router, events_router, health_router, media_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    setup_logging(
        level=settings.LOG_LEVEL,
        json_format=settings.LOG_JSON or settings.is_production,
        service_name="voucherswap",
    )

    try:
        validate_required_settings()
    except RuntimeError as e:
        logger.critical("Configuration validation failed: %s", e)
        raise

    provider = app.dependency_overrides.get(get_exchange_service, get_exchange_service)
    service = provider()

    if await service.store.ping():
        logger.info("Exchange store ready")
    else:
        logger.warning("Exchange store not reachable at startup; requests will fail until it recovers")

    logger.info("Starting voucherswap server")

    yield

    logger.info("Shutting down voucherswap server")
    await service.dispatcher.aclose()
    await service.store.close()


# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(
    title="Voucherswap",
    description="Peer-to-peer discount voucher exchange",
    version="1.0.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router)
app.include_router(events_router)
app.include_router(admin_router)
app.include_router(media_router)
