"""Routers package for the exchange server."""

from voucherswap.server.routers.admin import router as admin_router
from voucherswap.server.routers.events import router as events_router
from voucherswap.server.routers.health import router as health_router
from voucherswap.server.routers.media import router as media_router

__all__ = [
    "admin_router",
    "events_router",
    "health_router",
    "media_router",
]
