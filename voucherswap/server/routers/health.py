"""Health check router."""

from __future__ import annotations

import logging
import os
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from voucherswap.conf.config import settings
from voucherswap.server.dependencies import ExchangeServiceDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _get_build_info() -> dict[str, str]:
    sha = os.environ.get("GIT_SHA") or os.environ.get("COMMIT_SHA") or os.environ.get("SOURCE_VERSION") or "unknown"
    build_id = os.environ.get("BUILD_ID") or os.environ.get("HOSTNAME") or "unknown"
    return {"git_sha": sha, "build_id": build_id}


@router.get("/health")
async def health(service: ExchangeServiceDep) -> JSONResponse:
    """Health check endpoint with dependency status."""
    status = "ok"
    checks: dict[str, Any] = {}

    if await service.store.ping():
        checks["store"] = "ok" if settings.postgres_enabled else "memory"
    else:
        checks["store"] = "error"
        status = "degraded"
        logger.warning("Health check: exchange store unavailable")

    checks["notifications_pending"] = service.dispatcher.pending

    body = {"status": status, "checks": checks, **_get_build_info()}
    return JSONResponse(status_code=200 if status == "ok" else 503, content=body)
