"""Health check task for worker monitoring."""

from __future__ import annotations

import logging
import platform
from datetime import UTC, datetime

from celery import shared_task

from voucherswap.workers.sync_utils import run_sync
from voucherswap.workers.tasks.maintenance import get_worker_service

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    name="voucherswap.workers.tasks.health.worker_health_check",
    soft_time_limit=10,
    time_limit=20,
)
def worker_health_check(self) -> dict:
    """Verify the worker is alive and can reach the exchange store."""
    store_ok = run_sync(get_worker_service().store.ping())
    health = {
        "status": "healthy" if store_ok else "degraded",
        "timestamp": datetime.now(UTC).isoformat(),
        "worker_id": self.request.hostname or "unknown",
        "python_version": platform.python_version(),
        "checks": {"store": {"status": "ok" if store_ok else "error"}},
    }

    if store_ok:
        logger.info("[HEALTH] Worker healthy: %s", health["worker_id"])
    else:
        logger.warning("[HEALTH] Worker degraded: %s - %s", health["worker_id"], health["checks"])
    return health
