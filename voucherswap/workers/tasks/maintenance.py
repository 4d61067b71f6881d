"""Scheduled maintenance tasks.

Each task calls one idempotent engine entry point. Store outages and lost
serialization races are retried by Celery; anything else is permanent.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from functools import lru_cache

from celery import shared_task

from voucherswap.core.exceptions import ConcurrentUpdateError, StoreUnavailableError
from voucherswap.services.exchange import ExchangeService
from voucherswap.workers.exceptions import RetryableError
from voucherswap.workers.sync_utils import run_sync

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_worker_service() -> ExchangeService:
    from voucherswap.app.bootstrap import build_exchange_service

    return build_exchange_service()


def _run_job(name: str, job: Callable[[ExchangeService], Awaitable[int]]) -> int:
    service = get_worker_service()

    async def _run() -> int:
        result = await job(service)
        await service.dispatcher.drain()
        return result

    try:
        result = run_sync(_run())
    except (StoreUnavailableError, ConcurrentUpdateError) as e:
        logger.warning("[WORKER:%s] Transient failure, will retry: %s", name, e)
        raise RetryableError(f"{name} failed: {e}", original_error=e) from e

    logger.info("[WORKER:%s] Done: %d", name, result)
    return result


@shared_task(
    name="voucherswap.workers.tasks.maintenance.expire_vouchers",
    autoretry_for=(RetryableError,),
    retry_backoff=True,
    retry_backoff_max=300,
    max_retries=3,
    soft_time_limit=120,
    time_limit=180,
)
def expire_vouchers() -> int:
    """Move available vouchers past their expiry to EXPIRED."""
    return _run_job("expire_vouchers", lambda service: service.expire_vouchers())


@shared_task(
    name="voucherswap.workers.tasks.maintenance.send_upload_reminders",
    autoretry_for=(RetryableError,),
    retry_backoff=True,
    retry_backoff_max=300,
    max_retries=3,
    soft_time_limit=120,
    time_limit=180,
)
def send_upload_reminders() -> int:
    """Remind yesterday's claimers to upload fresh vouchers."""
    return _run_job("send_upload_reminders", lambda service: service.send_upload_reminders())


@shared_task(
    name="voucherswap.workers.tasks.maintenance.purge_inbound_events",
    autoretry_for=(RetryableError,),
    retry_backoff=True,
    retry_backoff_max=300,
    max_retries=3,
    soft_time_limit=60,
    time_limit=120,
)
def purge_inbound_events() -> int:
    return _run_job("purge_inbound_events", lambda service: service.purge_inbound_events())


@shared_task(
    name="voucherswap.workers.tasks.maintenance.backfill_counters",
    autoretry_for=(RetryableError,),
    retry_backoff=True,
    retry_backoff_max=300,
    max_retries=3,
    soft_time_limit=300,
    time_limit=600,
)
def backfill_counters() -> int:
    """Rebuild advisory user counters; triggered manually."""
    return _run_job("backfill_counters", lambda service: service.backfill_counters())
