"""Celery application configuration.

Runs the exchange's scheduled entry points:
- expiry sweep, daily
- upload reminders, daily at REMINDER_HOUR_UTC
- inbound-event dedupe purge, hourly
Eager mode (CELERY_EAGER=true) runs everything inline for tests.
"""

from __future__ import annotations

import logging
import os

from celery import Celery, signals
from celery.schedules import crontab
from kombu import Queue

from voucherswap.conf.config import settings
from voucherswap.workers.exceptions import PermanentError, RetryableError

logger = logging.getLogger(__name__)

# =============================================================================
# CONFIGURATION FROM ENVIRONMENT
# =============================================================================

WORKER_CONCURRENCY = int(os.getenv("CELERY_CONCURRENCY", "2"))
WORKER_MAX_TASKS = int(os.getenv("CELERY_MAX_TASKS_PER_CHILD", "100"))
WORKER_PREFETCH = int(os.getenv("CELERY_PREFETCH", "1"))

TASK_QUEUES = (
    Queue("default", routing_key="default"),
    Queue("maintenance", routing_key="maintenance"),
)

# =============================================================================
# CELERY APP
# =============================================================================

celery_app = Celery(
    "voucherswap_workers",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=[
        "voucherswap.workers.tasks.maintenance",
        "voucherswap.workers.tasks.health",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_queues=TASK_QUEUES,
    task_default_queue="default",
    task_default_routing_key="default",
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=WORKER_PREFETCH,
    task_soft_time_limit=120,
    task_time_limit=180,
    worker_concurrency=WORKER_CONCURRENCY,
    worker_max_tasks_per_child=WORKER_MAX_TASKS,
    result_expires=86400,
    task_autoretry_for=(RetryableError,),
    task_retry_backoff=True,
    task_retry_backoff_max=600,
    task_retry_jitter=True,
    task_always_eager=settings.CELERY_EAGER,
    task_eager_propagates=settings.CELERY_EAGER,
    broker_connection_retry_on_startup=True,
)

celery_app.conf.task_routes = {
    "voucherswap.workers.tasks.maintenance.*": {"queue": "maintenance"},
    "voucherswap.workers.tasks.health.*": {"queue": "default"},
}

# =============================================================================
# CELERY BEAT SCHEDULE
# =============================================================================

celery_app.conf.beat_schedule = {
    "expire-vouchers-daily": {
        "task": "voucherswap.workers.tasks.maintenance.expire_vouchers",
        "schedule": crontab(hour=0, minute=5),
        "options": {"queue": "maintenance"},
    },
    "upload-reminders-daily": {
        "task": "voucherswap.workers.tasks.maintenance.send_upload_reminders",
        "schedule": crontab(hour=settings.REMINDER_HOUR_UTC, minute=0),
        "options": {"queue": "maintenance"},
    },
    "purge-inbound-events-hourly": {
        "task": "voucherswap.workers.tasks.maintenance.purge_inbound_events",
        "schedule": 3600.0,
        "options": {"queue": "maintenance"},
    },
    "health-check-5min": {
        "task": "voucherswap.workers.tasks.health.worker_health_check",
        "schedule": 300.0,
        "options": {"queue": "default"},
    },
}

# =============================================================================
# SIGNALS - Lifecycle hooks
# =============================================================================


@signals.worker_init.connect
def worker_init_handler(sender=None, **kwargs):
    logger.info("[CELERY] Worker initialized: %s", sender)


@signals.worker_shutdown.connect
def worker_shutdown_handler(sender=None, **kwargs):
    from voucherswap.workers.sync_utils import cleanup_loop

    cleanup_loop()
    logger.info("[CELERY] Worker shutdown: %s", sender)


@signals.task_failure.connect
def task_failure_handler(task_id=None, exception=None, **kwargs):
    if isinstance(exception, PermanentError):
        logger.warning("[CELERY] Task permanent failure: %s - %s", task_id, exception)
    else:
        logger.error("[CELERY] Task failed: %s - %s", task_id, exception)
