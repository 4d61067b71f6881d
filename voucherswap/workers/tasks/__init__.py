"""Celery tasks for the voucher exchange.

Celery is only used for the scheduled entry points:
- maintenance: expiry sweep, upload reminders, dedupe purge, counter backfill
- health: worker liveness and store reachability

User events run synchronously through the HTTP layer, not Celery.
"""

from voucherswap.workers.tasks.health import worker_health_check
from voucherswap.workers.tasks.maintenance import (
    backfill_counters,
    expire_vouchers,
    purge_inbound_events,
    send_upload_reminders,
)


__all__ = [
    "backfill_counters",
    "expire_vouchers",
    "purge_inbound_events",
    "send_upload_reminders",
    "worker_health_check",
]
