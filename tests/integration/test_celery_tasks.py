"""Celery maintenance tasks in eager mode, against the in-memory service."""

import pytest

from voucherswap.core import messages
from voucherswap.core.exceptions import StoreUnavailableError
from voucherswap.workers.celery_app import celery_app
from voucherswap.workers.exceptions import RetryableError
from voucherswap.workers.sync_utils import run_sync
from voucherswap.workers.tasks import health, maintenance
from voucherswap.workers.tasks.health import worker_health_check
from voucherswap.workers.tasks.maintenance import (
    backfill_counters,
    expire_vouchers,
    purge_inbound_events,
    send_upload_reminders,
)


pytestmark = pytest.mark.integration


@pytest.fixture
def worker_service(service, monkeypatch):
    monkeypatch.setattr(maintenance, "get_worker_service", lambda: service)
    monkeypatch.setattr(health, "get_worker_service", lambda: service)
    return service


def test_eager_mode_is_on_for_tests():
    assert celery_app.conf.task_always_eager


def test_beat_schedule_points_at_registered_tasks():
    for entry in celery_app.conf.beat_schedule.values():
        assert entry["task"] in celery_app.tasks


def test_expire_task(worker_service, clock, seed_voucher):
    uploader = run_sync(worker_service.register_user("up"))
    run_sync(seed_voucher(uploader, 10, expires_in_days=1))
    clock.advance(days=2)

    assert expire_vouchers.delay().get() == 1


def test_reminder_task_delivers_before_returning(worker_service, channel, clock, seed_voucher):
    uploader = run_sync(worker_service.register_user("up"))
    run_sync(worker_service.register_user("c1"))
    run_sync(seed_voucher(uploader, 20))
    run_sync(worker_service.claim_voucher("c1", 20))
    clock.advance(days=1)

    assert send_upload_reminders.delay().get() == 1
    assert channel.texts_for("c1") == [messages.UPLOAD_REMINDER]


def test_purge_and_backfill_tasks(worker_service):
    run_sync(worker_service.register_user("u1"))

    assert purge_inbound_events.delay().get() == 0
    assert backfill_counters.delay().get() == 0


def test_store_outage_is_retryable(worker_service, monkeypatch):
    async def unavailable():
        raise StoreUnavailableError("pool exhausted")

    monkeypatch.setattr(worker_service, "expire_vouchers", unavailable)

    with pytest.raises(RetryableError):
        expire_vouchers()


def test_health_check(worker_service):
    result = worker_health_check.apply().get()

    assert result["status"] == "healthy"
    assert result["checks"]["store"]["status"] == "ok"
