"""Celery workers for the exchange's scheduled jobs.

This module contains:
- celery_app: Celery application configuration
- tasks: expiry sweep, reminders, dedupe purge, health
"""

from voucherswap.workers.celery_app import celery_app


__all__ = ["celery_app"]
