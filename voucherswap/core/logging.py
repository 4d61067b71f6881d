"""Structured logging configuration for the voucher exchange.

This module provides JSON-formatted logging suitable for production environments
and log aggregation systems, plus a coloured formatter for local development.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any


# Record attributes copied into JSON output when present.
_EXTRA_KEYS = (
    "event",
    "user_id",
    "voucher_id",
    "report_id",
    "denomination",
    "reason",
    "balance",
    "count",
    "error",
)


class JSONFormatter(logging.Formatter):
    """One JSON object per record; exchange event fields become top-level keys."""

    def __init__(self, *, include_path: bool = False, static_fields: dict[str, Any] | None = None):
        super().__init__()
        self.include_path = include_path
        self.static_fields = static_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **self.static_fields,
        }
        if self.include_path:
            payload["path"] = f"{record.pathname}:{record.lineno}"
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        payload.update({key: getattr(record, key) for key in _EXTRA_KEYS if hasattr(record, key)})
        return json.dumps(payload, ensure_ascii=False, default=str)


class PrettyFormatter(logging.Formatter):
    """Coloured single-line output for local runs."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, UTC).strftime("%H:%M:%S")
        level = f"{self.COLORS.get(record.levelname, '')}{record.levelname:8}{self.RESET}"
        line = f"{stamp} {level} {record.name.removeprefix('voucherswap.')[:28]:28} {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    *,
    level: str = "INFO",
    json_format: bool = False,
    include_path: bool = False,
    service_name: str = "voucherswap",
) -> None:
    """Install one stdout handler on the root logger.

    Args:
        level: Minimum log level name
        json_format: JSON lines (production) instead of coloured text
        include_path: Add ``path`` (file:line) to JSON records
        service_name: Value of the ``service`` key in JSON records
    """
    numeric_level = logging.getLevelName(level.upper())
    root = logging.getLogger()
    root.setLevel(numeric_level)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    if json_format:
        handler.setFormatter(JSONFormatter(include_path=include_path, static_fields={"service": service_name}))
    else:
        handler.setFormatter(PrettyFormatter())
    root.addHandler(handler)

    for noisy in ("httpx", "httpcore", "openai", "psycopg", "psycopg.pool", "celery.app.trace"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


LOG_EVENT_TITLES: dict[str, str] = {
    "user_registered": "👋 User: registered",
    "voucher_accepted": "✅ Upload: voucher accepted",
    "voucher_rejected": "❌ Upload: voucher rejected",
    "upload_system_error": "💥 Upload: system error",
    "voucher_claimed": "🎟️ Claim: voucher claimed",
    "claim_image_missing": "🧯 Claim: image missing, rolled back",
    "claim_retry_selection": "🔁 Claim: voucher taken, reselecting",
    "report_recorded": "🚩 Report: recorded",
    "report_replaced": "🔄 Report: replacement issued",
    "report_refunded": "💸 Report: coins refunded",
    "reporter_banned": "🚫 Ban: reporter",
    "uploader_banned": "🚫 Ban: uploader",
    "uploader_admission": "🩹 Admission: reports removed",
    "user_banned_manually": "🚫 Ban: operator",
    "user_unbanned": "♻️ Ban: lifted by operator",
    "vouchers_expired": "⌛ Sweep: vouchers expired",
    "reminders_scheduled": "🛒 Reminders: scheduled",
    "inbound_events_purged": "🧹 Dedupe: events purged",
    "counters_backfilled": "🧮 Counters: rebuilt",
    "notification_failed": "📭 Notify: delivery failed",
}


def log_event(
    logger: logging.Logger,
    *,
    event: str,
    level: str | None = None,
    **kwargs: Any,
) -> None:
    """Structured event logging helper with emoji formatting.

    The title comes from LOG_EVENT_TITLES; the keyword fields are appended as
    ``key=value`` pairs and also attached to the record for JSON output.
    """
    lvl = (level or "info").lower()
    log_fn = getattr(logger, lvl, logger.info)

    title = LOG_EVENT_TITLES.get(event, event)
    fields = " ".join(f"{key}={value}" for key, value in kwargs.items() if value is not None)
    message = f"{title} | {fields}" if fields else title

    log_fn(message, extra={"event": event, **kwargs})
