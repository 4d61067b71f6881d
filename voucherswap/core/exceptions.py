"""
Exchange Exceptions - engine error handling.
============================================
Expected business results (quota hit, no stock, ban) are returned as
outcomes, not raised. The exceptions below cover misuse, missing records and
infrastructure failures that callers must handle explicitly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from voucherswap.core.models import UploadFailureReason


class ExchangeError(Exception):
    """Base exception for the exchange engine."""


class UserNotFoundError(ExchangeError):
    """Raised when an operation names a user that has never registered."""

    def __init__(self, external_id: str):
        self.external_id = external_id
        super().__init__(f"User {external_id} is not registered")


class VoucherNotFoundError(ExchangeError):
    def __init__(self, voucher_id: str):
        self.voucher_id = voucher_id
        super().__init__(f"Voucher {voucher_id} not found")


class ReportNotFoundError(ExchangeError):
    def __init__(self, report_id: str):
        self.report_id = report_id
        super().__init__(f"Report {report_id} not found")


class NotAuthorizedError(ExchangeError):
    """Raised when a user acts on a voucher they do not own in that role."""

    def __init__(self, user_id: str, voucher_id: str, action: str):
        self.user_id = user_id
        self.voucher_id = voucher_id
        self.action = action
        super().__init__(f"User {user_id} may not {action} voucher {voucher_id}")


class InvalidTransitionError(ExchangeError):
    """Raised when a voucher status change is not in the transition table."""

    def __init__(self, voucher_id: str, current: str, target: str):
        self.voucher_id = voucher_id
        self.current = current
        self.target = target
        super().__init__(f"Voucher {voucher_id}: illegal transition {current} -> {target}")


class InsufficientCoinsError(ExchangeError):
    """Raised when a debit would take a balance below zero."""

    def __init__(self, user_id: str, balance: int, required: int):
        self.user_id = user_id
        self.balance = balance
        self.required = required
        super().__init__(f"User {user_id} has {balance} coins, needs {required}")


class StoreUnavailableError(ExchangeError):
    """Raised when the backing store cannot be reached."""

    def __init__(self, message: str | None = None):
        self.message = message or "Store is temporarily unavailable"
        super().__init__(self.message)


class ConcurrentUpdateError(ExchangeError):
    """Raised when a unit of work lost a race and should be retried."""

    def __init__(self, message: str | None = None):
        super().__init__(message or "Concurrent update detected")


class DuplicateReportError(ExchangeError):
    def __init__(self, voucher_id: str, reporter_id: str):
        self.voucher_id = voucher_id
        self.reporter_id = reporter_id
        super().__init__(f"Voucher {voucher_id} already reported by {reporter_id}")


class DuplicateBarcodeError(ExchangeError):
    """Raised by a store when a live voucher already carries the barcode."""

    def __init__(self, barcode: str):
        self.barcode = barcode
        super().__init__("Barcode already in use")


class ExtractionError(ExchangeError):
    """Raised when the vision extractor fails or times out."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.original_error = original_error


class VoucherValidationError(ExchangeError):
    """Raised by the validator with the first failing rejection reason."""

    def __init__(self, reason: UploadFailureReason, expiry_date: datetime | None = None):
        self.reason = reason
        self.expiry_date = expiry_date
        super().__init__(f"Voucher rejected: {reason.value}")
