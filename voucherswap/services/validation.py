"""OCR validation pipeline.

Turns an untrusted RawExtraction into a normalized voucher, or raises
VoucherValidationError carrying the first failing reason. Checks run in a
fixed order and stop at the first failure:

1. denomination not one of 5/10/20          -> INVALID_TYPE
2. validFrom missing, unreadable or stale   -> COULD_NOT_READ_VALID_FROM
3. expiryDate missing, unreadable or stale  -> COULD_NOT_READ_EXPIRY_DATE
4. expiryDate before today                  -> EXPIRED
5. expiryDate today and local time >= 21:00 -> EXPIRED
6. barcode missing                          -> COULD_NOT_READ_BARCODE
7. barcode already on a stored voucher      -> DUPLICATE_BARCODE

"Stale" means more than a year before today, which in practice is a misread
year rather than a real voucher.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo

from voucherswap.core.clock import end_of_day, local_date, start_of_day
from voucherswap.core.constants import MAX_DATE_AGE, SAME_DAY_CUTOFF_HOUR, VOUCHER_DENOMINATIONS
from voucherswap.core.exceptions import VoucherValidationError
from voucherswap.core.models import FailedUpload, FailureType, RawExtraction, UploadFailureReason

_DAY_FIRST_FORMATS = ("%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y")


@dataclass(frozen=True)
class ValidatedVoucher:
    denomination: int
    valid_from: datetime
    expiry_date: datetime
    barcode: str


def parse_denomination(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, int):
        return value
    text = str(value).strip().lstrip("€").strip()
    return int(text) if text.isdigit() else None


def parse_day(value: str | None) -> date | None:
    """Parse an ISO date/datetime or a day-first date; None when unreadable."""
    if not value:
        return None
    text = value.strip()
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    for fmt in _DAY_FIRST_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _readable_day(value: str | None, today: date) -> date | None:
    day = parse_day(value)
    if day is None or day < today - MAX_DATE_AGE:
        return None
    return day


def validate_extraction(extraction: RawExtraction, now: datetime, tz: ZoneInfo) -> ValidatedVoucher:
    """Run checks 1-6; the duplicate check needs the store, see ``validate_upload``."""
    today = local_date(now, tz)

    denomination = parse_denomination(extraction.denomination)
    if denomination not in VOUCHER_DENOMINATIONS:
        raise VoucherValidationError(UploadFailureReason.INVALID_TYPE)

    valid_from_day = _readable_day(extraction.valid_from, today)
    if valid_from_day is None:
        raise VoucherValidationError(UploadFailureReason.COULD_NOT_READ_VALID_FROM)

    expiry_day = _readable_day(extraction.expiry_date, today)
    if expiry_day is None:
        raise VoucherValidationError(UploadFailureReason.COULD_NOT_READ_EXPIRY_DATE)

    expiry_date = end_of_day(expiry_day, tz)
    if expiry_day < today:
        raise VoucherValidationError(UploadFailureReason.EXPIRED, expiry_date=expiry_date)
    if expiry_day == today and now.astimezone(tz).hour >= SAME_DAY_CUTOFF_HOUR:
        raise VoucherValidationError(UploadFailureReason.EXPIRED, expiry_date=expiry_date)

    barcode = (extraction.barcode or "").strip()
    if not barcode:
        raise VoucherValidationError(UploadFailureReason.COULD_NOT_READ_BARCODE)

    return ValidatedVoucher(
        denomination=denomination,
        valid_from=start_of_day(valid_from_day, tz),
        expiry_date=expiry_date,
        barcode=barcode,
    )


async def validate_upload(
    extraction: RawExtraction,
    now: datetime,
    tz: ZoneInfo,
    barcode_in_use: Callable[[str], Awaitable[bool]],
) -> ValidatedVoucher:
    validated = validate_extraction(extraction, now, tz)
    if await barcode_in_use(validated.barcode):
        raise VoucherValidationError(UploadFailureReason.DUPLICATE_BARCODE)
    return validated


def failure_record(
    user_id: str,
    image_ref: str,
    now: datetime,
    *,
    reason: UploadFailureReason,
    extraction: RawExtraction | None = None,
    error_message: str | None = None,
) -> FailedUpload:
    """Build the triage record; system errors carry no extracted fields."""
    if extraction is None:
        return FailedUpload(
            user_id=user_id,
            image_ref=image_ref,
            failure_type=FailureType.SYSTEM,
            failure_reason=reason,
            error_message=error_message,
            created_at=now,
        )
    return FailedUpload(
        user_id=user_id,
        image_ref=image_ref,
        failure_type=FailureType.VALIDATION,
        failure_reason=reason,
        error_message=error_message,
        extracted_denomination=None if extraction.denomination is None else str(extraction.denomination),
        extracted_valid_from=extraction.valid_from,
        extracted_expiry_date=extraction.expiry_date,
        extracted_barcode=extraction.barcode,
        created_at=now,
    )
