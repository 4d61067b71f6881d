"""Tests for the OCR validation pipeline.

Tests cover:
- Each rejection reason and the order in which they are checked
- Date normalization (start / end of local day)
- The 21:00 same-day cutoff
- Failure records for triage
"""

from datetime import UTC, datetime

import pytest

from tests.conftest import DUBLIN, START
from voucherswap.core.exceptions import VoucherValidationError
from voucherswap.core.models import FailureType, RawExtraction, UploadFailureReason
from voucherswap.services.validation import (
    failure_record,
    parse_day,
    parse_denomination,
    validate_extraction,
    validate_upload,
)


pytestmark = pytest.mark.unit


def extraction(**overrides) -> RawExtraction:
    fields = {"type": 10, "validFrom": "2026-03-09", "expiryDate": "2026-03-24", "barcode": "B1"}
    fields.update(overrides)
    return RawExtraction.model_validate(fields)


def local(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 10, hour, minute, tzinfo=DUBLIN).astimezone(UTC)


def reason_for(raw: RawExtraction, now: datetime = START) -> UploadFailureReason:
    with pytest.raises(VoucherValidationError) as exc_info:
        validate_extraction(raw, now, DUBLIN)
    return exc_info.value.reason


class TestParsing:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(10, 10), ("20", 20), ("€5", 5), (5.0, 5), (None, None), ("ten", None), (True, None), (7.5, None)],
    )
    def test_parse_denomination(self, value, expected):
        assert parse_denomination(value) == expected

    @pytest.mark.parametrize(
        "value",
        ["2026-03-24", "2026-03-24T10:00:00", "24/03/2026", "24-03-2026", "24.03.2026"],
    )
    def test_parse_day_accepts_iso_and_day_first(self, value):
        assert parse_day(value).isoformat() == "2026-03-24"

    @pytest.mark.parametrize("value", [None, "", "next tuesday", "2026-13-40"])
    def test_parse_day_rejects_garbage(self, value):
        assert parse_day(value) is None


class TestValidExtraction:
    def test_normalizes_dates_to_day_bounds(self):
        result = validate_extraction(extraction(), START, DUBLIN)

        assert result.denomination == 10
        assert result.barcode == "B1"
        assert result.valid_from == datetime(2026, 3, 9, 0, 0, tzinfo=DUBLIN).astimezone(UTC)
        assert result.expiry_date.astimezone(DUBLIN) == datetime(2026, 3, 24, 23, 59, 59, 999000, tzinfo=DUBLIN)

    def test_barcode_is_trimmed(self):
        assert validate_extraction(extraction(barcode="  9988 "), START, DUBLIN).barcode == "9988"

    def test_numeric_barcode_is_accepted(self):
        assert validate_extraction(extraction(barcode=123456), START, DUBLIN).barcode == "123456"

    def test_expiring_today_before_cutoff_is_accepted(self):
        result = validate_extraction(extraction(expiryDate="2026-03-10"), local(20, 59), DUBLIN)
        assert result.expiry_date > local(20, 59)


class TestRejections:
    @pytest.mark.parametrize("denomination", [0, 7, 50, None, "abc"])
    def test_invalid_type(self, denomination):
        assert reason_for(extraction(type=denomination)) == UploadFailureReason.INVALID_TYPE

    def test_missing_valid_from(self):
        assert reason_for(extraction(validFrom=None)) == UploadFailureReason.COULD_NOT_READ_VALID_FROM

    def test_stale_valid_from_is_a_misread(self):
        assert reason_for(extraction(validFrom="2024-12-01")) == UploadFailureReason.COULD_NOT_READ_VALID_FROM

    def test_unreadable_expiry(self):
        reason = reason_for(extraction(expiryDate="next tuesday"))
        assert reason == UploadFailureReason.COULD_NOT_READ_EXPIRY_DATE

    def test_stale_expiry_is_a_misread_not_expired(self):
        reason = reason_for(extraction(expiryDate="2024-06-01"))
        assert reason == UploadFailureReason.COULD_NOT_READ_EXPIRY_DATE

    def test_expired_yesterday(self):
        with pytest.raises(VoucherValidationError) as exc_info:
            validate_extraction(extraction(expiryDate="2026-03-09"), START, DUBLIN)
        assert exc_info.value.reason == UploadFailureReason.EXPIRED
        assert exc_info.value.expiry_date.astimezone(DUBLIN).date().isoformat() == "2026-03-09"

    @pytest.mark.parametrize(("hour", "minute"), [(21, 0), (21, 30), (23, 59)])
    def test_expiring_today_after_cutoff(self, hour, minute):
        reason = reason_for(extraction(expiryDate="2026-03-10"), local(hour, minute))
        assert reason == UploadFailureReason.EXPIRED

    @pytest.mark.parametrize("barcode", [None, "", "   "])
    def test_missing_barcode(self, barcode):
        assert reason_for(extraction(barcode=barcode)) == UploadFailureReason.COULD_NOT_READ_BARCODE


class TestPrecedence:
    def test_type_wins_over_everything(self):
        raw = extraction(type=3, validFrom=None, expiryDate=None, barcode=None)
        assert reason_for(raw) == UploadFailureReason.INVALID_TYPE

    def test_valid_from_checked_before_expiry(self):
        raw = extraction(validFrom="garbage", expiryDate="garbage")
        assert reason_for(raw) == UploadFailureReason.COULD_NOT_READ_VALID_FROM

    def test_expired_checked_before_barcode(self):
        raw = extraction(expiryDate="2026-03-01", barcode=None)
        assert reason_for(raw) == UploadFailureReason.EXPIRED


class TestDuplicateBarcode:
    @pytest.mark.asyncio
    async def test_barcode_in_use_is_rejected(self):
        async def in_use(barcode: str) -> bool:
            return barcode == "B1"

        with pytest.raises(VoucherValidationError) as exc_info:
            await validate_upload(extraction(), START, DUBLIN, in_use)
        assert exc_info.value.reason == UploadFailureReason.DUPLICATE_BARCODE

    @pytest.mark.asyncio
    async def test_duplicate_check_runs_last(self):
        calls: list[str] = []

        async def in_use(barcode: str) -> bool:
            calls.append(barcode)
            return True

        with pytest.raises(VoucherValidationError) as exc_info:
            await validate_upload(extraction(barcode=None), START, DUBLIN, in_use)
        assert exc_info.value.reason == UploadFailureReason.COULD_NOT_READ_BARCODE
        assert calls == []


class TestFailureRecord:
    def test_validation_failure_keeps_partial_fields(self):
        raw = extraction(expiryDate="2026-03-01")
        record = failure_record("u1", "img.jpg", START, reason=UploadFailureReason.EXPIRED, extraction=raw)

        assert record.failure_type == FailureType.VALIDATION
        assert record.extracted_denomination == "10"
        assert record.extracted_expiry_date == "2026-03-01"
        assert record.extracted_barcode == "B1"

    def test_system_failure_has_no_extracted_fields(self):
        record = failure_record(
            "u1",
            "img.jpg",
            START,
            reason=UploadFailureReason.SYSTEM_ERROR,
            error_message="timeout",
        )

        assert record.failure_type == FailureType.SYSTEM
        assert record.error_message == "timeout"
        assert record.extracted_denomination is None
        assert record.extracted_barcode is None
