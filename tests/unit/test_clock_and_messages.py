"""Tests for local-day helpers and rendered user messages."""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from voucherswap.core import messages
from voucherswap.core.clock import end_of_day, previous_local_day_bounds, start_of_local_day
from voucherswap.core.models import AvailabilityLevel, DenominationAvailability, UploadFailureReason


pytestmark = pytest.mark.unit

DUBLIN = ZoneInfo("Europe/Dublin")


class TestClock:
    def test_summer_day_bounds_shift_with_dst(self):
        instant = datetime(2026, 7, 1, 12, 0, tzinfo=UTC)
        assert start_of_local_day(instant, DUBLIN) == datetime(2026, 6, 30, 23, 0, tzinfo=UTC)

    def test_end_of_day_is_last_millisecond(self):
        end = end_of_day(datetime(2026, 1, 15).date(), DUBLIN)
        assert end == datetime(2026, 1, 15, 23, 59, 59, 999000, tzinfo=UTC)

    def test_previous_day_is_half_open(self):
        start, end = previous_local_day_bounds(datetime(2026, 1, 15, 10, 0, tzinfo=UTC), DUBLIN)
        assert start == datetime(2026, 1, 14, tzinfo=UTC)
        assert end == datetime(2026, 1, 15, tzinfo=UTC)


class TestMessages:
    def test_every_reason_has_a_message(self):
        for reason in UploadFailureReason:
            assert messages.rejection(reason).startswith(messages.FAILURE_HEADER)

    def test_expired_mentions_date(self):
        text = messages.rejection(UploadFailureReason.EXPIRED, datetime(2026, 3, 9, 23, 59, tzinfo=UTC))
        assert "09-03-2026" in text

    def test_availability_labels(self):
        rows = [
            DenominationAvailability(denomination=5, count=0, level=AvailabilityLevel.NONE),
            DenominationAvailability(denomination=10, count=3, level=AvailabilityLevel.LOW),
            DenominationAvailability(denomination=20, count=9, level=AvailabilityLevel.GOOD),
        ]
        assert messages.availability(rows).splitlines() == [
            "€5 vouchers: 🔴 none",
            "€10 vouchers: 🟡 low",
            "€20 vouchers: 🟢 good availability",
        ]
