"""Time helpers.

The engine never reads the wall clock directly: it is handed a ``Clock`` and
converts instants to local calendar days with the configured zone.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def local_date(instant: datetime, tz: ZoneInfo) -> date:
    return instant.astimezone(tz).date()


def start_of_day(day: date, tz: ZoneInfo) -> datetime:
    """First instant of ``day`` in ``tz``, as an aware UTC datetime."""
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(UTC)


def end_of_day(day: date, tz: ZoneInfo) -> datetime:
    """Last millisecond of ``day`` in ``tz`` (23:59:59.999), as UTC."""
    return datetime.combine(day, time(23, 59, 59, 999000), tzinfo=tz).astimezone(UTC)


def start_of_local_day(instant: datetime, tz: ZoneInfo) -> datetime:
    return start_of_day(local_date(instant, tz), tz)


def previous_local_day_bounds(instant: datetime, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Half-open ``[start, end)`` of the calendar day before ``instant``."""
    today = local_date(instant, tz)
    return start_of_day(today - timedelta(days=1), tz), start_of_day(today, tz)
