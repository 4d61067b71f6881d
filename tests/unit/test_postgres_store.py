"""Tests for the PostgreSQL store against a mocked psycopg connection.

Tests:
1. Row mapping (enums to values, dicts to Jsonb)
2. Unique violations mapped to engine errors
3. Compare-and-set voucher transitions
4. Transaction errors mapped by SQLSTATE
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from psycopg import IsolationLevel, errors
from psycopg.types.json import Jsonb

from voucherswap.core.exceptions import (
    ConcurrentUpdateError,
    DuplicateBarcodeError,
    DuplicateReportError,
    InvalidTransitionError,
    ReportNotFoundError,
    StoreUnavailableError,
    VoucherNotFoundError,
)
from voucherswap.core.models import InboundEvent, Report, User, Voucher
from voucherswap.core.state_machine import VoucherStatus
from voucherswap.services.storage.postgres import PostgresSession, PostgresStore, _row_values


pytestmark = pytest.mark.unit

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def make_cursor(*, rowcount: int = 0, fetchone=None, error: Exception | None = None) -> MagicMock:
    cursor = MagicMock()
    cursor.__aenter__.return_value = cursor
    cursor.__aexit__.return_value = False
    cursor.execute = AsyncMock(side_effect=error)
    cursor.fetchone = AsyncMock(return_value=fetchone)
    cursor.fetchall = AsyncMock(return_value=[])
    cursor.rowcount = rowcount
    return cursor


def make_session(*cursors: MagicMock) -> tuple[PostgresSession, MagicMock]:
    conn = MagicMock()
    conn.cursor.side_effect = list(cursors)
    return PostgresSession(conn), conn


def make_voucher(**overrides) -> Voucher:
    fields = {
        "denomination": 10,
        "status": VoucherStatus.AVAILABLE,
        "image_ref": "a" * 32 + ".jpg",
        "barcode": "PG0001",
        "expiry_date": NOW + timedelta(days=7),
        "uploader_id": "up",
        "created_at": NOW,
        "raw_extraction": {"type": 10, "barcode": "PG0001"},
    }
    fields.update(overrides)
    return Voucher(**fields)


class TestRowValues:
    def test_enums_become_values_and_dicts_become_jsonb(self):
        values = _row_values(make_voucher())

        assert values["status"] == "available"
        assert isinstance(values["raw_extraction"], Jsonb)
        assert values["raw_extraction"].obj == {"type": 10, "barcode": "PG0001"}
        assert values["expiry_date"] == NOW + timedelta(days=7)

    def test_plain_columns_pass_through(self):
        user = User(external_id="u1", coins=20, created_at=NOW, last_active_at=NOW)

        values = _row_values(user)

        assert values["external_id"] == "u1"
        assert values["coins"] == 20
        assert values["banned_at"] is None


@pytest.mark.asyncio
class TestUniqueViolations:
    async def test_duplicate_barcode(self):
        session, _ = make_session(make_cursor(error=errors.UniqueViolation("vouchers_live_barcode")))

        with pytest.raises(DuplicateBarcodeError) as exc_info:
            await session.insert_voucher(make_voucher())

        assert exc_info.value.barcode == "PG0001"
        assert isinstance(exc_info.value.__cause__, errors.UniqueViolation)

    async def test_duplicate_report(self):
        session, _ = make_session(make_cursor(error=errors.UniqueViolation("reports_voucher_reporter")))
        report = Report(voucher_id="v1", reporter_id="r1", uploader_id="up", reason="not_working", created_at=NOW)

        with pytest.raises(DuplicateReportError) as exc_info:
            await session.insert_report(report)

        assert (exc_info.value.voucher_id, exc_info.value.reporter_id) == ("v1", "r1")

    async def test_concurrent_registration(self):
        session, _ = make_session(make_cursor(error=errors.UniqueViolation("users_external_id")))
        user = User(external_id="u1", coins=20, created_at=NOW, last_active_at=NOW)

        with pytest.raises(ConcurrentUpdateError):
            await session.insert_user(user)

    async def test_other_errors_are_not_remapped(self):
        session, _ = make_session(make_cursor(error=errors.CheckViolation("coins_range")))

        with pytest.raises(errors.CheckViolation):
            await session.insert_voucher(make_voucher())


@pytest.mark.asyncio
class TestTransitionVoucher:
    async def test_updated_row_means_claimed(self):
        update = make_cursor(rowcount=1)
        session, conn = make_session(update)

        claimed = await session.transition_voucher(
            "v1", VoucherStatus.AVAILABLE, VoucherStatus.CLAIMED, claimer_id="c1", claimed_at=NOW
        )

        assert claimed is True
        query, params = update.execute.await_args.args
        assert "WHERE id = %s AND status = %s" in query
        assert params == ("claimed", "c1", NOW, "v1", "available")
        assert conn.cursor.call_count == 1

    async def test_lost_race_returns_false(self):
        already_claimed = make_voucher(status=VoucherStatus.CLAIMED, claimer_id="c2", claimed_at=NOW)
        session, conn = make_session(make_cursor(rowcount=0), make_cursor(fetchone=already_claimed.model_dump()))

        claimed = await session.transition_voucher(
            already_claimed.id, VoucherStatus.AVAILABLE, VoucherStatus.CLAIMED, claimer_id="c1", claimed_at=NOW
        )

        assert claimed is False
        assert conn.cursor.call_count == 2

    async def test_missing_voucher_raises(self):
        session, _ = make_session(make_cursor(rowcount=0), make_cursor(fetchone=None))

        with pytest.raises(VoucherNotFoundError) as exc_info:
            await session.transition_voucher("ghost", VoucherStatus.CLAIMED, VoucherStatus.REPORTED)

        assert exc_info.value.voucher_id == "ghost"

    async def test_illegal_transition_never_reaches_the_database(self):
        session, conn = make_session()

        with pytest.raises(InvalidTransitionError):
            await session.transition_voucher("v1", VoucherStatus.REPORTED, VoucherStatus.AVAILABLE)

        conn.cursor.assert_not_called()


@pytest.mark.asyncio
class TestRowcountResults:
    async def test_repeated_event_is_not_registered(self):
        session, _ = make_session(make_cursor(rowcount=0))

        assert await session.register_event(InboundEvent("telegram", "m-1"), NOW) is False

    async def test_new_event_is_registered(self):
        session, _ = make_session(make_cursor(rowcount=1))

        assert await session.register_event(InboundEvent("telegram", "m-1"), NOW) is True

    async def test_linking_unknown_report_raises(self):
        session, _ = make_session(make_cursor(rowcount=0))

        with pytest.raises(ReportNotFoundError):
            await session.link_replacement("missing", "v2")


def make_pool() -> tuple[MagicMock, MagicMock]:
    conn = MagicMock()
    conn.set_isolation_level = AsyncMock()
    conn.transaction.return_value.__aenter__.return_value = None
    conn.transaction.return_value.__aexit__.return_value = False
    pool = MagicMock()
    pool.connection.return_value.__aenter__.return_value = conn
    pool.connection.return_value.__aexit__.return_value = False
    return pool, conn


@pytest.mark.asyncio
class TestTransaction:
    async def test_runs_serializable(self):
        pool, conn = make_pool()

        async with PostgresStore(pool).transaction() as session:
            assert isinstance(session, PostgresSession)

        conn.set_isolation_level.assert_awaited_once_with(IsolationLevel.SERIALIZABLE)

    @pytest.mark.parametrize(
        "error",
        [errors.SerializationFailure("could not serialize access"), errors.DeadlockDetected("deadlock detected")],
    )
    async def test_conflicts_become_concurrent_update(self, error):
        pool, _ = make_pool()

        with pytest.raises(ConcurrentUpdateError) as exc_info:
            async with PostgresStore(pool).transaction():
                raise error

        assert exc_info.value.__cause__ is error

    async def test_connection_failure_becomes_unavailable(self):
        pool, _ = make_pool()

        with pytest.raises(StoreUnavailableError):
            async with PostgresStore(pool).transaction():
                raise errors.OperationalError("connection refused")

    async def test_engine_errors_pass_through(self):
        pool, _ = make_pool()

        with pytest.raises(VoucherNotFoundError):
            async with PostgresStore(pool).transaction():
                raise VoucherNotFoundError("v1")

    async def test_ping_reports_failure(self):
        pool, _ = make_pool()
        pool.connection.return_value.__aenter__.side_effect = errors.OperationalError("down")

        assert await PostgresStore(pool).ping() is False
