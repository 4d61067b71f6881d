"""PostgreSQL implementation of the exchange store.

Each unit of work runs in one SERIALIZABLE transaction on a pooled
connection. The user row of the acting user is locked ``FOR UPDATE`` so
concurrent operations for the same user queue instead of aborting; any
remaining serialization conflict surfaces as ConcurrentUpdateError and the
engine retries the whole unit.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime
from enum import Enum
from typing import Any

import psycopg
from psycopg import AsyncConnection, IsolationLevel, errors, sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from psycopg_pool import AsyncConnectionPool
from pydantic import BaseModel

from voucherswap.core.constants import DBTable
from voucherswap.core.exceptions import (
    ConcurrentUpdateError,
    DuplicateBarcodeError,
    DuplicateReportError,
    ReportNotFoundError,
    StoreUnavailableError,
    VoucherNotFoundError,
)
from voucherswap.core.models import (
    ActivityCounts,
    CoinTransaction,
    FailedUpload,
    InboundEvent,
    Report,
    User,
    Voucher,
)
from voucherswap.core.state_machine import VoucherStatus, ensure_transition

from .postgres_pool import close_postgres_pool, get_postgres_pool
from .schema import SCHEMA_STATEMENTS

logger = logging.getLogger(__name__)


def _row_values(record: BaseModel) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key, value in record.model_dump().items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, dict):
            value = Jsonb(value)
        values[key] = value
    return values


class PostgresSession:
    """StoreSession bound to one open transaction."""

    def __init__(self, conn: AsyncConnection) -> None:
        self._conn = conn

    async def _fetchall(self, query: str | sql.Composed, params: Iterable[Any] = ()) -> list[dict[str, Any]]:
        async with self._conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(query, tuple(params))
            return await cur.fetchall()

    async def _fetchone(self, query: str | sql.Composed, params: Iterable[Any] = ()) -> dict[str, Any] | None:
        async with self._conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(query, tuple(params))
            return await cur.fetchone()

    async def _execute(self, query: str | sql.Composed, params: Iterable[Any] = ()) -> int:
        async with self._conn.cursor() as cur:
            await cur.execute(query, tuple(params))
            return cur.rowcount

    async def _insert(self, table: str, record: BaseModel) -> None:
        values = _row_values(record)
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({})").format(
            sql.Identifier(table),
            sql.SQL(", ").join(map(sql.Identifier, values)),
            sql.SQL(", ").join(sql.Placeholder() * len(values)),
        )
        await self._execute(query, values.values())

    # Users -------------------------------------------------------------------

    async def get_user(self, user_id: str) -> User | None:
        row = await self._fetchone(f"SELECT * FROM {DBTable.USERS} WHERE id = %s", (user_id,))
        return User.model_validate(row) if row else None

    async def get_user_by_external_id(self, external_id: str, *, for_update: bool = False) -> User | None:
        query = f"SELECT * FROM {DBTable.USERS} WHERE external_id = %s"
        if for_update:
            query += " FOR UPDATE"
        row = await self._fetchone(query, (external_id,))
        return User.model_validate(row) if row else None

    async def insert_user(self, user: User) -> None:
        try:
            await self._insert(DBTable.USERS, user)
        except errors.UniqueViolation as e:
            raise ConcurrentUpdateError(f"User {user.external_id} registered concurrently") from e

    async def update_user(self, user: User) -> None:
        values = _row_values(user)
        user_id = values.pop("id")
        query = sql.SQL("UPDATE {} SET {} WHERE id = %s").format(
            sql.Identifier(DBTable.USERS),
            sql.SQL(", ").join(
                sql.SQL("{} = {}").format(sql.Identifier(key), sql.Placeholder()) for key in values
            ),
        )
        await self._execute(query, [*values.values(), user_id])

    async def list_users(self) -> list[User]:
        rows = await self._fetchall(f"SELECT * FROM {DBTable.USERS} ORDER BY created_at")
        return [User.model_validate(row) for row in rows]

    async def activity_counts(self, user_id: str) -> ActivityCounts:
        row = await self._fetchone(
            f"""
            SELECT
                (SELECT count(*) FROM {DBTable.VOUCHERS} WHERE uploader_id = %s) AS uploads,
                (SELECT count(*) FROM {DBTable.VOUCHERS} WHERE claimer_id = %s) AS claims,
                (SELECT count(*) FROM {DBTable.REPORTS} WHERE uploader_id = %s) AS reports_against_uploads,
                (SELECT count(*) FROM {DBTable.REPORTS} WHERE reporter_id = %s) AS reports_filed
            """,
            (user_id, user_id, user_id, user_id),
        )
        return ActivityCounts(**row) if row else ActivityCounts()

    async def claimers_between(self, start: datetime, end: datetime) -> list[User]:
        rows = await self._fetchall(
            f"""
            SELECT DISTINCT u.* FROM {DBTable.USERS} u
            JOIN {DBTable.VOUCHERS} v ON v.claimer_id = u.id
            WHERE v.claimed_at >= %s AND v.claimed_at < %s AND NOT u.is_banned
            ORDER BY u.id
            """,
            (start, end),
        )
        return [User.model_validate(row) for row in rows]

    # Ledger ------------------------------------------------------------------

    async def insert_transaction(self, transaction: CoinTransaction) -> None:
        await self._insert(DBTable.TRANSACTIONS, transaction)

    async def list_transactions(self, user_id: str) -> list[CoinTransaction]:
        rows = await self._fetchall(
            f"SELECT * FROM {DBTable.TRANSACTIONS} WHERE user_id = %s ORDER BY created_at, id",
            (user_id,),
        )
        return [CoinTransaction.model_validate(row) for row in rows]

    # Vouchers ----------------------------------------------------------------

    async def get_voucher(self, voucher_id: str) -> Voucher | None:
        row = await self._fetchone(f"SELECT * FROM {DBTable.VOUCHERS} WHERE id = %s", (voucher_id,))
        return Voucher.model_validate(row) if row else None

    async def insert_voucher(self, voucher: Voucher) -> None:
        try:
            await self._insert(DBTable.VOUCHERS, voucher)
        except errors.UniqueViolation as e:
            raise DuplicateBarcodeError(voucher.barcode or "") from e

    async def barcode_in_use(self, barcode: str) -> bool:
        row = await self._fetchone(
            f"SELECT 1 AS hit FROM {DBTable.VOUCHERS} WHERE barcode = %s LIMIT 1", (barcode,)
        )
        return row is not None

    async def find_claimable(
        self,
        denomination: int,
        now: datetime,
        *,
        exclude: Iterable[str] = (),
        limit: int = 1,
    ) -> list[Voucher]:
        rows = await self._fetchall(
            f"""
            SELECT * FROM {DBTable.VOUCHERS}
            WHERE status = %s
              AND denomination = %s
              AND expiry_date > %s
              AND (valid_from IS NULL OR valid_from <= %s)
              AND NOT (id = ANY(%s::text[]))
            ORDER BY expiry_date, created_at, id
            LIMIT %s
            """,
            (VoucherStatus.AVAILABLE.value, denomination, now, now, list(exclude), limit),
        )
        return [Voucher.model_validate(row) for row in rows]

    async def transition_voucher(
        self,
        voucher_id: str,
        current: VoucherStatus,
        target: VoucherStatus,
        *,
        claimer_id: str | None = None,
        claimed_at: datetime | None = None,
    ) -> bool:
        ensure_transition(voucher_id, current, target)
        updated = await self._execute(
            f"""
            UPDATE {DBTable.VOUCHERS}
            SET status = %s,
                claimer_id = COALESCE(%s, claimer_id),
                claimed_at = COALESCE(%s, claimed_at)
            WHERE id = %s AND status = %s
            """,
            (target.value, claimer_id, claimed_at, voucher_id, current.value),
        )
        if updated == 1:
            return True
        if await self.get_voucher(voucher_id) is None:
            raise VoucherNotFoundError(voucher_id)
        return False

    async def expire_vouchers(self, now: datetime) -> int:
        ensure_transition("expiry-sweep", VoucherStatus.AVAILABLE, VoucherStatus.EXPIRED)
        return await self._execute(
            f"UPDATE {DBTable.VOUCHERS} SET status = %s WHERE status = %s AND expiry_date < %s",
            (VoucherStatus.EXPIRED.value, VoucherStatus.AVAILABLE.value, now),
        )

    async def count_claimable(self, now: datetime) -> dict[int, int]:
        rows = await self._fetchall(
            f"""
            SELECT denomination, count(*) AS n FROM {DBTable.VOUCHERS}
            WHERE status = %s AND expiry_date > %s AND (valid_from IS NULL OR valid_from <= %s)
            GROUP BY denomination
            """,
            (VoucherStatus.AVAILABLE.value, now, now),
        )
        return {row["denomination"]: row["n"] for row in rows}

    async def count_uploads_since(self, user_id: str, since: datetime) -> int:
        row = await self._fetchone(
            f"SELECT count(*) AS n FROM {DBTable.VOUCHERS} WHERE uploader_id = %s AND created_at >= %s",
            (user_id, since),
        )
        return row["n"] if row else 0

    async def count_claims_since(self, user_id: str, since: datetime) -> int:
        row = await self._fetchone(
            f"SELECT count(*) AS n FROM {DBTable.VOUCHERS} WHERE claimer_id = %s AND claimed_at >= %s",
            (user_id, since),
        )
        return row["n"] if row else 0

    async def count_uploads(self, user_id: str) -> int:
        row = await self._fetchone(
            f"SELECT count(*) AS n FROM {DBTable.VOUCHERS} WHERE uploader_id = %s", (user_id,)
        )
        return row["n"] if row else 0

    async def recent_uploads(self, user_id: str, limit: int) -> list[Voucher]:
        rows = await self._fetchall(
            f"""
            SELECT * FROM {DBTable.VOUCHERS} WHERE uploader_id = %s
            ORDER BY created_at DESC, id DESC LIMIT %s
            """,
            (user_id, limit),
        )
        return [Voucher.model_validate(row) for row in rows]

    async def recent_claims(self, user_id: str, limit: int) -> list[Voucher]:
        rows = await self._fetchall(
            f"""
            SELECT * FROM {DBTable.VOUCHERS} WHERE claimer_id = %s AND claimed_at IS NOT NULL
            ORDER BY claimed_at DESC, id DESC LIMIT %s
            """,
            (user_id, limit),
        )
        return [Voucher.model_validate(row) for row in rows]

    # Reports -----------------------------------------------------------------

    async def get_report(self, voucher_id: str, reporter_id: str) -> Report | None:
        row = await self._fetchone(
            f"SELECT * FROM {DBTable.REPORTS} WHERE voucher_id = %s AND reporter_id = %s",
            (voucher_id, reporter_id),
        )
        return Report.model_validate(row) if row else None

    async def insert_report(self, report: Report) -> None:
        try:
            await self._insert(DBTable.REPORTS, report)
        except errors.UniqueViolation as e:
            raise DuplicateReportError(report.voucher_id, report.reporter_id) from e

    async def link_replacement(self, report_id: str, replacement_voucher_id: str) -> None:
        updated = await self._execute(
            f"UPDATE {DBTable.REPORTS} SET replacement_voucher_id = %s WHERE id = %s",
            (replacement_voucher_id, report_id),
        )
        if updated != 1:
            raise ReportNotFoundError(report_id)

    async def reported_by(self, reporter_id: str, voucher_ids: Iterable[str]) -> set[str]:
        rows = await self._fetchall(
            f"""
            SELECT voucher_id FROM {DBTable.REPORTS}
            WHERE reporter_id = %s AND voucher_id = ANY(%s::text[])
            """,
            (reporter_id, list(voucher_ids)),
        )
        return {row["voucher_id"] for row in rows}

    async def reported_by_unbanned(self, voucher_ids: Iterable[str]) -> set[str]:
        rows = await self._fetchall(
            f"""
            SELECT DISTINCT r.voucher_id FROM {DBTable.REPORTS} r
            JOIN {DBTable.USERS} u ON u.id = r.reporter_id
            WHERE r.voucher_id = ANY(%s::text[]) AND NOT u.is_banned
            """,
            (list(voucher_ids),),
        )
        return {row["voucher_id"] for row in rows}

    async def delete_reports_for_voucher(self, voucher_id: str) -> int:
        return await self._execute(f"DELETE FROM {DBTable.REPORTS} WHERE voucher_id = %s", (voucher_id,))

    # Failed uploads ----------------------------------------------------------

    async def insert_failed_upload(self, record: FailedUpload) -> None:
        await self._insert(DBTable.FAILED_UPLOADS, record)

    async def list_failed_uploads(self, limit: int) -> list[FailedUpload]:
        rows = await self._fetchall(
            f"SELECT * FROM {DBTable.FAILED_UPLOADS} ORDER BY created_at DESC LIMIT %s", (limit,)
        )
        return [FailedUpload.model_validate(row) for row in rows]

    # Inbound events ----------------------------------------------------------

    async def event_seen(self, event: InboundEvent) -> bool:
        row = await self._fetchone(
            f"SELECT 1 AS hit FROM {DBTable.INBOUND_EVENTS} WHERE event_key = %s", (event.key,)
        )
        return row is not None

    async def register_event(self, event: InboundEvent, now: datetime) -> bool:
        inserted = await self._execute(
            f"""
            INSERT INTO {DBTable.INBOUND_EVENTS} (event_key, seen_at) VALUES (%s, %s)
            ON CONFLICT (event_key) DO NOTHING
            """,
            (event.key, now),
        )
        return inserted == 1

    async def purge_events(self, before: datetime) -> int:
        return await self._execute(
            f"DELETE FROM {DBTable.INBOUND_EVENTS} WHERE seen_at < %s", (before,)
        )


class PostgresStore:
    """ExchangeStore backed by PostgreSQL."""

    def __init__(self, pool: AsyncConnectionPool | None = None) -> None:
        self._pool = pool
        self._shared = pool is None

    async def _get_pool(self) -> AsyncConnectionPool:
        if self._pool is None:
            self._pool = await get_postgres_pool()
        return self._pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PostgresSession]:
        pool = await self._get_pool()
        try:
            async with pool.connection() as conn:
                await conn.set_isolation_level(IsolationLevel.SERIALIZABLE)
                async with conn.transaction():
                    yield PostgresSession(conn)
        except (errors.SerializationFailure, errors.DeadlockDetected) as e:
            logger.info("Serialization conflict, unit of work will be retried: %s", e)
            raise ConcurrentUpdateError(str(e)) from e
        except psycopg.OperationalError as e:
            logger.error("PostgreSQL unavailable: %s", e)
            raise StoreUnavailableError(str(e)) from e

    async def create_schema(self) -> None:
        pool = await self._get_pool()
        async with pool.connection() as conn:
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)
        logger.info("Exchange schema ensured (%d statements)", len(SCHEMA_STATEMENTS))

    async def ping(self) -> bool:
        try:
            pool = await self._get_pool()
            async with pool.connection() as conn:
                await conn.execute("SELECT 1")
            return True
        except Exception as e:
            logger.error("PostgreSQL ping failed: %s", e)
            return False

    async def close(self) -> None:
        if self._shared:
            await close_postgres_pool()
        elif self._pool is not None:
            await self._pool.close()
        self._pool = None
