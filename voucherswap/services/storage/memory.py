"""Process-local exchange store.

Suitable for tests and single-process deployments. Units of work are
serialized by one asyncio lock and run against a deep copy of the state that
replaces the committed state only when the unit finishes without error.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime

from voucherswap.core.exceptions import (
    ConcurrentUpdateError,
    DuplicateBarcodeError,
    DuplicateReportError,
    ReportNotFoundError,
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

logger = logging.getLogger(__name__)


@dataclass
class _State:
    users: dict[str, User] = field(default_factory=dict)
    vouchers: dict[str, Voucher] = field(default_factory=dict)
    reports: dict[str, Report] = field(default_factory=dict)
    transactions: list[CoinTransaction] = field(default_factory=list)
    failed_uploads: list[FailedUpload] = field(default_factory=list)
    events: dict[str, datetime] = field(default_factory=dict)


def _selection_key(voucher: Voucher) -> tuple[datetime, datetime, str]:
    return (voucher.expiry_date, voucher.created_at, voucher.id)


class InMemorySession:
    """StoreSession over a private working copy."""

    def __init__(self, state: _State) -> None:
        self._state = state

    # Users -------------------------------------------------------------------

    async def get_user(self, user_id: str) -> User | None:
        user = self._state.users.get(user_id)
        return user.model_copy() if user else None

    async def get_user_by_external_id(self, external_id: str, *, for_update: bool = False) -> User | None:
        for user in self._state.users.values():
            if user.external_id == external_id:
                return user.model_copy()
        return None

    async def insert_user(self, user: User) -> None:
        if await self.get_user_by_external_id(user.external_id) is not None:
            raise ConcurrentUpdateError(f"User {user.external_id} already exists")
        self._state.users[user.id] = user.model_copy()

    async def update_user(self, user: User) -> None:
        self._state.users[user.id] = user.model_copy()

    async def list_users(self) -> list[User]:
        return [u.model_copy() for u in self._state.users.values()]

    async def activity_counts(self, user_id: str) -> ActivityCounts:
        vouchers = self._state.vouchers.values()
        reports = self._state.reports.values()
        return ActivityCounts(
            uploads=sum(1 for v in vouchers if v.uploader_id == user_id),
            claims=sum(1 for v in vouchers if v.claimer_id == user_id),
            reports_against_uploads=sum(1 for r in reports if r.uploader_id == user_id),
            reports_filed=sum(1 for r in reports if r.reporter_id == user_id),
        )

    async def claimers_between(self, start: datetime, end: datetime) -> list[User]:
        claimer_ids = {
            v.claimer_id
            for v in self._state.vouchers.values()
            if v.claimer_id and v.claimed_at and start <= v.claimed_at < end
        }
        users = [self._state.users[uid] for uid in sorted(claimer_ids) if uid in self._state.users]
        return [u.model_copy() for u in users if not u.is_banned]

    # Ledger ------------------------------------------------------------------

    async def insert_transaction(self, transaction: CoinTransaction) -> None:
        self._state.transactions.append(transaction.model_copy())

    async def list_transactions(self, user_id: str) -> list[CoinTransaction]:
        return [t.model_copy() for t in self._state.transactions if t.user_id == user_id]

    # Vouchers ----------------------------------------------------------------

    async def get_voucher(self, voucher_id: str) -> Voucher | None:
        voucher = self._state.vouchers.get(voucher_id)
        return voucher.model_copy() if voucher else None

    async def insert_voucher(self, voucher: Voucher) -> None:
        if voucher.barcode and await self.barcode_in_use(voucher.barcode):
            raise DuplicateBarcodeError(voucher.barcode)
        self._state.vouchers[voucher.id] = voucher.model_copy()

    async def barcode_in_use(self, barcode: str) -> bool:
        return any(v.barcode == barcode for v in self._state.vouchers.values())

    async def find_claimable(
        self,
        denomination: int,
        now: datetime,
        *,
        exclude: Iterable[str] = (),
        limit: int = 1,
    ) -> list[Voucher]:
        excluded = set(exclude)
        candidates = [
            v
            for v in self._state.vouchers.values()
            if v.denomination == denomination and v.id not in excluded and v.is_claimable(now)
        ]
        candidates.sort(key=_selection_key)
        return [v.model_copy() for v in candidates[:limit]]

    async def transition_voucher(
        self,
        voucher_id: str,
        current: VoucherStatus,
        target: VoucherStatus,
        *,
        claimer_id: str | None = None,
        claimed_at: datetime | None = None,
    ) -> bool:
        voucher = self._state.vouchers.get(voucher_id)
        if voucher is None:
            raise VoucherNotFoundError(voucher_id)
        ensure_transition(voucher_id, current, target)
        if voucher.status != current:
            return False
        updates: dict[str, object] = {"status": target}
        if claimer_id is not None:
            updates["claimer_id"] = claimer_id
            updates["claimed_at"] = claimed_at
        self._state.vouchers[voucher_id] = voucher.model_copy(update=updates)
        return True

    async def expire_vouchers(self, now: datetime) -> int:
        expired = 0
        for voucher in list(self._state.vouchers.values()):
            if voucher.status == VoucherStatus.AVAILABLE and voucher.expiry_date < now:
                await self.transition_voucher(voucher.id, VoucherStatus.AVAILABLE, VoucherStatus.EXPIRED)
                expired += 1
        return expired

    async def count_claimable(self, now: datetime) -> dict[int, int]:
        counts: dict[int, int] = {}
        for voucher in self._state.vouchers.values():
            if voucher.is_claimable(now):
                counts[voucher.denomination] = counts.get(voucher.denomination, 0) + 1
        return counts

    async def count_uploads_since(self, user_id: str, since: datetime) -> int:
        return sum(
            1 for v in self._state.vouchers.values() if v.uploader_id == user_id and v.created_at >= since
        )

    async def count_claims_since(self, user_id: str, since: datetime) -> int:
        return sum(
            1
            for v in self._state.vouchers.values()
            if v.claimer_id == user_id and v.claimed_at is not None and v.claimed_at >= since
        )

    async def count_uploads(self, user_id: str) -> int:
        return sum(1 for v in self._state.vouchers.values() if v.uploader_id == user_id)

    async def recent_uploads(self, user_id: str, limit: int) -> list[Voucher]:
        uploads = [v for v in self._state.vouchers.values() if v.uploader_id == user_id]
        uploads.sort(key=lambda v: (v.created_at, v.id), reverse=True)
        return [v.model_copy() for v in uploads[:limit]]

    async def recent_claims(self, user_id: str, limit: int) -> list[Voucher]:
        claims = [
            v for v in self._state.vouchers.values() if v.claimer_id == user_id and v.claimed_at is not None
        ]
        claims.sort(key=lambda v: (v.claimed_at, v.id), reverse=True)
        return [v.model_copy() for v in claims[:limit]]

    # Reports -----------------------------------------------------------------

    async def get_report(self, voucher_id: str, reporter_id: str) -> Report | None:
        for report in self._state.reports.values():
            if report.voucher_id == voucher_id and report.reporter_id == reporter_id:
                return report.model_copy()
        return None

    async def insert_report(self, report: Report) -> None:
        if await self.get_report(report.voucher_id, report.reporter_id) is not None:
            raise DuplicateReportError(report.voucher_id, report.reporter_id)
        self._state.reports[report.id] = report.model_copy()

    async def link_replacement(self, report_id: str, replacement_voucher_id: str) -> None:
        report = self._state.reports.get(report_id)
        if report is None:
            raise ReportNotFoundError(report_id)
        self._state.reports[report_id] = report.model_copy(
            update={"replacement_voucher_id": replacement_voucher_id}
        )

    async def reported_by(self, reporter_id: str, voucher_ids: Iterable[str]) -> set[str]:
        wanted = set(voucher_ids)
        return {
            r.voucher_id
            for r in self._state.reports.values()
            if r.reporter_id == reporter_id and r.voucher_id in wanted
        }

    async def reported_by_unbanned(self, voucher_ids: Iterable[str]) -> set[str]:
        wanted = set(voucher_ids)
        found: set[str] = set()
        for report in self._state.reports.values():
            if report.voucher_id not in wanted:
                continue
            reporter = self._state.users.get(report.reporter_id)
            if reporter is not None and not reporter.is_banned:
                found.add(report.voucher_id)
        return found

    async def delete_reports_for_voucher(self, voucher_id: str) -> int:
        doomed = [rid for rid, r in self._state.reports.items() if r.voucher_id == voucher_id]
        for rid in doomed:
            del self._state.reports[rid]
        return len(doomed)

    # Failed uploads ----------------------------------------------------------

    async def insert_failed_upload(self, record: FailedUpload) -> None:
        self._state.failed_uploads.append(record.model_copy())

    async def list_failed_uploads(self, limit: int) -> list[FailedUpload]:
        records = sorted(self._state.failed_uploads, key=lambda r: r.created_at, reverse=True)
        return [r.model_copy() for r in records[:limit]]

    # Inbound events ----------------------------------------------------------

    async def event_seen(self, event: InboundEvent) -> bool:
        return event.key in self._state.events

    async def register_event(self, event: InboundEvent, now: datetime) -> bool:
        if event.key in self._state.events:
            return False
        self._state.events[event.key] = now
        return True

    async def purge_events(self, before: datetime) -> int:
        stale = [key for key, seen_at in self._state.events.items() if seen_at < before]
        for key in stale:
            del self._state.events[key]
        return len(stale)


class InMemoryStore:
    """ExchangeStore kept in process memory."""

    def __init__(self) -> None:
        self._state = _State()
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemorySession]:
        async with self._lock:
            working = deepcopy(self._state)
            yield InMemorySession(working)
            self._state = working

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        logger.debug("InMemoryStore closed")
