"""Store contracts for the exchange engine.

All reads and writes of one engine operation happen on a single
``StoreSession`` obtained from ``ExchangeStore.transaction()``. A session is
one atomic, serializable unit: leaving the context normally commits, any
exception rolls everything back.
"""

from __future__ import annotations

from collections.abc import Iterable
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Protocol

from voucherswap.core.models import (
    ActivityCounts,
    CoinTransaction,
    FailedUpload,
    InboundEvent,
    Report,
    User,
    Voucher,
)
from voucherswap.core.state_machine import VoucherStatus


class StoreSession(Protocol):
    """Queries and mutations available inside a unit of work."""

    # Users -------------------------------------------------------------------
    async def get_user(self, user_id: str) -> User | None: ...

    async def get_user_by_external_id(self, external_id: str, *, for_update: bool = False) -> User | None: ...

    async def insert_user(self, user: User) -> None: ...

    async def update_user(self, user: User) -> None: ...

    async def list_users(self) -> list[User]: ...

    async def activity_counts(self, user_id: str) -> ActivityCounts: ...

    async def claimers_between(self, start: datetime, end: datetime) -> list[User]:
        """Distinct non-banned users with a claim in ``[start, end)``."""

    # Ledger ------------------------------------------------------------------
    async def insert_transaction(self, transaction: CoinTransaction) -> None: ...

    async def list_transactions(self, user_id: str) -> list[CoinTransaction]: ...

    # Vouchers ----------------------------------------------------------------
    async def get_voucher(self, voucher_id: str) -> Voucher | None: ...

    async def insert_voucher(self, voucher: Voucher) -> None:
        """Persist a voucher; raises DuplicateBarcodeError on a live barcode clash."""

    async def barcode_in_use(self, barcode: str) -> bool: ...

    async def find_claimable(
        self,
        denomination: int,
        now: datetime,
        *,
        exclude: Iterable[str] = (),
        limit: int = 1,
    ) -> list[Voucher]:
        """Claimable vouchers by soonest expiry, then creation, then id."""

    async def transition_voucher(
        self,
        voucher_id: str,
        current: VoucherStatus,
        target: VoucherStatus,
        *,
        claimer_id: str | None = None,
        claimed_at: datetime | None = None,
    ) -> bool:
        """Move a voucher only if it is still in ``current``; False otherwise."""

    async def expire_vouchers(self, now: datetime) -> int: ...

    async def count_claimable(self, now: datetime) -> dict[int, int]: ...

    async def count_uploads_since(self, user_id: str, since: datetime) -> int: ...

    async def count_claims_since(self, user_id: str, since: datetime) -> int: ...

    async def count_uploads(self, user_id: str) -> int: ...

    async def recent_uploads(self, user_id: str, limit: int) -> list[Voucher]: ...

    async def recent_claims(self, user_id: str, limit: int) -> list[Voucher]: ...

    # Reports -----------------------------------------------------------------
    async def get_report(self, voucher_id: str, reporter_id: str) -> Report | None: ...

    async def insert_report(self, report: Report) -> None:
        """Persist a report; raises DuplicateReportError on a (voucher, reporter) clash."""

    async def link_replacement(self, report_id: str, replacement_voucher_id: str) -> None: ...

    async def reported_by(self, reporter_id: str, voucher_ids: Iterable[str]) -> set[str]:
        """Subset of ``voucher_ids`` that ``reporter_id`` has reported."""

    async def reported_by_unbanned(self, voucher_ids: Iterable[str]) -> set[str]:
        """Subset of ``voucher_ids`` with at least one report from a non-banned user."""

    async def delete_reports_for_voucher(self, voucher_id: str) -> int: ...

    # Failed uploads ----------------------------------------------------------
    async def insert_failed_upload(self, record: FailedUpload) -> None: ...

    async def list_failed_uploads(self, limit: int) -> list[FailedUpload]: ...

    # Inbound events ----------------------------------------------------------
    async def event_seen(self, event: InboundEvent) -> bool: ...

    async def register_event(self, event: InboundEvent, now: datetime) -> bool:
        """Remember ``event``; False if it was already seen."""

    async def purge_events(self, before: datetime) -> int: ...


class ExchangeStore(Protocol):
    """Contract for exchange storage implementations."""

    def transaction(self) -> AbstractAsyncContextManager[StoreSession]: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...
