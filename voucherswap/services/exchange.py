"""Voucher exchange engine.

Every user-facing operation is one unit of work on the store: the quota
check, the inventory change, the ledger entry and the inbound-event marker
commit together or not at all. Notifications produced by a unit are
collected in an outbox and handed to the dispatcher only after commit.

Expected results (quota hit, empty pool, ban) come back as outcome models.
Misuse and infrastructure failures are raised (see core.exceptions).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import TypeVar
from zoneinfo import ZoneInfo

from voucherswap.conf.config import Settings, settings
from voucherswap.core import messages
from voucherswap.core.clock import Clock, previous_local_day_bounds, utc_now
from voucherswap.core.constants import (
    CLAIM_SELECTION_ATTEMPTS,
    LOW_AVAILABILITY_THRESHOLD,
    REPORT_REASON_NOT_WORKING,
    VOUCHER_DENOMINATIONS,
)
from voucherswap.core.exceptions import (
    ConcurrentUpdateError,
    DuplicateBarcodeError,
    DuplicateReportError,
    ExtractionError,
    NotAuthorizedError,
    UserNotFoundError,
    VoucherNotFoundError,
    VoucherValidationError,
)
from voucherswap.core.logging import log_event
from voucherswap.core.models import (
    AdmissionOutcome,
    AvailabilityLevel,
    ClaimOutcome,
    ClaimStatus,
    DenominationAvailability,
    FailedUpload,
    InboundEvent,
    RawExtraction,
    Report,
    ReportOutcome,
    ReportStatus,
    TransactionKind,
    UploadFailureReason,
    UploadOutcome,
    UploadStatus,
    User,
    Voucher,
)
from voucherswap.core.state_machine import VoucherStatus
from voucherswap.integrations.vision import VisionExtractor
from voucherswap.services import abuse, ledger
from voucherswap.services.image_store import ImageStore
from voucherswap.services.notifications import Notification, NotificationDispatcher
from voucherswap.services.rate_limiter import check_claim_quota, check_report_quota, check_upload_quota
from voucherswap.services.storage.base import ExchangeStore, StoreSession
from voucherswap.services.validation import failure_record, validate_upload

logger = logging.getLogger(__name__)

T = TypeVar("T")
Outbox = list[Notification]

# Conflicts that a fresh attempt of the whole unit resolves.
_RETRYABLE = (ConcurrentUpdateError, DuplicateBarcodeError, DuplicateReportError)


class _Rollback(Exception):
    """Abort the unit of work but still hand ``outcome`` to the caller."""

    def __init__(self, outcome: object) -> None:
        super().__init__("unit of work rolled back")
        self.outcome = outcome


class ExchangeService:
    """Facade over store, ledger, validation and the ban heuristics."""

    def __init__(
        self,
        store: ExchangeStore,
        image_store: ImageStore,
        extractor: VisionExtractor,
        dispatcher: NotificationDispatcher,
        *,
        clock: Clock = utc_now,
        config: Settings | None = None,
    ) -> None:
        config = config or settings
        self.store = store
        self.image_store = image_store
        self.extractor = extractor
        self.dispatcher = dispatcher
        self.clock = clock
        self.tz = ZoneInfo(config.TIMEZONE)
        self.max_tx_retries = config.STORE_MAX_TX_RETRIES
        self.vision_timeout = config.VISION_TIMEOUT_SECONDS
        self.dedupe_ttl = timedelta(hours=config.EVENT_DEDUPE_TTL_HOURS)

    # =========================================================================
    # UNIT OF WORK
    # =========================================================================

    async def _run(self, work: Callable[[StoreSession, Outbox], Awaitable[T]]) -> T:
        """Run ``work`` in a transaction, retrying lost races, then flush the outbox."""
        for attempt in range(1, self.max_tx_retries + 1):
            outbox: Outbox = []
            try:
                async with self.store.transaction() as session:
                    result = await work(session, outbox)
            except _Rollback as rollback:
                return rollback.outcome  # type: ignore[return-value]
            except _RETRYABLE as e:
                if attempt == self.max_tx_retries:
                    logger.error("Unit of work failed after %d attempts: %s", attempt, e)
                    raise ConcurrentUpdateError(str(e)) from e
                logger.info("Retrying unit of work (%d/%d): %s", attempt, self.max_tx_retries, e)
                continue
            self.dispatcher.schedule_all(outbox)
            return result
        raise ConcurrentUpdateError("Unit of work was never attempted")

    @staticmethod
    async def _require_user(session: StoreSession, external_id: str) -> User:
        user = await session.get_user_by_external_id(external_id, for_update=True)
        if user is None:
            raise UserNotFoundError(external_id)
        return user

    # =========================================================================
    # USERS
    # =========================================================================

    async def register_user(
        self,
        external_id: str,
        username: str | None = None,
        first_name: str | None = None,
    ) -> User:
        """Return the user, creating it with the signup bonus on first contact."""

        async def work(session: StoreSession, outbox: Outbox) -> User:
            now = self.clock()
            user = await session.get_user_by_external_id(external_id, for_update=True)
            if user is not None:
                user.last_active_at = now
                if username:
                    user.username = username
                if first_name:
                    user.first_name = first_name
                await session.update_user(user)
                return user

            user = User(
                external_id=external_id,
                username=username,
                first_name=first_name,
                created_at=now,
                last_active_at=now,
            )
            await session.insert_user(user)
            await ledger.grant_signup_bonus(session, user, now)
            log_event(logger, event="user_registered", user_id=user.id, balance=user.coins)
            return user

        return await self._run(work)

    async def get_user(self, external_id: str) -> User:
        async def work(session: StoreSession, outbox: Outbox) -> User:
            user = await session.get_user_by_external_id(external_id)
            if user is None:
                raise UserNotFoundError(external_id)
            return user

        return await self._run(work)

    async def get_balance(self, external_id: str) -> int:
        return (await self.get_user(external_id)).coins

    # =========================================================================
    # UPLOAD
    # =========================================================================

    async def upload_voucher(
        self,
        external_id: str,
        image_ref: str,
        event: InboundEvent | None = None,
    ) -> UploadOutcome:
        """Extract, validate and persist an uploaded voucher photo.

        The vision call runs outside any transaction; the ban and quota checks
        are repeated inside the unit that persists the voucher.
        """
        precheck = await self._run(lambda session, outbox: self._upload_gate(session, external_id, event))
        if precheck is not None:
            return precheck

        now = self.clock()
        try:
            extraction = await asyncio.wait_for(self.extractor.extract(image_ref, now), timeout=self.vision_timeout)
        except (ExtractionError, TimeoutError) as e:
            return await self._record_system_error(external_id, image_ref, e)

        async def work(session: StoreSession, outbox: Outbox) -> UploadOutcome:
            if event is not None and not await session.register_event(event, now):
                return UploadOutcome(status=UploadStatus.DUPLICATE_EVENT, message=messages.DUPLICATE_EVENT)
            gate = await self._upload_gate(session, external_id, None)
            if gate is not None:
                return gate
            user = await self._require_user(session, external_id)
            return await self._persist_upload(session, user, image_ref, extraction)

        return await self._run(work)

    async def _upload_gate(
        self,
        session: StoreSession,
        external_id: str,
        event: InboundEvent | None,
    ) -> UploadOutcome | None:
        user = await self._require_user(session, external_id)
        if user.is_banned:
            return UploadOutcome(status=UploadStatus.BANNED, message=messages.BANNED)
        if event is not None and await session.event_seen(event):
            return UploadOutcome(status=UploadStatus.DUPLICATE_EVENT, message=messages.DUPLICATE_EVENT)
        if not await check_upload_quota(session, user, self.clock()):
            return UploadOutcome(status=UploadStatus.RATE_LIMITED, message=messages.UPLOAD_RATE_LIMITED)
        return None

    async def _persist_upload(
        self,
        session: StoreSession,
        user: User,
        image_ref: str,
        extraction: RawExtraction,
    ) -> UploadOutcome:
        now = self.clock()
        try:
            validated = await validate_upload(extraction, now, self.tz, session.barcode_in_use)
        except VoucherValidationError as e:
            await session.insert_failed_upload(
                failure_record(user.id, image_ref, now, reason=e.reason, extraction=extraction)
            )
            log_event(logger, event="voucher_rejected", user_id=user.id, reason=e.reason.value)
            return UploadOutcome(
                status=UploadStatus.REJECTED,
                message=messages.rejection(e.reason, e.expiry_date),
                reason=e.reason,
                balance=user.coins,
            )

        voucher = Voucher(
            denomination=validated.denomination,
            status=VoucherStatus.PROCESSING,
            image_ref=image_ref,
            barcode=validated.barcode,
            expiry_date=validated.expiry_date,
            valid_from=validated.valid_from,
            uploader_id=user.id,
            created_at=now,
            raw_extraction=extraction.model_dump(by_alias=True),
        )
        await session.insert_voucher(voucher)
        await session.transition_voucher(voucher.id, VoucherStatus.PROCESSING, VoucherStatus.AVAILABLE)

        reward = await ledger.credit(
            session,
            user,
            ledger.upload_reward(voucher.denomination),
            TransactionKind.UPLOAD_REWARD,
            now,
            voucher_id=voucher.id,
        )
        user.upload_count += 1
        user.last_active_at = now
        await session.update_user(user)

        log_event(
            logger,
            event="voucher_accepted",
            user_id=user.id,
            voucher_id=voucher.id,
            denomination=voucher.denomination,
            balance=user.coins,
        )
        return UploadOutcome(
            status=UploadStatus.ACCEPTED,
            message=messages.accepted(voucher.denomination, reward.amount, user.coins),
            voucher_id=voucher.id,
            denomination=voucher.denomination,
            coins_awarded=reward.amount,
            balance=user.coins,
        )

    async def _record_system_error(self, external_id: str, image_ref: str, error: Exception) -> UploadOutcome:
        reason = UploadFailureReason.SYSTEM_ERROR

        async def work(session: StoreSession, outbox: Outbox) -> UploadOutcome:
            user = await self._require_user(session, external_id)
            await session.insert_failed_upload(
                failure_record(
                    user.id,
                    image_ref,
                    self.clock(),
                    reason=reason,
                    error_message=str(error) or type(error).__name__,
                )
            )
            log_event(logger, event="upload_system_error", level="error", user_id=user.id, error=str(error)[:200])
            return UploadOutcome(status=UploadStatus.SYSTEM_ERROR, message=messages.rejection(reason), reason=reason)

        return await self._run(work)

    # =========================================================================
    # CLAIM
    # =========================================================================

    async def claim_voucher(
        self,
        external_id: str,
        denomination: int,
        event: InboundEvent | None = None,
    ) -> ClaimOutcome:
        """Spend coins on the next available voucher of ``denomination``.

        If the chosen voucher's image cannot be resolved the whole unit is
        rolled back, which returns the voucher to the pool and undoes the
        debit.
        """
        if denomination not in VOUCHER_DENOMINATIONS:
            raise ValueError(f"Unsupported denomination: {denomination}")

        async def work(session: StoreSession, outbox: Outbox) -> ClaimOutcome:
            now = self.clock()
            if event is not None and not await session.register_event(event, now):
                return ClaimOutcome(status=ClaimStatus.DUPLICATE_EVENT, message=messages.DUPLICATE_EVENT)
            user = await self._require_user(session, external_id)
            if user.is_banned:
                return ClaimOutcome(status=ClaimStatus.BANNED, message=messages.BANNED)

            cost = ledger.claim_cost(denomination)
            if user.coins < cost:
                return ClaimOutcome(
                    status=ClaimStatus.INSUFFICIENT_COINS,
                    message=messages.insufficient_coins(cost),
                    balance=user.coins,
                )
            if not await check_claim_quota(session, user, now):
                return ClaimOutcome(
                    status=ClaimStatus.RATE_LIMITED,
                    message=messages.CLAIM_RATE_LIMITED,
                    balance=user.coins,
                )

            voucher = await self._select_and_claim(session, denomination, user, now)
            if voucher is None:
                return ClaimOutcome(
                    status=ClaimStatus.NO_VOUCHERS,
                    message=messages.no_vouchers(denomination),
                    balance=user.coins,
                )

            balance_before = user.coins
            await ledger.debit(session, user, cost, TransactionKind.CLAIM_SPEND, now, voucher_id=voucher.id)
            user.claim_count += 1
            user.last_active_at = now
            await session.update_user(user)

            image_url = await self.image_store.resolve(voucher.image_ref)
            if image_url is None:
                log_event(
                    logger,
                    event="claim_image_missing",
                    level="warning",
                    user_id=user.id,
                    voucher_id=voucher.id,
                )
                raise _Rollback(
                    ClaimOutcome(
                        status=ClaimStatus.IMAGE_UNAVAILABLE,
                        message=messages.IMAGE_UNAVAILABLE,
                        balance=balance_before,
                    )
                )

            log_event(
                logger,
                event="voucher_claimed",
                user_id=user.id,
                voucher_id=voucher.id,
                denomination=denomination,
                balance=user.coins,
            )
            return ClaimOutcome(
                status=ClaimStatus.CLAIMED,
                message=messages.claimed(denomination, voucher.expiry_date, user.coins),
                voucher_id=voucher.id,
                denomination=denomination,
                image_url=image_url,
                expiry_date=voucher.expiry_date,
                balance=user.coins,
            )

        return await self._run(work)

    async def _select_and_claim(
        self,
        session: StoreSession,
        denomination: int,
        user: User,
        now: datetime,
        *,
        require_image: bool = False,
    ) -> Voucher | None:
        """Claim the best candidate, moving on when another claim got there first.

        With ``require_image`` the candidate's image is resolved before it is
        claimed and a candidate without one is returned unclaimed.
        """
        tried: set[str] = set()
        for _ in range(CLAIM_SELECTION_ATTEMPTS):
            candidates = await session.find_claimable(denomination, now, exclude=tried, limit=1)
            if not candidates:
                return None
            voucher = candidates[0]
            if require_image and await self.image_store.resolve(voucher.image_ref) is None:
                return voucher
            claimed = await session.transition_voucher(
                voucher.id,
                VoucherStatus.AVAILABLE,
                VoucherStatus.CLAIMED,
                claimer_id=user.id,
                claimed_at=now,
            )
            if claimed:
                return voucher.model_copy(
                    update={"status": VoucherStatus.CLAIMED, "claimer_id": user.id, "claimed_at": now}
                )
            tried.add(voucher.id)
            log_event(logger, event="claim_retry_selection", user_id=user.id, voucher_id=voucher.id)
        return None

    # =========================================================================
    # REPORT
    # =========================================================================

    async def report_voucher(
        self,
        external_id: str,
        voucher_id: str,
        event: InboundEvent | None = None,
    ) -> ReportOutcome:
        """Report a claimed voucher as not working and compensate the reporter.

        Raises:
            VoucherNotFoundError: Unknown voucher
            NotAuthorizedError: The caller is not the voucher's claimer
        """

        async def work(session: StoreSession, outbox: Outbox) -> ReportOutcome:
            now = self.clock()
            if event is not None and not await session.register_event(event, now):
                return ReportOutcome(status=ReportStatus.DUPLICATE_EVENT, message=messages.DUPLICATE_EVENT)
            user = await self._require_user(session, external_id)
            if user.is_banned:
                return ReportOutcome(status=ReportStatus.BANNED, message=messages.BANNED)
            if not check_report_quota(user, now, self.tz):
                return ReportOutcome(status=ReportStatus.RATE_LIMITED, message=messages.REPORT_RATE_LIMITED)

            voucher = await session.get_voucher(voucher_id)
            if voucher is None:
                raise VoucherNotFoundError(voucher_id)
            if voucher.claimer_id != user.id:
                raise NotAuthorizedError(user.id, voucher_id, "report")

            # An admission deletes the report row but leaves the voucher reported.
            existing = await session.get_report(voucher.id, user.id)
            if existing is not None or voucher.status == VoucherStatus.REPORTED:
                return ReportOutcome(
                    status=ReportStatus.ALREADY_REPORTED,
                    message=messages.ALREADY_REPORTED,
                    report_id=existing.id if existing else None,
                )

            if await self._reporter_trips_ban(session, user, voucher.id):
                user.is_banned = True
                user.banned_at = now
                await session.update_user(user)
                outbox.append(Notification(user.external_id, messages.BANNED))
                log_event(logger, event="reporter_banned", level="warning", user_id=user.id, voucher_id=voucher.id)
                return ReportOutcome(status=ReportStatus.BANNED, message=messages.REPORTER_BANNED)

            if not await session.transition_voucher(voucher.id, VoucherStatus.CLAIMED, VoucherStatus.REPORTED):
                raise ConcurrentUpdateError(f"Voucher {voucher.id} changed while being reported")
            report = Report(
                voucher_id=voucher.id,
                reporter_id=user.id,
                uploader_id=voucher.uploader_id,
                reason=REPORT_REASON_NOT_WORKING,
                created_at=now,
            )
            await session.insert_report(report)
            user.last_report_at = now
            user.claim_report_count += 1
            user.last_active_at = now
            await session.update_user(user)

            uploader = user if voucher.uploader_id == user.id else await session.get_user(voucher.uploader_id)
            if uploader is not None:
                uploader.upload_report_count += 1
                await session.update_user(uploader)
                await self._check_uploader(session, uploader, now, outbox)

            log_event(logger, event="report_recorded", user_id=user.id, voucher_id=voucher.id, report_id=report.id)
            return await self._compensate(session, user, voucher, report, now)

        return await self._run(work)

    async def _reporter_trips_ban(self, session: StoreSession, user: User, voucher_id: str) -> bool:
        policy = abuse.reporter_policy()
        recent_ids = [v.id for v in await session.recent_claims(user.id, policy.window)]
        already = await session.reported_by(user.id, recent_ids)
        evaluation = abuse.evaluate_window(abuse.reporter_window(recent_ids, already, voucher_id), policy)
        if evaluation.banned:
            logger.warning(
                "Reporter %s flagged %d of last %d claims", user.id, evaluation.flagged, evaluation.window_size
            )
        return evaluation.banned

    async def _check_uploader(self, session: StoreSession, uploader: User, now: datetime, outbox: Outbox) -> None:
        if uploader.is_banned:
            return
        policy = abuse.uploader_policy(await session.count_uploads(uploader.id))
        recent_ids = [v.id for v in await session.recent_uploads(uploader.id, policy.window)]
        flagged = await session.reported_by_unbanned(recent_ids)
        evaluation = abuse.evaluate_window(abuse.uploader_window(recent_ids, flagged), policy)
        if not evaluation.banned:
            return
        uploader.is_banned = True
        uploader.banned_at = now
        await session.update_user(uploader)
        outbox.append(Notification(uploader.external_id, messages.UPLOADER_BANNED))
        log_event(
            logger,
            event="uploader_banned",
            level="warning",
            user_id=uploader.id,
            count=evaluation.flagged,
        )

    async def _compensate(
        self,
        session: StoreSession,
        user: User,
        reported: Voucher,
        report: Report,
        now: datetime,
    ) -> ReportOutcome:
        """Issue a free replacement, or refund the claim cost."""
        replacement = await self._select_and_claim(session, reported.denomination, user, now, require_image=True)

        if replacement is not None and replacement.status == VoucherStatus.CLAIMED:
            image_url = await self.image_store.resolve(replacement.image_ref)
            await session.link_replacement(report.id, replacement.id)
            user.claim_count += 1
            await session.update_user(user)
            log_event(
                logger,
                event="report_replaced",
                user_id=user.id,
                voucher_id=replacement.id,
                report_id=report.id,
            )
            return ReportOutcome(
                status=ReportStatus.REPLACED,
                message=messages.replacement(reported.denomination),
                report_id=report.id,
                replacement_voucher_id=replacement.id,
                image_url=image_url,
                expiry_date=replacement.expiry_date,
                balance=user.coins,
            )

        refund = await ledger.credit(
            session,
            user,
            ledger.claim_cost(reported.denomination),
            TransactionKind.REPORT_REFUND,
            now,
            voucher_id=reported.id,
        )
        caveat = replacement is not None
        log_event(
            logger,
            event="report_refunded",
            user_id=user.id,
            voucher_id=reported.id,
            reason="replacement image missing" if caveat else "no replacement",
            balance=user.coins,
        )
        return ReportOutcome(
            status=ReportStatus.REFUNDED_WITH_CAVEAT if caveat else ReportStatus.REFUNDED,
            message=messages.REFUNDED_WITH_CAVEAT if caveat else messages.REFUNDED,
            report_id=report.id,
            refunded_coins=refund.amount,
            balance=user.coins,
        )

    # =========================================================================
    # OPERATOR
    # =========================================================================

    async def admit_uploader_use(self, uploader_external_id: str, voucher_id: str) -> AdmissionOutcome:
        """Delete every report on a voucher its uploader says they used themselves."""

        async def work(session: StoreSession, outbox: Outbox) -> AdmissionOutcome:
            user = await self._require_user(session, uploader_external_id)
            voucher = await session.get_voucher(voucher_id)
            if voucher is None:
                raise VoucherNotFoundError(voucher_id)
            if voucher.uploader_id != user.id:
                raise NotAuthorizedError(user.id, voucher_id, "admit use of")
            deleted = await session.delete_reports_for_voucher(voucher_id)
            user.upload_report_count = max(0, user.upload_report_count - deleted)
            await session.update_user(user)
            log_event(logger, event="uploader_admission", user_id=user.id, voucher_id=voucher_id, count=deleted)
            return AdmissionOutcome(voucher_id=voucher_id, deleted_reports=deleted)

        return await self._run(work)

    async def ban_user(self, external_id: str) -> User:
        async def work(session: StoreSession, outbox: Outbox) -> User:
            user = await self._require_user(session, external_id)
            if not user.is_banned:
                user.is_banned = True
                user.banned_at = self.clock()
                await session.update_user(user)
                outbox.append(Notification(user.external_id, messages.BANNED))
                log_event(logger, event="user_banned_manually", level="warning", user_id=user.id)
            return user

        return await self._run(work)

    async def unban_user(self, external_id: str) -> User:
        async def work(session: StoreSession, outbox: Outbox) -> User:
            user = await self._require_user(session, external_id)
            if user.is_banned:
                user.is_banned = False
                user.banned_at = None
                await session.update_user(user)
                log_event(logger, event="user_unbanned", user_id=user.id)
            return user

        return await self._run(work)

    async def backfill_counters(self) -> int:
        """Rebuild the advisory counters from the voucher and report tables."""

        async def work(session: StoreSession, outbox: Outbox) -> int:
            changed = 0
            for user in await session.list_users():
                counts = await session.activity_counts(user.id)
                if (
                    user.upload_count,
                    user.claim_count,
                    user.upload_report_count,
                    user.claim_report_count,
                ) == (counts.uploads, counts.claims, counts.reports_against_uploads, counts.reports_filed):
                    continue
                user.upload_count = counts.uploads
                user.claim_count = counts.claims
                user.upload_report_count = counts.reports_against_uploads
                user.claim_report_count = counts.reports_filed
                await session.update_user(user)
                changed += 1
            log_event(logger, event="counters_backfilled", count=changed)
            return changed

        return await self._run(work)

    async def list_failed_uploads(self, limit: int = 50) -> list[FailedUpload]:
        return await self._run(lambda session, outbox: session.list_failed_uploads(limit))

    async def voucher_availability(self) -> list[DenominationAvailability]:
        now = self.clock()
        counts = await self._run(lambda session, outbox: session.count_claimable(now))
        rows = []
        for denomination in VOUCHER_DENOMINATIONS:
            count = counts.get(denomination, 0)
            if count == 0:
                level = AvailabilityLevel.NONE
            elif count < LOW_AVAILABILITY_THRESHOLD:
                level = AvailabilityLevel.LOW
            else:
                level = AvailabilityLevel.GOOD
            rows.append(DenominationAvailability(denomination=denomination, count=count, level=level))
        return rows

    # =========================================================================
    # SCHEDULED JOBS
    # =========================================================================

    async def expire_vouchers(self) -> int:
        now = self.clock()
        expired = await self._run(lambda session, outbox: session.expire_vouchers(now))
        log_event(logger, event="vouchers_expired", count=expired)
        return expired

    async def send_upload_reminders(self) -> int:
        """Remind yesterday's claimers to upload the vouchers they received at the till."""
        start, end = previous_local_day_bounds(self.clock(), self.tz)

        async def work(session: StoreSession, outbox: Outbox) -> int:
            claimers = await session.claimers_between(start, end)
            outbox.extend(Notification(user.external_id, messages.UPLOAD_REMINDER) for user in claimers)
            return len(claimers)

        scheduled = await self._run(work)
        log_event(logger, event="reminders_scheduled", count=scheduled)
        return scheduled

    async def purge_inbound_events(self) -> int:
        cutoff = self.clock() - self.dedupe_ttl
        purged = await self._run(lambda session, outbox: session.purge_events(cutoff))
        log_event(logger, event="inbound_events_purged", count=purged)
        return purged
