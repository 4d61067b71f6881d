"""Typed contracts shared by the exchange engine, the stores and the HTTP layer.

This module defines:
- Persisted records (User, Voucher, Report, CoinTransaction, FailedUpload)
- Inbound event identity used for deduplication
- Structured outcomes returned by engine operations
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from voucherswap.core.constants import MAX_COINS, MIN_COINS
from voucherswap.core.state_machine import VoucherStatus


def new_id() -> str:
    return uuid.uuid4().hex


# =============================================================================
# ENUMS
# =============================================================================


class TransactionKind(str, Enum):
    SIGNUP_BONUS = "signup_bonus"
    UPLOAD_REWARD = "upload_reward"
    CLAIM_SPEND = "claim_spend"
    REPORT_REFUND = "report_refund"


class UploadFailureReason(str, Enum):
    """Closed set of reasons an upload can fail, in validation precedence order."""

    INVALID_TYPE = "INVALID_TYPE"
    COULD_NOT_READ_VALID_FROM = "COULD_NOT_READ_VALID_FROM"
    COULD_NOT_READ_EXPIRY_DATE = "COULD_NOT_READ_EXPIRY_DATE"
    EXPIRED = "EXPIRED"
    COULD_NOT_READ_BARCODE = "COULD_NOT_READ_BARCODE"
    DUPLICATE_BARCODE = "DUPLICATE_BARCODE"
    SYSTEM_ERROR = "SYSTEM_ERROR"


class FailureType(str, Enum):
    VALIDATION = "validation"
    SYSTEM = "system"


# =============================================================================
# PERSISTED RECORDS
# =============================================================================


class User(BaseModel):
    """Exchange participant.

    The coin balance is guarded on assignment; the counters are an advisory
    cache rebuilt by ``ExchangeService.backfill_counters`` and never consulted
    by the ban heuristics.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=new_id)
    external_id: str
    username: str | None = None
    first_name: str | None = None
    coins: int = Field(default=0, ge=MIN_COINS, le=MAX_COINS)
    is_banned: bool = False
    banned_at: datetime | None = None
    last_report_at: datetime | None = None
    upload_count: int = 0
    claim_count: int = 0
    upload_report_count: int = 0
    claim_report_count: int = 0
    created_at: datetime
    last_active_at: datetime


class Voucher(BaseModel):
    """A photographed voucher in the shared pool.

    ``expiry_date`` is the last instant of the printed expiry day and
    ``valid_from`` the first instant of the printed start day.
    """

    id: str = Field(default_factory=new_id)
    denomination: int
    status: VoucherStatus = VoucherStatus.AVAILABLE
    image_ref: str
    barcode: str | None = None
    expiry_date: datetime
    valid_from: datetime | None = None
    uploader_id: str
    claimer_id: str | None = None
    claimed_at: datetime | None = None
    created_at: datetime
    raw_extraction: dict[str, Any] = Field(default_factory=dict)

    def is_claimable(self, now: datetime) -> bool:
        """Check the selection predicate for "next available voucher"."""
        if self.status != VoucherStatus.AVAILABLE:
            return False
        if self.expiry_date <= now:
            return False
        return self.valid_from is None or self.valid_from <= now


class Report(BaseModel):
    id: str = Field(default_factory=new_id)
    voucher_id: str
    reporter_id: str
    uploader_id: str
    reason: str
    replacement_voucher_id: str | None = None
    created_at: datetime


class CoinTransaction(BaseModel):
    """Append-only ledger row; ``amount`` is the delta actually applied."""

    id: str = Field(default_factory=new_id)
    user_id: str
    kind: TransactionKind
    amount: int
    voucher_id: str | None = None
    created_at: datetime


class FailedUpload(BaseModel):
    """Triage record for an upload that did not produce a voucher."""

    id: str = Field(default_factory=new_id)
    user_id: str
    image_ref: str
    failure_type: FailureType
    failure_reason: UploadFailureReason
    error_message: str | None = None
    extracted_denomination: str | None = None
    extracted_valid_from: str | None = None
    extracted_expiry_date: str | None = None
    extracted_barcode: str | None = None
    created_at: datetime


@dataclass(frozen=True)
class InboundEvent:
    """Transport identity of a user event, used to drop redelivered messages."""

    channel: str
    message_id: str

    @property
    def key(self) -> str:
        return f"{self.channel}:{self.message_id}"


@dataclass
class ActivityCounts:
    uploads: int = 0
    claims: int = 0
    reports_against_uploads: int = 0
    reports_filed: int = 0


# =============================================================================
# OUTCOMES
# =============================================================================


class UploadStatus(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    SYSTEM_ERROR = "system_error"
    RATE_LIMITED = "rate_limited"
    BANNED = "banned"
    DUPLICATE_EVENT = "duplicate_event"


class ClaimStatus(str, Enum):
    CLAIMED = "claimed"
    INSUFFICIENT_COINS = "insufficient_coins"
    NO_VOUCHERS = "no_vouchers"
    RATE_LIMITED = "rate_limited"
    BANNED = "banned"
    IMAGE_UNAVAILABLE = "image_unavailable"
    DUPLICATE_EVENT = "duplicate_event"


class ReportStatus(str, Enum):
    REPLACED = "replaced"
    REFUNDED = "refunded"
    REFUNDED_WITH_CAVEAT = "refunded_with_caveat"
    ALREADY_REPORTED = "already_reported"
    RATE_LIMITED = "rate_limited"
    BANNED = "banned"
    DUPLICATE_EVENT = "duplicate_event"


class UploadOutcome(BaseModel):
    status: UploadStatus
    message: str
    voucher_id: str | None = None
    denomination: int | None = None
    coins_awarded: int = 0
    balance: int | None = None
    reason: UploadFailureReason | None = None

    @property
    def ok(self) -> bool:
        return self.status == UploadStatus.ACCEPTED


class ClaimOutcome(BaseModel):
    status: ClaimStatus
    message: str
    voucher_id: str | None = None
    denomination: int | None = None
    image_url: str | None = None
    expiry_date: datetime | None = None
    balance: int | None = None

    @property
    def ok(self) -> bool:
        return self.status == ClaimStatus.CLAIMED


class ReportOutcome(BaseModel):
    status: ReportStatus
    message: str
    report_id: str | None = None
    replacement_voucher_id: str | None = None
    image_url: str | None = None
    expiry_date: datetime | None = None
    refunded_coins: int = 0
    balance: int | None = None


class AdmissionOutcome(BaseModel):
    voucher_id: str
    deleted_reports: int


class AvailabilityLevel(str, Enum):
    NONE = "none"
    LOW = "low"
    GOOD = "good"


class DenominationAvailability(BaseModel):
    denomination: int
    count: int
    level: AvailabilityLevel


# =============================================================================
# EXTRACTION
# =============================================================================


class RawExtraction(BaseModel):
    """Untrusted fields read off a voucher photo.

    Accepts the extractor's JSON keys (``type``, ``validFrom``,
    ``expiryDate``) as well as the field names.
    """

    model_config = ConfigDict(populate_by_name=True)

    denomination: int | str | None = Field(default=None, alias="type")
    valid_from: str | None = Field(default=None, alias="validFrom")
    expiry_date: str | None = Field(default=None, alias="expiryDate")
    barcode: str | None = None

    @field_validator("valid_from", "expiry_date", "barcode", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value
