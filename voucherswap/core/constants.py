"""Centralized constants for the voucher exchange.

Coin economy, quotas and ban thresholds are fixed values, not settings:
changing any of them changes the rules users agreed to.
"""

from __future__ import annotations

from datetime import timedelta


# =============================================================================
# COIN ECONOMY
# =============================================================================

VOUCHER_DENOMINATIONS: tuple[int, ...] = (5, 10, 20)

# Denomination 0 marks an unrecognised voucher; it never reaches the store.
INVALID_DENOMINATION = 0

# Coins earned for uploading a voucher, inversely proportional to supply.
UPLOAD_REWARDS: dict[int, int] = {
    5: 15,
    10: 10,
    20: 5,
}

# Coins spent to claim a voucher.
CLAIM_COSTS: dict[int, int] = {
    5: 15,
    10: 10,
    20: 5,
}

SIGNUP_BONUS = 20

MIN_COINS = 0
MAX_COINS = 100


# =============================================================================
# QUOTAS
# =============================================================================

UPLOAD_LIMIT_PER_WINDOW = 10
CLAIM_LIMIT_PER_WINDOW = 5
QUOTA_WINDOW = timedelta(hours=24)


# =============================================================================
# VALIDATION
# =============================================================================

# Dates older than this are treated as misreads rather than real vouchers.
MAX_DATE_AGE = timedelta(days=365)

# Vouchers expiring today are refused from this local hour on.
SAME_DAY_CUTOFF_HOUR = 21


# =============================================================================
# ABUSE HEURISTICS
# =============================================================================

REPORTER_WINDOW = 5
REPORTER_BAN_THRESHOLD = 3

UPLOADER_WINDOW = 5
UPLOADER_BAN_THRESHOLD = 3

# Uploaders with at least this many lifetime uploads are judged on a wider window.
HIGH_VOLUME_UPLOAD_COUNT = 20
HIGH_VOLUME_UPLOADER_WINDOW = 10
HIGH_VOLUME_UPLOADER_BAN_THRESHOLD = 5


# =============================================================================
# CLAIM SELECTION
# =============================================================================

# Extra selection passes when a chosen voucher was taken by a concurrent claim.
CLAIM_SELECTION_ATTEMPTS = 3

REPORT_REASON_NOT_WORKING = "not_working"

# Availability labels: below this count a denomination is reported as "low".
LOW_AVAILABILITY_THRESHOLD = 5


class DBTable:
    """Database table names constants."""

    USERS = "users"
    VOUCHERS = "vouchers"
    REPORTS = "reports"
    TRANSACTIONS = "transactions"
    FAILED_UPLOADS = "failed_uploads"
    INBOUND_EVENTS = "inbound_events"
