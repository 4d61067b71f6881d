"""
Voucher lifecycle state machine.
================================
Single source of truth for:
- Voucher states (enum)
- Allowed forward transitions (FSM table)

Every status write in the stores goes through ``ensure_transition`` so that a
voucher can only ever move forward through the table below.
"""

from __future__ import annotations

from enum import Enum

from voucherswap.core.exceptions import InvalidTransitionError


class VoucherStatus(str, Enum):
    """Voucher lifecycle states."""

    PROCESSING = "processing"
    AVAILABLE = "available"
    CLAIMED = "claimed"
    REPORTED = "reported"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return not TRANSITIONS.get(self)


# =============================================================================
# TRANSITIONS
# =============================================================================

# A replacement for a reported voucher is a *different* voucher moving
# available -> claimed; the reported instance itself never leaves REPORTED.
TRANSITIONS: dict[VoucherStatus, frozenset[VoucherStatus]] = {
    VoucherStatus.PROCESSING: frozenset({VoucherStatus.AVAILABLE}),
    VoucherStatus.AVAILABLE: frozenset({VoucherStatus.CLAIMED, VoucherStatus.EXPIRED}),
    VoucherStatus.CLAIMED: frozenset({VoucherStatus.REPORTED}),
    VoucherStatus.REPORTED: frozenset(),
    VoucherStatus.EXPIRED: frozenset(),
}


def can_transition(current: VoucherStatus, target: VoucherStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(voucher_id: str, current: VoucherStatus, target: VoucherStatus) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is in the table."""
    if not can_transition(current, target):
        raise InvalidTransitionError(voucher_id, current.value, target.value)
