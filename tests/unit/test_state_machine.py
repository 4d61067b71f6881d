"""Tests for the voucher lifecycle table."""

import pytest

from voucherswap.core.exceptions import InvalidTransitionError
from voucherswap.core.state_machine import TRANSITIONS, VoucherStatus, can_transition, ensure_transition


pytestmark = pytest.mark.unit


class TestTransitions:
    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (VoucherStatus.PROCESSING, VoucherStatus.AVAILABLE),
            (VoucherStatus.AVAILABLE, VoucherStatus.CLAIMED),
            (VoucherStatus.AVAILABLE, VoucherStatus.EXPIRED),
            (VoucherStatus.CLAIMED, VoucherStatus.REPORTED),
        ],
    )
    def test_forward_transitions_are_allowed(self, current, target):
        assert can_transition(current, target)
        ensure_transition("v1", current, target)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (VoucherStatus.CLAIMED, VoucherStatus.AVAILABLE),
            (VoucherStatus.REPORTED, VoucherStatus.CLAIMED),
            (VoucherStatus.EXPIRED, VoucherStatus.AVAILABLE),
            (VoucherStatus.AVAILABLE, VoucherStatus.REPORTED),
            (VoucherStatus.PROCESSING, VoucherStatus.CLAIMED),
        ],
    )
    def test_backward_and_skipping_transitions_raise(self, current, target):
        assert not can_transition(current, target)
        with pytest.raises(InvalidTransitionError) as exc_info:
            ensure_transition("v1", current, target)
        assert exc_info.value.voucher_id == "v1"

    def test_reported_and_expired_are_terminal(self):
        assert VoucherStatus.REPORTED.is_terminal
        assert VoucherStatus.EXPIRED.is_terminal
        assert not VoucherStatus.AVAILABLE.is_terminal

    def test_every_status_has_an_entry(self):
        assert set(TRANSITIONS) == set(VoucherStatus)
