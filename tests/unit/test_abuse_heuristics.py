"""Tests for the rolling-window ban heuristics as pure functions."""

import pytest

from voucherswap.services.abuse import (
    BanPolicy,
    Verdict,
    WindowEntry,
    evaluate_window,
    reporter_policy,
    reporter_window,
    uploader_policy,
    uploader_window,
)


pytestmark = pytest.mark.unit


def window(*flags: bool) -> list[WindowEntry]:
    return [WindowEntry(voucher_id=f"v{i}", flagged=flag) for i, flag in enumerate(flags)]


class TestPolicies:
    def test_reporter_policy(self):
        assert reporter_policy() == BanPolicy(window=5, threshold=3)

    @pytest.mark.parametrize(
        ("uploads", "expected"),
        [(0, BanPolicy(5, 3)), (19, BanPolicy(5, 3)), (20, BanPolicy(10, 5)), (250, BanPolicy(10, 5))],
    )
    def test_uploader_policy_widens_for_high_volume(self, uploads, expected):
        assert uploader_policy(uploads) == expected


class TestEvaluateWindow:
    def test_three_of_five_bans(self):
        result = evaluate_window(window(True, False, True, False, True), BanPolicy(5, 3))
        assert result.verdict == Verdict.BAN
        assert result.banned
        assert result.flagged == 3

    def test_two_of_five_is_ok(self):
        result = evaluate_window(window(True, True, False, False, False), BanPolicy(5, 3))
        assert not result.banned

    def test_partial_window_never_bans(self):
        result = evaluate_window(window(True, True, True), BanPolicy(5, 3))
        assert not result.banned
        assert result.window_size == 3

    def test_only_the_newest_entries_count(self):
        entries = window(False, False, False, False, False, True, True, True)
        result = evaluate_window(entries, BanPolicy(5, 3))
        assert not result.banned
        assert result.flagged == 0

    def test_high_volume_threshold(self):
        policy = BanPolicy(10, 5)
        assert not evaluate_window(window(*([True] * 4 + [False] * 6)), policy).banned
        assert evaluate_window(window(*([True] * 5 + [False] * 5)), policy).banned


class TestWindows:
    def test_reporter_window_counts_pending_report(self):
        entries = reporter_window(["c5", "c4", "c3", "c2", "c1"], {"c1", "c2"}, "c3")
        assert [e.flagged for e in entries] == [False, False, True, True, True]
        assert evaluate_window(entries, reporter_policy()).banned

    def test_reporter_window_without_history(self):
        entries = reporter_window(["c5", "c4", "c3", "c2", "c1"], set(), "c5")
        assert not evaluate_window(entries, reporter_policy()).banned

    def test_uploader_window_uses_given_flags(self):
        entries = uploader_window(["u3", "u2", "u1"], {"u2"})
        assert [e.flagged for e in entries] == [False, True, False]
