"""Rolling-window ban heuristics.

Both heuristics are pure functions over a window of the actor's most recent
activity, so they can be exercised without a store. The engine builds the
window from the live Report set on every evaluation; the advisory counters
on User are never consulted.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from voucherswap.core.constants import (
    HIGH_VOLUME_UPLOAD_COUNT,
    HIGH_VOLUME_UPLOADER_BAN_THRESHOLD,
    HIGH_VOLUME_UPLOADER_WINDOW,
    REPORTER_BAN_THRESHOLD,
    REPORTER_WINDOW,
    UPLOADER_BAN_THRESHOLD,
    UPLOADER_WINDOW,
)


class Verdict(str, Enum):
    OK = "ok"
    BAN = "ban"


@dataclass(frozen=True)
class BanPolicy:
    window: int
    threshold: int


@dataclass(frozen=True)
class WindowEntry:
    """One activity record in a window, newest first."""

    voucher_id: str
    flagged: bool


@dataclass(frozen=True)
class Evaluation:
    verdict: Verdict
    flagged: int
    window_size: int
    policy: BanPolicy

    @property
    def banned(self) -> bool:
        return self.verdict == Verdict.BAN


def reporter_policy() -> BanPolicy:
    return BanPolicy(window=REPORTER_WINDOW, threshold=REPORTER_BAN_THRESHOLD)


def uploader_policy(lifetime_uploads: int) -> BanPolicy:
    """High-volume uploaders are judged on a wider window with a higher bar."""
    if lifetime_uploads >= HIGH_VOLUME_UPLOAD_COUNT:
        return BanPolicy(window=HIGH_VOLUME_UPLOADER_WINDOW, threshold=HIGH_VOLUME_UPLOADER_BAN_THRESHOLD)
    return BanPolicy(window=UPLOADER_WINDOW, threshold=UPLOADER_BAN_THRESHOLD)


def evaluate_window(entries: Sequence[WindowEntry], policy: BanPolicy) -> Evaluation:
    """Ban when at least ``threshold`` of the last ``window`` entries are flagged.

    A window shorter than the policy's size never bans: a new user with a few
    unlucky vouchers is not judged on a partial history.
    """
    window = list(entries[: policy.window])
    flagged = sum(1 for entry in window if entry.flagged)
    if len(window) < policy.window:
        verdict = Verdict.OK
    else:
        verdict = Verdict.BAN if flagged >= policy.threshold else Verdict.OK
    return Evaluation(verdict=verdict, flagged=flagged, window_size=len(window), policy=policy)


def reporter_window(
    recent_claim_ids: Sequence[str],
    already_reported: set[str],
    pending_voucher_id: str,
) -> list[WindowEntry]:
    """Window for the reporter heuristic.

    The report being filed counts as flagged although it is not persisted
    yet; if it trips the ban it never will be.
    """
    return [
        WindowEntry(
            voucher_id=voucher_id,
            flagged=voucher_id in already_reported or voucher_id == pending_voucher_id,
        )
        for voucher_id in recent_claim_ids
    ]


def uploader_window(recent_upload_ids: Sequence[str], reported_by_unbanned: set[str]) -> list[WindowEntry]:
    return [
        WindowEntry(voucher_id=voucher_id, flagged=voucher_id in reported_by_unbanned)
        for voucher_id in recent_upload_ids
    ]
