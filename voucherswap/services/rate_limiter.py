"""Per-user quotas for upload, claim and report.

Counts come from the user's own records on the caller's session, so the
check and the mutation it guards commit (or abort) together.
"""

from __future__ import annotations

import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from voucherswap.core.clock import start_of_local_day
from voucherswap.core.constants import (
    CLAIM_LIMIT_PER_WINDOW,
    QUOTA_WINDOW,
    UPLOAD_LIMIT_PER_WINDOW,
)
from voucherswap.core.models import User
from voucherswap.services.storage.base import StoreSession

logger = logging.getLogger(__name__)


async def check_upload_quota(session: StoreSession, user: User, now: datetime) -> bool:
    """True if ``user`` may upload: fewer than 10 uploads in the trailing 24h."""
    count = await session.count_uploads_since(user.id, now - QUOTA_WINDOW)
    if count >= UPLOAD_LIMIT_PER_WINDOW:
        logger.warning(
            "Upload quota exceeded for user=%s: %d/%d in window",
            user.id,
            count,
            UPLOAD_LIMIT_PER_WINDOW,
        )
        return False
    return True


async def check_claim_quota(session: StoreSession, user: User, now: datetime) -> bool:
    """True if ``user`` may claim: fewer than 5 claims in the trailing 24h."""
    count = await session.count_claims_since(user.id, now - QUOTA_WINDOW)
    if count >= CLAIM_LIMIT_PER_WINDOW:
        logger.warning(
            "Claim quota exceeded for user=%s: %d/%d in window",
            user.id,
            count,
            CLAIM_LIMIT_PER_WINDOW,
        )
        return False
    return True


def check_report_quota(user: User, now: datetime, tz: ZoneInfo) -> bool:
    """One report per local calendar day."""
    if user.last_report_at is None:
        return True
    if user.last_report_at >= start_of_local_day(now, tz):
        logger.warning("Daily report quota exceeded for user=%s", user.id)
        return False
    return True
