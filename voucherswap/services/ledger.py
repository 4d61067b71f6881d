"""Coin ledger.

Every balance change is applied to the in-session User and paired with one
CoinTransaction written on the same session, so the balance always equals the
sum of the user's transaction amounts.
"""

from __future__ import annotations

import logging
from datetime import datetime

from voucherswap.core.constants import CLAIM_COSTS, MAX_COINS, SIGNUP_BONUS, UPLOAD_REWARDS
from voucherswap.core.exceptions import InsufficientCoinsError
from voucherswap.core.models import CoinTransaction, TransactionKind, User
from voucherswap.services.storage.base import StoreSession

logger = logging.getLogger(__name__)


def upload_reward(denomination: int) -> int:
    return UPLOAD_REWARDS[denomination]


def claim_cost(denomination: int) -> int:
    return CLAIM_COSTS[denomination]


def clamped_credit(balance: int, amount: int) -> int:
    """Delta actually applied when crediting ``amount`` under the MAX_COINS cap."""
    return min(MAX_COINS, balance + amount) - balance


async def credit(
    session: StoreSession,
    user: User,
    amount: int,
    kind: TransactionKind,
    now: datetime,
    *,
    voucher_id: str | None = None,
) -> CoinTransaction:
    """Credit ``user`` up to the cap and record the applied delta.

    A transaction is written even when the clamp reduces the delta to zero so
    the history still shows the event.
    """
    applied = clamped_credit(user.coins, amount)
    if applied < amount:
        logger.info(
            "Credit clamped at %d coins: user=%s kind=%s nominal=%d applied=%d",
            MAX_COINS,
            user.id,
            kind.value,
            amount,
            applied,
        )
    user.coins += applied
    transaction = CoinTransaction(
        user_id=user.id,
        kind=kind,
        amount=applied,
        voucher_id=voucher_id,
        created_at=now,
    )
    await session.update_user(user)
    await session.insert_transaction(transaction)
    return transaction


async def debit(
    session: StoreSession,
    user: User,
    amount: int,
    kind: TransactionKind,
    now: datetime,
    *,
    voucher_id: str | None = None,
) -> CoinTransaction:
    """Charge ``user``; raises InsufficientCoinsError instead of going negative."""
    if user.coins < amount:
        raise InsufficientCoinsError(user.id, user.coins, amount)
    user.coins -= amount
    transaction = CoinTransaction(
        user_id=user.id,
        kind=kind,
        amount=-amount,
        voucher_id=voucher_id,
        created_at=now,
    )
    await session.update_user(user)
    await session.insert_transaction(transaction)
    return transaction


async def grant_signup_bonus(session: StoreSession, user: User, now: datetime) -> CoinTransaction:
    return await credit(session, user, SIGNUP_BONUS, TransactionKind.SIGNUP_BONUS, now)


async def ledger_balance(session: StoreSession, user_id: str) -> int:
    """Sum of the user's transaction amounts."""
    return sum(t.amount for t in await session.list_transactions(user_id))
