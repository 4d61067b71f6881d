"""Operator endpoints: corrections, overrides and triage.

Auth: X-API-Key header or Authorization: Bearer <ADMIN_API_TOKEN>.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query

from voucherswap.core.models import AdmissionOutcome, FailedUpload, User
from voucherswap.server.dependencies import ExchangeServiceDep, require_admin
from voucherswap.server.models import AdmissionRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _user_summary(user: User) -> dict[str, Any]:
    return {
        "user_id": user.id,
        "external_id": user.external_id,
        "coins": user.coins,
        "is_banned": user.is_banned,
        "banned_at": user.banned_at.isoformat() if user.banned_at else None,
    }


@router.post("/admissions")
async def admit_uploader_use(payload: AdmissionRequest, service: ExchangeServiceDep) -> AdmissionOutcome:
    """Uploader confirms they used the voucher themselves; its reports are removed."""
    return await service.admit_uploader_use(payload.uploader_external_id, payload.voucher_id)


@router.post("/users/{external_id}/ban")
async def ban_user(external_id: str, service: ExchangeServiceDep) -> dict[str, Any]:
    return _user_summary(await service.ban_user(external_id))


@router.post("/users/{external_id}/unban")
async def unban_user(external_id: str, service: ExchangeServiceDep) -> dict[str, Any]:
    return _user_summary(await service.unban_user(external_id))


@router.post("/counters/backfill")
async def backfill_counters(service: ExchangeServiceDep) -> dict[str, int]:
    return {"updated_users": await service.backfill_counters()}


@router.get("/failed-uploads")
async def failed_uploads(
    service: ExchangeServiceDep,
    limit: int = Query(default=50, ge=1, le=500),
) -> list[FailedUpload]:
    return await service.list_failed_uploads(limit)


@router.post("/sweeps/expiry")
async def run_expiry_sweep(service: ExchangeServiceDep) -> dict[str, int]:
    expired = await service.expire_vouchers()
    logger.info("[ADMIN] Manual expiry sweep expired %d vouchers", expired)
    return {"expired": expired}
