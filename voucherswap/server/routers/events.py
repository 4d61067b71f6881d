"""Inbound user events.

The chat front end forwards each user action here. Every action answers
with the engine's outcome, including the rendered message to relay.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from voucherswap.core import messages
from voucherswap.core.exceptions import UserNotFoundError
from voucherswap.core.models import ClaimOutcome, InboundEvent, ReportOutcome, UploadOutcome, UploadStatus
from voucherswap.server.dependencies import ExchangeServiceDep
from voucherswap.server.models import ClaimRequest, RegisterUserRequest, ReportRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])

MAX_IMAGE_BYTES = 8_000_000
_ACCEPTED_TYPES = {"image/jpeg", "image/png", "image/webp"}

# Outcomes that leave no voucher or failed-upload row pointing at the photo.
_UNRECORDED = frozenset({UploadStatus.DUPLICATE_EVENT, UploadStatus.BANNED, UploadStatus.RATE_LIMITED})


@router.post("/events/users")
async def register_user(payload: RegisterUserRequest, service: ExchangeServiceDep) -> dict[str, Any]:
    user = await service.register_user(payload.external_id, payload.username, payload.first_name)
    return {"user_id": user.id, "external_id": user.external_id, "coins": user.coins, "is_banned": user.is_banned}


@router.post("/events/upload")
async def upload_voucher(
    service: ExchangeServiceDep,
    external_id: str = Form(...),
    image: UploadFile = File(...),
    channel: str | None = Form(default=None),
    message_id: str | None = Form(default=None),
) -> UploadOutcome:
    """Store the photo, then run extraction and validation on it.

    The photo is dropped again when the upload was turned away before
    anything could reference it.
    """
    content_type = (image.content_type or "").lower()
    if content_type not in _ACCEPTED_TYPES:
        raise HTTPException(status_code=415, detail="not an image")

    data = await image.read()
    if not data:
        raise HTTPException(status_code=400, detail="empty image")
    if len(data) > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=413, detail="too large")

    image_ref = await service.image_store.store(data, content_type)
    event = InboundEvent(channel, message_id) if channel and message_id else None
    logger.info("[EVENTS] Upload from %s stored as %s", external_id, image_ref)
    try:
        outcome = await service.upload_voucher(external_id, image_ref, event)
    except UserNotFoundError:
        await service.image_store.discard(image_ref)
        raise
    if outcome.status in _UNRECORDED:
        await service.image_store.discard(image_ref)
        logger.info("[EVENTS] Discarded %s (%s)", image_ref, outcome.status.value)
    return outcome


@router.post("/events/claim")
async def claim_voucher(payload: ClaimRequest, service: ExchangeServiceDep) -> ClaimOutcome:
    return await service.claim_voucher(payload.external_id, payload.denomination, payload.inbound_event())


@router.post("/events/report")
async def report_voucher(payload: ReportRequest, service: ExchangeServiceDep) -> ReportOutcome:
    return await service.report_voucher(payload.external_id, payload.voucher_id, payload.inbound_event())


@router.get("/users/{external_id}/balance")
async def get_balance(external_id: str, service: ExchangeServiceDep) -> dict[str, Any]:
    return {"external_id": external_id, "coins": await service.get_balance(external_id)}


@router.get("/availability")
async def availability(service: ExchangeServiceDep) -> dict[str, Any]:
    rows = await service.voucher_availability()
    return {
        "denominations": [row.model_dump(mode="json") for row in rows],
        "message": messages.availability(rows),
    }
