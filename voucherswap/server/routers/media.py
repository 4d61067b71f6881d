"""Serves stored voucher images to claimers."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from voucherswap.server.dependencies import ExchangeServiceDep
from voucherswap.services.image_store import is_valid_ref, media_type_for

logger = logging.getLogger(__name__)

router = APIRouter(tags=["media"])


@router.get("/media/{image_ref}")
async def get_image(image_ref: str, service: ExchangeServiceDep) -> Response:
    if not is_valid_ref(image_ref):
        raise HTTPException(status_code=400, detail="invalid image reference")

    data = await service.image_store.load(image_ref)
    if data is None:
        logger.warning("Requested image %s is missing", image_ref)
        raise HTTPException(status_code=404, detail="not found")

    headers = {"Cache-Control": "private, max-age=3600"}
    return Response(content=data, media_type=media_type_for(image_ref), headers=headers)
