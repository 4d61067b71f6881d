"""Vision extraction of voucher fields.

The extractor only reads the photo; every field it returns is untrusted and
goes through the validation pipeline. Any failure here (missing image, API
error, timeout, malformed JSON) is an ExtractionError, which the engine
treats as a system error rather than a rejection.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from datetime import date, datetime
from typing import Any, Protocol

from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from voucherswap.conf.config import Settings, settings
from voucherswap.core.exceptions import ExtractionError
from voucherswap.core.models import RawExtraction
from voucherswap.services.image_store import ImageStore, media_type_for
from voucherswap.services.validation import parse_day

logger = logging.getLogger(__name__)

__all__ = ["OpenAIVisionExtractor", "RawExtraction", "VisionExtractor", "build_prompt", "resolve_valid_from"]


class VisionExtractor(Protocol):
    async def extract(self, image_ref: str, now: datetime) -> RawExtraction: ...


# =============================================================================
# PROMPT
# =============================================================================


def build_prompt(current_year: int) -> str:
    return f"""You are analyzing an image of a voucher.
We are ONLY looking for specific Dunnes Stores vouchers (Ireland) of these exact types:
- €5 off €25
- €10 off €40
- €10 off €50
- €20 off €80
- €20 off €100

Any other voucher type (e.g. "€1 off", "€3 off", product specific, or from other stores) is INVALID.

The current year is {current_year}.
The date format on the voucher can vary, examples:
- Valid 23 Nov - 29 Nov
- Coupon valid from 23/11/25 to 29/11/25
- Expires 04-01-2025, Valid 18 Dec - 4 Jan
- Expires Monday, Valid 30 Dec - 5 Jan

Extract dates from the validity range. If a relative date like "Expires Monday" conflicts
with an explicit date range, use the date range.

Extract:
1. type: the discount amount (5, 10 or 20). If it is not one of these amounts, return 0.
2. validFromDay: day of the month of the start date (in "Valid 30 Dec - 5 Jan", 30).
3. validFromMonth: month number of the start date (in "Valid 30 Dec - 5 Jan", 12).
4. expiryDate: the END of the validity range as YYYY-MM-DD. Use the printed year if there is
   one, otherwise assume {current_year}.
5. barcode: the number printed below the barcode.

Return ONLY JSON:
{{"type": 10, "validFromDay": 1, "validFromMonth": 1, "expiryDate": "{current_year}-01-04", "barcode": "1234567890"}}

Use null for any field you cannot read; use 0 for an unknown or invalid type."""


def resolve_valid_from(day: Any, month: Any, expiry_date: str | None) -> str | None:
    """Build the start date in the expiry's year, stepping back a year across New Year."""
    expiry = parse_day(expiry_date)
    if expiry is None or not isinstance(day, int) or not isinstance(month, int):
        return None
    try:
        valid_from = date(expiry.year, month, day)
    except ValueError:
        return None
    if valid_from > expiry:
        try:
            valid_from = valid_from.replace(year=expiry.year - 1)
        except ValueError:
            return None
    return valid_from.isoformat()


def parse_model_output(content: str) -> RawExtraction:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ExtractionError("Extractor returned invalid JSON", original_error=e) from e
    if not isinstance(data, dict):
        raise ExtractionError("Extractor returned a non-object JSON payload")

    valid_from = data.get("validFrom")
    if valid_from is None:
        valid_from = resolve_valid_from(data.get("validFromDay"), data.get("validFromMonth"), data.get("expiryDate"))
    try:
        return RawExtraction(
            type=data.get("type"),
            validFrom=valid_from,
            expiryDate=data.get("expiryDate"),
            barcode=data.get("barcode"),
        )
    except ValidationError as e:
        raise ExtractionError("Extractor payload has unexpected field types", original_error=e) from e


# =============================================================================
# OPENAI EXTRACTOR
# =============================================================================


class OpenAIVisionExtractor:
    """Extraction through an OpenAI vision model in JSON mode."""

    def __init__(
        self,
        image_store: ImageStore,
        *,
        client: AsyncOpenAI | None = None,
        model: str = "gpt-4o-mini",
        timeout: float = 30.0,
    ) -> None:
        self._image_store = image_store
        self._client = client
        self._model = model
        self._timeout = timeout

    @classmethod
    def from_settings(cls, image_store: ImageStore, config: Settings | None = None) -> OpenAIVisionExtractor:
        config = config or settings
        api_key = config.OPENAI_API_KEY.get_secret_value()
        client = AsyncOpenAI(api_key=api_key) if api_key else None
        return cls(image_store, client=client, model=config.VISION_MODEL, timeout=config.VISION_TIMEOUT_SECONDS)

    async def extract(self, image_ref: str, now: datetime) -> RawExtraction:
        if self._client is None:
            raise ExtractionError("OPENAI_API_KEY is not configured")

        image = await self._image_store.load(image_ref)
        if image is None:
            raise ExtractionError(f"Image {image_ref} not found")

        data_url = f"data:{media_type_for(image_ref)};base64,{base64.b64encode(image).decode('ascii')}"
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._model,
                    temperature=0,
                    max_tokens=256,
                    response_format={"type": "json_object"},
                    messages=[
                        {
                            "role": "user",
                            "content": [
                                {"type": "text", "text": build_prompt(now.year)},
                                {"type": "image_url", "image_url": {"url": data_url}},
                            ],
                        }
                    ],
                ),
                timeout=self._timeout,
            )
        except TimeoutError as e:
            logger.error("Vision extraction timed out after %.1fs: image=%s", self._timeout, image_ref)
            raise ExtractionError("Vision extraction timed out", original_error=e) from e
        except OpenAIError as e:
            logger.error("Vision extraction failed: image=%s error=%s", image_ref, e)
            raise ExtractionError("Vision service error", original_error=e) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ExtractionError("Vision service returned no content")

        extraction = parse_model_output(content)
        logger.info(
            "Extracted voucher fields: image=%s type=%s valid_from=%s expiry=%s barcode=%s",
            image_ref,
            extraction.denomination,
            extraction.valid_from,
            extraction.expiry_date,
            "yes" if extraction.barcode else "no",
        )
        return extraction
