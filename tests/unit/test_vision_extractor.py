"""Tests for the vision extraction adapter (OpenAI client mocked)."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import OpenAIError

from tests.conftest import START
from voucherswap.core.exceptions import ExtractionError
from voucherswap.integrations.vision import (
    OpenAIVisionExtractor,
    build_prompt,
    parse_model_output,
    resolve_valid_from,
)
from voucherswap.services.image_store import InMemoryImageStore


pytestmark = pytest.mark.unit


def completion(content: str | None):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def mock_client(result=None, error: Exception | None = None) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=result, side_effect=error)
    return client


class TestResolveValidFrom:
    def test_same_year(self):
        assert resolve_valid_from(23, 11, "2025-11-29") == "2025-11-23"

    def test_range_across_new_year(self):
        assert resolve_valid_from(30, 12, "2026-01-05") == "2025-12-30"

    @pytest.mark.parametrize(
        ("day", "month", "expiry"),
        [(None, 12, "2026-01-05"), (30, None, "2026-01-05"), (30, 12, None), (31, 2, "2026-03-05")],
    )
    def test_unreadable_parts(self, day, month, expiry):
        assert resolve_valid_from(day, month, expiry) is None


class TestParseModelOutput:
    def test_day_and_month_are_combined(self):
        raw = parse_model_output(
            '{"type": 10, "validFromDay": 18, "validFromMonth": 12, "expiryDate": "2026-01-04", "barcode": 991}'
        )
        assert raw.denomination == 10
        assert raw.valid_from == "2025-12-18"
        assert raw.expiry_date == "2026-01-04"
        assert raw.barcode == "991"

    def test_nulls_pass_through(self):
        raw = parse_model_output('{"type": 0, "validFromDay": null, "expiryDate": null, "barcode": null}')
        assert raw.denomination == 0
        assert raw.valid_from is None
        assert raw.barcode is None

    @pytest.mark.parametrize("content", ["not json", "[1, 2]", '{"type": [10]}'])
    def test_malformed_output_is_an_extraction_error(self, content):
        with pytest.raises(ExtractionError):
            parse_model_output(content)

    def test_prompt_mentions_current_year(self):
        assert "The current year is 2026." in build_prompt(2026)


class TestOpenAIVisionExtractor:
    @pytest.mark.asyncio
    async def test_extracts_fields(self):
        images = InMemoryImageStore()
        ref = await images.store(b"jpeg-bytes", "image/jpeg")
        client = mock_client(
            completion('{"type": 20, "validFromDay": 1, "validFromMonth": 3, "expiryDate": "2026-03-20", "barcode": "X"}')
        )
        extractor = OpenAIVisionExtractor(images, client=client, model="test-model")

        raw = await extractor.extract(ref, START)

        assert raw.denomination == 20
        assert raw.valid_from == "2026-03-01"
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["response_format"] == {"type": "json_object"}
        image_part = kwargs["messages"][0]["content"][1]
        assert image_part["image_url"]["url"].startswith("data:image/jpeg;base64,")

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        extractor = OpenAIVisionExtractor(InMemoryImageStore(), client=None)
        with pytest.raises(ExtractionError):
            await extractor.extract("0" * 32 + ".jpg", START)

    @pytest.mark.asyncio
    async def test_missing_image(self):
        extractor = OpenAIVisionExtractor(InMemoryImageStore(), client=mock_client())
        with pytest.raises(ExtractionError):
            await extractor.extract("0" * 32 + ".jpg", START)

    @pytest.mark.asyncio
    async def test_service_error_is_wrapped(self):
        images = InMemoryImageStore()
        ref = await images.store(b"jpeg-bytes", "image/jpeg")
        extractor = OpenAIVisionExtractor(images, client=mock_client(error=OpenAIError("quota")))

        with pytest.raises(ExtractionError) as exc_info:
            await extractor.extract(ref, START)
        assert isinstance(exc_info.value.original_error, OpenAIError)

    @pytest.mark.asyncio
    async def test_empty_completion(self):
        images = InMemoryImageStore()
        ref = await images.store(b"jpeg-bytes", "image/jpeg")
        extractor = OpenAIVisionExtractor(images, client=mock_client(completion(None)))

        with pytest.raises(ExtractionError):
            await extractor.extract(ref, START)
