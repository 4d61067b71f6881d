"""Tests for the filesystem image store."""

import pytest

from voucherswap.services.image_store import FilesystemImageStore, is_valid_ref


pytestmark = [pytest.mark.unit, pytest.mark.asyncio]


async def test_store_resolve_and_load(tmp_path):
    images = FilesystemImageStore(tmp_path, "https://swap.example/")

    ref = await images.store(b"png-bytes", "image/png")

    assert is_valid_ref(ref)
    assert ref.endswith(".png")
    assert await images.resolve(ref) == f"https://swap.example/media/{ref}"
    assert await images.load(ref) == b"png-bytes"


async def test_discard_removes_the_file(tmp_path):
    images = FilesystemImageStore(tmp_path, "https://swap.example")
    ref = await images.store(b"jpeg-bytes", "image/jpeg")

    await images.discard(ref)
    await images.discard(ref)

    assert not (tmp_path / ref).exists()
    assert await images.resolve(ref) is None
    assert await images.load(ref) is None


async def test_malformed_refs_never_touch_the_disk(tmp_path):
    images = FilesystemImageStore(tmp_path / "media", "https://swap.example")
    outside = tmp_path / "secrets.jpg"
    outside.write_bytes(b"keep")

    await images.discard("../secrets.jpg")

    assert outside.read_bytes() == b"keep"
    assert await images.load("../secrets.jpg") is None
