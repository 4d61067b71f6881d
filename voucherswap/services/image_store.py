"""Voucher image storage.

Images are addressed by an opaque reference. ``resolve`` turns a reference
into a link the user can open, or None when the image is gone.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}
_REF_PATTERN = re.compile(r"^[0-9a-f]{32}\.(jpg|png|webp)$")


def new_image_ref(content_type: str | None) -> str:
    return uuid.uuid4().hex + _EXTENSIONS.get(content_type or "", ".jpg")


def is_valid_ref(ref: str) -> bool:
    return bool(_REF_PATTERN.match(ref))


def media_type_for(ref: str) -> str:
    suffix = Path(ref).suffix
    for media_type, ext in _EXTENSIONS.items():
        if ext == suffix:
            return media_type
    return "application/octet-stream"


class ImageStore(Protocol):
    async def store(self, data: bytes, content_type: str | None = None) -> str: ...

    async def resolve(self, ref: str) -> str | None: ...

    async def load(self, ref: str) -> bytes | None: ...

    async def discard(self, ref: str) -> None: ...


class InMemoryImageStore:
    """Process-local image store for tests and demos."""

    def __init__(self, base_url: str = "memory://images") -> None:
        self._base_url = base_url.rstrip("/")
        self._images: dict[str, bytes] = {}

    async def store(self, data: bytes, content_type: str | None = None) -> str:
        ref = new_image_ref(content_type)
        self._images[ref] = data
        return ref

    async def resolve(self, ref: str) -> str | None:
        if ref not in self._images:
            return None
        return f"{self._base_url}/{ref}"

    async def load(self, ref: str) -> bytes | None:
        return self._images.get(ref)

    async def discard(self, ref: str) -> None:
        self._images.pop(ref, None)


class FilesystemImageStore:
    """Images as files under ``root``, served from ``<public_base_url>/media/``."""

    def __init__(self, root: str | Path, public_base_url: str) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._base_url = public_base_url.rstrip("/")

    def path_for(self, ref: str) -> Path | None:
        if not is_valid_ref(ref):
            return None
        return self._root / ref

    async def store(self, data: bytes, content_type: str | None = None) -> str:
        ref = new_image_ref(content_type)
        path = self._root / ref
        await asyncio.to_thread(path.write_bytes, data)
        logger.debug("Stored image %s (%d bytes)", ref, len(data))
        return ref

    async def resolve(self, ref: str) -> str | None:
        path = self.path_for(ref)
        if path is None or not await asyncio.to_thread(path.is_file):
            logger.warning("Image %s could not be resolved", ref)
            return None
        return f"{self._base_url}/media/{ref}"

    async def load(self, ref: str) -> bytes | None:
        path = self.path_for(ref)
        if path is None:
            return None
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            return None

    async def discard(self, ref: str) -> None:
        path = self.path_for(ref)
        if path is None:
            return
        await asyncio.to_thread(path.unlink, missing_ok=True)
        logger.debug("Discarded image %s", ref)
