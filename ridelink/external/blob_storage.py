"""
Blob storage contract for driver documents and photos.

The core only keeps the returned URL as an opaque string; it never reads
the uploaded bytes back.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class BlobStorage(Protocol):
    async def upload(self, data: bytes, path: str) -> str:
        """Store *data* at *path* and return a URL for it."""
        ...


class LocalBlobStorage:
    """Writes blobs under a directory served at *base_url*."""

    def __init__(self, root: str, base_url: str):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    async def upload(self, data: bytes, path: str) -> str:
        relative = Path(path)
        if relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"Refusing to store blob outside the root: {path}")
        target = self.root / relative
        await asyncio.to_thread(_write, target, data)
        return f"{self.base_url}/{relative.as_posix()}"


def _write(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
