from __future__ import annotations

"""
StreamVault • Local Media Storage
=================================

Stored assets live under a single root directory:

    {MEDIA_ROOT}/
      {tenant_id}/{artifact_id}/{filename.ext}      (recommended layout)

The database only records the *storage key* (a relative POSIX path); this
module is the one place that turns a key into a filesystem path.

Security
--------
- Keys are relative, may not contain `..`, NUL or backslashes, and must
  resolve inside the root. Anything else is rejected as `StorageKeyError`.
"""

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import AsyncIterator, Optional

import anyio

from app.core.config import settings


class StorageKeyError(ValueError):
    """Storage key is malformed or escapes the media root."""


class AssetMissing(FileNotFoundError):
    """Storage key is well-formed but no readable file exists for it."""


def _safe_key(key: str) -> PurePosixPath:
    if not key or "\x00" in key or "\\" in key:
        raise StorageKeyError("Invalid storage key")
    p = PurePosixPath(key)
    if p.is_absolute() or any(part in ("..", "") for part in p.parts):
        raise StorageKeyError("Invalid storage key")
    return p


@dataclass(frozen=True)
class LocalMediaStorage:
    root: Path

    def path_for(self, key: str) -> Path:
        """Absolute path for `key`; never outside `root`."""
        base = self.root.resolve()
        candidate = (base / _safe_key(key)).resolve()
        if candidate != base and base not in candidate.parents:
            raise StorageKeyError("Invalid storage key")
        return candidate

    async def size(self, key: str) -> int:
        """Current byte length of the stored asset."""
        path = anyio.Path(self.path_for(key))
        try:
            stat = await path.stat()
        except FileNotFoundError:
            raise AssetMissing(key)
        if not await path.is_file():
            raise AssetMissing(key)
        return stat.st_size

    async def iter_range(
        self,
        key: str,
        start: int,
        end: int,
        *,
        chunk_size: Optional[int] = None,
    ) -> AsyncIterator[bytes]:
        """Yield bytes `start..end` (inclusive) in chunks."""
        chunk = chunk_size or settings.STREAM_CHUNK_SIZE
        remaining = end - start + 1
        async with await anyio.open_file(self.path_for(key), "rb") as fh:
            await fh.seek(start)
            while remaining > 0:
                data = await fh.read(min(chunk, remaining))
                if not data:
                    break
                remaining -= len(data)
                yield data


def get_storage() -> LocalMediaStorage:
    """Storage bound to the configured root (FastAPI dependency)."""
    return LocalMediaStorage(root=Path(settings.MEDIA_ROOT))


__all__ = ["LocalMediaStorage", "StorageKeyError", "AssetMissing", "get_storage"]
