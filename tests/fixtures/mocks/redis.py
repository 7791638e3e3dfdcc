from __future__ import annotations

"""
MockRedisClient (async), wrapper-compatible
===========================================
Covers the subset of Redis the app touches:

KV      : get/set/setex/exists/ttl/delete
Health  : ping/close/flushdb/flushall

Values are stored exactly as written; TTLs are wall-clock seconds.
"""

import time
from typing import Any, Dict, Optional


def _now() -> float:
    return time.time()


class MockRedisClient:
    def __init__(self) -> None:
        self.store: Dict[str, Any] = {}
        self.expirations: Dict[str, Optional[float]] = {}
        self.fail_with: Optional[Exception] = None  # set to simulate an outage
        self._closed = False

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    # ── housekeeping ──────────────────────────────────────────
    async def ping(self) -> bool:
        self._check()
        return True

    async def close(self) -> None:
        self._closed = True

    async def flushdb(self) -> None:
        self.store.clear()
        self.expirations.clear()
        self.fail_with = None

    async def flushall(self) -> None:
        await self.flushdb()

    # ── expiration helpers ────────────────────────────────────
    def _expired(self, key: str) -> bool:
        exp = self.expirations.get(key)
        return exp is not None and exp <= _now()

    def _purge_expired(self) -> None:
        for k in list(self.store.keys()):
            if self._expired(k):
                self.store.pop(k, None)
                self.expirations.pop(k, None)

    # ── KV commands ───────────────────────────────────────────
    async def get(self, key: str) -> Optional[Any]:
        self._check()
        self._purge_expired()
        return self.store.get(key)

    async def set(self, key: str, value: Any, ex: Optional[int] = None) -> bool:
        self._check()
        self.store[key] = value
        self.expirations[key] = _now() + int(ex) if ex is not None else None
        return True

    async def setex(self, key: str, time_seconds: int, value: Any) -> bool:
        return await self.set(key, value, ex=int(time_seconds))

    async def ttl(self, key: str) -> int:
        self._check()
        self._purge_expired()
        if key not in self.store:
            return -2
        exp = self.expirations.get(key)
        if exp is None:
            return -1
        return max(int(round(exp - _now())), -2)

    async def exists(self, *keys: str) -> int:
        self._check()
        self._purge_expired()
        return sum(1 for k in keys if k in self.store)

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for k in keys:
            removed += int(self.store.pop(k, None) is not None)
            self.expirations.pop(k, None)
        return removed
