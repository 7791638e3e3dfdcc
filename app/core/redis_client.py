# app/core/redis_client.py
from __future__ import annotations

"""
StreamVault — Redis Client (Async)
==================================
Central source of truth for Redis access in the app.

What this provides
------------------
• Resilient connection manager with retries & backoff
• Pooled async client with health checks
• Credential revocation lane helpers (`revoked:jti:{jti}`)

Public API (imported as `redis_wrapper`)
----------------------------------------
- await redis_wrapper.connect() / await redis_wrapper.close() / await redis_wrapper.is_connected()
- redis_wrapper.client
- await redis_wrapper.revoke_jti(jti, ttl_seconds)
- await redis_wrapper.is_jti_revoked(jti)

Design notes
------------
• Callers decide fail-open vs fail-closed; helpers here raise `RedisError`.
• Compatible with the in-memory test mock (`tests/fixtures/mocks/redis.py`).
"""

import asyncio
import logging
import os
import random
from typing import Any, Optional, Protocol
from urllib.parse import urlparse

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.core.config import settings

logger = logging.getLogger("redis")

# ─────────────────────────────────────────────────────────────────────────────
# Tunables (env-aware sensible defaults)
# ─────────────────────────────────────────────────────────────────────────────
MAX_RETRIES = int(os.getenv("REDIS_CONNECT_MAX_RETRIES", "5"))
BASE_DELAY = float(os.getenv("REDIS_CONNECT_BASE_DELAY", "0.3"))  # seconds
HEALTH_CHECK_INTERVAL = int(os.getenv("REDIS_HEALTH_CHECK_INTERVAL", "30"))  # seconds
SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", "3"))
SOCKET_CONNECT_TIMEOUT = float(os.getenv("REDIS_SOCKET_CONNECT_TIMEOUT", "3"))
POOL_MAX_CONNECTIONS = int(os.getenv("REDIS_POOL_MAX_CONNECTIONS", "64"))
CLIENT_NAME = os.getenv("REDIS_CLIENT_NAME", "streamvault-api")

REVOKED_JTI_KEY = "revoked:jti:{jti}"


class _RedisProto(Protocol):
    async def ping(self) -> Any: ...
    async def get(self, name: str) -> Any: ...
    async def setex(self, name: str, time: int, value: Any) -> Any: ...
    async def exists(self, *names: Any) -> Any: ...
    async def close(self) -> Any: ...


class RedisClient:
    """
    Singleton Redis connection manager (asyncio).

    Features
    --------
    • Resilient connect with exponential backoff + jitter
    • Pooled connections, health checks
    • Revocation lane helpers used by `app.core.jwt`
    """

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self._client: Optional[_RedisProto] = None

    # ── lifecycle ────────────────────────────────────────────────────────────
    async def connect(self) -> None:
        """
        Establish a connection with retries.

        Steps
        -----
        - **[Step 1]** Reuse a healthy client when possible.
        - **[Step 2]** Attempt connection with backoff and jitter.
        """
        if self._client:
            try:
                await self._client.ping()
                return
            except Exception:
                self._client = None  # stale client → reconnect

        last_err: Optional[Exception] = None
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                self._client = self._build_client()
                await self._client.ping()
                logger.info("✅ Connected to Redis")
                return
            except Exception as e:  # noqa: BLE001
                last_err = e
                self._client = None
                delay = self._backoff(attempt)
                logger.warning(
                    "Redis connect attempt %s/%s failed: %s (retrying in %.2fs)",
                    attempt, MAX_RETRIES, repr(e), delay,
                )
                await asyncio.sleep(delay)

        logger.error("❌ Redis connection failed after %s retries.", MAX_RETRIES)
        raise RuntimeError("Redis connection failed") from last_err

    async def close(self) -> None:
        """Gracefully close the client and its pool."""
        if not self._client:
            return
        try:
            await self._client.close()
            pool = getattr(self._client, "connection_pool", None)
            if pool is not None:
                await pool.disconnect(inuse_connections=True)  # type: ignore[attr-defined]
            logger.info("🛑 Redis connection closed.")
        except RedisError as e:
            logger.warning("Error closing Redis connection: %s", e)
        finally:
            self._client = None

    async def is_connected(self) -> bool:
        """Return True if `PING` succeeds (healthy connection)."""
        if not self._client:
            return False
        try:
            return bool(await self._client.ping())
        except RedisError:
            return False

    @property
    def client(self) -> _RedisProto:
        """Low-level client; ensure `connect()` was called at startup."""
        if not self._client:
            raise RuntimeError("Redis client not initialized. Call connect() first.")
        return self._client

    @property
    def configured(self) -> bool:
        return self._client is not None

    # ── revocation lane ─────────────────────────────────────────────────────
    async def revoke_jti(self, jti: str, ttl_seconds: int) -> None:
        """Mark a credential id as revoked until its natural expiry."""
        await self.client.setex(REVOKED_JTI_KEY.format(jti=jti), max(1, int(ttl_seconds)), "1")

    async def is_jti_revoked(self, jti: str) -> bool:
        """True when `revoked:jti:{jti}` is present."""
        return bool(await self.client.get(REVOKED_JTI_KEY.format(jti=jti)))

    # ── internals ───────────────────────────────────────────────────────────
    def _build_client(self) -> _RedisProto:
        """Instantiate a pooled Redis client from the URL."""
        url = self.redis_url.strip()
        client_kwargs: dict[str, Any] = dict(
            decode_responses=True,
            health_check_interval=HEALTH_CHECK_INTERVAL,
            socket_keepalive=True,
            socket_timeout=SOCKET_TIMEOUT,
            socket_connect_timeout=SOCKET_CONNECT_TIMEOUT,
            retry_on_timeout=True,
            max_connections=POOL_MAX_CONNECTIONS,
            client_name=CLIENT_NAME,
        )
        if urlparse(url).scheme == "rediss" and os.getenv("REDIS_SSL_CERT_REQS", "required").lower() == "none":
            client_kwargs["ssl_cert_reqs"] = None  # dev only
        return redis.Redis.from_url(url, **client_kwargs)

    @staticmethod
    def _backoff(attempt: int) -> float:
        # Exponential backoff with jitter (cap at 3s)
        return min(3.0, BASE_DELAY * (2 ** (attempt - 1))) + random.uniform(0, 0.25)


# ─────────────────────────────────────────────────────────────────────────────
# Singleton instance
# ─────────────────────────────────────────────────────────────────────────────
redis_wrapper = RedisClient(settings.REDIS_URL)

__all__ = ["RedisClient", "redis_wrapper", "REVOKED_JTI_KEY"]
