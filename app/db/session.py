# app/db/session.py
from __future__ import annotations

"""
StreamVault — Database Engine & Session Dependencies

- Async engine/session for FastAPI, the ingestion coordinator and the CLI.
- Pool knobs apply to server databases only. SQLite (tests, local demos) opens
  a fresh connection per checkout (`NullPool`), so sessions never share a
  connection across event loops or hold file locks between uses.
"""

from typing import AsyncGenerator
import logging

from sqlalchemy import text
from sqlalchemy.pool import NullPool
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)

from app.core.config import settings

logger = logging.getLogger(__name__)

ASYNC_DATABASE_URL: str = settings.ASYNC_DATABASE_URL

# Pool knobs
_POOL_PRE_PING = True
_POOL_RECYCLE = 1800
_POOL_TIMEOUT = 30
_POOL_SIZE = 10
_MAX_OVERFLOW = 20


def build_async_engine(url: str) -> AsyncEngine:
    """Create an async engine with pool settings appropriate for the dialect."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False, future=True, poolclass=NullPool)
    return create_async_engine(
        url,
        pool_pre_ping=_POOL_PRE_PING,
        pool_recycle=_POOL_RECYCLE,
        pool_size=_POOL_SIZE,
        max_overflow=_MAX_OVERFLOW,
        pool_timeout=_POOL_TIMEOUT,
        echo=False,
        future=True,
    )


# ─────────────────────────────────────────────────────────────
# ⚡ ASYNC ENGINE — used by app & tests
# ─────────────────────────────────────────────────────────────

async_engine: AsyncEngine = build_async_engine(ASYNC_DATABASE_URL)

async_session_maker = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an async SQLAlchemy session."""
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def db_healthcheck() -> bool:
    """Quick SELECT 1 to verify DB connectivity (used by /readyz)."""
    try:
        async with async_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("DB healthcheck failed")
        return False


__all__ = [
    "ASYNC_DATABASE_URL",
    "build_async_engine",
    "async_engine",
    "async_session_maker",
    "get_async_db",
    "db_healthcheck",
]
