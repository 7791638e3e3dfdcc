# tests/conftest.py
"""
Global test bootstrap
- Points settings at a throwaway SQLite database and media root
- Turns off SlowAPI limits and the simulated scan delay
- Mounts a mock Redis client into app.core.redis_client
- Exposes a redis_client fixture
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import pytest

# ──────────────────────────────────────────────────────────────────────────────
# 🌱 Test env
#   NOTE: These are set BEFORE importing the app so `settings` picks them up.
# ──────────────────────────────────────────────────────────────────────────────
_TMP = Path(tempfile.mkdtemp(prefix="streamvault-tests-"))
(_TMP / "media").mkdir()

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("SQLALCHEMY_DATABASE_URI", f"sqlite+aiosqlite:///{_TMP / 'test.db'}")
os.environ.setdefault("MEDIA_ROOT", str(_TMP / "media"))
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("RATELIMIT_STORAGE_URI", "memory://")
os.environ.setdefault("ANALYZER_SIMULATED_DELAY_SECONDS", "0")
os.environ.setdefault("PIPELINE_RANDOM_FLAG_RATE", "0")
os.environ.setdefault("LOG_TO_FILE", "0")

# ──────────────────────────────────────────────────────────────────────────────
# 🧪 Install mock Redis globally before any tests run
# ──────────────────────────────────────────────────────────────────────────────
from app.core.redis_client import redis_wrapper  # noqa: E402
from tests.fixtures.mocks.redis import MockRedisClient  # noqa: E402

redis_wrapper._client = MockRedisClient()  # make the app use the mock client

# ──────────────────────────────────────────────────────────────────────────────
# 📦 Pull in the rest of the fixtures (db, app, auth, media)
# ──────────────────────────────────────────────────────────────────────────────
from tests.fixtures.db import *      # noqa: F401,F403,E402
from tests.fixtures.app import *     # noqa: F401,F403,E402
from tests.fixtures.auth import *    # noqa: F401,F403,E402
from tests.fixtures.media import *   # noqa: F401,F403,E402


@pytest.fixture()
def media_root() -> Path:
    return Path(os.environ["MEDIA_ROOT"])


# ──────────────────────────────────────────────────────────────────────────────
# 🔌 Redis fixture (function-scoped), cleared between tests
# ──────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
async def redis_client():
    """
    ✅ Use this when you want to inspect or modify Redis directly in a test.
    Restores the mock if a test swapped it out, and clears keys around the test.
    """
    if not isinstance(redis_wrapper._client, MockRedisClient):
        redis_wrapper._client = MockRedisClient()
    client = redis_wrapper.client
    await client.flushall()
    yield client
    await client.flushall()
