# tests/fixtures/app.py

"""
🧩 App Fixtures:
- `broadcaster`: a started progress hub, closed after the test
- `analyzer`: keyword analyzer with a seeded RNG and no simulated delay
- `coordinator`: ingestion coordinator wired to the app's session factory
- `app`: production app factory with the hub/coordinator placed on `app.state`
  (the lifespan is not run, so the mock Redis client stays installed)
- `async_client`: httpx client speaking ASGI to `app`
"""

import random
from typing import AsyncGenerator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import async_session_maker
from app.main import create_app
from app.services.analyzer import KeywordAnalyzer
from app.services.broadcast import ProgressBroadcaster
from app.services.pipeline import IngestionCoordinator


@pytest.fixture()
def broadcaster() -> ProgressBroadcaster:
    hub = ProgressBroadcaster(queue_size=64)
    hub.start()
    yield hub
    hub.close()


@pytest.fixture()
def analyzer() -> KeywordAnalyzer:
    return KeywordAnalyzer(flag_rate=0.0, rng=random.Random(1234), delay_seconds=0)


@pytest.fixture()
async def coordinator(
    db_session: AsyncSession,
    broadcaster: ProgressBroadcaster,
    fake_extractor,
    analyzer: KeywordAnalyzer,
) -> AsyncGenerator[IngestionCoordinator, None]:
    """
    🧪 Depends on `db_session` so in-flight runs are drained before tables are emptied.
    """
    coord = IngestionCoordinator(
        async_session_maker,
        broadcaster,
        extractor=fake_extractor,
        analyzer=analyzer,
        analyzer_timeout=2.0,
    )
    yield coord
    await coord.shutdown()


@pytest.fixture()
def app(broadcaster: ProgressBroadcaster, coordinator: IngestionCoordinator) -> FastAPI:
    application = create_app()
    application.state.broadcaster = broadcaster
    application.state.coordinator = coordinator
    return application


@pytest.fixture()
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Returns an HTTPX client for calling the API in tests."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
