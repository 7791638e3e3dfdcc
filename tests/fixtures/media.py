# tests/fixtures/media.py
"""
🎞️ Media fixtures:
- `make_artifact` inserts an artifact row and writes its bytes under MEDIA_ROOT
- `FakeExtractor` stands in for ffprobe
"""

from typing import Awaitable, Callable, List, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ExtractionError
from app.db.models import MediaArtifact, Principal
from app.services.extractor import MediaProbe
from tests.utils.factory import create_artifact

DEFAULT_PROBE = MediaProbe(
    duration=12.5,
    width=1920,
    height=1080,
    bitrate=4_000_000,
    codec="h264",
    frame_rate=29.97,
    audio_codec="aac",
    size=1000,
)


class FakeExtractor:
    """
    Minimal stand-in for `FFprobeExtractor`.

    Returns `probe` (or raises `ExtractionError(error)` when `error` is set) and
    records every storage key it was asked about.
    """

    def __init__(self, *, probe: MediaProbe = DEFAULT_PROBE, error: Optional[str] = None) -> None:
        self.probe_result = probe
        self.error = error
        self.calls: List[str] = []

    async def probe(self, storage_key: str) -> MediaProbe:
        self.calls.append(storage_key)
        if self.error is not None:
            raise ExtractionError(self.error)
        return self.probe_result


@pytest.fixture
def fake_extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def make_artifact(db_session: AsyncSession) -> Callable[..., Awaitable[MediaArtifact]]:
    async def _create(owner: Principal, **kwargs) -> MediaArtifact:
        return await create_artifact(db_session, owner, **kwargs)
    return _create
