# tests/test_pipeline/test_ingestion_coordinator.py

import asyncio
import random

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.pool import NullPool

from app.db.models.media_artifact import MediaArtifact
from app.db.session import async_engine, async_session_maker
from app.schemas.enums import ArtifactStatus, PrincipalRole, ProgressEventType
from app.services.analyzer import GENERIC_FLAG_REASON, KeywordAnalyzer, Verdict
from app.services.broadcast import ProgressBroadcaster
from app.services.pipeline import IngestionCoordinator
from tests.fixtures.media import FakeExtractor
from tests.utils.factory import load_artifact


# ------------------------ helpers --------------------------------------------

def _drain(sub):
    events = []
    while not sub.queue.empty():
        item = sub.queue.get_nowait()
        if isinstance(item, dict):
            events.append(item)
    return events


def _percents(events):
    return [e["percent"] for e in events if e["event"] == ProgressEventType.PROGRESS.value]


class SlowAnalyzer:
    async def classify(self, display_name: str) -> Verdict:
        await asyncio.sleep(5)
        return Verdict.safe()


class BrokenAnalyzer:
    async def classify(self, display_name: str) -> Verdict:
        raise RuntimeError("model unavailable")


# ------------------------ happy path -----------------------------------------

@pytest.mark.anyio
async def test_clean_artifact_completes_with_metadata(coordinator, broadcaster, make_principal, make_artifact, fake_extractor):
    owner = await make_principal(role=PrincipalRole.EDITOR)
    artifact = await make_artifact(owner)
    sub = broadcaster.subscribe(owner.tenant_id)

    result = await coordinator.process(artifact.id, owner.tenant_id)

    assert result == ArtifactStatus.COMPLETED
    row = await load_artifact(artifact.id)
    assert row.status == ArtifactStatus.COMPLETED
    assert row.status_detail is None
    assert row.codec == "h264"
    assert row.width == 1920 and row.height == 1080
    assert row.duration_seconds == pytest.approx(12.5)
    assert row.bytes_size == 1000  # probe size never overwrites the stored size
    assert fake_extractor.calls == [artifact.storage_key]

    events = _drain(sub)
    assert _percents(events) == [0, 10, 25, 30, 75, 90, 100]
    complete = events[-1]
    assert complete["event"] == ProgressEventType.COMPLETE.value
    assert complete["terminal_status"] == "COMPLETED"
    assert complete["snapshot"]["metadata"]["codec"] == "h264"
    assert "storage_key" not in complete["snapshot"]


@pytest.mark.anyio
async def test_background_start_runs_to_completion(coordinator, make_principal, make_artifact):
    owner = await make_principal()
    artifact = await make_artifact(owner)

    assert await coordinator.start(artifact.id, owner.tenant_id) is True
    assert coordinator.in_flight(artifact.id)

    await coordinator.wait_idle()
    assert not coordinator.in_flight(artifact.id)
    assert (await load_artifact(artifact.id)).status == ArtifactStatus.COMPLETED


# ------------------------ flagging -------------------------------------------

@pytest.mark.anyio
async def test_disallowed_term_flags_with_reason(coordinator, broadcaster, make_principal, make_artifact):
    owner = await make_principal()
    artifact = await make_artifact(owner, original_filename="Explicit_Cut.mp4")
    sub = broadcaster.subscribe(owner.tenant_id)

    result = await coordinator.process(artifact.id, owner.tenant_id)

    assert result == ArtifactStatus.FLAGGED
    row = await load_artifact(artifact.id)
    assert row.status == ArtifactStatus.FLAGGED
    assert row.status_detail == 'Disallowed term detected: "explicit"'

    events = _drain(sub)
    assert events[-1]["event"] == ProgressEventType.COMPLETE.value
    assert events[-1]["terminal_status"] == "FLAGGED"


@pytest.mark.anyio
async def test_seeded_random_flag_is_reproducible(broadcaster, fake_extractor, make_principal, make_artifact):
    owner = await make_principal()
    artifacts = [await make_artifact(owner, original_filename=f"clip_{i}.mp4") for i in range(6)]

    expected_rng = random.Random(7)
    expected = [
        ArtifactStatus.FLAGGED if expected_rng.random() < 0.5 else ArtifactStatus.COMPLETED
        for _ in artifacts
    ]

    coord = IngestionCoordinator(
        async_session_maker,
        broadcaster,
        extractor=fake_extractor,
        analyzer=KeywordAnalyzer(terms=[], flag_rate=0.5, rng=random.Random(7), delay_seconds=0),
    )
    results = [await coord.process(a.id, owner.tenant_id) for a in artifacts]

    assert results == expected
    for artifact, status in zip(artifacts, results):
        row = await load_artifact(artifact.id)
        assert row.status == status
        assert row.status_detail == (GENERIC_FLAG_REASON if status == ArtifactStatus.FLAGGED else None)


# ------------------------ failures -------------------------------------------

@pytest.mark.anyio
async def test_extraction_failure_flags_and_emits_one_error(broadcaster, analyzer, make_principal, make_artifact):
    owner = await make_principal()
    artifact = await make_artifact(owner)
    sub = broadcaster.subscribe(owner.tenant_id)
    coord = IngestionCoordinator(
        async_session_maker, broadcaster, extractor=FakeExtractor(error="moov atom not found"), analyzer=analyzer
    )

    assert await coord.process(artifact.id, owner.tenant_id) == ArtifactStatus.FLAGGED

    row = await load_artifact(artifact.id)
    assert row.status == ArtifactStatus.FLAGGED
    assert row.status_detail == "Metadata extraction failed: moov atom not found"

    events = _drain(sub)
    errors = [e for e in events if e["event"] == ProgressEventType.ERROR.value]
    assert len(errors) == 1
    assert errors[0]["error_message"] == row.status_detail
    assert not [e for e in events if e["event"] == ProgressEventType.COMPLETE.value]


@pytest.mark.anyio
async def test_analyzer_timeout_flags(broadcaster, fake_extractor, make_principal, make_artifact):
    owner = await make_principal()
    artifact = await make_artifact(owner)
    coord = IngestionCoordinator(
        async_session_maker, broadcaster, extractor=fake_extractor, analyzer=SlowAnalyzer(), analyzer_timeout=0.05
    )

    assert await coord.process(artifact.id, owner.tenant_id) == ArtifactStatus.FLAGGED
    detail = (await load_artifact(artifact.id)).status_detail
    assert detail.startswith("Content classification failed: analyzer timed out")


@pytest.mark.anyio
async def test_analyzer_crash_flags(broadcaster, fake_extractor, make_principal, make_artifact):
    owner = await make_principal()
    artifact = await make_artifact(owner)
    coord = IngestionCoordinator(async_session_maker, broadcaster, extractor=fake_extractor, analyzer=BrokenAnalyzer())

    assert await coord.process(artifact.id, owner.tenant_id) == ArtifactStatus.FLAGGED
    assert (await load_artifact(artifact.id)).status_detail == "Content classification failed: model unavailable"


# ------------------------ claiming -------------------------------------------

@pytest.mark.anyio
async def test_start_refuses_non_pending(coordinator, make_principal, make_artifact):
    owner = await make_principal()
    done = await make_artifact(owner, status=ArtifactStatus.COMPLETED)

    assert await coordinator.start(done.id, owner.tenant_id) is False
    assert not coordinator.in_flight(done.id)
    assert (await load_artifact(done.id)).status == ArtifactStatus.COMPLETED


@pytest.mark.anyio
async def test_second_start_is_rejected(coordinator, make_principal, make_artifact):
    owner = await make_principal()
    artifact = await make_artifact(owner)

    assert await coordinator.start(artifact.id, owner.tenant_id) is True
    assert await coordinator.start(artifact.id, owner.tenant_id) is False
    await coordinator.wait_idle()


@pytest.mark.anyio
async def test_start_is_tenant_scoped(coordinator, make_principal, make_artifact, make_tenant):
    owner = await make_principal()
    other = await make_tenant(name="Other")
    artifact = await make_artifact(owner)

    assert await coordinator.start(artifact.id, other.id) is False
    assert (await load_artifact(artifact.id)).status == ArtifactStatus.PENDING


@pytest.mark.anyio
async def test_shutdown_stops_accepting(coordinator, make_principal, make_artifact):
    owner = await make_principal()
    artifact = await make_artifact(owner)

    await coordinator.shutdown()

    assert await coordinator.start(artifact.id, owner.tenant_id) is False
    assert (await load_artifact(artifact.id)).status == ArtifactStatus.PENDING


@pytest.mark.anyio
async def test_concurrent_runs_are_independent(coordinator, broadcaster, make_principal, make_artifact):
    owner = await make_principal()
    clean = await make_artifact(owner, original_filename="holiday.mp4")
    bad = await make_artifact(owner, original_filename="nsfw-reel.mp4")
    sub = broadcaster.subscribe(owner.tenant_id)

    assert await coordinator.start(clean.id, owner.tenant_id)
    assert await coordinator.start(bad.id, owner.tenant_id)
    await coordinator.wait_idle()

    assert (await load_artifact(clean.id)).status == ArtifactStatus.COMPLETED
    assert (await load_artifact(bad.id)).status == ArtifactStatus.FLAGGED

    events = _drain(sub)
    for artifact_id in (clean.id, bad.id):
        mine = _percents([e for e in events if e["artifact_id"] == str(artifact_id)])
        assert mine == sorted(mine)
        assert mine[-1] == 100


# ------------------------ persist before broadcast ---------------------------

class CommittedStateRecorder(ProgressBroadcaster):
    """Reads the artifact's committed status, from a separate connection, at every publish."""

    def __init__(self) -> None:
        super().__init__(queue_size=64)
        self.engine = create_engine(async_engine.url.set(drivername="sqlite"), poolclass=NullPool)
        self.seen = []

    def publish(self, tenant_id, event):
        with self.engine.connect() as conn:
            status = conn.execute(
                select(MediaArtifact.status).where(MediaArtifact.id == event.artifact_id)
            ).scalar_one()
        self.seen.append((event.to_wire(), status))
        return super().publish(tenant_id, event)


@pytest.mark.anyio
@pytest.mark.parametrize(
    "filename, extractor_error, terminal",
    [
        ("holiday.mp4", None, ArtifactStatus.COMPLETED),
        ("sensitive-cut.mp4", None, ArtifactStatus.FLAGGED),
        ("holiday.mp4", "truncated file", ArtifactStatus.FLAGGED),
    ],
)
async def test_every_event_announces_committed_state(
    analyzer, make_principal, make_artifact, filename, extractor_error, terminal
):
    owner = await make_principal()
    artifact = await make_artifact(owner, original_filename=filename)
    hub = CommittedStateRecorder()
    hub.start()
    coord = IngestionCoordinator(
        async_session_maker, hub, extractor=FakeExtractor(error=extractor_error), analyzer=analyzer
    )

    try:
        assert await coord.process(artifact.id, owner.tenant_id) == terminal
    finally:
        hub.close()
        hub.engine.dispose()

    assert hub.seen
    for payload, committed in hub.seen:
        if payload["event"] == ProgressEventType.PROGRESS.value and payload["percent"] < 100:
            assert committed == ArtifactStatus.PROCESSING, payload
        else:
            assert committed == terminal, payload
    kinds = {payload["event"] for payload, _ in hub.seen}
    if extractor_error:
        assert ProgressEventType.ERROR.value in kinds
    else:
        assert ProgressEventType.COMPLETE.value in kinds
