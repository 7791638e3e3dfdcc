from __future__ import annotations

"""
StreamVault — Ingestion pipeline coordinator
============================================

Drives one artifact through

    PENDING → PROCESSING → {COMPLETED | FLAGGED}

Stages and progress (one run, non-decreasing):

    0   Initializing              claim the artifact (CAS from PENDING)
    10  Extracting Metadata       extractor.probe(storage_key)
    25  Metadata Extracted        metadata persisted
    30  Content Classification    analyzer.classify(original_filename)
    75  Classification Complete
    90  Finalizing
    100 Completed                 terminal status persisted (CAS from PROCESSING)

Ordering rule: every status write is committed before the event that
announces it is published.

Failures
--------
Any exception inside a run moves the artifact to FLAGGED with the error text
as `status_detail` and publishes exactly one `media_processing_error` event.
Nothing propagates to whoever called `start`.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.exceptions import ClassificationError, ExtractionError
from app.core.metrics import inc_pipeline_run, observe_stage_seconds, pipeline_in_flight
from app.db.models.media_artifact import MediaArtifact
from app.repositories.artifacts import ArtifactRepository
from app.schemas.enums import ArtifactStatus
from app.schemas.events import CompletionEvent, FailureEvent, ProgressEvent
from app.schemas.media import ArtifactSnapshot, TechnicalMetadata
from app.services.analyzer import ClassificationAnalyzer, Verdict, load_analyzer
from app.services.broadcast import ProgressBroadcaster
from app.services.extractor import FFprobeExtractor, MetadataExtractor

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# 📊 Stage table
# ─────────────────────────────────────────────────────────────
STAGE_INITIALIZING = (0, "Initializing")
STAGE_EXTRACTING = (10, "Extracting Metadata")
STAGE_EXTRACTED = (25, "Metadata Extracted")
STAGE_CLASSIFYING = (30, "Content Classification")
STAGE_CLASSIFIED = (75, "Classification Complete")
STAGE_FINALIZING = (90, "Finalizing")
STAGE_COMPLETED = (100, "Completed")


def snapshot_of(artifact: MediaArtifact) -> ArtifactSnapshot:
    return ArtifactSnapshot(
        id=artifact.id,
        title=artifact.title,
        processing_status=artifact.status,
        status_detail=artifact.status_detail,
        duration=artifact.duration_seconds,
        metadata=TechnicalMetadata.model_validate(artifact),
    )


class _Run:
    """Per-run progress cursor; refuses to move backwards."""

    def __init__(self, coordinator: "IngestionCoordinator", artifact_id: UUID, tenant_id: UUID) -> None:
        self.coordinator = coordinator
        self.artifact_id = artifact_id
        self.tenant_id = tenant_id
        self.percent = 0

    def emit(self, stage: tuple[int, str], detail: Optional[dict] = None) -> None:
        percent, name = stage
        percent = max(self.percent, percent)
        self.percent = percent
        self.coordinator.broadcaster.publish(
            self.tenant_id,
            ProgressEvent(artifact_id=self.artifact_id, percent=percent, stage=name, detail=detail),
        )


class IngestionCoordinator:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        broadcaster: ProgressBroadcaster,
        *,
        extractor: Optional[MetadataExtractor] = None,
        analyzer: Optional[ClassificationAnalyzer] = None,
        analyzer_timeout: Optional[float] = None,
    ) -> None:
        self.session_factory = session_factory
        self.broadcaster = broadcaster
        self.extractor = extractor or FFprobeExtractor()
        self.analyzer = analyzer or load_analyzer()
        self.analyzer_timeout = analyzer_timeout if analyzer_timeout is not None else settings.ANALYZER_TIMEOUT_SECONDS
        self._tasks: Dict[UUID, asyncio.Task] = {}
        self._accepting = True

    # ── session helper ──────────────────────────────────────────────────────
    @asynccontextmanager
    async def _repo(self) -> AsyncIterator[ArtifactRepository]:
        async with self.session_factory() as session:
            try:
                yield ArtifactRepository(session)
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    # ── public API ──────────────────────────────────────────────────────────
    def in_flight(self, artifact_id: UUID) -> bool:
        return artifact_id in self._tasks

    async def start(self, artifact_id: UUID, tenant_id: UUID) -> bool:
        """Claim the artifact and schedule its run in the background.

        Returns False (and schedules nothing) when the coordinator is shutting
        down, a run for this artifact is already in flight, or the artifact is
        not PENDING. Never raises.
        """
        if not self._accepting:
            logger.warning("Coordinator is shutting down; not starting", extra={"artifact_id": str(artifact_id)})
            return False
        if artifact_id in self._tasks:
            logger.info("Run already in flight", extra={"artifact_id": str(artifact_id)})
            return False

        try:
            claimed = await self._claim(artifact_id, tenant_id)
        except Exception:
            logger.exception("Could not claim artifact", extra={"artifact_id": str(artifact_id)})
            return False
        if not claimed:
            return False

        task = asyncio.create_task(self._run(artifact_id, tenant_id), name=f"ingest:{artifact_id}")
        self._tasks[artifact_id] = task
        pipeline_in_flight.inc()
        task.add_done_callback(lambda t: self._forget(artifact_id, t))
        return True

    async def process(self, artifact_id: UUID, tenant_id: UUID) -> Optional[ArtifactStatus]:
        """Claim and run in the foreground; returns the terminal status, or None if not claimed."""
        if not await self._claim(artifact_id, tenant_id):
            return None
        return await self._run(artifact_id, tenant_id)

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        self._accepting = False
        await self.wait_idle()

    # ── internals ───────────────────────────────────────────────────────────
    def _forget(self, artifact_id: UUID, task: asyncio.Task) -> None:
        if self._tasks.get(artifact_id) is task:
            del self._tasks[artifact_id]
            pipeline_in_flight.dec()
        if not task.cancelled() and task.exception() is not None:
            logger.error("Ingestion task crashed: %r", task.exception(), extra={"artifact_id": str(artifact_id)})

    async def _claim(self, artifact_id: UUID, tenant_id: UUID) -> bool:
        async with self._repo() as repo:
            claimed = await repo.begin_processing(artifact_id, tenant_id)
        if not claimed:
            logger.info("Artifact is not PENDING; start ignored", extra={"artifact_id": str(artifact_id)})
            return False
        logger.info("Ingestion started", extra={"artifact_id": str(artifact_id)})
        _Run(self, artifact_id, tenant_id).emit(STAGE_INITIALIZING)
        return True

    async def _run(self, artifact_id: UUID, tenant_id: UUID) -> Optional[ArtifactStatus]:
        run = _Run(self, artifact_id, tenant_id)
        try:
            return await self._stages(run)
        except Exception as e:
            logger.exception("Ingestion failed", extra={"artifact_id": str(artifact_id)})
            return await self._fail(run, str(e) or e.__class__.__name__)

    async def _stages(self, run: _Run) -> Optional[ArtifactStatus]:
        async with self._repo() as repo:
            artifact = await repo.get(run.artifact_id)
            if artifact is None:
                raise LookupError("artifact disappeared during processing")
            storage_key, display_name = artifact.storage_key, artifact.original_filename

        # Metadata extraction
        run.emit(STAGE_EXTRACTING)
        t0 = time.perf_counter()
        try:
            probe = await self.extractor.probe(storage_key)
        except ExtractionError as e:
            return await self._fail(run, f"Metadata extraction failed: {e}")
        finally:
            observe_stage_seconds("extract", time.perf_counter() - t0)
        async with self._repo() as repo:
            await repo.record_metadata(run.artifact_id, **probe.to_columns())
        run.emit(STAGE_EXTRACTED, {"duration": probe.duration, "codec": probe.codec})

        # Classification
        run.emit(STAGE_CLASSIFYING)
        t0 = time.perf_counter()
        try:
            verdict = await self._classify(display_name)
        except ClassificationError as e:
            return await self._fail(run, f"Content classification failed: {e}")
        finally:
            observe_stage_seconds("classify", time.perf_counter() - t0)
        run.emit(STAGE_CLASSIFIED, {"verdict": verdict.kind.value})

        # Finalize
        run.emit(STAGE_FINALIZING)
        status = ArtifactStatus.FLAGGED if verdict.flagged else ArtifactStatus.COMPLETED
        async with self._repo() as repo:
            if not await repo.finish(run.artifact_id, status, verdict.reason):
                logger.warning("Artifact left PROCESSING under us; not finalizing", extra={"artifact_id": str(run.artifact_id)})
                inc_pipeline_run("superseded")
                return None
            artifact = await repo.get(run.artifact_id)
            snapshot = snapshot_of(artifact)

        run.emit(STAGE_COMPLETED)
        self.broadcaster.publish(
            run.tenant_id,
            CompletionEvent(artifact_id=run.artifact_id, terminal_status=status, snapshot=snapshot),
        )
        inc_pipeline_run(status.value.lower())
        logger.info("Ingestion finished: %s", status.value, extra={"artifact_id": str(run.artifact_id)})
        return status

    async def _classify(self, display_name: str) -> Verdict:
        try:
            if self.analyzer_timeout:
                return await asyncio.wait_for(self.analyzer.classify(display_name), self.analyzer_timeout)
            return await self.analyzer.classify(display_name)
        except asyncio.TimeoutError:
            raise ClassificationError(f"analyzer timed out after {self.analyzer_timeout}s")
        except ClassificationError:
            raise
        except Exception as e:
            raise ClassificationError(str(e) or e.__class__.__name__) from e

    async def _fail(self, run: _Run, message: str) -> Optional[ArtifactStatus]:
        try:
            async with self._repo() as repo:
                flagged = await repo.finish(run.artifact_id, ArtifactStatus.FLAGGED, message)
        except Exception:
            logger.exception("Could not record failure", extra={"artifact_id": str(run.artifact_id)})
            inc_pipeline_run("error")
            return None
        if not flagged:
            return None
        self.broadcaster.publish(run.tenant_id, FailureEvent(artifact_id=run.artifact_id, error_message=message))
        inc_pipeline_run("error")
        logger.warning("Ingestion flagged on error: %s", message, extra={"artifact_id": str(run.artifact_id)})
        return ArtifactStatus.FLAGGED


__all__ = ["IngestionCoordinator", "snapshot_of"]
