from __future__ import annotations

"""
Artifact state store.

All status writes are compare-and-swap UPDATEs guarded by the expected current
status, so at most one writer can move an artifact forward: a second
coordinator (or an admin correction racing a run) simply sees `False`.
Reads never lock.
"""

import uuid
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.media_artifact import MediaArtifact
from app.schemas.enums import ArtifactStatus


class ArtifactRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ── reads ───────────────────────────────────────────────────────────────
    async def get(self, artifact_id: uuid.UUID) -> Optional[MediaArtifact]:
        return await self.session.get(MediaArtifact, artifact_id, populate_existing=True)

    async def get_for_tenant(self, artifact_id: uuid.UUID, tenant_id: uuid.UUID) -> Optional[MediaArtifact]:
        """Tenant-scoped lookup; a foreign tenant's artifact is simply absent."""
        stmt = (
            select(MediaArtifact)
            .where(MediaArtifact.id == artifact_id, MediaArtifact.tenant_id == tenant_id)
            .execution_options(populate_existing=True)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    # ── guarded writes ──────────────────────────────────────────────────────
    async def _transition(
        self,
        artifact_id: uuid.UUID,
        *,
        expected: tuple[ArtifactStatus, ...],
        tenant_id: Optional[uuid.UUID] = None,
        **values,
    ) -> bool:
        stmt = update(MediaArtifact).where(
            MediaArtifact.id == artifact_id,
            MediaArtifact.status.in_(expected),
        )
        if tenant_id is not None:
            stmt = stmt.where(MediaArtifact.tenant_id == tenant_id)
        stmt = stmt.values(updated_at=func.now(), **values).execution_options(synchronize_session=False)
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def begin_processing(self, artifact_id: uuid.UUID, tenant_id: uuid.UUID) -> bool:
        """PENDING → PROCESSING. Returns False when another run owns (or owned) the artifact."""
        return await self._transition(
            artifact_id,
            expected=(ArtifactStatus.PENDING,),
            tenant_id=tenant_id,
            status=ArtifactStatus.PROCESSING,
            status_detail=None,
            processing_started_at=func.now(),
            processing_finished_at=None,
        )

    async def record_metadata(self, artifact_id: uuid.UUID, **metadata) -> bool:
        """Store extractor output; only valid while the run still owns the row."""
        return await self._transition(artifact_id, expected=(ArtifactStatus.PROCESSING,), **metadata)

    async def finish(self, artifact_id: uuid.UUID, status: ArtifactStatus, detail: Optional[str] = None) -> bool:
        """PROCESSING → COMPLETED | FLAGGED."""
        if not status.is_terminal:
            raise ValueError(f"{status} is not a terminal status")
        return await self._transition(
            artifact_id,
            expected=(ArtifactStatus.PROCESSING,),
            status=status,
            status_detail=detail,
            processing_finished_at=func.now(),
        )

    async def correct_status(
        self,
        artifact_id: uuid.UUID,
        tenant_id: uuid.UUID,
        status: ArtifactStatus,
        detail: Optional[str],
    ) -> bool:
        """Administrative correction.

        A PROCESSING row is only corrected when the caller has established that no
        run owns it (a worker died mid-run); a run that later tries to finish
        loses its compare-and-swap.
        """
        return await self._transition(
            artifact_id,
            expected=tuple(ArtifactStatus),
            tenant_id=tenant_id,
            status=status,
            status_detail=detail,
        )

    async def increment_views(self, artifact_id: uuid.UUID) -> None:
        stmt = (
            update(MediaArtifact)
            .where(MediaArtifact.id == artifact_id)
            .values(views=MediaArtifact.views + 1)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
