"""
StreamVault • Media (streaming, status, processing)
===================================================

Route Index
-----------
- GET   /media/{id}/stream        → Range-aware byte delivery (200 / 206 / 416)
- GET   /media/{id}/stream-info   → Metadata + status for players (no storage locator)
- GET   /media/{id}/status        → Lightweight status for reconciliation
- POST  /media/{id}/process       → ADMIN/EDITOR: start ingestion (202)
- PATCH /media/{id}/status        → ADMIN: correct a settled artifact's status

Security
--------
- Stream endpoints accept the credential as `Authorization: Bearer` or
  `?token=` (media elements cannot set headers); JSON endpoints are header-only.
- Cross-tenant ids and viewer-restricted ids answer with the same 404 body as
  unknown ids.
- Responses never include `storage_key`.
"""

# No postponed annotations here: SlowAPI wraps the stream endpoint and FastAPI
# resolves its signature against the wrapper's module globals.

import logging
from typing import AsyncIterator
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.dependencies import get_current_principal, get_stream_principal, require_roles
from app.core.exceptions import AppException, ArtifactNotFound, ConflictError
from app.core.limiter import rate_limit
from app.core.metrics import add_stream_bytes, inc_stream_response
from app.core.storage import LocalMediaStorage, get_storage
from app.db.models.media_artifact import MediaArtifact
from app.db.session import get_async_db
from app.repositories.artifacts import ArtifactRepository
from app.schemas.auth import AuthenticatedPrincipal
from app.schemas.enums import ArtifactStatus, PrincipalRole
from app.schemas.media import (
    ArtifactStatusOut,
    ProcessAccepted,
    StatusCorrection,
    StreamInfo,
    StreamInfoVideo,
    TechnicalMetadata,
)
from app.security_headers import set_sensitive_cache
from app.services.pipeline import IngestionCoordinator
from app.services.streaming import StreamPlan, load_visible_artifact, plan_stream

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/media", tags=["Media"])
__all__ = ["router"]


# ─────────────────────────────────────────────────────────────────────────────
# 🧩 Helpers
# ─────────────────────────────────────────────────────────────────────────────
def get_coordinator(request: Request) -> IngestionCoordinator:
    return request.app.state.coordinator


def _status_out(artifact: MediaArtifact, coordinator: IngestionCoordinator) -> ArtifactStatusOut:
    return ArtifactStatusOut(
        id=artifact.id,
        processing_status=artifact.status,
        status_detail=artifact.status_detail,
        updated_at=artifact.updated_at,
        processing_in_flight=coordinator.in_flight(artifact.id),
    )


async def _body(storage: LocalMediaStorage, plan: StreamPlan) -> AsyncIterator[bytes]:
    if plan.length == 0:
        return
    async for chunk in storage.iter_range(plan.storage_key, plan.start, plan.end):
        add_stream_bytes(len(chunk))
        yield chunk


# ─────────────────────────────────────────────────────────────────────────────
# 🎬 Streaming
# ─────────────────────────────────────────────────────────────────────────────
@router.get("/{artifact_id}/stream", summary="Stream a media artifact (HTTP Range aware)")
@rate_limit(settings.STREAM_RATE_LIMIT)
async def stream_media(
    request: Request,
    artifact_id: UUID,
    principal: AuthenticatedPrincipal = Depends(get_stream_principal),
    db: AsyncSession = Depends(get_async_db),
    storage: LocalMediaStorage = Depends(get_storage),
) -> StreamingResponse:
    """Deliver the whole asset (200) or one inclusive byte span (206).

    Status and headers are fixed before any body byte is produced.
    """
    repo = ArtifactRepository(db)
    try:
        plan = await plan_stream(repo, storage, artifact_id, principal, request.headers.get("range"))
    except AppException as e:
        inc_stream_response(e.status_code)
        raise

    if plan.counts_as_view:
        await repo.increment_views(plan.artifact_id)
        await db.commit()

    inc_stream_response(plan.status_code)
    logger.info(
        "stream %s bytes %d-%d/%d",
        plan.status_code,
        plan.start,
        plan.end,
        plan.total,
        extra={"artifact_id": str(artifact_id)},
    )
    return StreamingResponse(
        _body(storage, plan),
        status_code=plan.status_code,
        media_type=plan.media_type,
        headers=plan.headers,
    )


@router.get("/{artifact_id}/stream-info", response_model=StreamInfo, summary="Player metadata")
async def stream_info(
    artifact_id: UUID,
    response: Response,
    principal: AuthenticatedPrincipal = Depends(get_stream_principal),
    db: AsyncSession = Depends(get_async_db),
) -> StreamInfo:
    set_sensitive_cache(response)
    artifact = await load_visible_artifact(ArtifactRepository(db), artifact_id, principal)
    video = StreamInfoVideo(
        id=artifact.id,
        title=artifact.title,
        description=artifact.description,
        duration=artifact.duration_seconds,
        file_size=artifact.bytes_size,
        mime_type=artifact.mime_type,
        processing_status=artifact.status,
        status_detail=artifact.status_detail,
        metadata=TechnicalMetadata.model_validate(artifact),
        owner_id=artifact.owner_id,
        is_public=artifact.is_public,
        views=artifact.views,
        created_at=artifact.created_at,
    )
    return StreamInfo(video=video, stream_url=f"{settings.API_V1_STR}/media/{artifact.id}/stream")


# ─────────────────────────────────────────────────────────────────────────────
# 📊 Status
# ─────────────────────────────────────────────────────────────────────────────
@router.get("/{artifact_id}/status", response_model=ArtifactStatusOut, summary="Processing status")
async def get_status(
    artifact_id: UUID,
    response: Response,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_db),
    coordinator: IngestionCoordinator = Depends(get_coordinator),
) -> ArtifactStatusOut:
    set_sensitive_cache(response)
    artifact = await load_visible_artifact(ArtifactRepository(db), artifact_id, principal)
    return _status_out(artifact, coordinator)


@router.post(
    "/{artifact_id}/process",
    response_model=ProcessAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start ingestion for a PENDING artifact",
)
async def start_processing(
    artifact_id: UUID,
    principal: AuthenticatedPrincipal = Depends(require_roles(PrincipalRole.ADMIN, PrincipalRole.EDITOR)),
    db: AsyncSession = Depends(get_async_db),
    coordinator: IngestionCoordinator = Depends(get_coordinator),
) -> ProcessAccepted:
    artifact = await ArtifactRepository(db).get_for_tenant(artifact_id, principal.tenant_id)
    if artifact is None:
        raise ArtifactNotFound()
    current = artifact.status
    await db.commit()  # release the read before the coordinator writes

    if not await coordinator.start(artifact_id, principal.tenant_id):
        raise ConflictError(
            "Artifact is not pending",
            details={"processing_status": current.value},
        )
    return ProcessAccepted(artifact_id=artifact_id, accepted=True, processing_status=ArtifactStatus.PROCESSING)


@router.patch("/{artifact_id}/status", response_model=ArtifactStatusOut, summary="Correct artifact status")
async def correct_status(
    artifact_id: UUID,
    body: StatusCorrection,
    principal: AuthenticatedPrincipal = Depends(require_roles(PrincipalRole.ADMIN)),
    db: AsyncSession = Depends(get_async_db),
    coordinator: IngestionCoordinator = Depends(get_coordinator),
) -> ArtifactStatusOut:
    repo = ArtifactRepository(db)
    artifact = await repo.get_for_tenant(artifact_id, principal.tenant_id)
    if artifact is None:
        raise ArtifactNotFound()
    if coordinator.in_flight(artifact_id):
        raise ConflictError("Artifact is being processed", details={"processing_status": artifact.status.value})

    previous = artifact.status
    if not await repo.correct_status(artifact_id, principal.tenant_id, body.processing_status, body.processing_error):
        await db.rollback()
        raise ArtifactNotFound()
    await db.commit()
    if previous == ArtifactStatus.PROCESSING:
        logger.warning("Reclaimed orphaned PROCESSING artifact", extra={"artifact_id": str(artifact_id)})

    logger.info(
        "Status corrected to %s by %s",
        body.processing_status.value,
        principal.id,
        extra={"artifact_id": str(artifact_id)},
    )
    artifact = await repo.get(artifact_id)
    return _status_out(artifact, coordinator)
