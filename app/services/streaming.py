from __future__ import annotations

"""
StreamVault — Range-aware content delivery
==========================================

The content server decides *everything* (status code, headers, byte span)
before the first body byte is written:

1) visibility  — tenant scope + viewer rule; failures are an indistinguishable 404
2) status gate — only COMPLETED streams; FLAGGED and in-progress are 403
3) range       — `bytes=start-end` (end optional) → 206, none → 200, else 416

Supported `Range` grammar is deliberately narrow: a single
`bytes=<start>-[<end>]` span. Suffix ranges (`bytes=-500`), multiple ranges and
other units are answered with 416.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
from uuid import UUID

from fastapi import status

from app.core.exceptions import AppException, ArtifactNotFound, PolicyError, RangeNotSatisfiable
from app.core.storage import AssetMissing, LocalMediaStorage, StorageKeyError
from app.db.models.media_artifact import MediaArtifact
from app.repositories.artifacts import ArtifactRepository
from app.schemas.auth import AuthenticatedPrincipal
from app.schemas.enums import ArtifactStatus

logger = logging.getLogger(__name__)

_RANGE_RE = re.compile(r"^bytes=(\d+)-(\d*)$")


# ─────────────────────────────────────────────────────────────
# 📐 Range parsing
# ─────────────────────────────────────────────────────────────
def parse_range(header: Optional[str], total: int) -> Optional[Tuple[int, int]]:
    """Return the inclusive `(start, end)` span, or None when no range was asked for.

    Raises `RangeNotSatisfiable` for malformed or out-of-bounds ranges.
    """
    if header is None or not header.strip():
        return None
    m = _RANGE_RE.match(header.strip().replace(" ", ""))
    if not m:
        raise RangeNotSatisfiable(total, reason="Malformed Range header")
    start = int(m.group(1))
    end = int(m.group(2)) if m.group(2) else total - 1
    if start >= total or end >= total or start > end:
        raise RangeNotSatisfiable(total)
    return start, end


# ─────────────────────────────────────────────────────────────
# 🔐 Policy
# ─────────────────────────────────────────────────────────────
def can_view(artifact: MediaArtifact, principal: AuthenticatedPrincipal) -> bool:
    """Tenant match, plus the VIEWER restriction to public or own artifacts."""
    if artifact.tenant_id != principal.tenant_id:
        return False
    if principal.is_viewer:
        return artifact.is_public or artifact.owner_id == principal.id
    return True


async def load_visible_artifact(
    repo: ArtifactRepository,
    artifact_id: UUID,
    principal: AuthenticatedPrincipal,
) -> MediaArtifact:
    artifact = await repo.get_for_tenant(artifact_id, principal.tenant_id)
    if artifact is None or not can_view(artifact, principal):
        raise ArtifactNotFound()
    return artifact


def ensure_streamable(artifact: MediaArtifact) -> None:
    if artifact.is_streamable:
        return
    if artifact.status == ArtifactStatus.FLAGGED:
        raise PolicyError(
            "Video has been flagged and cannot be streamed",
            details={"processing_status": artifact.status.value, "status_detail": artifact.status_detail},
        )
    raise PolicyError(
        "Video is still processing",
        details={"processing_status": artifact.status.value},
    )


# ─────────────────────────────────────────────────────────────
# 📦 Stream plan
# ─────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class StreamPlan:
    artifact_id: UUID
    storage_key: str
    status_code: int
    start: int
    end: int
    total: int
    media_type: str
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def length(self) -> int:
        return max(0, self.end - self.start + 1)

    @property
    def counts_as_view(self) -> bool:
        """A response whose body starts at the first byte counts as a view."""
        return self.start == 0


def build_plan(artifact: MediaArtifact, total: int, range_header: Optional[str]) -> StreamPlan:
    span = parse_range(range_header, total)
    media_type = artifact.mime_type or "application/octet-stream"
    headers = {"Accept-Ranges": "bytes"}

    if span is None:
        start, end, code = 0, total - 1, status.HTTP_200_OK
    else:
        start, end = span
        code = status.HTTP_206_PARTIAL_CONTENT
        headers["Content-Range"] = f"bytes {start}-{end}/{total}"
    headers["Content-Length"] = str(max(0, end - start + 1))

    return StreamPlan(
        artifact_id=artifact.id,
        storage_key=artifact.storage_key,
        status_code=code,
        start=start,
        end=end,
        total=total,
        media_type=media_type,
        headers=headers,
    )


async def plan_stream(
    repo: ArtifactRepository,
    storage: LocalMediaStorage,
    artifact_id: UUID,
    principal: AuthenticatedPrincipal,
    range_header: Optional[str],
) -> StreamPlan:
    """Resolve visibility, status and range into a `StreamPlan` or raise."""
    artifact = await load_visible_artifact(repo, artifact_id, principal)
    ensure_streamable(artifact)
    try:
        total = await storage.size(artifact.storage_key)
    except (AssetMissing, StorageKeyError):
        logger.error("Stored asset missing for COMPLETED artifact", extra={"artifact_id": str(artifact_id)})
        raise AppException(status_code=status.HTTP_404_NOT_FOUND, message="Media file not found")
    return build_plan(artifact, total, range_header)


__all__ = [
    "parse_range",
    "can_view",
    "load_visible_artifact",
    "ensure_streamable",
    "StreamPlan",
    "build_plan",
    "plan_stream",
]
