from __future__ import annotations

"""
🎞️ StreamVault — MediaArtifact (one uploaded video and its processing lifecycle)
================================================================================

Created in PENDING by upload acceptance (outside this service), then driven by
the ingestion coordinator through PROCESSING to COMPLETED or FLAGGED.

Design highlights
-----------------
• **Tenant pinning**: `tenant_id` is immutable once set (`@validates` guard);
  every lookup is tenant-scoped.
• **Single writer**: status changes go through compare-and-swap updates in
  `app.repositories.artifacts`, never through ad-hoc attribute writes.
• **Storage locator** (`storage_key`) is internal; API schemas never expose it.
• **Technical metadata** is flattened into columns so listing/filtering code
  can index it without JSON operators.

Relationships
-------------
• `MediaArtifact.owner`  →  `Principal` (uploader)
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from app.db.base_class import Base, TimestampMixin, UUIDPKMixin
from app.schemas.enums import ArtifactStatus

if TYPE_CHECKING:  # pragma: no cover
    from app.db.models.principal import Principal


class TenantReassignmentError(ValueError):
    """Raised when code tries to move an artifact to another tenant."""


class MediaArtifact(UUIDPKMixin, TimestampMixin, Base):
    """Stored video plus pipeline state."""

    __tablename__ = "media_artifacts"

    # ── Scope / ownership ─────────────────────────────────────
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("principals.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # ── Descriptive ──────────────────────────────────────────
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    original_filename: Mapped[str] = mapped_column(String(512), nullable=False, doc="Display name used by classification.")

    # ── Storage ──────────────────────────────────────────────
    storage_key: Mapped[str] = mapped_column(String(1024), nullable=False, unique=True, doc="Locator relative to MEDIA_ROOT.")
    bytes_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(127), nullable=False, default="video/mp4")

    # ── Pipeline state ───────────────────────────────────────
    status: Mapped[ArtifactStatus] = mapped_column(
        SAEnum(ArtifactStatus, name="artifact_status"),
        nullable=False,
        default=ArtifactStatus.PENDING,
        index=True,
    )
    status_detail: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processing_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    processing_finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # ── Technical metadata (extractor output) ────────────────
    duration_seconds: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    width: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    height: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    bitrate: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    codec: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    frame_rate: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    audio_codec: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # ── Visibility / engagement ──────────────────────────────
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"), index=True)
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))

    owner: Mapped["Principal"] = relationship(lazy="noload", foreign_keys=[owner_id])

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        CheckConstraint("bytes_size >= 0", name="size_nonneg"),
        CheckConstraint("views >= 0", name="views_nonneg"),
        CheckConstraint("(width IS NULL OR width > 0) AND (height IS NULL OR height > 0)", name="dims_positive"),
        CheckConstraint("(duration_seconds IS NULL) OR (duration_seconds >= 0)", name="duration_nonneg"),
        CheckConstraint("length(storage_key) > 0", name="storage_key_not_blank"),
        Index("ix_media_artifacts_tenant_created", "tenant_id", "created_at"),
        Index("ix_media_artifacts_tenant_status", "tenant_id", "status"),
        Index("ix_media_artifacts_tenant_owner", "tenant_id", "owner_id"),
        Index("ix_media_artifacts_tenant_public", "tenant_id", "is_public"),
    )

    # ─────────────────────────────────────────────────────────
    # 🔒 Invariants
    # ─────────────────────────────────────────────────────────
    @validates("tenant_id")
    def _pin_tenant(self, key: str, value: uuid.UUID) -> uuid.UUID:
        current = self.__dict__.get("tenant_id")
        if current is not None and value != current:
            raise TenantReassignmentError("tenant_id cannot change after creation")
        return value

    @property
    def is_streamable(self) -> bool:
        return self.status == ArtifactStatus.COMPLETED

    def __repr__(self) -> str:  # pragma: no cover
        return f"<MediaArtifact id={self.id} tenant={self.tenant_id} status={self.status}>"
