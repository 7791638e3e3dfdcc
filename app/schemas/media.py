from __future__ import annotations

"""
StreamVault • Media Schemas
===========================

Purpose
-------
- API models for stream-info, status reconciliation, pipeline triggering and
  the administrative status correction.
- The storage locator (`storage_key`) is deliberately absent from every
  response model.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.enums import ArtifactStatus


# === Shared ===============================================================

class TechnicalMetadata(BaseModel):
    """Properties produced by the metadata extractor."""
    model_config = ConfigDict(from_attributes=True)

    width: Optional[int] = None
    height: Optional[int] = None
    bitrate: Optional[int] = None
    codec: Optional[str] = None
    frame_rate: Optional[float] = None
    audio_codec: Optional[str] = None


class ArtifactSnapshot(BaseModel):
    """Compact view attached to the completion event."""
    id: UUID
    title: str
    processing_status: ArtifactStatus
    status_detail: Optional[str] = None
    duration: Optional[float] = None
    metadata: TechnicalMetadata = Field(default_factory=TechnicalMetadata)


# === Stream info / status ================================================

class StreamInfoVideo(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    duration: Optional[float] = None
    file_size: int
    mime_type: str
    processing_status: ArtifactStatus
    status_detail: Optional[str] = None
    metadata: TechnicalMetadata
    owner_id: UUID
    is_public: bool
    views: int
    created_at: Optional[datetime] = None


class StreamInfo(BaseModel):
    video: StreamInfoVideo
    stream_url: str


class ArtifactStatusOut(BaseModel):
    """Pull-based status used by observers to reconcile after reconnect."""
    id: UUID
    processing_status: ArtifactStatus
    status_detail: Optional[str] = None
    updated_at: Optional[datetime] = None
    processing_in_flight: bool = False


# === Pipeline trigger / admin correction =================================

class ProcessAccepted(BaseModel):
    artifact_id: UUID
    accepted: bool
    processing_status: ArtifactStatus


class StatusCorrection(BaseModel):
    """ADMIN-only correction of a settled artifact."""
    processing_status: ArtifactStatus
    processing_error: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("processing_status")
    @classmethod
    def _not_processing(cls, v: ArtifactStatus) -> ArtifactStatus:
        if v == ArtifactStatus.PROCESSING:
            raise ValueError("PROCESSING is set by the ingestion pipeline only")
        return v
