from __future__ import annotations

"""
Progress channel payloads.

Every event is a flat JSON object with an `event` discriminator so browser
clients can switch on a single field. Timestamps are ISO-8601 UTC.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.enums import ArtifactStatus, ProgressEventType
from app.schemas.media import ArtifactSnapshot


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Event(BaseModel):
    artifact_id: UUID
    timestamp: datetime = Field(default_factory=_utcnow)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ProgressEvent(_Event):
    event: Literal[ProgressEventType.PROGRESS] = ProgressEventType.PROGRESS
    percent: int = Field(ge=0, le=100)
    stage: str
    detail: Optional[Dict[str, Any]] = None


class CompletionEvent(_Event):
    event: Literal[ProgressEventType.COMPLETE] = ProgressEventType.COMPLETE
    terminal_status: ArtifactStatus
    snapshot: ArtifactSnapshot


class FailureEvent(_Event):
    event: Literal[ProgressEventType.ERROR] = ProgressEventType.ERROR
    error_message: str


PipelineEvent = Union[ProgressEvent, CompletionEvent, FailureEvent]

__all__ = ["ProgressEvent", "CompletionEvent", "FailureEvent", "PipelineEvent"]
