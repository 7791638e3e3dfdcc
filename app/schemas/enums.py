from __future__ import annotations

"""
Central enum definitions used across StreamVault.

Design notes
------------
• All enums subclass `str, PyEnum` for JSON-friendly serialization.
• VALUE STRINGS are **stable** once deployed (DB enums depend on them).
"""

from enum import Enum as PyEnum
from typing import FrozenSet


# ──────────────────────────────────────────────────────────────
# Access control
# ──────────────────────────────────────────────────────────────
class PrincipalRole(str, PyEnum):
    """Role of a principal within its tenant."""
    ADMIN = "ADMIN"
    EDITOR = "EDITOR"
    VIEWER = "VIEWER"


# ──────────────────────────────────────────────────────────────
# Ingestion lifecycle
# ──────────────────────────────────────────────────────────────
class ArtifactStatus(str, PyEnum):
    """Processing status of a media artifact.

    PENDING → PROCESSING → {COMPLETED | FLAGGED}
    """
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FLAGGED = "FLAGGED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: FrozenSet[ArtifactStatus] = frozenset({ArtifactStatus.COMPLETED, ArtifactStatus.FLAGGED})


class VerdictKind(str, PyEnum):
    """Outcome of the classification analyzer."""
    SAFE = "SAFE"
    FLAGGED = "FLAGGED"


class ProgressEventType(str, PyEnum):
    """Event names sent on the per-tenant progress channel."""
    CONNECTED = "connected"
    PROGRESS = "media_processing_progress"
    COMPLETE = "media_processing_complete"
    ERROR = "media_processing_error"
    PONG = "pong"


__all__ = [
    "PrincipalRole",
    "ArtifactStatus",
    "TERMINAL_STATUSES",
    "VerdictKind",
    "ProgressEventType",
]
