# app/core/exceptions.py
from __future__ import annotations

"""
StreamVault — Application Exceptions
====================================
A small layer on top of FastAPI's `HTTPException` that carries structured
metadata and renders through `app.core.exception_handlers` as problem+json.

HTTP-facing taxonomy
--------------------
- `AuthError`            401  missing/invalid/expired/revoked credential, inactive principal
- `PolicyError`          403  role restriction or non-streamable status
- `ArtifactNotFound`     404  nonexistent id *and* tenant/role mismatch (same body)
- `ConflictError`        409  state does not allow the requested transition
- `RangeNotSatisfiable`  416  malformed or unsatisfiable `Range`

Pipeline-internal errors (`ExtractionError`, `ClassificationError`) are plain
exceptions: the coordinator catches them and turns them into a FLAGGED status,
they never reach an HTTP caller.

Usage
-----
    raise PolicyError("Video is still processing", details={"processing_status": "PROCESSING"})
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

__all__ = [
    "AppException",
    "AuthError",
    "PolicyError",
    "ArtifactNotFound",
    "ConflictError",
    "RangeNotSatisfiable",
    "PipelineError",
    "ExtractionError",
    "ClassificationError",
]


# ──────────────────────────────────────────────────────────────
# 📦 Core: AppException
# ──────────────────────────────────────────────────────────────
class AppException(HTTPException):
    """Base application-level exception with optional metadata.

    Attributes
    -----------
    status_code : int
        HTTP status code.
    message : str
        Human-readable error message (serialized as `detail` as well).
    code : int
        Internal/typed error code. Defaults to `status_code`.
    details : dict | list | str | None
        Machine-readable details surfaced to clients.
    headers : dict | None
        Optional response headers (e.g. `Content-Range` on a 416).
    """

    def __init__(
        self,
        *,
        status_code: int,
        message: str,
        code: Optional[int] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.code: int = int(code or status_code)
        self.message: str = message
        self.details: Optional[Any] = details

    def to_problem(self) -> Dict[str, Any]:
        """Extra members merged into the problem+json body."""
        body: Dict[str, Any] = {"code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


# ──────────────────────────────────────────────────────────────
# 🔑 Auth
# ──────────────────────────────────────────────────────────────
class AuthError(AppException):
    """Missing, invalid, expired or revoked credential (401)."""

    def __init__(self, message: str = "Invalid or expired token", *, details: Optional[Any] = None) -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            message=message,
            details=details,
            headers={"WWW-Authenticate": "Bearer"},
        )


# ──────────────────────────────────────────────────────────────
# 🔐 Policy / lookup
# ──────────────────────────────────────────────────────────────
class PolicyError(AppException):
    """Request is understood but refused by access or status policy (403)."""

    def __init__(self, message: str, *, details: Optional[Any] = None) -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, message=message, details=details)


class ArtifactNotFound(AppException):
    """Unknown artifact **or** one the requester may not see.

    Always built with the same message and no details so a cross-tenant probe
    cannot tell the two cases apart.
    """

    MESSAGE = "Video not found or access denied"

    def __init__(self) -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, message=self.MESSAGE)


class ConflictError(AppException):
    """Current artifact state does not allow the requested operation (409)."""

    def __init__(self, message: str, *, details: Optional[Any] = None) -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, message=message, details=details)


class RangeNotSatisfiable(AppException):
    """Malformed or out-of-bounds `Range` header (416)."""

    def __init__(self, total_size: int, *, reason: str = "Range Not Satisfiable") -> None:
        super().__init__(
            status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
            message=reason,
            headers={"Content-Range": f"bytes */{total_size}", "Accept-Ranges": "bytes"},
        )
        self.total_size = total_size


# ──────────────────────────────────────────────────────────────
# 🏭 Pipeline-internal (never rendered over HTTP)
# ──────────────────────────────────────────────────────────────
class PipelineError(Exception):
    """Base for unrecoverable stage failures inside an ingestion run."""


class ExtractionError(PipelineError):
    """Probing the stored asset failed (missing file, tool error, bad output)."""


class ClassificationError(PipelineError):
    """The classification analyzer failed or timed out."""
