# app/schemas/auth.py

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.schemas.enums import PrincipalRole


# ──────────────── Token ────────────────
class TokenPayload(BaseModel):
    """Claims carried by a StreamVault access token."""
    model_config = ConfigDict(extra="ignore")

    sub: str
    exp: int | datetime
    jti: str
    tenant_id: UUID
    role: PrincipalRole
    token_type: Optional[str] = None  # "access"
    iat: Optional[int | datetime] = None
    nbf: Optional[int | datetime] = None
    iss: Optional[str] = None
    aud: Optional[str] = None


# ──────────────── Resolved identity ────────────────
class AuthenticatedPrincipal(BaseModel):
    """Identity the content server and progress channel act on.

    Built once per request/connection from a verified token plus the stored
    principal row; the tenant scope never changes afterwards.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID
    tenant_id: UUID
    role: PrincipalRole
    email: Optional[str] = None

    @property
    def is_viewer(self) -> bool:
        return self.role == PrincipalRole.VIEWER

    @property
    def is_admin(self) -> bool:
        return self.role == PrincipalRole.ADMIN
