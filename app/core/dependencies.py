# app/core/dependencies.py
from __future__ import annotations

"""
Request dependencies — StreamVault
==================================

Turns a presented credential into an `AuthenticatedPrincipal`:

1) Extract the token (header only, or header-or-query for media/WebSocket)
2) Decode & validate it via `app.core.jwt`
3) Load the principal row; it must exist, be active, and still belong to the
   tenant named in the token, whose own row must be active
4) Build the immutable identity from the **stored** role and tenant

Duplication Policy
------------------
Token decoding and credential parsing live in `app.core.jwt`. This module only
*uses* them.
"""

from typing import Callable, Iterable
from uuid import UUID
import logging

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import HTTPConnection

from app.core.exceptions import AuthError, PolicyError
from app.core.jwt import decode_token, get_bearer_token, get_token_from_header_or_query
from app.db.models.principal import Principal
from app.db.session import get_async_db
from app.schemas.auth import AuthenticatedPrincipal
from app.schemas.enums import PrincipalRole

logger = logging.getLogger(__name__)

__all__ = [
    "resolve_principal",
    "get_current_principal",
    "get_stream_principal",
    "require_roles",
]


# ──────────────────────────────────────────────────────────────
# 🔐 Core resolution (shared by HTTP and WebSocket)
# ──────────────────────────────────────────────────────────────
async def resolve_principal(token: str, db: AsyncSession) -> AuthenticatedPrincipal:
    """Validate `token` and return the identity it stands for.

    Raises
    ------
    AuthError
        Invalid/expired/revoked token, unknown or inactive principal, inactive
        tenant, or a tenant claim that no longer matches the stored principal.
    """
    payload = await decode_token(token)

    try:
        principal_id = UUID(payload.sub)
    except ValueError:
        raise AuthError("Invalid subject in token.")

    principal = await db.get(Principal, principal_id)
    if principal is None or not principal.is_active:
        raise AuthError("Inactive or missing principal.")
    if principal.tenant_id != payload.tenant_id:
        logger.warning("Tenant claim mismatch", extra={"principal_id": str(principal_id)})
        raise AuthError("Token tenant does not match principal.")
    if principal.tenant is None or not principal.tenant.is_active:
        raise AuthError("Tenant is inactive.")

    return AuthenticatedPrincipal(
        id=principal.id,
        tenant_id=principal.tenant_id,
        role=principal.role,
        email=principal.email,
    )


def _remember(conn: HTTPConnection, principal: AuthenticatedPrincipal) -> AuthenticatedPrincipal:
    conn.state.principal_id = principal.id
    conn.state.tenant_id = principal.tenant_id
    return principal


# ──────────────────────────────────────────────────────────────
# 👤 FastAPI dependencies
# ──────────────────────────────────────────────────────────────
async def get_current_principal(
    request: Request,
    db: AsyncSession = Depends(get_async_db),
) -> AuthenticatedPrincipal:
    """Header-only authentication for JSON endpoints."""
    token = get_bearer_token(request)
    return _remember(request, await resolve_principal(token, db))


async def get_stream_principal(
    request: Request,
    db: AsyncSession = Depends(get_async_db),
) -> AuthenticatedPrincipal:
    """Authentication for media endpoints: header or `?token=`."""
    token = get_token_from_header_or_query(request)
    return _remember(request, await resolve_principal(token, db))


def require_roles(*roles: PrincipalRole) -> Callable:
    """Dependency factory: the principal's role must be one of `roles`."""
    allowed: Iterable[PrincipalRole] = frozenset(roles)

    async def _dep(principal: AuthenticatedPrincipal = Depends(get_current_principal)) -> AuthenticatedPrincipal:
        if principal.role not in allowed:
            raise PolicyError(
                "Insufficient role for this operation",
                details={"required": sorted(r.value for r in allowed)},
            )
        return principal

    return _dep
