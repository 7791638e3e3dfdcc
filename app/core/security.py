# app/core/security.py
from __future__ import annotations

"""
StreamVault — Token issuance & revocation
=========================================
- Access tokens carry `sub`, `tenant_id`, `role`, `jti`, `token_type` plus the
  standard `iat`/`nbf`/`exp` (and `iss`/`aud` when configured).
- Revocation writes the JTI into the Redis lane consulted by `app.core.jwt`.

Decoding lives in `app.core.jwt`; principal resolution in `app.core.dependencies`.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID, uuid4
import logging

from jose import jwt

from app.core.config import settings
from app.core.jwt import ACCESS_TOKEN_TYPE, decode_token
from app.core.redis_client import redis_wrapper
from app.schemas.enums import PrincipalRole

ALGORITHM: str = settings.JWT_ALGORITHM
logger = logging.getLogger("security")


# ───────────────────────────────────────────────
# 🪪 JWT — Access Token Generation
# ───────────────────────────────────────────────
def create_access_token(
    principal_id: UUID,
    tenant_id: UUID,
    role: PrincipalRole,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed **access token** for a principal."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))

    payload: Dict[str, Any] = {
        "sub": str(principal_id),
        "tenant_id": str(tenant_id),
        "role": PrincipalRole(role).value,
        "exp": expire,
        "iat": now,
        "nbf": now,
        "jti": str(uuid4()),
        "token_type": ACCESS_TOKEN_TYPE,
    }
    if settings.JWT_ISSUER:
        payload["iss"] = settings.JWT_ISSUER
    if settings.JWT_AUDIENCE:
        payload["aud"] = settings.JWT_AUDIENCE

    return jwt.encode(payload, settings.JWT_SECRET_KEY.get_secret_value(), algorithm=ALGORITHM)


# ───────────────────────────────────────────────
# 🚫 Revocation
# ───────────────────────────────────────────────
async def revoke_token(token: str) -> str:
    """Put the token's JTI on the revocation lane until it would have expired.

    Returns the revoked JTI. Requires a connected Redis.
    """
    payload = await decode_token(token, verify_revocation=False)
    exp = payload.exp
    if isinstance(exp, datetime):
        exp = int(exp.timestamp())
    ttl = int(exp) - int(datetime.now(timezone.utc).timestamp())
    await redis_wrapper.revoke_jti(payload.jti, ttl)
    logger.info("Revoked access token", extra={"jti": payload.jti})
    return payload.jti


__all__ = ["create_access_token", "revoke_token"]
