# app/core/jwt.py
from __future__ import annotations

"""
StreamVault — JWT helpers
=========================
- `decode_token` with optional issuer/audience enforcement
- Redis JTI revocation lane (`revoked:jti:{jti}`)
- Credential extraction from the `Authorization` header or a `token` query
  parameter (media elements and WebSocket clients cannot set headers)

Notes
-----
- Token *creation* lives in `app.core.security`.
- Tenant and role are carried as claims but the stored principal row stays
  authoritative; see `app.core.dependencies`.
- If Redis is configured but temporarily unavailable, behavior is controlled
  by `AUTH_FAIL_OPEN` (default: False → fail-closed with HTTP 503).
"""

from typing import Any, Dict, Optional, Sequence
import logging

from fastapi import status
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import ValidationError
from starlette.requests import HTTPConnection

from app.core.config import settings
from app.core.exceptions import AppException, AuthError
from app.core.redis_client import redis_wrapper
from app.schemas.auth import TokenPayload

logger = logging.getLogger("auth")

ACCESS_TOKEN_TYPE = "access"


# ─────────────────────────────────────────────────────────────
# 🔧 Internal helpers
# ─────────────────────────────────────────────────────────────

async def _is_revoked(jti: str) -> bool:
    """Return True if the token with this JTI is revoked.

    - No Redis client configured → not revoked (tests/dev).
    - On Redis errors: fail-open if AUTH_FAIL_OPEN, else 503.
    """
    if not redis_wrapper.configured:
        return False
    try:
        return await redis_wrapper.is_jti_revoked(jti)
    except Exception as e:
        if settings.AUTH_FAIL_OPEN:
            logger.error(f"Redis unavailable during revocation check (fail-open): {e}")
            return False
        logger.error(f"Redis unavailable during revocation check (fail-closed): {e}")
        raise AppException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            message="Auth service temporarily unavailable.",
        )


# ─────────────────────────────────────────────────────────────
# 🔓 Decode JWT Token with Redis JTI Revocation Check
# ─────────────────────────────────────────────────────────────
async def decode_token(
    token: str,
    *,
    expected_types: Optional[Sequence[str]] = (ACCESS_TOKEN_TYPE,),
    verify_revocation: bool = True,
) -> TokenPayload:
    """Decode and validate an access token.

    Security checks
    ---------------
    1) Verify signature and standard claims (exp/nbf/iat)
    2) Enforce issuer/audience when configured
    3) Require `sub`, `jti`, `tenant_id`, `role` and `token_type` membership
    4) Consult Redis revocation lane

    Raises
    ------
    AuthError
      401 for invalid/expired/revoked tokens or missing claims
    AppException
      503 if Redis is down and fail-closed is configured
    """
    issuer = settings.JWT_ISSUER or None
    audience = settings.JWT_AUDIENCE or None
    options: Dict[str, Any] = {"verify_aud": bool(audience)}

    try:
        claims = jwt.decode(
            token,
            settings.JWT_SECRET_KEY.get_secret_value(),
            algorithms=[settings.JWT_ALGORITHM],
            options=options,
            audience=audience,
            issuer=issuer,
        )
    except ExpiredSignatureError:
        logger.info("Token expired.")
        raise AuthError("Token has expired.")
    except JWTError as e:
        logger.warning(f"JWT decoding failed: {e}")
        raise AuthError("Invalid token.")

    try:
        payload = TokenPayload(**claims)
    except ValidationError as e:
        logger.warning(f"Token payload rejected: {e.error_count()} claim error(s)")
        raise AuthError("Token missing required claims.")

    if expected_types is not None and payload.token_type not in set(expected_types):
        logger.warning(f"Token type mismatch: got '{payload.token_type}', expected one of {list(expected_types)}")
        raise AuthError("Invalid token type.")

    if verify_revocation and await _is_revoked(payload.jti):
        logger.warning(f"Token with JTI {payload.jti} has been revoked.")
        raise AuthError("Token has been revoked.")

    return payload


# ─────────────────────────────────────────────────────────────
# 📥 Credential extraction
# ─────────────────────────────────────────────────────────────
def get_bearer_token(conn: HTTPConnection) -> str:
    """Extract a Bearer token from the `Authorization` header (case-insensitive)."""
    auth_header = conn.headers.get("Authorization")
    if not auth_header:
        raise AuthError("Missing Authorization header.")

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        logger.warning("Malformed Authorization header.")
        raise AuthError("Invalid Authorization scheme.")
    return parts[1].strip()


def get_token_from_header_or_query(conn: HTTPConnection) -> str:
    """Header first, then `?token=`; either is enough."""
    if conn.headers.get("Authorization"):
        return get_bearer_token(conn)
    token = (conn.query_params.get("token") or "").strip()
    if not token:
        raise AuthError("Missing credential.")
    return token


__all__ = [
    "ACCESS_TOKEN_TYPE",
    "decode_token",
    "get_bearer_token",
    "get_token_from_header_or_query",
]
