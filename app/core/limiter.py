from __future__ import annotations

"""
StreamVault — HTTP Rate Limiting (SlowAPI)
==========================================

Highlights
----------
- **Principal/IP aware** keying: per-principal when auth sets
  `request.state.principal_id`, else per-client-IP (XFF/X-Real-IP/client.host).
- **Exemptions**: probes and `/metrics` are decorated with `rate_limit_exempt`.
- **Test/CI friendly**: `RATE_LIMIT_ENABLED=false` turns every limit into a no-op.
- **Backends**: Redis via `RATELIMIT_STORAGE_URI` or in-memory fallback.

Usage
-----
    from app.core.limiter import install_rate_limiter, rate_limit, rate_limit_exempt

    app = FastAPI()
    install_rate_limiter(app)

    @router.get("/media/{id}/stream")
    @rate_limit("600/minute")
    async def stream(request: Request, ...): ...
"""

from typing import Callable, List

from loguru import logger
from slowapi import Limiter
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.requests import Request

from app.core.config import settings


# ──────────────────────────────────────────────────────────────
# 🧠 Keying & exemptions
# ──────────────────────────────────────────────────────────────
def _client_ip(request: Request) -> str:
    """
    Best-effort client IP:
    1) X-Forwarded-For (first hop)
    2) X-Real-IP
    3) ASGI client.host
    """
    xff = request.headers.get("x-forwarded-for")
    if xff:
        ip = xff.split(",")[0].strip()
        if ip:
            return ip
    xri = request.headers.get("x-real-ip")
    if xri:
        return xri.strip()
    return get_remote_address(request) or "unknown"


def get_rate_limit_key(request: Request) -> str:
    """`principal:<id>` when authenticated, else `ip:<addr>`."""
    principal_id = getattr(request.state, "principal_id", None)
    if principal_id:
        return f"principal:{principal_id}"
    return f"ip:{_client_ip(request)}"


# ──────────────────────────────────────────────────────────────
# 🧰 Limiter instance (Redis / memory)
# ──────────────────────────────────────────────────────────────
def _default_limits() -> List[str]:
    raw = settings.DEFAULT_RATE_LIMIT or ""
    return [chunk.strip() for chunk in raw.split(",") if chunk.strip()]


limiter = Limiter(
    key_func=get_rate_limit_key,
    default_limits=_default_limits(),
    headers_enabled=True,
    storage_uri=settings.ratelimit_storage,
    enabled=settings.RATE_LIMIT_ENABLED,
)


# ──────────────────────────────────────────────────────────────
# 🎛 Decorators
# ──────────────────────────────────────────────────────────────
def rate_limit(*limits: str) -> Callable:
    """
    Apply per-route limits on top of the defaults.

    The decorated endpoint must accept a `request: Request` argument.
    """
    selected = list(limits) or _default_limits()

    def _apply(fn: Callable) -> Callable:
        for limit_value in reversed(selected):
            fn = limiter.limit(limit_value)(fn)
        return fn

    return _apply


def rate_limit_exempt() -> Callable:
    """Explicitly exempt a route from limiting."""
    return limiter.exempt


# ──────────────────────────────────────────────────────────────
# 🔧 Installer
# ──────────────────────────────────────────────────────────────
def install_rate_limiter(app) -> None:
    """Attach the limiter to `app.state` and install SlowAPI middleware."""
    app.state.limiter = limiter
    if not settings.RATE_LIMIT_ENABLED:
        logger.info("RateLimiter disabled by config; middleware not installed")
        return
    app.add_middleware(SlowAPIMiddleware)
    logger.info(
        "✅ RateLimiter ready | default={} | storage={}",
        _default_limits(),
        settings.ratelimit_storage,
    )


__all__ = [
    "limiter",
    "rate_limit",
    "rate_limit_exempt",
    "install_rate_limiter",
    "get_rate_limit_key",
]
