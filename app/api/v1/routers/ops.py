# app/api/v1/routers/ops.py
# ╔════════════════════════════════════════════════════════════════════════════╗
# ║ 🧩 StreamVault · Observability                                             ║
# ║                                                                            ║
# ║ Endpoints (mounted at the application root, not under /api/v1)             ║
# ║  - GET /healthz   → Liveness (fast, no dependencies)                       ║
# ║  - GET /readyz    → Readiness (DB + Redis + broadcaster)                   ║
# ║  - GET /metrics   → Prometheus exposition                                  ║
# ╠────────────────────────────────────────────────────────────────────────────╣
# ║ Probes are exempt from rate limiting and never cached.                      ║
# ╚════════════════════════════════════════════════════════════════════════════╝

# Postponed annotations stay off: the SlowAPI exemption wrapper is what FastAPI
# introspects.

from typing import Any, Optional

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from app.core.limiter import rate_limit_exempt
from app.core.metrics import inc_redis_error
from app.core.redis_client import redis_wrapper
from app.db.session import db_healthcheck
from app.security_headers import set_sensitive_cache

router = APIRouter(tags=["Observability"])
__all__ = ["router"]


def _no_store_json(payload: Any, status_code: int = 200, request: Optional[Request] = None) -> JSONResponse:
    """JSONResponse with strict no-store caching and the request id echoed back."""
    resp = JSONResponse(payload, status_code=status_code)
    set_sensitive_cache(resp)
    if request is not None and "x-request-id" in request.headers:
        resp.headers["X-Request-ID"] = request.headers["x-request-id"]
    return resp


@router.get("/healthz")
@rate_limit_exempt()
async def healthz(request: Request) -> JSONResponse:
    """Liveness probe: the process is responsive."""
    return _no_store_json({"ok": True}, request=request)


@router.get("/readyz")
@rate_limit_exempt()
async def readyz(request: Request) -> JSONResponse:
    """Readiness probe.

    Redis only matters when it has been configured (revocation lane); an
    unconfigured Redis is reported but does not fail readiness.
    """
    db_ok = await db_healthcheck()

    redis_ok: Optional[bool] = None
    if redis_wrapper.configured:
        redis_ok = await redis_wrapper.is_connected()
        if not redis_ok:
            inc_redis_error("readyz")

    broadcaster = getattr(request.app.state, "broadcaster", None)
    hub_ok = bool(broadcaster and broadcaster.is_open)

    ready = db_ok and hub_ok and redis_ok is not False
    return _no_store_json(
        {"ready": ready, "checks": {"db": db_ok, "redis": redis_ok, "broadcaster": hub_ok}},
        status_code=200 if ready else 503,
        request=request,
    )


@router.get("/metrics")
@rate_limit_exempt()
async def metrics(request: Request) -> Response:
    """Prometheus text exposition for the default registry."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST, headers={"Cache-Control": "no-store"})
