"""
🧭✨ StreamVault • API v1 Router Aggregator
==========================================

Exports the **combined `router`** (ready to include under `/api/v1`) and each
individual sub-router.

Quick usage
-----------
    from app.api.v1.routers import router as v1_router
    app.include_router(v1_router, prefix="/api/v1")

Security notes
--------------
- 🔐 This layer is a pure aggregator; **auth & rate limits live in child routers**.
- Probes and `/metrics` (`ops_router`) are mounted at the application root by
  `app.main`, not here.
"""

from fastapi import APIRouter

from .media import router as media_router
from .progress import router as progress_router
from .ops import router as ops_router


def build_v1_router() -> APIRouter:
    """
    Compose the API v1 surface into a single `APIRouter`.

    Includes:
      • Media streaming/status/processing under `/media`
      • Progress WebSocket at `/ws/progress`
    """
    r = APIRouter()
    r.include_router(media_router)
    r.include_router(progress_router)
    return r


router = build_v1_router()


__all__ = [
    "router",
    "build_v1_router",
    "media_router",
    "progress_router",
    "ops_router",
]
