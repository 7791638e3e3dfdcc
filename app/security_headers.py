# app/security_headers.py
from __future__ import annotations

"""
# StreamVault — Security Headers & CORS

Security headers and CORS utilities for the API and media responses.

## What you get
- **Headers**: HSTS, Referrer-Policy, X-Content-Type-Options, X-Frame-Options,
  Cross-Origin-Resource-Policy, X-Permitted-Cross-Domain-Policies.
- **CORS installer**: strict allow-list from `FRONTEND_ORIGINS`; exposes the
  range headers players need (`Content-Range`, `Accept-Ranges`, `Content-Length`).
- **Cache helper**: `set_sensitive_cache()` for status/metadata responses.

## Env knobs
- ENABLE_HTTPS_REDIRECT (default "false"; TLS usually ends at the proxy)
- HSTS_MAX_AGE (31536000)
- REFERRER_POLICY (default "strict-origin-when-cross-origin")
- CROSS_ORIGIN_RESOURCE_POLICY (default "same-site"; media is embedded by the frontend)
"""

import os
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from fastapi import Response
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

from app.core.config import settings


# ─────────────────────────────────────────────────────────────
# ⚙️ Configuration
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SecurityHeadersConfig:
    hsts_max_age: int = int(os.getenv("HSTS_MAX_AGE", "31536000"))
    referrer_policy: str = os.getenv("REFERRER_POLICY", "strict-origin-when-cross-origin")
    corp: str = os.getenv("CROSS_ORIGIN_RESOURCE_POLICY", "same-site")


_CFG = SecurityHeadersConfig()


# ─────────────────────────────────────────────────────────────
# 🧩 Middleware
# ─────────────────────────────────────────────────────────────

class SecurityHeadersMiddleware:
    """Pure ASGI middleware that applies security headers idempotently."""

    def __init__(self, app: ASGIApp, cfg: SecurityHeadersConfig = _CFG) -> None:
        self.app = app
        self.cfg = cfg

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            return await self.app(scope, receive, send)

        async def send_wrapper(message):
            if message.get("type") == "http.response.start":
                raw_headers: List[Tuple[bytes, bytes]] = message.setdefault("headers", [])  # type: ignore[assignment]
                _apply_headers_to_raw(raw_headers, self.cfg)
            await send(message)

        await self.app(scope, receive, send_wrapper)


def _has_header(raw_headers: List[Tuple[bytes, bytes]], name: str) -> bool:
    lname = name.lower().encode("latin-1")
    return any(h[0].lower() == lname for h in raw_headers)


def _append_header(raw_headers: List[Tuple[bytes, bytes]], name: str, value: str) -> None:
    raw_headers.append((name.encode("latin-1"), value.encode("latin-1")))


def _apply_headers_to_raw(raw_headers: List[Tuple[bytes, bytes]], cfg: SecurityHeadersConfig) -> None:
    for name, value in (
        ("Strict-Transport-Security", f"max-age={cfg.hsts_max_age}; includeSubDomains"),
        ("X-Content-Type-Options", "nosniff"),
        ("X-Frame-Options", "DENY"),
        ("Referrer-Policy", cfg.referrer_policy),
        ("Cross-Origin-Resource-Policy", cfg.corp),
        ("X-Permitted-Cross-Domain-Policies", "none"),
    ):
        if not _has_header(raw_headers, name):
            _append_header(raw_headers, name, value)


# ─────────────────────────────────────────────────────────────
# 🔓 Public helpers
# ─────────────────────────────────────────────────────────────

def set_sensitive_cache(target: Response, *, seconds: int = 0) -> None:
    """
    Mark a **Response** as sensitive for caching.

    `seconds > 0` enables a short **private** cache and adds
    `Vary: Authorization` to prevent proxy leakage.
    """
    if seconds <= 0:
        target.headers.setdefault("Cache-Control", "no-store")
        target.headers.setdefault("Pragma", "no-cache")
    else:
        target.headers.setdefault("Cache-Control", f"private, max-age={seconds}")
        target.headers["Vary"] = "Authorization"


# ─────────────────────────────────────────────────────────────
# 🌐 CORS installer (allow-list, not '*')
# ─────────────────────────────────────────────────────────────

def configure_cors(
    app,
    *,
    allow_credentials: bool = True,
    allow_methods: Optional[Iterable[str]] = None,
    allow_headers: Optional[Iterable[str]] = None,
) -> None:
    """Install strict CORS from `settings.FRONTEND_ORIGINS`."""
    allow_methods = allow_methods or ["GET", "HEAD", "OPTIONS", "POST", "PATCH"]
    allow_headers = allow_headers or ["Authorization", "Content-Type", "Range", "X-Request-ID"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.frontend_origins_list,
        allow_credentials=allow_credentials,
        allow_methods=list(allow_methods),
        allow_headers=list(allow_headers),
        expose_headers=["Accept-Ranges", "Content-Range", "Content-Length", "Retry-After", "X-Request-ID"],
        max_age=3600,
    )


# ─────────────────────────────────────────────────────────────
# 🔐 HTTPS redirect + headers middleware
# ─────────────────────────────────────────────────────────────

def install_security(app) -> None:
    """Add HTTPS redirect (optional) and the security headers middleware."""
    if os.getenv("ENABLE_HTTPS_REDIRECT", "false").lower() == "true":
        app.add_middleware(HTTPSRedirectMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, cfg=_CFG)


__all__ = [
    "SecurityHeadersConfig",
    "SecurityHeadersMiddleware",
    "install_security",
    "configure_cors",
    "set_sensitive_cache",
]
