# app/middleware/request_id.py
from __future__ import annotations

"""
# StreamVault — Request ID Middleware (pure ASGI)

- Reuses a client-supplied `X-Request-ID` / `X-Correlation-ID` when it is a
  valid UUIDv4 and `REQUEST_ID_TRUST_CLIENT_IDS` is on; otherwise mints one.
- Stores it on `scope["state"]["request_id"]` and binds it into the **loguru**
  context for the whole connection, so pipeline runs started by the request
  and progress-socket logs carry it too.
- HTTP responses echo it in the configured header. WebSocket handshakes get the
  id in logs only (there is no response header to attach it to).

## Usage
    app.add_middleware(RequestIDMiddleware)
    rid = get_request_id(request)
"""

import uuid
from typing import Optional

from loguru import logger
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.core.config import settings

MAX_ID_LENGTH = 64


def _valid_client_id(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    candidate = value.strip()
    if not 0 < len(candidate) <= MAX_ID_LENGTH:
        return None
    try:
        parsed = uuid.UUID(candidate)
    except ValueError:
        return None
    return str(parsed) if parsed.version == 4 else None


class RequestIDMiddleware:
    """Attach a correlation id to every HTTP request and WebSocket connection."""

    def __init__(
        self,
        app: ASGIApp,
        header_name: Optional[str] = None,
        trust_client_ids: Optional[bool] = None,
    ) -> None:
        self.app = app
        self.header_name = header_name or settings.REQUEST_ID_HEADER_NAME
        self.trust_client_ids = settings.REQUEST_ID_TRUST_CLIENT_IDS if trust_client_ids is None else trust_client_ids
        self._header_bytes = self.header_name.lower().encode("latin-1")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            return await self.app(scope, receive, send)

        req_id = self._choose_request_id(Headers(scope=scope))
        scope.setdefault("state", {})["request_id"] = req_id

        if scope["type"] == "websocket":
            with logger.contextualize(request_id=req_id):
                return await self.app(scope, receive, send)

        async def _send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = [(k, v) for (k, v) in message.get("headers", []) if k.lower() != self._header_bytes]
                headers.append((self._header_bytes, req_id.encode("latin-1")))
                message["headers"] = headers
            await send(message)

        with logger.contextualize(request_id=req_id):
            await self.app(scope, receive, _send_wrapper)

    def _choose_request_id(self, headers: Headers) -> str:
        if self.trust_client_ids:
            incoming = _valid_client_id(headers.get(self.header_name) or headers.get("X-Correlation-ID"))
            if incoming:
                return incoming
        return str(uuid.uuid4())


# ─────────────────────────────────────────────────────────────
# 🔎 Convenience accessor
# ─────────────────────────────────────────────────────────────

def get_request_id(request) -> str:
    """Current request id from `request.state`, or "" outside the middleware."""
    return getattr(getattr(request, "state", object()), "request_id", "") or ""


__all__ = ["RequestIDMiddleware", "get_request_id"]
