from __future__ import annotations

"""
StreamVault • Progress channel (WebSocket)
==========================================

- WS /ws/progress

Handshake
---------
The credential comes from `?token=` or the `Authorization` header. On failure
the socket is closed with 4401 before any event is sent. On success the
observer joins its tenant's topic (fixed for the connection's lifetime) and
receives:

    {"event": "connected", "tenant_id": "...", "room": "tenant_<id>"}

then every pipeline event for that tenant, as JSON. `{"action": "ping"}` is
answered with `{"event": "pong"}`; anything else from the client is ignored.
"""

import json
import logging

import anyio
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.core.exceptions import AppException
from app.core.jwt import get_token_from_header_or_query
from app.db.session import async_session_maker
from app.core.dependencies import resolve_principal
from app.schemas.enums import ProgressEventType
from app.services.broadcast import ProgressBroadcaster, Subscription

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Progress"])
__all__ = ["router", "WS_CLOSE_UNAUTHORIZED", "WS_CLOSE_GOING_AWAY"]

WS_CLOSE_UNAUTHORIZED = 4401
WS_CLOSE_GOING_AWAY = 1001


async def _pump_events(websocket: WebSocket, sub: Subscription) -> None:
    async for payload in sub:
        await websocket.send_json(payload)


async def _read_client(websocket: WebSocket) -> None:
    while True:
        text = await websocket.receive_text()
        try:
            message = json.loads(text)
        except ValueError:
            continue
        if isinstance(message, dict) and message.get("action") == "ping":
            await websocket.send_json({"event": ProgressEventType.PONG.value})


@router.websocket("/ws/progress")
async def progress_socket(websocket: WebSocket) -> None:
    try:
        token = get_token_from_header_or_query(websocket)
        async with async_session_maker() as db:
            principal = await resolve_principal(token, db)
    except AppException as e:
        logger.info("Progress socket rejected: %s", e.message)
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED, reason=e.message)
        return

    broadcaster: ProgressBroadcaster = websocket.app.state.broadcaster
    if not broadcaster.is_open:
        await websocket.close(code=WS_CLOSE_GOING_AWAY)
        return

    await websocket.accept()
    sub = broadcaster.subscribe(principal.tenant_id)
    hub_closed = False
    try:
        await websocket.send_json(
            {
                "event": ProgressEventType.CONNECTED.value,
                "tenant_id": str(principal.tenant_id),
                "room": sub.room,
            }
        )
        async with anyio.create_task_group() as tg:

            async def _pump() -> None:
                nonlocal hub_closed
                try:
                    await _pump_events(websocket, sub)
                    hub_closed = True
                except WebSocketDisconnect:
                    pass
                tg.cancel_scope.cancel()

            async def _reader() -> None:
                try:
                    await _read_client(websocket)
                except WebSocketDisconnect:
                    pass
                tg.cancel_scope.cancel()

            tg.start_soon(_pump)
            tg.start_soon(_reader)

        if hub_closed:
            await websocket.close(code=WS_CLOSE_GOING_AWAY)
    finally:
        broadcaster.unsubscribe(sub)
    logger.debug("Progress observer left %s (dropped=%d)", sub.room, sub.dropped)
