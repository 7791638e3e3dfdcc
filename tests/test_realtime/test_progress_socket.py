# tests/test_realtime/test_progress_socket.py
"""
WebSocket tests use Starlette's TestClient, which drives the app on its own
event loop in a worker thread. Events are published through that session's
portal so they are enqueued on the loop that owns the subscription queue.
"""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.api.v1.routers.progress import WS_CLOSE_GOING_AWAY, WS_CLOSE_UNAUTHORIZED
from app.schemas.enums import PrincipalRole
from app.schemas.events import ProgressEvent
from tests.fixtures.auth import token_for

WS_PATH = "/api/v1/ws/progress"


def _event(percent: int = 10):
    return ProgressEvent(artifact_id=uuid4(), percent=percent, stage="Extracting Metadata")


@pytest.mark.anyio
async def test_connect_announces_tenant_room(app, make_principal):
    viewer = await make_principal(role=PrincipalRole.VIEWER)
    client = TestClient(app)

    with client.websocket_connect(f"{WS_PATH}?token={token_for(viewer)}") as ws:
        hello = ws.receive_json()

    assert hello == {
        "event": "connected",
        "tenant_id": str(viewer.tenant_id),
        "room": f"tenant_{viewer.tenant_id}",
    }


@pytest.mark.anyio
async def test_header_credential_and_ping(app, make_principal):
    admin = await make_principal()
    client = TestClient(app)

    with client.websocket_connect(WS_PATH, headers={"Authorization": f"Bearer {token_for(admin)}"}) as ws:
        ws.receive_json()
        ws.send_text("not json")  # ignored
        ws.send_json({"action": "ping"})
        assert ws.receive_json() == {"event": "pong"}


@pytest.mark.anyio
@pytest.mark.parametrize("query", ["", "?token=garbage"])
async def test_bad_credential_closes_with_4401(app, query):
    client = TestClient(app)

    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"{WS_PATH}{query}") as ws:
            ws.receive_json()

    assert exc.value.code == WS_CLOSE_UNAUTHORIZED


@pytest.mark.anyio
async def test_observer_only_sees_own_tenant(app, broadcaster, make_principal):
    mine = await make_principal()
    other = await make_principal()
    client = TestClient(app)

    with client.websocket_connect(f"{WS_PATH}?token={token_for(mine)}") as ws:
        ws.receive_json()
        assert broadcaster.observer_count(mine.tenant_id) == 1

        foreign, own = _event(10), _event(25)
        ws.portal.call(broadcaster.publish, other.tenant_id, foreign)
        ws.portal.call(broadcaster.publish, mine.tenant_id, own)

        received = ws.receive_json()

    assert received["artifact_id"] == str(own.artifact_id)
    assert received["percent"] == 25
    assert broadcaster.observer_count(mine.tenant_id) == 0


@pytest.mark.anyio
async def test_client_leaving_releases_subscription(app, broadcaster, make_principal):
    viewer = await make_principal(role=PrincipalRole.VIEWER)
    client = TestClient(app)

    for _ in range(2):
        with client.websocket_connect(f"{WS_PATH}?token={token_for(viewer)}") as ws:
            ws.receive_json()
            ws.send_json({"action": "ping"})
            assert ws.receive_json() == {"event": "pong"}
            assert broadcaster.observer_count(viewer.tenant_id) == 1

    assert broadcaster.observer_count() == 0
    assert broadcaster.is_open


@pytest.mark.anyio
async def test_hub_shutdown_closes_socket_going_away(app, broadcaster, make_principal):
    admin = await make_principal()
    client = TestClient(app)

    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"{WS_PATH}?token={token_for(admin)}") as ws:
            ws.receive_json()
            ws.portal.call(broadcaster.close)
            ws.receive_json()

    assert exc.value.code == WS_CLOSE_GOING_AWAY
