# tests/test_ops/test_health_endpoints.py

import uuid

import pytest
from httpx import AsyncClient

from app.core.redis_client import redis_wrapper


@pytest.mark.anyio
async def test_healthz(async_client: AsyncClient):
    r = await async_client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"ok": True}
    assert r.headers["cache-control"] == "no-store"
    assert r.headers["pragma"] == "no-cache"


@pytest.mark.anyio
async def test_readyz_reports_all_checks(async_client: AsyncClient, redis_client):
    r = await async_client.get("/readyz")

    assert r.status_code == 200
    assert r.json() == {"ready": True, "checks": {"db": True, "redis": True, "broadcaster": True}}


@pytest.mark.anyio
async def test_readyz_fails_when_broadcaster_closed(async_client: AsyncClient, broadcaster, redis_client):
    broadcaster.close()

    r = await async_client.get("/readyz")

    assert r.status_code == 503
    assert r.json()["checks"]["broadcaster"] is False


@pytest.mark.anyio
async def test_readyz_tolerates_unconfigured_redis(async_client: AsyncClient, redis_client, monkeypatch):
    monkeypatch.setattr(redis_wrapper, "_client", None)

    r = await async_client.get("/readyz")

    assert r.status_code == 200
    assert r.json()["checks"]["redis"] is None


@pytest.mark.anyio
async def test_metrics_exposition(async_client: AsyncClient):
    r = await async_client.get("/metrics")
    assert r.status_code == 200
    assert "pipeline_runs_total" in r.text
    assert "broadcast_observers" in r.text


@pytest.mark.anyio
async def test_request_id_is_echoed_or_minted(async_client: AsyncClient):
    supplied = str(uuid.uuid4())

    echoed = await async_client.get("/healthz", headers={"X-Request-ID": supplied})
    minted = await async_client.get("/healthz", headers={"X-Request-ID": "not-a-uuid"})

    assert echoed.headers["x-request-id"] == supplied
    assert minted.headers["x-request-id"] != "not-a-uuid"
    assert uuid.UUID(minted.headers["x-request-id"]).version == 4


@pytest.mark.anyio
async def test_problem_body_carries_request_id(async_client: AsyncClient):
    supplied = str(uuid.uuid4())
    r = await async_client.get(f"/api/v1/media/{uuid.uuid4()}/status", headers={"X-Request-ID": supplied})

    assert r.status_code == 401
    assert r.json()["request_id"] == supplied


@pytest.mark.anyio
async def test_security_headers_present(async_client: AsyncClient):
    r = await async_client.get("/healthz")
    assert r.headers["x-content-type-options"] == "nosniff"
    assert "server" not in r.headers


@pytest.mark.anyio
async def test_readyz_is_never_cached(async_client: AsyncClient, redis_client):
    r = await async_client.get("/readyz")
    assert r.headers["cache-control"] == "no-store"
