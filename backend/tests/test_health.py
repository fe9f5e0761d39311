"""Tests for health and ping endpoints."""

import pytest


@pytest.mark.asyncio
async def test_health_returns_ok(client):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["status"] == "ok"
    assert data["service"] == "wattwatch"
    assert data["database"] == "ok"
    assert data["scheduler_running"] is False
    assert "version" in data


@pytest.mark.asyncio
async def test_ping(client):
    resp = await client.get("/api/ping")
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "data": {"pong": True}}


@pytest.mark.asyncio
async def test_unknown_route_uses_envelope(client):
    resp = await client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.json()["success"] is False
