"""Tests for alert routes."""

from datetime import timedelta

import pytest

from conftest import headers_for
from wattwatch.models.reading import Reading
from wattwatch.services import get_alert_service
from wattwatch.utils.clock import utcnow


@pytest.mark.asyncio
async def test_create_requires_scope(client, auth_headers):
    resp = await client.post("/api/alerts", headers=auth_headers, json={
        "name": "Nowhere", "limit_kwh": 5,
    })
    assert resp.status_code == 422
    assert "home_id or device_id" in resp.json()["message"]


@pytest.mark.asyncio
async def test_usage_limit_requires_kwh(client, auth_headers, flat_home):
    resp = await client.post("/api/alerts", headers=auth_headers, json={
        "name": "No limit", "home_id": flat_home["id"], "type": "usage_limit",
    })
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_crud(client, auth_headers, other_user, flat_home):
    created = await client.post("/api/alerts", headers=auth_headers, json={
        "name": "Daily cap", "home_id": flat_home["id"], "limit_kwh": 10, "period": "daily",
    })
    assert created.status_code == 201
    alert = created.json()["data"]
    assert alert["is_enabled"] is True
    assert alert["trigger_count"] == 0

    listed = await client.get("/api/alerts", headers=auth_headers)
    assert [a["id"] for a in listed.json()["data"]] == [alert["id"]]

    forbidden = await client.get(f"/api/alerts/{alert['id']}", headers=headers_for(other_user))
    assert forbidden.status_code == 403

    updated = await client.put(f"/api/alerts/{alert['id']}", headers=auth_headers, json={"threshold": 90})
    assert updated.json()["data"]["threshold"] == 90

    toggled = await client.patch(f"/api/alerts/{alert['id']}/toggle", headers=auth_headers)
    assert toggled.json()["data"]["is_enabled"] is False
    assert toggled.json()["message"] == "Alert disabled"

    deleted = await client.delete(f"/api/alerts/{alert['id']}", headers=auth_headers)
    assert deleted.status_code == 200
    missing = await client.get(f"/api/alerts/{alert['id']}", headers=auth_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_dry_run_and_acknowledge(client, db_session, auth_headers, flat_home, lamp):
    created = await client.post("/api/alerts", headers=auth_headers, json={
        "name": "Lamp cap", "device_id": lamp["id"], "limit_kwh": 1, "threshold": 50,
    })
    alert_id = created.json()["data"]["id"]
    now = utcnow()
    db_session.add(Reading(
        device_id=lamp["id"], home_id=flat_home["id"], kwh=0.8, cost=4.8, watts=100.0,
        duration_minutes=60, is_simulated=0, timestamp=now - timedelta(seconds=1),
    ))
    await db_session.commit()

    dry = await client.post(f"/api/alerts/{alert_id}/test", headers=auth_headers)
    dry_data = dry.json()["data"]
    assert dry_data["measurable"] is True
    assert dry_data["would_trigger"] is True
    assert dry_data["percentage_used"] == 80.0

    page = await client.get("/api/alerts/triggered", headers=auth_headers)
    assert page.json()["data"]["total"] == 0

    await get_alert_service().check_all(db_session)
    page = (await client.get("/api/alerts/triggered", headers=auth_headers)).json()["data"]
    assert page["total"] == 1
    assert page["unacknowledged"] == 1
    triggered = page["items"][0]
    assert triggered["alert_name"] == "Lamp cap"
    assert triggered["severity"] == "medium"

    url = f"/api/alerts/triggered/{triggered['id']}/acknowledge"
    first = await client.patch(url, headers=auth_headers)
    second = await client.put(url, headers=auth_headers)
    assert first.json()["data"]["acknowledged"] is True
    assert second.json()["data"]["acknowledged_at"] == first.json()["data"]["acknowledged_at"]

    unacked = await client.get("/api/alerts/triggered?acknowledged=false", headers=auth_headers)
    assert unacked.json()["data"]["items"] == []
