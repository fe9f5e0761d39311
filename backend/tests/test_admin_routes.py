"""Tests for admin user management and template catalog routes."""

from datetime import timedelta

import pytest

from wattwatch.models.reading import Reading
from wattwatch.utils.clock import utcnow


@pytest.mark.asyncio
async def test_requires_admin(client, auth_headers):
    resp = await client.get("/api/admin/users", headers=auth_headers)
    assert resp.status_code == 403
    assert resp.json() == {"success": False, "message": "Admin role required"}


@pytest.mark.asyncio
async def test_list_users(client, admin_headers, user):
    resp = await client.get("/api/admin/users", headers=admin_headers)
    emails = {u["email"] for u in resp.json()["data"]}
    assert emails == {"alice@example.com", "root@example.com"}


@pytest.mark.asyncio
async def test_promote_user(client, admin_headers, user):
    resp = await client.put(f"/api/admin/users/{user.id}", headers=admin_headers, json={"role": "admin"})
    assert resp.status_code == 200
    assert resp.json()["data"]["role"] == "admin"


@pytest.mark.asyncio
async def test_deactivated_user_loses_access(client, admin_headers, auth_headers, user):
    resp = await client.delete(f"/api/admin/users/{user.id}", headers=admin_headers)
    assert resp.json()["data"]["is_active"] is False

    me = await client.get("/api/auth/me", headers=auth_headers)
    assert me.status_code == 401


@pytest.mark.asyncio
async def test_missing_user(client, admin_headers):
    resp = await client.put("/api/admin/users/nobody", headers=admin_headers, json={"name": "X"})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_template_lifecycle(client, admin_headers, auth_headers):
    created = await client.post("/api/admin/templates", headers=admin_headers, json={
        "name": "Heat Pump", "type": "hvac", "avg_wattage": 900, "category": "heating_cooling",
    })
    assert created.status_code == 201
    template = created.json()["data"]

    hidden = await client.put(
        f"/api/admin/templates/{template['id']}", headers=admin_headers, json={"is_active": False}
    )
    assert hidden.json()["data"]["is_active"] is False

    public = await client.get("/api/devices/templates", headers=auth_headers)
    assert "Heat Pump" not in {t["name"] for t in public.json()["data"]}
    catalog = await client.get("/api/admin/templates", headers=admin_headers)
    assert "Heat Pump" in {t["name"] for t in catalog.json()["data"]}

    deleted = await client.delete(f"/api/admin/templates/{template['id']}", headers=admin_headers)
    assert deleted.status_code == 200
    missing = await client.delete(f"/api/admin/templates/{template['id']}", headers=admin_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_duplicate_template_name(client, admin_headers):
    resp = await client.post("/api/admin/templates", headers=admin_headers, json={
        "name": "Ceiling Fan", "type": "hvac", "avg_wattage": 75,
    })
    assert resp.status_code == 409
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_template_category_is_validated(client, admin_headers):
    resp = await client.post("/api/admin/templates", headers=admin_headers, json={
        "name": "Sauna", "type": "other", "avg_wattage": 6000, "category": "wellness",
    })
    assert resp.status_code == 422
    assert resp.json()["success"] is False

    resp = await client.post("/api/admin/templates", headers=admin_headers, json={
        "name": "Sauna", "type": "other", "avg_wattage": 6000, "category": "outdoor",
    })
    assert resp.status_code == 201
    assert resp.json()["data"]["category"] == "outdoor"


def _reading(home_id, device_id, kwh, cost, timestamp):
    return Reading(
        device_id=device_id, home_id=home_id, kwh=kwh, cost=cost, watts=100.0,
        duration_minutes=60, is_simulated=0, timestamp=timestamp,
    )


@pytest.mark.asyncio
async def test_user_detail(client, db_session, admin_headers, user, flat_home, lamp):
    db_session.add(_reading(flat_home["id"], lamp["id"], 3.0, 18.0, utcnow() - timedelta(days=2)))
    db_session.add(_reading(flat_home["id"], lamp["id"], 9.0, 54.0, utcnow() - timedelta(days=45)))
    await db_session.commit()

    resp = await client.get(f"/api/admin/users/{user.id}", headers=admin_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["email"] == "alice@example.com"
    assert data["stats"]["home_count"] == 1
    assert data["stats"]["device_count"] == 1
    assert data["stats"]["last_30_days"] == {"total_kwh": 3.0, "total_cost": 18.0}
    assert [h["name"] for h in data["homes"]] == ["Flat Home"]


@pytest.mark.asyncio
async def test_user_detail_requires_admin(client, auth_headers, user):
    resp = await client.get(f"/api/admin/users/{user.id}", headers=auth_headers)
    assert resp.status_code == 403
    missing = await client.get("/api/admin/users/nobody", headers=auth_headers)
    assert missing.status_code == 403


@pytest.mark.asyncio
async def test_missing_user_detail(client, admin_headers):
    resp = await client.get("/api/admin/users/nobody", headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "User not found"}


@pytest.mark.asyncio
async def test_community_insights(client, db_session, admin_headers, flat_home, slab_home, lamp):
    yesterday = utcnow() - timedelta(days=1)
    db_session.add(_reading(flat_home["id"], lamp["id"], 4.0, 24.0, yesterday))
    db_session.add(_reading(slab_home["id"], "meter", 8.0, 24.0, yesterday))
    await db_session.commit()

    platform = (await client.get("/api/admin/insights", headers=admin_headers)).json()["data"]
    assert platform["scope"] == "Platform-wide"
    assert platform["summary"]["total_homes"] == 2
    assert platform["summary"]["total_devices"] == 1
    assert platform["summary"]["avg_devices_per_home"] == 0.5
    assert platform["device_breakdown"] == {"lighting": 1}
    assert platform["usage"]["total_kwh"] == 12.0
    assert platform["usage"]["avg_kwh_per_home"] == 6.0
    assert platform["neighborhood"] is None

    resp = await client.get(
        "/api/admin/insights", headers=admin_headers, params={"zip_code": flat_home["zip_code"]}
    )
    local = resp.json()["data"]
    assert local["scope"] == f"Zip Code: {flat_home['zip_code']}"
    assert local["summary"]["total_homes"] == 1
    assert local["usage"]["total_cost"] == 24.0
    assert local["neighborhood"]["home_count"] == 1
    assert local["neighborhood"]["avg_kwh"] == 4.0


@pytest.mark.asyncio
async def test_platform_analytics(client, db_session, admin_headers, user, flat_home, slab_home, lamp):
    now = utcnow()
    db_session.add(_reading(flat_home["id"], lamp["id"], 2.0, 12.0, now - timedelta(days=3)))
    db_session.add(_reading(flat_home["id"], lamp["id"], 1.0, 6.0, now - timedelta(days=3)))
    db_session.add(_reading(slab_home["id"], "meter", 5.0, None, now - timedelta(days=1)))
    db_session.add(_reading(slab_home["id"], "meter", 50.0, 300.0, now - timedelta(days=90)))
    await db_session.commit()

    resp = await client.get("/api/admin/analytics", headers=admin_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["users"] == {"total": 2, "new_in_period": 2}
    assert data["homes"]["total"] == 2
    assert data["devices"]["total"] == 1
    assert data["usage"]["total_kwh"] == 8.0
    assert data["usage"]["total_cost"] == 18.0
    assert data["usage"]["total_readings"] == 3
    assert [d["reading_count"] for d in data["daily_trend"]] == [2, 1]
    assert data["daily_trend"][0]["total_kwh"] == 3.0
    assert {z["zip_code"] for z in data["top_zip_codes"]} == {"560001", "560002"}


@pytest.mark.asyncio
async def test_platform_analytics_rejects_reversed_range(client, admin_headers):
    resp = await client.get("/api/admin/analytics", headers=admin_headers, params={
        "start": "2026-03-10T00:00:00", "end": "2026-03-01T00:00:00",
    })
    assert resp.status_code == 400
