"""Tests for home CRUD routes."""

import pytest

from conftest import headers_for


@pytest.mark.asyncio
async def test_create_home_with_default_tariff(client, auth_headers):
    resp = await client.post("/api/homes", headers=auth_headers, json={
        "name": "Cottage", "zip_code": "560001",
    })
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["tariff_structure"] == "slab"
    assert len(data["tariff_slabs"]) == 4
    assert data["tariff_slabs"][-1]["max_units"] is None
    assert data["device_count"] == 0


@pytest.mark.asyncio
async def test_create_home_rejects_slab_gap(client, auth_headers):
    resp = await client.post("/api/homes", headers=auth_headers, json={
        "name": "Broken", "zip_code": "560001",
        "tariff_slabs": [
            {"min_units": 0, "max_units": 100, "rate": 3},
            {"min_units": 200, "max_units": None, "rate": 5},
        ],
    })
    assert resp.status_code == 422
    body = resp.json()
    assert body["success"] is False
    assert "gap or overlap" in body["message"]


@pytest.mark.asyncio
async def test_list_only_own_homes(client, auth_headers, other_user, flat_home):
    mine = await client.get("/api/homes", headers=auth_headers)
    assert [h["id"] for h in mine.json()["data"]] == [flat_home["id"]]

    theirs = await client.get("/api/homes", headers=headers_for(other_user))
    assert theirs.json()["data"] == []


@pytest.mark.asyncio
async def test_other_users_home_forbidden(client, other_user, flat_home):
    resp = await client.get(f"/api/homes/{flat_home['id']}", headers=headers_for(other_user))
    assert resp.status_code == 403
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_admin_sees_any_home(client, admin_headers, flat_home):
    resp = await client.get(f"/api/homes/{flat_home['id']}", headers=admin_headers)
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_missing_home(client, auth_headers):
    resp = await client.get("/api/homes/does-not-exist", headers=auth_headers)
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Home not found"}


@pytest.mark.asyncio
async def test_update_home(client, auth_headers, flat_home):
    resp = await client.put(f"/api/homes/{flat_home['id']}", headers=auth_headers, json={
        "electricity_rate": 7.5, "city": "Pune",
    })
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["electricity_rate"] == 7.5
    assert data["city"] == "Pune"
    assert data["name"] == "Flat Home"


@pytest.mark.asyncio
async def test_delete_home_turns_devices_off(client, auth_headers, flat_home, lamp):
    await client.patch(f"/api/devices/{lamp['id']}/toggle", headers=auth_headers)

    resp = await client.delete(f"/api/homes/{flat_home['id']}", headers=auth_headers)
    assert resp.status_code == 200

    gone = await client.get(f"/api/homes/{flat_home['id']}", headers=auth_headers)
    assert gone.status_code == 404
    readings = await client.get(f"/api/devices/{lamp['id']}/readings", headers=auth_headers)
    assert len(readings.json()["data"]) == 1


@pytest.mark.asyncio
async def test_home_stats(client, auth_headers, flat_home, lamp):
    resp = await client.get(f"/api/homes/{flat_home['id']}/stats", headers=auth_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["devices"]["count"] == 1
    assert data["devices"]["total_wattage"] == 100
    assert data["usage"]["last_30_days"]["total_kwh"] == 0.0
