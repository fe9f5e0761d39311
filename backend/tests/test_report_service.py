"""Tests for report aggregation: consumption, cost analysis and comparisons."""

from datetime import timedelta

import pytest

from wattwatch.exceptions import ValidationFailed
from wattwatch.models.device import Device
from wattwatch.models.reading import Reading
from wattwatch.services import get_device_service, get_home_service, get_report_service, get_state_machine
from wattwatch.services.device_state import DeviceState
from wattwatch.utils.clock import month_bounds, utcnow


def _add(db, home_id, kwh, timestamp, device_id="meter", cost=None):
    db.add(Reading(
        device_id=device_id, home_id=home_id, kwh=kwh, cost=cost, watts=100.0,
        duration_minutes=60, is_simulated=0, timestamp=timestamp,
    ))


@pytest.mark.asyncio
async def test_consumption_report_merges_live_sessions(db_session, user, flat_home, lamp):
    now = utcnow()
    month_start, _ = month_bounds(now.year, now.month)
    _add(db_session, flat_home["id"], 2.0, month_start, device_id=lamp["id"], cost=12.0)
    await db_session.commit()

    heater = await get_device_service().create_device(db_session, user, {
        "home_id": flat_home["id"], "name": "Heater", "type": "hvac", "wattage": 1000,
    })
    device = await db_session.get(Device, heater["id"])
    await get_state_machine().transition(db_session, device, DeviceState.ON, now - timedelta(hours=1))

    report = await get_report_service().consumption_report(
        db_session, flat_home["id"], user, now=now
    )

    assert report["period"]["is_current_month"] is True
    assert report["summary"]["total_kwh"] == pytest.approx(3.0)
    assert report["summary"]["total_cost"] == pytest.approx(18.0)
    assert report["summary"]["total_readings"] == 1
    assert report["summary"]["active_devices"] == 1

    live = report["live_consumption"]
    assert live["active_device_count"] == 1
    assert live["devices"][0]["name"] == "Heater"
    assert live["devices"][0]["session_duration_minutes"] == 60

    names = [d["name"] for d in report["device_breakdown"]]
    assert names == ["Desk Lamp", "Heater"]
    assert report["device_breakdown"][1]["is_live_only"] is True

    today = next(d for d in report["daily_breakdown"] if d["date"] == now.date().isoformat())
    assert today["live_kwh"] == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_past_month_has_no_live_data(db_session, user, flat_home):
    start, _ = month_bounds(user.created_at.year, user.created_at.month)
    report = await get_report_service().consumption_report(
        db_session, flat_home["id"], user,
        start=start, end=start + timedelta(days=1), now=start + timedelta(days=62),
    )
    assert report["period"]["is_current_month"] is False
    assert report["live_consumption"] is None
    assert report["summary"]["total_kwh"] == 0.0


@pytest.mark.asyncio
async def test_report_before_account_creation(db_session, user, flat_home):
    with pytest.raises(ValidationFailed):
        await get_report_service().consumption_report(
            db_session, flat_home["id"], user, month=1, year=2000
        )


@pytest.mark.asyncio
async def test_report_range_must_be_ordered(db_session, user, flat_home):
    now = utcnow()
    with pytest.raises(ValidationFailed):
        await get_report_service().consumption_report(
            db_session, flat_home["id"], user, start=now, end=now - timedelta(hours=1)
        )


@pytest.mark.asyncio
async def test_period_cost_flat(db_session, user, flat_home):
    now = utcnow()
    _add(db_session, flat_home["id"], 4.0, now - timedelta(days=2))
    _add(db_session, flat_home["id"], 6.0, now - timedelta(days=1))
    await db_session.commit()

    result = await get_report_service().cost_analysis(db_session, flat_home["id"], user)
    data = result["data"]
    assert result["analysis_type"] == "period"
    assert data["total_kwh"] == 10.0
    assert data["total_cost"] == 60.0
    assert data["avg_rate"] == 6.0
    assert data["bill_breakdown"] is None
    assert len(data["daily_breakdown"]) == 2


@pytest.mark.asyncio
async def test_period_cost_slab(db_session, user, slab_home):
    now = utcnow()
    _add(db_session, slab_home["id"], 150.0, now - timedelta(days=1))
    await db_session.commit()

    data = (await get_report_service().cost_analysis(db_session, slab_home["id"], user))["data"]
    assert data["total_cost"] == 575.0
    assert data["bill_breakdown"]["energy_charges"] == 575.0
    assert len(data["bill_breakdown"]["slab_breakdown"]) == 2


@pytest.mark.asyncio
async def test_period_cost_without_readings(db_session, user, slab_home):
    data = (await get_report_service().cost_analysis(db_session, slab_home["id"], user))["data"]
    assert data["total_cost"] == 0.0
    assert data["avg_rate"] == 3.0
    assert data["device_breakdown"] == []


@pytest.mark.asyncio
async def test_unknown_analysis_type(db_session, user, flat_home):
    with pytest.raises(ValidationFailed):
        await get_report_service().cost_analysis(db_session, flat_home["id"], user, "yearly")


@pytest.mark.asyncio
async def test_projection_and_comparison(db_session, user, flat_home):
    service = get_report_service()
    projection = (await service.cost_analysis(db_session, flat_home["id"], user, "projection"))["data"]
    assert projection["days_elapsed"] + projection["days_remaining"] == projection["days_in_month"]
    assert projection["projected_total_cost"] == 0.0

    comparison = (await service.cost_analysis(db_session, flat_home["id"], user, "comparison"))["data"]
    assert [c["label"] for c in comparison] == ["Last Month", "Current Month"]
    assert comparison[1]["kwh_change"] is None


@pytest.mark.asyncio
async def test_neighborhood_ranking(db_session, user, other_user, flat_home):
    homes = get_home_service()
    yesterday = utcnow() - timedelta(days=1)
    _add(db_session, flat_home["id"], 10.0, yesterday, cost=60.0)
    for kwh in (20.0, 30.0):
        neighbor = await homes.create_home(db_session, other_user, {
            "name": f"Neighbor {kwh:g}", "zip_code": flat_home["zip_code"],
        })
        _add(db_session, neighbor["id"], kwh, yesterday, cost=kwh * 6)
    await db_session.commit()

    result = await get_report_service().compare_neighborhood(db_session, flat_home["id"], user)
    assert result["neighborhood"]["home_count"] == 3
    assert result["neighborhood"]["avg_kwh"] == 20.0
    assert result["comparison"]["kwh_percentage"] == -50.0
    assert result["comparison"]["ranking"] == "Top 25% (Most Efficient)"
    assert result["comparison"]["message"].startswith("Great job!")


@pytest.mark.asyncio
async def test_neighborhood_without_data(db_session, user, flat_home):
    result = await get_report_service().compare_neighborhood(db_session, flat_home["id"], user)
    assert result["comparison"] is None
    assert result["neighborhood"]["homes_with_data"] == 0


@pytest.mark.asyncio
async def test_savings_tips_and_dashboard(db_session, user, flat_home, lamp):
    _add(db_session, flat_home["id"], 5.0, utcnow() - timedelta(hours=3), device_id=lamp["id"])
    await db_session.commit()
    service = get_report_service()

    tips = await service.savings_tips(db_session, flat_home["id"], user)
    assert tips["count"] == len(tips["tips"])
    assert "high_lighting_usage" in {t["id"] for t in tips["tips"]}

    dashboard = await service.dashboard(db_session, flat_home["id"], user)
    assert dashboard["home"]["id"] == flat_home["id"]
    assert dashboard["summary"]["tips"]["total_tips"] >= 1
    assert "projection" in dashboard["summary"]


@pytest.mark.asyncio
async def test_report_range_needs_both_bounds(db_session, user, flat_home):
    now = utcnow()
    service = get_report_service()
    with pytest.raises(ValidationFailed):
        await service.consumption_report(db_session, flat_home["id"], user, start=now)
    with pytest.raises(ValidationFailed):
        await service.consumption_report(db_session, flat_home["id"], user, end=now)
