"""Tests for the async API session and refresh tasks."""

import asyncio

import pytest
from httpx import ASGITransport

from conftest import TEST_PASSWORD
from wattwatch.client import ApiError, ApiSession, RefreshTask, poll_consumption, watch_dashboard


@pytest.fixture
def api(app):
    return ApiSession(base_url="http://test/api", transport=ASGITransport(app=app))


@pytest.mark.asyncio
async def test_login_and_calls(api, user, flat_home, lamp):
    async with api:
        profile = await api.login(user.email, TEST_PASSWORD)
        assert api.authenticated
        assert profile["email"] == user.email

        homes = await api.homes()
        assert [h["id"] for h in homes] == [flat_home["id"]]
        devices = await api.devices(flat_home["id"])
        assert [d["id"] for d in devices] == [lamp["id"]]

        toggled = await api.toggle_device(lamp["id"])
        assert toggled["is_active"] is True

        await api.logout()
        assert not api.authenticated


@pytest.mark.asyncio
async def test_login_failure(api, user):
    async with api:
        with pytest.raises(ApiError) as exc:
            await api.login(user.email, "wrong")
        assert exc.value.status_code == 401
        assert not api.authenticated


@pytest.mark.asyncio
async def test_error_envelope_raises(api, user):
    async with api:
        await api.login(user.email, TEST_PASSWORD)
        with pytest.raises(ApiError) as exc:
            await api.request("GET", "/homes/missing")
        assert exc.value.status_code == 404
        assert exc.value.message == "Home not found"


@pytest.mark.asyncio
async def test_request_without_login(api):
    async with api:
        with pytest.raises(ApiError):
            await api.homes()


@pytest.mark.asyncio
async def test_poll_consumption(api, user, lamp):
    updates = []
    async with api:
        await api.login(user.email, TEST_PASSWORD)
        await api.toggle_device(lamp["id"])

        task = poll_consumption(api, lamp["id"], updates.append, interval=0.05)
        while len(updates) < 2:
            await asyncio.sleep(0.005)
        await task.stop()
        assert not task.running
        assert all(u["consumption"]["is_active"] for u in updates)

        await api.toggle_device(lamp["id"])
        task = poll_consumption(api, lamp["id"], updates.append, interval=0.05)
        await asyncio.wait_for(task.wait(), timeout=2)
        assert task.runs == 1
        assert updates[-1]["device"]["is_active"] is False


@pytest.mark.asyncio
async def test_watch_dashboard(api, user, flat_home):
    updates = []
    async with api:
        await api.login(user.email, TEST_PASSWORD)
        task = watch_dashboard(api, flat_home["id"], updates.append, interval=0.05)
        while not updates:
            await asyncio.sleep(0.005)
        await task.stop()
    assert updates[0]["home"]["id"] == flat_home["id"]
    assert task.errors == 0


class TestRefreshTask:
    @pytest.mark.asyncio
    async def test_stops_when_callback_returns_false(self):
        calls = []

        async def tick():
            calls.append(1)
            return len(calls) < 3

        task = RefreshTask(tick, interval=0).start()
        await asyncio.wait_for(task.wait(), timeout=1)
        assert task.runs == 3
        assert not task.running

    @pytest.mark.asyncio
    async def test_errors_do_not_end_loop(self):
        calls = []

        async def tick():
            calls.append(1)
            if len(calls) < 3:
                raise RuntimeError("boom")
            return False

        task = RefreshTask(tick, interval=0).start()
        await asyncio.wait_for(task.wait(), timeout=1)
        assert task.errors == 2
        assert task.runs == 3

    @pytest.mark.asyncio
    async def test_stop_cancels(self):
        async def tick():
            return True

        task = RefreshTask(tick, interval=10).start()
        assert task.start() is task
        await asyncio.sleep(0)
        assert task.running
        await task.stop()
        assert not task.running
        assert task.runs == 1
