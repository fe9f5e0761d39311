"""Async API client — explicit session object and cancellable refresh tasks.

``ApiSession`` holds the bearer token for one login; nothing is stored
globally. ``RefreshTask`` runs a coroutine on an interval until cancelled
(used to poll live consumption while a device is on).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx

from wattwatch.config import settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Failure envelope or transport error returned by the API."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ApiSession:
    """Authenticated session against a WattWatch server.

    ``login`` creates the session, ``logout`` tears it down. On a 401 the
    session logs in again once with the stored credentials.
    """

    def __init__(
        self,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ):
        self._base_url = (
            base_url or f"http://{settings.host}:{settings.port}{settings.api_prefix}"
        ).rstrip("/")
        self._transport = transport
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None
        self._token: str | None = None
        self._credentials: tuple[str, str] | None = None
        self.user: dict | None = None

    @property
    def authenticated(self) -> bool:
        return self._token is not None

    async def __aenter__(self) -> "ApiSession":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                transport=self._transport,
                timeout=self._timeout,
            )
        return self._client

    async def _auth(self) -> str:
        if self._credentials is None:
            raise ApiError("Not logged in", 401)
        email, password = self._credentials
        resp = await self._http().post("/auth/login", json={"email": email, "password": password})
        data = self._unwrap(resp)
        self._token = data["access_token"]
        self.user = data.get("user")
        return self._token

    @staticmethod
    def _unwrap(resp: httpx.Response) -> Any:
        try:
            body = resp.json()
        except ValueError:
            resp.raise_for_status()
            raise ApiError("Non-JSON response", resp.status_code)
        if resp.status_code >= 400 or not body.get("success", False):
            raise ApiError(body.get("message") or resp.reason_phrase, resp.status_code)
        return body.get("data")

    async def login(self, email: str, password: str) -> dict:
        self._credentials = (email, password)
        try:
            await self._auth()
        except ApiError:
            self._credentials = None
            raise
        logger.info("Logged in as %s", email)
        return self.user or {}

    async def logout(self) -> None:
        if self._token:
            try:
                await self.request("POST", "/auth/logout")
            except (ApiError, httpx.HTTPError) as e:
                logger.debug("Logout request failed: %s", e)
        self._token = None
        self._credentials = None
        self.user = None
        await self.close()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(self, method: str, path: str, **kwargs) -> Any:
        """Authenticated request; returns the envelope's ``data``."""
        if self._token is None:
            await self._auth()

        resp = await self._http().request(
            method, path, headers={"Authorization": f"Bearer {self._token}"}, **kwargs
        )
        if resp.status_code == 401 and self._credentials is not None:
            await self._auth()
            resp = await self._http().request(
                method, path, headers={"Authorization": f"Bearer {self._token}"}, **kwargs
            )
        return self._unwrap(resp)

    # --- convenience ----------------------------------------------------

    async def homes(self) -> list[dict]:
        return await self.request("GET", "/homes")

    async def devices(self, home_id: str) -> list[dict]:
        return await self.request("GET", f"/devices/home/{home_id}")

    async def toggle_device(self, device_id: str) -> dict:
        return await self.request("PATCH", f"/devices/{device_id}/toggle")

    async def device_consumption(self, device_id: str) -> dict:
        return await self.request("GET", f"/devices/{device_id}/consumption")

    async def dashboard(self, home_id: str) -> dict:
        return await self.request("GET", "/reports/dashboard", params={"home_id": home_id})


class RefreshTask:
    """Runs ``callback`` every ``interval`` seconds until cancelled.

    The loop also ends when the callback returns ``False``. Errors from the
    callback are logged and the loop keeps going.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[Any]],
        interval: float,
        name: str = "refresh",
    ):
        self._callback = callback
        self._interval = interval
        self._name = name
        self._task: asyncio.Task | None = None
        self.runs = 0
        self.errors = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "RefreshTask":
        if self.running:
            return self
        self._task = asyncio.create_task(self._run_loop(), name=self._name)
        logger.debug("Refresh task %s started (every %.1fs)", self._name, self._interval)
        return self

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def stop(self) -> None:
        """Cancel and wait for the loop to finish."""
        if self._task is None:
            return
        self.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug("Refresh task %s stopped after %d runs", self._name, self.runs)

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def _run_loop(self) -> None:
        while True:
            try:
                result = await self._callback()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.errors += 1
                logger.error("Refresh task %s failed: %s", self._name, e)
                result = None
            self.runs += 1
            if result is False:
                return
            await asyncio.sleep(self._interval)


def poll_consumption(
    session: ApiSession,
    device_id: str,
    on_update: Callable[[dict], Any],
    interval: float | None = None,
) -> RefreshTask:
    """Poll a device's live consumption while it stays on."""

    async def _tick() -> bool:
        data = await session.device_consumption(device_id)
        on_update(data)
        return bool(data["device"]["is_active"])

    return RefreshTask(
        _tick,
        interval if interval is not None else settings.consumption_poll_seconds,
        name=f"consumption-{device_id}",
    ).start()


def watch_dashboard(
    session: ApiSession,
    home_id: str,
    on_update: Callable[[dict], Any],
    interval: float | None = None,
) -> RefreshTask:
    """Refresh a home's dashboard summary until the task is stopped."""

    async def _tick() -> None:
        on_update(await session.dashboard(home_id))

    return RefreshTask(
        _tick,
        interval if interval is not None else settings.dashboard_refresh_seconds,
        name=f"dashboard-{home_id}",
    ).start()
