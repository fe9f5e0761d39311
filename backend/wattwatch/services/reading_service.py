"""Reading queries over time windows, plus manual readings."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from wattwatch.models.device import Device
from wattwatch.models.home import Home
from wattwatch.models.reading import Reading
from wattwatch.services.tariff import Tariff, marginal_cost
from wattwatch.utils.clock import month_bounds, utcnow

logger = logging.getLogger(__name__)


def reading_to_dict(r: Reading) -> dict:
    return {
        "id": r.id,
        "device_id": r.device_id,
        "home_id": r.home_id,
        "kwh": r.kwh,
        "watts": r.watts,
        "voltage": r.voltage,
        "current": r.current,
        "power_factor": r.power_factor,
        "duration_minutes": r.duration_minutes,
        "cost": r.cost,
        "is_simulated": bool(r.is_simulated),
        "timestamp": r.timestamp,
    }


class ReadingService:
    """Stored-reading aggregation shared by devices, alerts and reports."""

    def _scoped(self, stmt, home_id, device_id, start, end):
        if home_id:
            stmt = stmt.where(Reading.home_id == home_id)
        if device_id:
            stmt = stmt.where(Reading.device_id == device_id)
        if start is not None:
            stmt = stmt.where(Reading.timestamp >= start)
        if end is not None:
            stmt = stmt.where(Reading.timestamp <= end)
        return stmt

    async def sum_kwh(
        self,
        db: AsyncSession,
        *,
        home_id: str | None = None,
        device_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> float:
        stmt = self._scoped(
            select(func.coalesce(func.sum(Reading.kwh), 0.0)), home_id, device_id, start, end
        )
        return float((await db.execute(stmt)).scalar_one())

    async def sum_cost(
        self,
        db: AsyncSession,
        *,
        home_id: str | None = None,
        device_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> float:
        stmt = self._scoped(
            select(func.coalesce(func.sum(Reading.cost), 0.0)), home_id, device_id, start, end
        )
        return float((await db.execute(stmt)).scalar_one())

    async def home_month_kwh(self, db: AsyncSession, home_id: str, now: datetime) -> float:
        """Units already recorded for the home in the month containing ``now``."""
        start, _ = month_bounds(now.year, now.month)
        return await self.sum_kwh(db, home_id=home_id, start=start, end=now)

    async def fetch(
        self,
        db: AsyncSession,
        *,
        home_id: str | None = None,
        device_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> list[Reading]:
        stmt = self._scoped(select(Reading), home_id, device_id, start, end)
        order = Reading.timestamp.desc() if newest_first else Reading.timestamp.asc()
        stmt = stmt.order_by(order)
        if limit:
            stmt = stmt.limit(limit)
        return list((await db.execute(stmt)).scalars().all())

    async def list_for_home(
        self,
        db: AsyncSession,
        home_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 500,
    ) -> dict[str, Any]:
        """Home readings in a range plus totals (defaults to the last 24 h)."""
        end = end or utcnow()
        start = start or end - timedelta(hours=24)
        readings = await self.fetch(
            db, home_id=home_id, start=start, end=end, limit=limit, newest_first=True
        )
        return {
            "start": start,
            "end": end,
            "count": len(readings),
            "total_kwh": round(sum(r.kwh for r in readings), 4),
            "total_cost": round(sum(r.cost or 0.0 for r in readings), 2),
            "readings": [reading_to_dict(r) for r in readings],
        }

    async def list_for_device(
        self,
        db: AsyncSession,
        device_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 100,
    ) -> list[dict]:
        readings = await self.fetch(
            db, device_id=device_id, start=start, end=end, limit=limit, newest_first=True
        )
        return [reading_to_dict(r) for r in readings]

    async def add_reading(
        self, db: AsyncSession, device: Device, home: Home, data: dict
    ) -> dict:
        """Record a manual reading; cost is priced on top of the month so far."""
        timestamp = data.get("timestamp") or utcnow()
        prior = await self.home_month_kwh(db, home.id, timestamp)
        kwh = data["kwh"]
        reading = Reading(
            device_id=device.id,
            home_id=home.id,
            kwh=kwh,
            watts=data.get("watts"),
            voltage=data.get("voltage"),
            current=data.get("current"),
            power_factor=data.get("power_factor"),
            duration_minutes=data.get("duration_minutes") or 60,
            cost=round(marginal_cost(kwh, Tariff.from_home(home), prior), 4),
            is_simulated=1 if data.get("is_simulated") else 0,
            timestamp=timestamp,
        )
        db.add(reading)
        await db.commit()
        await db.refresh(reading)
        logger.debug("Reading recorded for device %s: %.4f kWh", device.id, kwh)
        return reading_to_dict(reading)
