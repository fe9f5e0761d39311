"""Admin views: user detail, community insights and platform analytics."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from wattwatch.exceptions import NotFoundError, ValidationFailed
from wattwatch.models.device import Device
from wattwatch.models.home import Home
from wattwatch.models.reading import Reading
from wattwatch.models.user import User
from wattwatch.services.auth_service import user_to_dict
from wattwatch.utils.clock import utcnow

if TYPE_CHECKING:
    from wattwatch.services.report_service import ReportService

logger = logging.getLogger(__name__)

WINDOW = timedelta(days=30)


class AdminService:
    def __init__(self, reports: ReportService) -> None:
        self._reports = reports

    async def _usage(
        self, db: AsyncSession, home_ids: list[str], start: datetime, end: datetime | None = None
    ) -> tuple[float, float, int]:
        """(kWh, cost, reading count) over the given homes since ``start``."""
        if not home_ids:
            return 0.0, 0.0, 0
        stmt = select(
            func.coalesce(func.sum(Reading.kwh), 0.0),
            func.coalesce(func.sum(Reading.cost), 0.0),
            func.count(Reading.id),
        ).where(Reading.home_id.in_(home_ids), Reading.timestamp >= start)
        if end is not None:
            stmt = stmt.where(Reading.timestamp <= end)
        kwh, cost, count = (await db.execute(stmt)).one()
        return float(kwh), float(cost), int(count)

    async def _live_devices(self, db: AsyncSession, home_ids: list[str]) -> list[Device]:
        if not home_ids:
            return []
        result = await db.execute(
            select(Device).where(Device.home_id.in_(home_ids), Device.is_deleted == 0)
        )
        return list(result.scalars().all())

    async def user_detail(
        self, db: AsyncSession, user_id: str, now: datetime | None = None
    ) -> dict[str, Any]:
        """Account with its homes, device count and last-30-days usage."""
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        now = now or utcnow()
        homes = list((await db.execute(
            select(Home).where(Home.user_id == user.id, Home.is_active == 1)
            .order_by(Home.created_at)
        )).scalars().all())
        home_ids = [h.id for h in homes]
        devices = await self._live_devices(db, home_ids)
        kwh, cost, _ = await self._usage(db, home_ids, now - WINDOW)

        data = user_to_dict(user)
        data["stats"] = {
            "home_count": len(homes),
            "device_count": len(devices),
            "last_30_days": {"total_kwh": round(kwh, 4), "total_cost": round(cost, 2)},
        }
        data["homes"] = [
            {"id": h.id, "name": h.name, "zip_code": h.zip_code, "city": h.city}
            for h in homes
        ]
        return data

    async def community_insights(
        self, db: AsyncSession, zip_code: str | None = None, now: datetime | None = None
    ) -> dict[str, Any]:
        """Platform-wide or single-zip-code usage over the last 30 days."""
        now = now or utcnow()
        start = now - WINDOW
        stmt = select(Home.id).where(Home.is_active == 1)
        if zip_code:
            stmt = stmt.where(Home.zip_code == zip_code)
        home_ids = list((await db.execute(stmt)).scalars().all())
        devices = await self._live_devices(db, home_ids)
        kwh, cost, _ = await self._usage(db, home_ids, start)
        n = len(home_ids)

        neighborhood = None
        if zip_code:
            neighborhood = await self._reports.neighborhood_stats(db, zip_code, start, now)

        return {
            "scope": f"Zip Code: {zip_code}" if zip_code else "Platform-wide",
            "summary": {
                "total_homes": n,
                "total_devices": len(devices),
                "avg_devices_per_home": round(len(devices) / n, 2) if n else 0.0,
            },
            "device_breakdown": dict(Counter(d.type for d in devices)),
            "usage": {
                "period": "Last 30 Days",
                "total_kwh": round(kwh, 4),
                "total_cost": round(cost, 2),
                "avg_kwh_per_home": round(kwh / n, 4) if n else 0.0,
                "avg_cost_per_home": round(cost / n, 2) if n else 0.0,
            },
            "neighborhood": neighborhood,
        }

    async def platform_analytics(
        self,
        db: AsyncSession,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict[str, Any]:
        """Account growth, usage totals, daily trend and busiest zip codes."""
        end = end or utcnow()
        start = start or end - WINDOW
        if end < start:
            raise ValidationFailed("end must not be before start")

        total_users = await db.scalar(select(func.count(User.id)).where(User.is_active == 1))
        new_users = await db.scalar(
            select(func.count(User.id)).where(User.created_at >= start, User.created_at <= end)
        )
        home_ids = list((await db.execute(
            select(Home.id).where(Home.is_active == 1)
        )).scalars().all())
        total_devices = len(await self._live_devices(db, home_ids))

        rows = (await db.execute(
            select(Reading.timestamp, Reading.kwh, Reading.cost).where(
                Reading.timestamp >= start, Reading.timestamp <= end
            )
        )).all()
        daily: dict[str, dict] = {}
        total_kwh = total_cost = 0.0
        for timestamp, kwh, cost in rows:
            total_kwh += kwh
            total_cost += cost or 0.0
            day = daily.setdefault(timestamp.date().isoformat(), {
                "date": timestamp.date().isoformat(),
                "total_kwh": 0.0,
                "total_cost": 0.0,
                "reading_count": 0,
            })
            day["total_kwh"] += kwh
            day["total_cost"] += cost or 0.0
            day["reading_count"] += 1
        for day in daily.values():
            day["total_kwh"] = round(day["total_kwh"], 4)
            day["total_cost"] = round(day["total_cost"], 2)

        zip_rows = (await db.execute(
            select(Home.zip_code, func.count(Home.id).label("home_count"))
            .where(Home.is_active == 1)
            .group_by(Home.zip_code)
            .order_by(func.count(Home.id).desc(), Home.zip_code)
            .limit(10)
        )).all()

        n_homes = len(home_ids)
        return {
            "period": {"start": start, "end": end},
            "users": {"total": total_users or 0, "new_in_period": new_users or 0},
            "homes": {
                "total": n_homes,
                "avg_devices_per_home": round(total_devices / n_homes, 2) if n_homes else 0.0,
            },
            "devices": {"total": total_devices},
            "usage": {
                "total_kwh": round(total_kwh, 4),
                "total_cost": round(total_cost, 2),
                "total_readings": len(rows),
                "avg_kwh_per_reading": round(total_kwh / len(rows), 4) if rows else 0.0,
            },
            "daily_trend": [daily[k] for k in sorted(daily)],
            "top_zip_codes": [
                {"zip_code": z, "home_count": c} for z, c in zip_rows
            ],
        }
