"""Report aggregation — consumption, cost analysis, tips, comparisons."""

from __future__ import annotations

import calendar
import logging
import math
from collections import defaultdict
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wattwatch.config import settings
from wattwatch.exceptions import ValidationFailed
from wattwatch.models.device import Device
from wattwatch.models.home import Home
from wattwatch.models.reading import Reading
from wattwatch.models.user import User
from wattwatch.services import tips as tip_rules
from wattwatch.services.consumption import compute_session
from wattwatch.services.tariff import Tariff, effective_rate, monthly_bill
from wattwatch.utils.clock import month_bounds, utcnow

if TYPE_CHECKING:
    from wattwatch.services.device_service import DeviceService
    from wattwatch.services.home_service import HomeService
    from wattwatch.services.reading_service import ReadingService

logger = logging.getLogger(__name__)

ANALYSIS_TYPES = ("period", "monthly", "projection", "comparison")
_ONE_US = timedelta(microseconds=1)


def _percentile(sorted_values: list[float], p: float) -> float:
    return sorted_values[min(int(len(sorted_values) * p), len(sorted_values) - 1)]


def _pct_change(current: float, previous: float) -> float | None:
    if previous == 0:
        return None
    return round((current - previous) / previous * 100, 2)


class ReportService:
    """Read-only aggregation over stored readings plus live sessions."""

    def __init__(
        self,
        homes: HomeService,
        devices: DeviceService,
        readings: ReadingService,
    ):
        self._homes = homes
        self._devices = devices
        self._readings = readings

    async def _device_index(self, db: AsyncSession, home_id: str) -> dict[str, Device]:
        result = await db.execute(select(Device).where(Device.home_id == home_id))
        return {d.id: d for d in result.scalars().all()}

    # --- consumption ----------------------------------------------------

    async def consumption_report(
        self,
        db: AsyncSession,
        home_id: str,
        user: User,
        month: int | None = None,
        year: int | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Totals, per-device and daily breakdowns; live sessions merged for this month."""
        home = await self._homes.get_owned(db, home_id, user)
        now = now or utcnow()

        if month and year:
            start, next_month = month_bounds(year, month)
            end = next_month - _ONE_US
        elif start and end:
            if end < start:
                raise ValidationFailed("end must not be before start")
        elif start or end:
            raise ValidationFailed("start and end must be given together")
        else:
            start, next_month = month_bounds(now.year, now.month)
            end = next_month - _ONE_US

        if user.created_at is not None:
            account_month, _ = month_bounds(user.created_at.year, user.created_at.month)
            if start < account_month:
                raise ValidationFailed(
                    "Cannot generate reports before your account was created "
                    f"({user.created_at:%B %Y})"
                )

        devices = await self._device_index(db, home.id)
        readings = await self._readings.fetch(db, home_id=home.id, start=start, end=end)

        total_kwh = total_cost = 0.0
        breakdown: dict[str, dict] = {}
        daily: dict[str, dict] = {}
        for r in readings:
            total_kwh += r.kwh
            total_cost += r.cost or 0.0
            device = devices.get(r.device_id)
            entry = breakdown.setdefault(r.device_id, {
                "device_id": r.device_id,
                "name": device.name if device else "Unknown",
                "type": device.type if device else "other",
                "total_kwh": 0.0,
                "total_cost": 0.0,
                "reading_count": 0,
            })
            entry["total_kwh"] += r.kwh
            entry["total_cost"] += r.cost or 0.0
            entry["reading_count"] += 1

            day = daily.setdefault(r.timestamp.date().isoformat(), {
                "date": r.timestamp.date().isoformat(), "kwh": 0.0, "cost": 0.0,
            })
            day["kwh"] += r.kwh
            day["cost"] += r.cost or 0.0

        is_current_month = start.year == now.year and start.month == now.month
        live = None
        if is_current_month:
            live = await self._merge_live(db, home, devices, now, breakdown, daily)
            total_kwh += live["total_kwh"]
            total_cost += live["total_cost"]

        days = max(math.ceil((end - start).total_seconds() / 86400), 1)
        for entry in breakdown.values():
            entry["total_kwh"] = round(entry["total_kwh"], 4)
            entry["total_cost"] = round(entry["total_cost"], 2)
        for day in daily.values():
            day["kwh"] = round(day["kwh"], 4)
            day["cost"] = round(day["cost"], 2)

        active = [d for d in devices.values() if d.is_active and not d.is_deleted]
        return {
            "home": {
                "id": home.id,
                "name": home.name,
                "tariff_structure": home.tariff_structure,
                "electricity_rate": home.electricity_rate,
            },
            "period": {"start": start, "end": end, "days": days, "is_current_month": is_current_month},
            "summary": {
                "total_kwh": round(total_kwh, 4),
                "total_cost": round(total_cost, 2),
                "avg_daily_kwh": round(total_kwh / days, 4),
                "avg_daily_cost": round(total_cost / days, 2),
                "total_readings": len(readings),
                "total_devices": sum(1 for d in devices.values() if not d.is_deleted),
                "active_devices": len(active),
            },
            "live_consumption": live,
            "device_breakdown": sorted(breakdown.values(), key=lambda e: e["total_kwh"], reverse=True),
            "daily_breakdown": sorted(daily.values(), key=lambda e: e["date"]),
        }

    async def _merge_live(
        self,
        db: AsyncSession,
        home: Home,
        devices: dict[str, Device],
        now: datetime,
        breakdown: dict[str, dict],
        daily: dict[str, dict],
    ) -> dict:
        """Fold running sessions into the breakdowns; returns the live summary."""
        tariff = Tariff.from_home(home)
        prior = await self._readings.home_month_kwh(db, home.id, now)
        live_kwh = live_cost = live_watts = 0.0
        live_devices = []

        for device in devices.values():
            if not device.is_active or device.is_deleted or device.last_turned_on is None:
                continue
            session = compute_session(
                device.wattage, True, device.last_turned_on, now, tariff, prior + live_kwh
            )
            live_kwh += session.session_kwh
            live_cost += session.session_cost
            live_watts += session.current_watts
            live_devices.append({
                "device_id": device.id,
                "name": device.name,
                "type": device.type,
                "wattage": device.wattage,
                "location": device.location,
                "session_start": session.session_start,
                "session_duration_minutes": session.session_duration_minutes,
                "session_kwh": round(session.session_kwh, 4),
                "session_cost": round(session.session_cost, 4),
            })

            entry = breakdown.get(device.id)
            if entry is None:
                entry = breakdown[device.id] = {
                    "device_id": device.id,
                    "name": device.name,
                    "type": device.type,
                    "total_kwh": 0.0,
                    "total_cost": 0.0,
                    "reading_count": 0,
                    "is_live_only": True,
                }
            entry["total_kwh"] += session.session_kwh
            entry["total_cost"] += session.session_cost
            entry["live_kwh"] = round(session.session_kwh, 4)
            entry["live_cost"] = round(session.session_cost, 4)

        today = now.date().isoformat()
        day = daily.setdefault(today, {"date": today, "kwh": 0.0, "cost": 0.0})
        day["kwh"] += live_kwh
        day["cost"] += live_cost
        day["live_kwh"] = round(live_kwh, 4)
        day["live_cost"] = round(live_cost, 4)

        return {
            "active_device_count": len(live_devices),
            "total_watts": live_watts,
            "total_kwh": live_kwh,
            "total_cost": live_cost,
            "devices": live_devices,
        }

    # --- cost analysis --------------------------------------------------

    async def period_cost(
        self, db: AsyncSession, home: Home, start: datetime, end: datetime
    ) -> dict[str, Any]:
        """Tariff-aware energy cost for a window with device and daily breakdowns."""
        tariff = Tariff.from_home(home)
        readings = await self._readings.fetch(db, home_id=home.id, start=start, end=end)
        base = {"start": start, "end": end, "currency": settings.currency}
        if not readings:
            return {
                **base,
                "total_kwh": 0.0,
                "total_cost": 0.0,
                "avg_rate": round(effective_rate(0, tariff), 2),
                "avg_daily_cost": 0.0,
                "avg_daily_kwh": 0.0,
                "reading_count": 0,
                "device_breakdown": [],
                "daily_breakdown": [],
                "bill_breakdown": None,
            }

        total_kwh = sum(r.kwh for r in readings)
        bill = None
        if tariff.uses_slabs:
            bill = monthly_bill(total_kwh, tariff, settings.currency)
            total_cost = bill["energy_charges"]
        else:
            total_cost = total_kwh * tariff.electricity_rate
        rate = total_cost / total_kwh if total_kwh > 0 else effective_rate(0, tariff)

        devices = await self._device_index(db, home.id)
        per_device: dict[str, dict] = {}
        per_day: dict[str, dict] = defaultdict(lambda: {"kwh": 0.0, "count": 0})
        for r in readings:
            device = devices.get(r.device_id)
            entry = per_device.setdefault(r.device_id, {
                "device_id": r.device_id,
                "device_name": device.name if device else "Unknown",
                "device_type": device.type if device else "other",
                "kwh": 0.0,
                "count": 0,
            })
            entry["kwh"] += r.kwh
            entry["count"] += 1
            day = per_day[r.timestamp.date().isoformat()]
            day["kwh"] += r.kwh
            day["count"] += 1

        device_breakdown = sorted(
            (
                {
                    "device_id": e["device_id"],
                    "device_name": e["device_name"],
                    "device_type": e["device_type"],
                    "total_kwh": round(e["kwh"], 4),
                    "total_cost": round(e["kwh"] * rate, 2),
                    "reading_count": e["count"],
                    "percentage": round(e["kwh"] / total_kwh * 100, 2) if total_kwh else 0.0,
                }
                for e in per_device.values()
            ),
            key=lambda e: e["total_cost"],
            reverse=True,
        )
        daily_breakdown = [
            {
                "date": date,
                "total_kwh": round(d["kwh"], 4),
                "total_cost": round(d["kwh"] * rate, 2),
                "reading_count": d["count"],
            }
            for date, d in sorted(per_day.items())
        ]
        n_days = max(len(daily_breakdown), 1)
        return {
            **base,
            "total_kwh": round(total_kwh, 4),
            "total_cost": round(total_cost, 2),
            "avg_rate": round(rate, 2),
            "avg_daily_cost": round(total_cost / n_days, 2),
            "avg_daily_kwh": round(total_kwh / n_days, 4),
            "reading_count": len(readings),
            "device_breakdown": device_breakdown,
            "daily_breakdown": daily_breakdown,
            "bill_breakdown": bill,
        }

    async def monthly_cost(
        self, db: AsyncSession, home: Home, year: int, month: int
    ) -> dict[str, Any]:
        start, next_month = month_bounds(year, month)
        return await self.period_cost(db, home, start, next_month - _ONE_US)

    async def projection(
        self, db: AsyncSession, home: Home, now: datetime | None = None
    ) -> dict[str, Any]:
        """Extrapolate month-to-date cost to the end of the month."""
        now = now or utcnow()
        start, _ = month_bounds(now.year, now.month)
        actual = await self.period_cost(db, home, start, now)
        days_in_month = calendar.monthrange(now.year, now.month)[1]
        elapsed = now.day
        remaining = days_in_month - elapsed
        avg_daily = actual["total_cost"] / elapsed
        projected_remaining = avg_daily * remaining
        return {
            "current_month": {"year": now.year, "month": now.month},
            "days_elapsed": elapsed,
            "days_remaining": remaining,
            "days_in_month": days_in_month,
            "actual_cost": actual["total_cost"],
            "actual_kwh": actual["total_kwh"],
            "avg_daily_cost": round(avg_daily, 2),
            "projected_remaining_cost": round(projected_remaining, 2),
            "projected_total_cost": round(actual["total_cost"] + projected_remaining, 2),
            "projected_total_kwh": round(actual["total_kwh"] * days_in_month / elapsed, 4),
        }

    async def compare_months(
        self, db: AsyncSession, home: Home, now: datetime | None = None
    ) -> list[dict]:
        """Last month (full) against this month to date."""
        now = now or utcnow()
        this_start, _ = month_bounds(now.year, now.month)
        prev_year, prev_month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
        last_start, _ = month_bounds(prev_year, prev_month)

        periods = [
            ("Last Month", last_start, this_start - _ONE_US),
            ("Current Month", this_start, now),
        ]
        out: list[dict] = []
        for label, start, end in periods:
            cost = await self.period_cost(db, home, start, end)
            entry = {
                "label": label,
                "start": start,
                "end": end,
                "total_kwh": cost["total_kwh"],
                "total_cost": cost["total_cost"],
                "avg_daily_cost": cost["avg_daily_cost"],
            }
            if out:
                entry["kwh_change"] = _pct_change(cost["total_kwh"], out[-1]["total_kwh"])
                entry["cost_change"] = _pct_change(cost["total_cost"], out[-1]["total_cost"])
            out.append(entry)
        return out

    async def cost_analysis(
        self,
        db: AsyncSession,
        home_id: str,
        user: User,
        analysis_type: str = "period",
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict[str, Any]:
        if analysis_type not in ANALYSIS_TYPES:
            raise ValidationFailed(f"analysis_type must be one of: {', '.join(ANALYSIS_TYPES)}")
        home = await self._homes.get_owned(db, home_id, user)
        now = utcnow()

        if analysis_type == "monthly":
            data: Any = await self.monthly_cost(db, home, now.year, now.month)
        elif analysis_type == "projection":
            data = await self.projection(db, home, now)
        elif analysis_type == "comparison":
            data = await self.compare_months(db, home, now)
        else:
            end = end or now
            start = start or end - timedelta(days=30)
            data = await self.period_cost(db, home, start, end)

        return {
            "analysis_type": analysis_type,
            "home": {"id": home.id, "name": home.name},
            "data": data,
        }

    # --- tips -----------------------------------------------------------

    async def _analysis(
        self, db: AsyncSession, home: Home, start: datetime, end: datetime
    ) -> tip_rules.UsageAnalysis:
        readings = await self._readings.fetch(db, home_id=home.id, start=start, end=end)
        devices = await self._device_index(db, home.id)
        return tip_rules.analyze_usage(
            readings, {d.id: d.type for d in devices.values()}, start, end
        )

    async def savings_tips(
        self,
        db: AsyncSession,
        home_id: str,
        user: User,
        category: str | None = None,
        priority: str | None = None,
    ) -> dict[str, Any]:
        home = await self._homes.get_owned(db, home_id, user)
        end = utcnow()
        analysis = await self._analysis(db, home, end - timedelta(days=30), end)
        tips = tip_rules.generate_tips(analysis, category, priority, settings.currency)
        return {
            "home": {"id": home.id, "name": home.name},
            "count": len(tips),
            "potential_savings": tip_rules.potential_savings(tips, settings.currency),
            "quick_wins": [t["id"] for t in tip_rules.quick_wins(tips)],
            "tips": tips,
        }

    # --- neighborhood ---------------------------------------------------

    async def neighborhood_stats(
        self, db: AsyncSession, zip_code: str, start: datetime, end: datetime
    ) -> dict[str, Any]:
        homes = (await db.execute(
            select(Home.id).where(Home.zip_code == zip_code, Home.is_active == 1)
        )).scalars().all()
        stats: dict[str, Any] = {"zip_code": zip_code, "home_count": len(homes)}
        if not homes:
            return {**stats, "homes_with_data": 0, "message": "No homes found in this zip code"}

        rows = (await db.execute(
            select(Reading.home_id, Reading.kwh, Reading.cost).where(
                Reading.home_id.in_(homes),
                Reading.timestamp >= start,
                Reading.timestamp <= end,
            )
        )).all()
        if not rows:
            return {
                **stats,
                "homes_with_data": 0,
                "avg_kwh": 0.0,
                "avg_cost": 0.0,
                "message": "No data available for this period",
            }

        per_home: dict[str, list[float]] = defaultdict(lambda: [0.0, 0.0])
        for home_id, kwh, cost in rows:
            per_home[home_id][0] += kwh
            per_home[home_id][1] += cost or 0.0
        n = len(per_home)
        kwh_values = sorted(v[0] for v in per_home.values())
        return {
            **stats,
            "homes_with_data": n,
            "avg_kwh": round(sum(kwh_values) / n, 4),
            "avg_cost": round(sum(v[1] for v in per_home.values()) / n, 2),
            "min_kwh": round(kwh_values[0], 4),
            "max_kwh": round(kwh_values[-1], 4),
            "percentiles": {
                f"p{int(p * 100)}": round(_percentile(kwh_values, p), 4)
                for p in (0.25, 0.5, 0.75, 0.9)
            },
            "start": start,
            "end": end,
        }

    async def compare_neighborhood(
        self,
        db: AsyncSession,
        home_id: str,
        user: User,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict[str, Any]:
        """Rank this home's usage against homes sharing its zip code."""
        home = await self._homes.get_owned(db, home_id, user)
        end = end or utcnow()
        start = start or end - timedelta(days=30)
        hood = await self.neighborhood_stats(db, home.zip_code, start, end)
        if not hood.get("homes_with_data"):
            return {
                "home": {"id": home.id, "name": home.name, "zip_code": home.zip_code},
                "neighborhood": hood,
                "comparison": None,
                "message": "No neighborhood data available for comparison",
            }

        home_kwh = await self._readings.sum_kwh(db, home_id=home.id, start=start, end=end)
        home_cost = await self._readings.sum_cost(db, home_id=home.id, start=start, end=end)
        kwh_diff = home_kwh - hood["avg_kwh"]
        cost_diff = home_cost - hood["avg_cost"]
        kwh_pct = kwh_diff / hood["avg_kwh"] * 100 if hood["avg_kwh"] else 0.0
        cost_pct = cost_diff / hood["avg_cost"] * 100 if hood["avg_cost"] else 0.0

        p = hood["percentiles"]
        if home_kwh <= p["p25"]:
            ranking = "Top 25% (Most Efficient)"
        elif home_kwh <= p["p50"]:
            ranking = "Top 50% (Above Average)"
        elif home_kwh <= p["p75"]:
            ranking = "Top 75% (Below Average)"
        else:
            ranking = "Bottom 25% (Least Efficient)"

        if kwh_pct < -10:
            message = f"Great job! Your home uses {abs(kwh_pct):.1f}% less energy than your neighbors."
        elif kwh_pct < 10:
            message = "Your usage is similar to your neighborhood average."
        else:
            message = (
                f"Your home uses {kwh_pct:.1f}% more energy than your neighbors. "
                "Consider ways to reduce usage."
            )

        return {
            "home": {
                "id": home.id,
                "name": home.name,
                "zip_code": home.zip_code,
                "total_kwh": round(home_kwh, 4),
                "total_cost": round(home_cost, 2),
            },
            "neighborhood": hood,
            "comparison": {
                "kwh_difference": round(kwh_diff, 4),
                "kwh_percentage": round(kwh_pct, 2),
                "cost_difference": round(cost_diff, 2),
                "cost_percentage": round(cost_pct, 2),
                "ranking": ranking,
                "message": message,
            },
            "start": start,
            "end": end,
        }

    # --- dashboard ------------------------------------------------------

    async def dashboard(self, db: AsyncSession, home_id: str, user: User) -> dict[str, Any]:
        home = await self._homes.get_owned(db, home_id, user)
        now = utcnow()
        month = await self.monthly_cost(db, home, now.year, now.month)
        projection = await self.projection(db, home, now)
        analysis = await self._analysis(db, home, now - timedelta(days=30), now)
        tips = tip_rules.generate_tips(analysis, currency=settings.currency)
        high = [t for t in tips if t["priority"] == "high"]
        savings = tip_rules.potential_savings(tips, settings.currency)
        comparison = await self.compare_neighborhood(db, home.id, user, now - timedelta(days=30), now)
        ranking = comparison.get("comparison")

        return {
            "home": {"id": home.id, "name": home.name},
            "summary": {
                "current_month": {
                    "total_cost": month["total_cost"],
                    "total_kwh": month["total_kwh"],
                    "avg_daily_cost": month["avg_daily_cost"],
                },
                "projection": {
                    "projected_total_cost": projection["projected_total_cost"],
                    "days_remaining": projection["days_remaining"],
                },
                "tips": {
                    "total_tips": len(tips),
                    "high_priority_count": len(high),
                    "potential_monthly_savings": savings["monthly"]["average"],
                },
                "comparison": {
                    "ranking": ranking["ranking"],
                    "percentage_difference": ranking["kwh_percentage"],
                } if ranking else None,
            },
            "details": {
                "top_devices": month["device_breakdown"][:5],
                "top_tips": high[:3],
            },
        }
