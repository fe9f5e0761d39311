"""Device registry — CRUD, toggling, live consumption and templates."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from wattwatch.exceptions import ConflictError, ForbiddenError, NotFoundError
from wattwatch.models.device import Device
from wattwatch.models.device_template import DeviceTemplate
from wattwatch.models.home import Home
from wattwatch.models.user import User
from wattwatch.services.consumption import SessionConsumption, compute_session
from wattwatch.services.device_state import DeviceState
from wattwatch.services.reading_service import reading_to_dict
from wattwatch.services.tariff import Tariff
from wattwatch.utils.clock import utcnow

if TYPE_CHECKING:
    from wattwatch.services.device_state import DeviceStateMachine
    from wattwatch.services.home_service import HomeService
    from wattwatch.services.reading_service import ReadingService

logger = logging.getLogger(__name__)

# (name, type, avg W, min W, max W, category, hours/day)
DEFAULT_TEMPLATES: list[tuple] = [
    ("Split AC 1.5 Ton", "hvac", 1500, 1200, 2000, "heating_cooling", 8),
    ("Ceiling Fan", "hvac", 75, 50, 90, "heating_cooling", 12),
    ("Geyser 15L", "water_heater", 2000, 1500, 3000, "heating_cooling", 1),
    ("Double Door Refrigerator", "refrigerator", 250, 150, 350, "kitchen", 24),
    ("Front Load Washer", "washer", 500, 350, 800, "laundry", 1),
    ("Clothes Dryer", "dryer", 3000, 1800, 5000, "laundry", 1),
    ("Dishwasher", "dishwasher", 1800, 1200, 2400, "kitchen", 1),
    ("Electric Oven", "oven", 2400, 2000, 3000, "kitchen", 1),
    ("Microwave", "microwave", 1200, 800, 1500, "kitchen", 0.5),
    ("LED Bulb 9W", "lighting", 9, 5, 12, "lighting", 6),
    ("LED TV 43\"", "tv", 100, 60, 150, "entertainment", 5),
    ("Desktop Computer", "computer", 200, 100, 400, "entertainment", 6),
    ("Gaming Console", "gaming_console", 150, 90, 200, "entertainment", 3),
    ("EV Charger (Level 2)", "ev_charger", 7200, 3300, 7700, "outdoor", 3),
    ("Pool Pump", "pool_pump", 1100, 750, 1500, "outdoor", 6),
]


def device_to_dict(device: Device) -> dict:
    return {
        "id": device.id,
        "home_id": device.home_id,
        "name": device.name,
        "type": device.type,
        "wattage": device.wattage,
        "brand": device.brand,
        "model": device.model,
        "location": device.location,
        "is_smart_device": bool(device.is_smart_device),
        "average_usage_hours": device.average_usage_hours,
        "estimated_daily_kwh": round(device.estimated_daily_kwh, 4),
        "is_active": bool(device.is_active),
        "last_turned_on": device.last_turned_on,
        "last_turned_off": device.last_turned_off,
        "created_at": device.created_at,
    }


def template_to_dict(t: DeviceTemplate) -> dict:
    return {
        "id": t.id,
        "name": t.name,
        "type": t.type,
        "avg_wattage": t.avg_wattage,
        "min_wattage": t.min_wattage,
        "max_wattage": t.max_wattage,
        "description": t.description,
        "category": t.category,
        "avg_usage_hours_per_day": t.avg_usage_hours_per_day,
        "is_active": bool(t.is_active),
    }


class DeviceService:
    """Devices belong to a home; access follows home ownership."""

    def __init__(
        self,
        homes: HomeService,
        readings: ReadingService,
        state_machine: DeviceStateMachine,
    ):
        self._homes = homes
        self._readings = readings
        self._state_machine = state_machine

    # --- lookup ---------------------------------------------------------

    async def get_owned(
        self, db: AsyncSession, device_id: str, user: User
    ) -> tuple[Device, Home]:
        device = await db.get(Device, device_id)
        if device is None or device.is_deleted:
            raise NotFoundError("Device not found")
        home = await db.get(Home, device.home_id)
        if home is None or not home.is_active:
            raise NotFoundError("Device not found")
        if home.user_id != user.id and not user.is_admin:
            raise ForbiddenError("Not authorized to access this device")
        return device, home

    async def home_devices(
        self, db: AsyncSession, home_id: str, active_only: bool = False
    ) -> list[Device]:
        stmt = select(Device).where(Device.home_id == home_id, Device.is_deleted == 0)
        if active_only:
            stmt = stmt.where(Device.is_active == 1)
        result = await db.execute(stmt.order_by(Device.created_at))
        return list(result.scalars().all())

    # --- CRUD -----------------------------------------------------------

    async def create_device(self, db: AsyncSession, user: User, data: dict[str, Any]) -> dict:
        home = await self._homes.get_owned(db, data["home_id"], user)
        device = Device(
            id=str(uuid.uuid4()),
            home_id=home.id,
            name=data["name"],
            type=data["type"],
            wattage=data["wattage"],
            brand=data.get("brand"),
            model=data.get("model"),
            location=data.get("location"),
            is_smart_device=1 if data.get("is_smart_device") else 0,
            average_usage_hours=data.get("average_usage_hours") or 0.0,
            is_active=0,
            is_deleted=0,
        )
        db.add(device)
        await db.commit()
        await db.refresh(device)
        logger.info("Device created: %s (%s) in home %s", device.name, device.id, home.id)
        return device_to_dict(device)

    async def list_for_home(self, db: AsyncSession, home_id: str, user: User) -> list[dict]:
        home = await self._homes.get_owned(db, home_id, user)
        return [device_to_dict(d) for d in await self.home_devices(db, home.id)]

    async def get_device(self, db: AsyncSession, device_id: str, user: User) -> dict:
        """Device with its last-7-days totals and most recent readings."""
        device, _ = await self.get_owned(db, device_id, user)
        now = utcnow()
        recent = await self._readings.fetch(
            db, device_id=device.id, start=now - timedelta(days=7), end=now,
            limit=168, newest_first=True,
        )
        total = sum(r.kwh for r in recent)
        data = device_to_dict(device)
        data["recent_stats"] = {
            "last_7_days": {
                "total_kwh": round(total, 4),
                "avg_kwh": round(total / len(recent), 4) if recent else 0.0,
                "reading_count": len(recent),
            },
            "recent_readings": [reading_to_dict(r) for r in recent[:24]],
        }
        return data

    async def update_device(
        self, db: AsyncSession, device_id: str, user: User, data: dict[str, Any]
    ) -> dict:
        device, _ = await self.get_owned(db, device_id, user)
        is_active = data.pop("is_active", None)
        # A closing session is priced at the wattage it ran with
        if is_active is not None:
            target = DeviceState.ON if is_active else DeviceState.OFF
            await self._state_machine.transition(db, device, target, commit=False)
        for key, value in data.items():
            if value is None or not hasattr(device, key):
                continue
            if key == "is_smart_device":
                value = 1 if value else 0
            setattr(device, key, value)
        await db.commit()
        await db.refresh(device)
        return device_to_dict(device)

    async def delete_device(self, db: AsyncSession, device_id: str, user: User) -> None:
        """Soft delete; a running session is finalized first."""
        device, _ = await self.get_owned(db, device_id, user)
        now = utcnow()
        await self._state_machine.transition(db, device, DeviceState.OFF, now, commit=False)
        device.is_deleted = 1
        device.deleted_at = now
        await db.commit()
        logger.info("Device %s deleted", device.id)

    # --- activity -------------------------------------------------------

    async def toggle(
        self, db: AsyncSession, device_id: str, user: User, target: bool | None = None
    ) -> dict:
        """Flip (or set) the device state; returns state plus any session reading."""
        device, _ = await self.get_owned(db, device_id, user)
        if target is None:
            reading = await self._state_machine.toggle(db, device)
        else:
            state = DeviceState.ON if target else DeviceState.OFF
            reading = await self._state_machine.transition(db, device, state)
        return {
            "id": device.id,
            "name": device.name,
            "is_active": bool(device.is_active),
            "last_turned_on": device.last_turned_on,
            "last_turned_off": device.last_turned_off,
            "session_reading": reading_to_dict(reading) if reading else None,
        }

    async def live_session(
        self, db: AsyncSession, device: Device, home: Home, now: datetime | None = None
    ) -> SessionConsumption:
        now = now or utcnow()
        prior = await self._readings.home_month_kwh(db, home.id, now)
        return compute_session(
            device.wattage,
            bool(device.is_active),
            device.last_turned_on,
            now,
            Tariff.from_home(home),
            prior,
        )

    async def consumption(self, db: AsyncSession, device_id: str, user: User) -> dict:
        device, home = await self.get_owned(db, device_id, user)
        session = await self.live_session(db, device, home)
        return {
            "device": {
                "id": device.id,
                "name": device.name,
                "type": device.type,
                "wattage": device.wattage,
                "is_active": bool(device.is_active),
            },
            "consumption": session.to_dict(),
        }

    async def device_stats(self, db: AsyncSession, device_id: str, user: User) -> dict:
        """Totals for today, the last 7 days and this month."""
        device, _ = await self.get_owned(db, device_id, user)
        now = utcnow()
        periods = {
            "today": now.replace(hour=0, minute=0, second=0, microsecond=0),
            "this_week": now - timedelta(days=7),
            "this_month": now.replace(day=1, hour=0, minute=0, second=0, microsecond=0),
        }
        stats = {}
        for label, start in periods.items():
            readings = await self._readings.fetch(db, device_id=device.id, start=start, end=now)
            active = sum(1 for r in readings if (r.watts or 0) > 0)
            stats[label] = {
                "total_kwh": round(sum(r.kwh for r in readings), 4),
                "total_cost": round(sum(r.cost or 0.0 for r in readings), 2),
                "reading_count": len(readings),
                "active_readings": active,
                "utilization_rate": round(active / len(readings) * 100, 2) if readings else 0.0,
            }
        return {
            "device": {
                "id": device.id,
                "name": device.name,
                "type": device.type,
                "wattage": device.wattage,
            },
            "stats": stats,
        }

    async def readings(
        self,
        db: AsyncSession,
        device_id: str,
        user: User,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 100,
    ) -> list[dict]:
        device, _ = await self.get_owned(db, device_id, user)
        return await self._readings.list_for_device(db, device.id, start, end, limit)

    async def add_reading(
        self, db: AsyncSession, device_id: str, user: User, data: dict[str, Any]
    ) -> dict:
        device, home = await self.get_owned(db, device_id, user)
        return await self._readings.add_reading(db, device, home, data)

    async def realtime(self, db: AsyncSession, home_id: str, user: User) -> dict:
        """Live draw and session figures for every active device in a home."""
        home = await self._homes.get_owned(db, home_id, user)
        now = utcnow()
        tariff = Tariff.from_home(home)
        prior = await self._readings.home_month_kwh(db, home.id, now)

        devices = []
        for device in await self.home_devices(db, home.id, active_only=True):
            session = compute_session(
                device.wattage, True, device.last_turned_on, now, tariff, prior
            )
            devices.append({
                "device_id": device.id,
                "device_name": device.name,
                "device_type": device.type,
                "current_watts": session.current_watts,
                "session_kwh": round(session.session_kwh, 4),
                "session_cost": round(session.session_cost, 2),
                "session_duration_minutes": session.session_duration_minutes,
                "session_start": session.session_start,
            })

        total_watts = sum(d["current_watts"] for d in devices)
        hourly_kwh = total_watts / 1000.0
        hourly_cost = compute_session(
            total_watts, True, now - timedelta(hours=1), now, tariff, prior
        ).session_cost
        return {
            "home": {"id": home.id, "name": home.name},
            "realtime": {
                "total_current_watts": round(total_watts, 2),
                "estimated_hourly_kwh": round(hourly_kwh, 4),
                "estimated_hourly_cost": round(hourly_cost, 4),
                "estimated_daily_cost": round(hourly_cost * 24, 2),
                "timestamp": now,
            },
            "devices": devices,
        }

    # --- templates ------------------------------------------------------

    async def list_templates(self, db: AsyncSession, include_inactive: bool = False) -> list[dict]:
        stmt = select(DeviceTemplate).order_by(DeviceTemplate.type, DeviceTemplate.name)
        if not include_inactive:
            stmt = stmt.where(DeviceTemplate.is_active == 1)
        return [template_to_dict(t) for t in (await db.execute(stmt)).scalars().all()]

    async def create_template(self, db: AsyncSession, data: dict[str, Any]) -> dict:
        template = DeviceTemplate(id=str(uuid.uuid4()), **data)
        template.is_active = 1 if data.get("is_active", True) else 0
        db.add(template)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(f"Template '{data['name']}' already exists")
        await db.refresh(template)
        return template_to_dict(template)

    async def update_template(
        self, db: AsyncSession, template_id: str, data: dict[str, Any]
    ) -> dict:
        template = await db.get(DeviceTemplate, template_id)
        if template is None:
            raise NotFoundError("Template not found")
        for key, value in data.items():
            if value is None or not hasattr(template, key):
                continue
            if key == "is_active":
                value = 1 if value else 0
            setattr(template, key, value)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError("Template name already in use")
        await db.refresh(template)
        return template_to_dict(template)

    async def delete_template(self, db: AsyncSession, template_id: str) -> None:
        template = await db.get(DeviceTemplate, template_id)
        if template is None:
            raise NotFoundError("Template not found")
        await db.delete(template)
        await db.commit()

    async def seed_templates(self, db: AsyncSession) -> int:
        """Insert the default catalog when the template table is empty."""
        existing = (await db.execute(select(DeviceTemplate.id).limit(1))).first()
        if existing:
            return 0
        for name, type_, avg, low, high, category, hours in DEFAULT_TEMPLATES:
            db.add(DeviceTemplate(
                id=str(uuid.uuid4()),
                name=name,
                type=type_,
                avg_wattage=avg,
                min_wattage=low,
                max_wattage=high,
                category=category,
                avg_usage_hours_per_day=hours,
                is_active=1,
            ))
        await db.commit()
        logger.info("Seeded %d device templates", len(DEFAULT_TEMPLATES))
        return len(DEFAULT_TEMPLATES)
