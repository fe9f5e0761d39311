"""Home registry — CRUD, ownership checks and 30-day stats."""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from wattwatch.config import settings
from wattwatch.exceptions import ForbiddenError, NotFoundError
from wattwatch.models.device import Device
from wattwatch.models.home import Home
from wattwatch.models.user import User
from wattwatch.utils.clock import utcnow

if TYPE_CHECKING:
    from wattwatch.services.device_state import DeviceStateMachine
    from wattwatch.services.reading_service import ReadingService

logger = logging.getLogger(__name__)


def home_to_dict(home: Home, device_count: int = 0, active_device_count: int = 0) -> dict:
    return {
        "id": home.id,
        "user_id": home.user_id,
        "name": home.name,
        "street": home.street,
        "city": home.city,
        "state": home.state,
        "country": home.country,
        "zip_code": home.zip_code,
        "square_footage": home.square_footage,
        "number_of_rooms": home.number_of_rooms,
        "home_type": home.home_type,
        "tariff_structure": home.tariff_structure,
        "electricity_rate": home.electricity_rate,
        "tariff_slabs": home.tariff_slabs,
        "fixed_charges": home.fixed_charges,
        "sanctioned_load_kw": home.sanctioned_load_kw,
        "per_kw_charge": home.per_kw_charge,
        "tax_percentage": home.tax_percentage,
        "is_active": bool(home.is_active),
        "device_count": device_count,
        "active_device_count": active_device_count,
        "created_at": home.created_at,
    }


class HomeService:
    """Homes own devices and the tariff configuration."""

    def __init__(self, readings: ReadingService, state_machine: DeviceStateMachine):
        self._readings = readings
        self._state_machine = state_machine

    async def get_owned(self, db: AsyncSession, home_id: str, user: User) -> Home:
        """Load an active home, enforcing ownership unless the user is admin."""
        home = await db.get(Home, home_id)
        if home is None or not home.is_active:
            raise NotFoundError("Home not found")
        if home.user_id != user.id and not user.is_admin:
            raise ForbiddenError("Not authorized to access this home")
        return home

    async def _device_counts(self, db: AsyncSession, home_id: str) -> tuple[int, int]:
        result = await db.execute(
            select(func.count(), func.coalesce(func.sum(Device.is_active), 0)).where(
                Device.home_id == home_id, Device.is_deleted == 0
            )
        )
        total, active = result.one()
        return int(total), int(active)

    async def list_homes(self, db: AsyncSession, user: User) -> list[dict]:
        stmt = select(Home).where(Home.is_active == 1).order_by(Home.created_at.desc())
        if not user.is_admin:
            stmt = stmt.where(Home.user_id == user.id)
        homes = (await db.execute(stmt)).scalars().all()
        out = []
        for home in homes:
            out.append(home_to_dict(home, *await self._device_counts(db, home.id)))
        return out

    async def get_home(self, db: AsyncSession, home_id: str, user: User) -> dict:
        home = await self.get_owned(db, home_id, user)
        return home_to_dict(home, *await self._device_counts(db, home.id))

    async def create_home(self, db: AsyncSession, user: User, data: dict[str, Any]) -> dict:
        slabs = data.get("tariff_slabs")
        home = Home(
            id=str(uuid.uuid4()),
            user_id=user.id,
            name=data["name"],
            street=data.get("street"),
            city=data.get("city"),
            state=data.get("state"),
            country=data.get("country") or "India",
            zip_code=data["zip_code"],
            square_footage=data.get("square_footage"),
            number_of_rooms=data.get("number_of_rooms") or 1,
            home_type=data.get("home_type") or "house",
            tariff_structure=data.get("tariff_structure") or "slab",
            electricity_rate=(
                data["electricity_rate"]
                if data.get("electricity_rate") is not None
                else settings.default_electricity_rate
            ),
            tariff_slabs=slabs if slabs else [dict(s) for s in settings.default_tariff_slabs],
            fixed_charges=(
                data["fixed_charges"]
                if data.get("fixed_charges") is not None
                else settings.default_fixed_charges
            ),
            sanctioned_load_kw=data.get("sanctioned_load_kw", 5.0),
            per_kw_charge=data.get("per_kw_charge", 20.0),
            tax_percentage=data.get("tax_percentage", 5.0),
            is_active=1,
        )
        db.add(home)
        await db.commit()
        await db.refresh(home)
        logger.info("Home created: %s (%s) for user %s", home.name, home.id, user.id)
        return home_to_dict(home)

    async def update_home(
        self, db: AsyncSession, home_id: str, user: User, data: dict[str, Any]
    ) -> dict:
        home = await self.get_owned(db, home_id, user)
        for key, value in data.items():
            if value is None or not hasattr(home, key):
                continue
            setattr(home, key, value)
        await db.commit()
        await db.refresh(home)
        return home_to_dict(home, *await self._device_counts(db, home.id))

    async def delete_home(self, db: AsyncSession, home_id: str, user: User) -> None:
        """Soft delete; active devices are turned off and their sessions recorded."""
        home = await self.get_owned(db, home_id, user)
        stopped = await self._state_machine.turn_off_home(db, home.id)
        home.is_active = 0
        await db.commit()
        logger.info("Home %s deactivated (%d devices turned off)", home.id, stopped)

    async def home_stats(self, db: AsyncSession, home_id: str, user: User) -> dict:
        """Device wattage totals and 30-day usage for a home."""
        home = await self.get_owned(db, home_id, user)
        now = utcnow()
        start = now - timedelta(days=30)

        devices = (await db.execute(
            select(Device).where(Device.home_id == home.id, Device.is_deleted == 0)
        )).scalars().all()
        total_kwh = await self._readings.sum_kwh(db, home_id=home.id, start=start, end=now)
        total_cost = await self._readings.sum_cost(db, home_id=home.id, start=start, end=now)

        return {
            "home": {
                "id": home.id,
                "name": home.name,
                "zip_code": home.zip_code,
                "square_footage": home.square_footage,
                "home_type": home.home_type,
            },
            "devices": {
                "count": len(devices),
                "active_count": sum(1 for d in devices if d.is_active),
                "total_wattage": round(sum(d.wattage for d in devices), 2),
            },
            "usage": {
                "last_30_days": {
                    "total_kwh": round(total_kwh, 4),
                    "total_cost": round(total_cost, 2),
                    "avg_daily_kwh": round(total_kwh / 30, 4),
                    "avg_daily_cost": round(total_cost / 30, 2),
                },
            },
        }
