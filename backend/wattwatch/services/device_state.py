"""Device activation state machine — off/on with session finalization."""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wattwatch.config import settings
from wattwatch.models.device import Device
from wattwatch.models.home import Home
from wattwatch.models.reading import Reading
from wattwatch.services.consumption import session_cost, session_hours, session_kwh
from wattwatch.services.tariff import Tariff
from wattwatch.utils.clock import utcnow

if TYPE_CHECKING:
    from wattwatch.services.reading_service import ReadingService

logger = logging.getLogger(__name__)


class DeviceState(str, Enum):
    OFF = "off"
    ON = "on"


VALID_TRANSITIONS: dict[DeviceState, set[DeviceState]] = {
    DeviceState.OFF: {DeviceState.ON},
    DeviceState.ON: {DeviceState.OFF},
}


def state_of(device: Device) -> DeviceState:
    return DeviceState.ON if device.is_active else DeviceState.OFF


class DeviceStateMachine:
    """Applies user-triggered on/off transitions to devices.

    Turning on stamps ``last_turned_on``. Turning off persists a Reading for
    the finished session and stamps ``last_turned_off``. A request for the
    current state is a no-op.
    """

    def __init__(self, readings: ReadingService):
        self._readings = readings

    async def transition(
        self,
        db: AsyncSession,
        device: Device,
        target: DeviceState,
        now: datetime | None = None,
        commit: bool = True,
    ) -> Reading | None:
        """Move ``device`` to ``target``; returns the finalized Reading, if any."""
        current = state_of(device)
        if target == current:
            return None
        if target not in VALID_TRANSITIONS[current]:
            # Two states, so this cannot happen unless the table changes.
            raise ValueError(f"Invalid device transition: {current} -> {target}")

        now = now or utcnow()
        reading = None
        if target == DeviceState.ON:
            device.is_active = 1
            device.last_turned_on = now
        else:
            reading = await self._finalize_session(db, device, now)
            device.is_active = 0
            device.last_turned_off = now

        if commit:
            await db.commit()
            await db.refresh(device)
        logger.info("Device %s (%s): %s -> %s", device.id, device.name, current.value, target.value)
        return reading

    async def toggle(
        self, db: AsyncSession, device: Device, now: datetime | None = None
    ) -> Reading | None:
        target = DeviceState.OFF if device.is_active else DeviceState.ON
        return await self.transition(db, device, target, now)

    async def turn_off_home(
        self, db: AsyncSession, home_id: str, now: datetime | None = None
    ) -> int:
        """Turn off every active device of a home without committing."""
        now = now or utcnow()
        result = await db.execute(
            select(Device).where(
                Device.home_id == home_id,
                Device.is_active == 1,
                Device.is_deleted == 0,
            )
        )
        devices = result.scalars().all()
        for device in devices:
            await self.transition(db, device, DeviceState.OFF, now, commit=False)
        return len(devices)

    async def _finalize_session(
        self, db: AsyncSession, device: Device, now: datetime
    ) -> Reading | None:
        if device.last_turned_on is None:
            return None

        home = await db.get(Home, device.home_id)
        hours = session_hours(device.last_turned_on, now)
        kwh = session_kwh(device.wattage, hours)
        prior = await self._readings.home_month_kwh(db, device.home_id, now)
        cost = session_cost(kwh, Tariff.from_home(home), prior)

        voltage = settings.nominal_voltage
        reading = Reading(
            device_id=device.id,
            home_id=device.home_id,
            kwh=round(kwh, 4),
            watts=device.wattage,
            voltage=voltage,
            current=round(device.wattage / voltage, 4) if voltage else None,
            power_factor=settings.nominal_power_factor,
            duration_minutes=round(hours * 60),
            cost=round(cost, 4),
            is_simulated=0,
            timestamp=now,
        )
        db.add(reading)
        await db.flush()
        return reading
