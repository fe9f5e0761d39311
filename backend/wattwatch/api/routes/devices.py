"""Device routes — CRUD, toggling, live consumption and readings."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from wattwatch.api.deps import get_current_user
from wattwatch.database import get_db
from wattwatch.models.user import User
from wattwatch.schemas.common import Envelope, ok
from wattwatch.schemas.device import (
    DeviceCreate,
    DeviceOut,
    DeviceUpdate,
    TemplateOut,
    ToggleResult,
)
from wattwatch.schemas.reading import ReadingCreate, ReadingOut
from wattwatch.services import get_device_service
from wattwatch.utils.clock import as_naive_utc

router = APIRouter()


@router.get("/templates", response_model=Envelope[list[TemplateOut]])
async def list_templates(
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_device_service().list_templates(db))


@router.post("", response_model=Envelope[DeviceOut], status_code=201)
async def create_device(
    body: DeviceCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    device = await get_device_service().create_device(db, user, body.model_dump())
    return ok(device, "Device created successfully")


@router.get("/home/{home_id}", response_model=Envelope[list[DeviceOut]])
async def list_home_devices(
    home_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_device_service().list_for_home(db, home_id, user))


@router.get("/{device_id}")
async def get_device(
    device_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_device_service().get_device(db, device_id, user))


@router.put("/{device_id}", response_model=Envelope[DeviceOut])
async def update_device(
    device_id: str,
    body: DeviceUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Partial update; an ``is_active`` change starts or finalizes a session."""
    device = await get_device_service().update_device(
        db, device_id, user, body.model_dump(exclude_unset=True)
    )
    return ok(device, "Device updated successfully")


@router.delete("/{device_id}")
async def delete_device(
    device_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_device_service().delete_device(db, device_id, user)
    return ok(message="Device deleted successfully")


@router.get("/{device_id}/stats")
async def device_stats(
    device_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_device_service().device_stats(db, device_id, user))


@router.api_route("/{device_id}/toggle", methods=["PUT", "PATCH"], response_model=Envelope[ToggleResult])
async def toggle_device(
    device_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await get_device_service().toggle(db, device_id, user)
    return ok(result, f"Device turned {'on' if result['is_active'] else 'off'}")


@router.get("/{device_id}/consumption")
async def device_consumption(
    device_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Live session figures; poll while the device is on."""
    return ok(await get_device_service().consumption(db, device_id, user))


@router.get("/{device_id}/readings", response_model=Envelope[list[ReadingOut]])
async def device_readings(
    device_id: str,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = Query(100, ge=1, le=1000),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_device_service().readings(
        db,
        device_id,
        user,
        as_naive_utc(start) if start else None,
        as_naive_utc(end) if end else None,
        limit,
    ))


@router.post("/{device_id}/readings", response_model=Envelope[ReadingOut], status_code=201)
async def add_reading(
    device_id: str,
    body: ReadingCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = body.model_dump()
    if data.get("timestamp"):
        data["timestamp"] = as_naive_utc(data["timestamp"])
    return ok(await get_device_service().add_reading(db, device_id, user, data), "Reading recorded")
