"""Home-level reading routes."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from wattwatch.api.deps import get_current_user
from wattwatch.database import get_db
from wattwatch.models.user import User
from wattwatch.schemas.common import ok
from wattwatch.services import get_device_service, get_home_service, get_reading_service
from wattwatch.utils.clock import as_naive_utc

router = APIRouter()


@router.get("/home/{home_id}")
async def home_readings(
    home_id: str,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = Query(500, ge=1, le=5000),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Readings for a home (last 24 h unless a range is given)."""
    home = await get_home_service().get_owned(db, home_id, user)
    return ok(await get_reading_service().list_for_home(
        db,
        home.id,
        as_naive_utc(start) if start else None,
        as_naive_utc(end) if end else None,
        limit,
    ))


@router.get("/realtime/{home_id}")
async def realtime(
    home_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_device_service().realtime(db, home_id, user))
