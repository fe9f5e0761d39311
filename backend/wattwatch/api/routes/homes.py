"""Home routes — CRUD and stats."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from wattwatch.api.deps import get_current_user
from wattwatch.database import get_db
from wattwatch.models.user import User
from wattwatch.schemas.common import Envelope, ok
from wattwatch.schemas.home import HomeCreate, HomeOut, HomeUpdate
from wattwatch.services import get_home_service

router = APIRouter()


@router.get("", response_model=Envelope[list[HomeOut]])
async def list_homes(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_home_service().list_homes(db, user))


@router.post("", response_model=Envelope[HomeOut], status_code=201)
async def create_home(
    body: HomeCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    home = await get_home_service().create_home(db, user, body.model_dump())
    return ok(home, "Home created successfully")


@router.get("/{home_id}", response_model=Envelope[HomeOut])
async def get_home(
    home_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_home_service().get_home(db, home_id, user))


@router.put("/{home_id}", response_model=Envelope[HomeOut])
async def update_home(
    home_id: str,
    body: HomeUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    home = await get_home_service().update_home(
        db, home_id, user, body.model_dump(exclude_unset=True)
    )
    return ok(home, "Home updated successfully")


@router.delete("/{home_id}")
async def delete_home(
    home_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_home_service().delete_home(db, home_id, user)
    return ok(message="Home deleted successfully")


@router.get("/{home_id}/stats")
async def home_stats(
    home_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_home_service().home_stats(db, home_id, user))
