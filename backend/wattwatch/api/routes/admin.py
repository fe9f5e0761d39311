"""Admin routes — users, platform insights and the device template catalog."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from wattwatch.api.deps import require_admin
from wattwatch.database import get_db
from wattwatch.models.user import User
from wattwatch.schemas.auth import AdminUserUpdate, UserInfo
from wattwatch.schemas.common import Envelope, ok
from wattwatch.schemas.device import TemplateCreate, TemplateOut, TemplateUpdate
from wattwatch.services import get_admin_service, get_auth_service, get_device_service
from wattwatch.utils.clock import as_naive_utc

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/users", response_model=Envelope[list[UserInfo]])
async def list_users(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_auth_service().list_users(db))


@router.get("/users/{user_id}")
async def get_user(
    user_id: str,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_admin_service().user_detail(db, user_id))


@router.put("/users/{user_id}", response_model=Envelope[UserInfo])
async def update_user(
    user_id: str,
    body: AdminUserUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await get_auth_service().update_user(db, user_id, body.model_dump(exclude_unset=True))
    logger.info("Admin %s updated user %s", admin.email, user_id)
    return ok(user, "User updated")


@router.delete("/users/{user_id}", response_model=Envelope[UserInfo])
async def deactivate_user(
    user_id: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await get_auth_service().deactivate_user(db, user_id)
    logger.info("Admin %s deactivated user %s", admin.email, user_id)
    return ok(user, "User deactivated")


@router.get("/templates", response_model=Envelope[list[TemplateOut]])
async def list_templates(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_device_service().list_templates(db, include_inactive=True))


@router.post("/templates", response_model=Envelope[TemplateOut], status_code=201)
async def create_template(
    body: TemplateCreate,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_device_service().create_template(db, body.model_dump()), "Template created")


@router.put("/templates/{template_id}", response_model=Envelope[TemplateOut])
async def update_template(
    template_id: str,
    body: TemplateUpdate,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    template = await get_device_service().update_template(
        db, template_id, body.model_dump(exclude_unset=True)
    )
    return ok(template, "Template updated")


@router.delete("/templates/{template_id}")
async def delete_template(
    template_id: str,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await get_device_service().delete_template(db, template_id)
    return ok(message="Template deleted")


@router.get("/insights")
async def community_insights(
    zip_code: str | None = Query(None, max_length=10),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_admin_service().community_insights(db, zip_code))


@router.get("/analytics")
async def platform_analytics(
    start: datetime | None = None,
    end: datetime | None = None,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    analytics = await get_admin_service().platform_analytics(
        db,
        as_naive_utc(start) if start else None,
        as_naive_utc(end) if end else None,
    )
    return ok(analytics)
