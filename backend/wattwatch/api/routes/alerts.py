"""Alert routes — rules, dry runs and triggered alerts."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from wattwatch.api.deps import get_current_user
from wattwatch.database import get_db
from wattwatch.models.user import User
from wattwatch.schemas.alert import (
    AlertCreate,
    AlertOut,
    AlertUpdate,
    TriggeredAlertOut,
    TriggeredAlertPage,
)
from wattwatch.schemas.common import Envelope, ok
from wattwatch.services import get_alert_service

router = APIRouter()


@router.get("", response_model=Envelope[list[AlertOut]])
async def list_alerts(
    home_id: str | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_alert_service().list_alerts(db, user, home_id))


@router.post("", response_model=Envelope[AlertOut], status_code=201)
async def create_alert(
    body: AlertCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    alert = await get_alert_service().create_alert(db, user, body.model_dump())
    return ok(alert, "Alert created successfully")


@router.get("/triggered", response_model=Envelope[TriggeredAlertPage])
async def list_triggered(
    acknowledged: bool | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_alert_service().list_triggered(db, user, acknowledged, page, limit))


@router.api_route(
    "/triggered/{triggered_id}/acknowledge",
    methods=["PATCH", "PUT"],
    response_model=Envelope[TriggeredAlertOut],
)
async def acknowledge(
    triggered_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_alert_service().acknowledge(db, triggered_id, user), "Alert acknowledged")


@router.get("/{alert_id}", response_model=Envelope[AlertOut])
async def get_alert(
    alert_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_alert_service().get_alert(db, alert_id, user))


@router.put("/{alert_id}", response_model=Envelope[AlertOut])
async def update_alert(
    alert_id: str,
    body: AlertUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    alert = await get_alert_service().update_alert(
        db, alert_id, user, body.model_dump(exclude_unset=True)
    )
    return ok(alert, "Alert updated successfully")


@router.delete("/{alert_id}")
async def delete_alert(
    alert_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_alert_service().delete_alert(db, alert_id, user)
    return ok(message="Alert deleted successfully")


@router.patch("/{alert_id}/toggle", response_model=Envelope[AlertOut])
async def toggle_alert(
    alert_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    alert = await get_alert_service().toggle_alert(db, alert_id, user)
    return ok(alert, f"Alert {'enabled' if alert['is_enabled'] else 'disabled'}")


@router.post("/{alert_id}/test")
async def test_alert(
    alert_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Evaluate the rule now without recording a trigger."""
    return ok(await get_alert_service().test_alert(db, alert_id, user))
