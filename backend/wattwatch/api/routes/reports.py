"""Report routes — consumption, cost analysis, tips, comparison, dashboard."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from wattwatch.api.deps import get_current_user
from wattwatch.database import get_db
from wattwatch.models.user import User
from wattwatch.schemas.common import ok
from wattwatch.services import get_report_service
from wattwatch.utils.clock import as_naive_utc

router = APIRouter()


def _naive(value: datetime | None) -> datetime | None:
    return as_naive_utc(value) if value else None


@router.get("/consumption/{home_id}")
async def consumption_report(
    home_id: str,
    month: int | None = Query(None, ge=1, le=12),
    year: int | None = Query(None, ge=2000, le=2100),
    start: datetime | None = None,
    end: datetime | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Monthly (default: current month) or ranged consumption report."""
    return ok(await get_report_service().consumption_report(
        db, home_id, user, month, year, _naive(start), _naive(end)
    ))


@router.get("/cost-analysis")
async def cost_analysis(
    home_id: str,
    analysis_type: str = "period",
    start: datetime | None = None,
    end: datetime | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_report_service().cost_analysis(
        db, home_id, user, analysis_type, _naive(start), _naive(end)
    ))


@router.get("/savings-tips")
async def savings_tips(
    home_id: str,
    category: str | None = None,
    priority: str | None = Query(None, pattern="^(high|medium|low)$"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_report_service().savings_tips(db, home_id, user, category, priority))


@router.get("/comparison")
async def neighborhood_comparison(
    home_id: str,
    start: datetime | None = None,
    end: datetime | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_report_service().compare_neighborhood(
        db, home_id, user, _naive(start), _naive(end)
    ))


@router.get("/dashboard")
async def dashboard(
    home_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok(await get_report_service().dashboard(db, home_id, user))
