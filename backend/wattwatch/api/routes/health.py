"""Health & ping endpoints."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from wattwatch import __version__
from wattwatch.database import get_db
from wattwatch.schemas.common import Envelope
from wattwatch.schemas.system import HealthResponse
from wattwatch.services import get_scheduler

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health", response_model=Envelope[HealthResponse])
async def health(db: AsyncSession = Depends(get_db)):
    """Service health including a database round-trip."""
    database = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Health check: database unavailable: %s", e)
        database = "unavailable"

    scheduler = get_scheduler()
    return Envelope(data=HealthResponse(
        status="ok" if database == "ok" else "degraded",
        version=__version__,
        database=database,
        scheduler_running=bool(scheduler and scheduler.running),
    ))


@router.get("/ping")
async def ping():
    return {"success": True, "data": {"pong": True}}
