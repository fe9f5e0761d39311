"""APScheduler-based background jobs for alert evaluation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from wattwatch.config import settings
from wattwatch.database import session_scope

if TYPE_CHECKING:
    from wattwatch.services.alert_service import AlertService

logger = logging.getLogger(__name__)


class AlertScheduler:
    """Runs the alert check at a fixed minute of every hour."""

    def __init__(self, alert_service: AlertService):
        self._alerts = alert_service
        self._scheduler = AsyncIOScheduler(
            job_defaults={"coalesce": True, "max_instances": 1}
        )

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        self._scheduler.add_job(
            self._check_alerts,
            "cron",
            minute=settings.alert_check_minute,
            id="check_alerts",
            name="Evaluate enabled alert rules",
        )
        self._scheduler.start()
        logger.info(
            "Alert scheduler started — checking at minute %d of every hour",
            settings.alert_check_minute,
        )

    async def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Alert scheduler stopped")

    async def _check_alerts(self) -> None:
        try:
            async with session_scope() as db:
                result = await self._alerts.check_all(db)
                logger.info(
                    "Alert job: %d checked, %d triggered",
                    result["total_checked"], len(result["triggered"]),
                )
        except Exception as e:
            logger.error("Alert job failed: %s", e)
