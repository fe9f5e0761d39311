"""Business logic services — singleton registry."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from wattwatch.config import settings

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from wattwatch.services.admin_service import AdminService
    from wattwatch.services.alert_service import AlertService
    from wattwatch.services.auth_service import AuthService
    from wattwatch.services.device_service import DeviceService
    from wattwatch.services.device_state import DeviceStateMachine
    from wattwatch.services.home_service import HomeService
    from wattwatch.services.reading_service import ReadingService
    from wattwatch.services.report_service import ReportService
    from wattwatch.services.scheduler import AlertScheduler

logger = logging.getLogger(__name__)

_auth_service: AuthService | None = None
_reading_service: ReadingService | None = None
_state_machine: DeviceStateMachine | None = None
_home_service: HomeService | None = None
_device_service: DeviceService | None = None
_alert_service: AlertService | None = None
_report_service: ReportService | None = None
_admin_service: AdminService | None = None
_scheduler: AlertScheduler | None = None


async def init_services(db_session: AsyncSession, start_scheduler: bool | None = None) -> None:
    """Create and wire up all service singletons."""
    global _auth_service, _reading_service, _state_machine, _home_service
    global _device_service, _alert_service, _report_service, _admin_service, _scheduler

    from wattwatch.services.admin_service import AdminService
    from wattwatch.services.alert_service import AlertService
    from wattwatch.services.auth_service import AuthService
    from wattwatch.services.device_service import DeviceService
    from wattwatch.services.device_state import DeviceStateMachine
    from wattwatch.services.home_service import HomeService
    from wattwatch.services.reading_service import ReadingService
    from wattwatch.services.report_service import ReportService
    from wattwatch.services.scheduler import AlertScheduler

    _auth_service = AuthService()
    _reading_service = ReadingService()
    _state_machine = DeviceStateMachine(_reading_service)
    _home_service = HomeService(_reading_service, _state_machine)
    _device_service = DeviceService(_home_service, _reading_service, _state_machine)
    _alert_service = AlertService(_home_service, _device_service, _reading_service)
    _report_service = ReportService(_home_service, _device_service, _reading_service)
    _admin_service = AdminService(_report_service)

    await _device_service.seed_templates(db_session)

    if start_scheduler is None:
        start_scheduler = settings.alert_check_enabled
    if start_scheduler:
        _scheduler = AlertScheduler(_alert_service)
        _scheduler.start()
    else:
        logger.warning("Alert checking disabled (WATTWATCH_ALERT_CHECK_ENABLED=false)")


async def shutdown_services() -> None:
    """Stop the scheduler."""
    global _scheduler
    if _scheduler:
        await _scheduler.stop()
        _scheduler = None


def get_auth_service() -> AuthService:
    if _auth_service is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _auth_service


def get_reading_service() -> ReadingService:
    if _reading_service is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _reading_service


def get_state_machine() -> DeviceStateMachine:
    if _state_machine is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _state_machine


def get_home_service() -> HomeService:
    if _home_service is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _home_service


def get_device_service() -> DeviceService:
    if _device_service is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _device_service


def get_alert_service() -> AlertService:
    if _alert_service is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _alert_service


def get_report_service() -> ReportService:
    if _report_service is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _report_service


def get_scheduler() -> AlertScheduler | None:
    return _scheduler


def get_admin_service() -> AdminService:
    if _admin_service is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _admin_service
