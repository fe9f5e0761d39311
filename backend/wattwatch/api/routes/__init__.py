"""API route registration."""

from fastapi import APIRouter

from wattwatch.api.routes import admin, alerts, auth, devices, health, homes, readings, reports
from wattwatch.schemas.common import ErrorEnvelope

_failures = {code: {"model": ErrorEnvelope} for code in (400, 401, 403, 404, 409, 422)}

api_router = APIRouter(responses=_failures)

api_router.include_router(health.router, tags=["health"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(homes.router, prefix="/homes", tags=["homes"])
api_router.include_router(devices.router, prefix="/devices", tags=["devices"])
api_router.include_router(readings.router, prefix="/readings", tags=["readings"])
api_router.include_router(alerts.router, prefix="/alerts", tags=["alerts"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
