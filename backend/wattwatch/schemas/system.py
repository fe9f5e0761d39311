"""Health check schema."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    service: str = "wattwatch"
    database: str = "ok"
    scheduler_running: bool = False
