"""Reading schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class ReadingCreate(BaseModel):
    """Manually recorded reading for a device."""
    kwh: float = Field(ge=0)
    watts: float | None = Field(default=None, ge=0)
    voltage: float | None = Field(default=None, ge=0)
    current: float | None = Field(default=None, ge=0)
    power_factor: float | None = Field(default=None, ge=0, le=1)
    duration_minutes: int | None = Field(default=None, ge=0)
    timestamp: datetime | None = None
    is_simulated: bool = False


class ReadingOut(BaseModel):
    id: int
    device_id: str
    home_id: str
    kwh: float
    watts: float | None = None
    voltage: float | None = None
    current: float | None = None
    power_factor: float | None = None
    duration_minutes: int
    cost: float | None = None
    is_simulated: bool
    timestamp: datetime
