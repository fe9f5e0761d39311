"""Device and device-template schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

DeviceType = Literal[
    "hvac",
    "water_heater",
    "refrigerator",
    "washer",
    "dryer",
    "dishwasher",
    "oven",
    "microwave",
    "lighting",
    "tv",
    "computer",
    "gaming_console",
    "ev_charger",
    "pool_pump",
    "other",
]

TemplateCategory = Literal[
    "heating_cooling", "kitchen", "laundry", "entertainment", "lighting", "outdoor", "other"
]


class DeviceCreate(BaseModel):
    home_id: str
    name: str = Field(min_length=1, max_length=100)
    type: DeviceType
    wattage: float = Field(ge=0)
    brand: str | None = None
    model: str | None = None
    location: str | None = None
    is_smart_device: bool = False
    average_usage_hours: float = Field(default=0.0, ge=0, le=24)


class DeviceUpdate(BaseModel):
    """Partial update; ``is_active`` is applied through the state machine."""
    name: str | None = Field(default=None, min_length=1, max_length=100)
    type: DeviceType | None = None
    wattage: float | None = Field(default=None, ge=0)
    brand: str | None = None
    model: str | None = None
    location: str | None = None
    is_smart_device: bool | None = None
    average_usage_hours: float | None = Field(default=None, ge=0, le=24)
    is_active: bool | None = None


class DeviceOut(BaseModel):
    id: str
    home_id: str
    name: str
    type: str
    wattage: float
    brand: str | None = None
    model: str | None = None
    location: str | None = None
    is_smart_device: bool
    average_usage_hours: float
    estimated_daily_kwh: float
    is_active: bool
    last_turned_on: datetime | None = None
    last_turned_off: datetime | None = None
    created_at: datetime | None = None


class ToggleResult(BaseModel):
    id: str
    name: str
    is_active: bool
    last_turned_on: datetime | None = None
    last_turned_off: datetime | None = None
    session_reading: dict | None = None


class TemplateCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    type: DeviceType
    avg_wattage: float = Field(ge=0)
    min_wattage: float | None = Field(default=None, ge=0)
    max_wattage: float | None = Field(default=None, ge=0)
    description: str | None = None
    category: TemplateCategory = "other"
    avg_usage_hours_per_day: float | None = Field(default=None, ge=0, le=24)
    is_active: bool = True


class TemplateUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    type: DeviceType | None = None
    avg_wattage: float | None = Field(default=None, ge=0)
    min_wattage: float | None = Field(default=None, ge=0)
    max_wattage: float | None = Field(default=None, ge=0)
    description: str | None = None
    category: TemplateCategory | None = None
    avg_usage_hours_per_day: float | None = Field(default=None, ge=0, le=24)
    is_active: bool | None = None


class TemplateOut(BaseModel):
    id: str
    name: str
    type: str
    avg_wattage: float
    min_wattage: float | None = None
    max_wattage: float | None = None
    description: str | None = None
    category: str
    avg_usage_hours_per_day: float | None = None
    is_active: bool
