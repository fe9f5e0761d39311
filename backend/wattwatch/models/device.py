"""Device model — an appliance in a home with on/off session tracking."""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, Integer, Float, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from wattwatch.models.base import Base

DEVICE_TYPES = (
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
)


class Device(Base):
    __tablename__ = "devices"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    home_id: Mapped[str] = mapped_column(ForeignKey("homes.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    wattage: Mapped[float] = mapped_column(Float, nullable=False)
    brand: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_smart_device: Mapped[int] = mapped_column(Integer, default=0)
    average_usage_hours: Mapped[float] = mapped_column(Float, default=0.0)

    # Session state: is_active == 1 implies last_turned_on is set
    is_active: Mapped[int] = mapped_column(Integer, default=0)
    last_turned_on: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_turned_off: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    is_deleted: Mapped[int] = mapped_column(Integer, default=0)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    @property
    def estimated_daily_kwh(self) -> float:
        return (self.wattage or 0) * (self.average_usage_hours or 0) / 1000.0

    def __repr__(self) -> str:
        return f"<Device(id={self.id}, name='{self.name}', active={self.is_active})>"
