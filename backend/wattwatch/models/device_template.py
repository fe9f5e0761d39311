"""Device template catalog used to prefill new devices."""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, Integer, Float, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from wattwatch.models.base import Base


class DeviceTemplate(Base):
    __tablename__ = "device_templates"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    avg_wattage: Mapped[float] = mapped_column(Float, nullable=False)
    min_wattage: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_wattage: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(20), default="other")
    avg_usage_hours_per_day: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    is_active: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<DeviceTemplate(id={self.id}, name='{self.name}')>"
