"""Energy readings — finalized sessions and recorded/simulated samples."""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, Integer, Float, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from wattwatch.models.base import Base
from wattwatch.utils.clock import utcnow


class Reading(Base):
    __tablename__ = "readings"
    __table_args__ = (
        Index("ix_readings_device_ts", "device_id", "timestamp"),
        Index("ix_readings_home_ts", "home_id", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_id: Mapped[str] = mapped_column(ForeignKey("devices.id"), nullable=False)
    home_id: Mapped[str] = mapped_column(ForeignKey("homes.id"), nullable=False)
    kwh: Mapped[float] = mapped_column(Float, nullable=False)
    watts: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    voltage: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    current: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    power_factor: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=60)
    cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    is_simulated: Mapped[int] = mapped_column(Integer, default=0)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Reading(id={self.id}, device={self.device_id}, kwh={self.kwh})>"
