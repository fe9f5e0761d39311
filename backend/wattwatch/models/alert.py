"""Alert rules and the alerts they trigger."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, String, DateTime, Integer, Float, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from wattwatch.models.base import Base
from wattwatch.utils.clock import utcnow

ALERT_TYPES = ("usage_limit", "cost_limit", "unusual_activity", "device_offline")
ALERT_PERIODS = ("hourly", "daily", "weekly", "monthly")


class AlertRule(Base):
    """User-defined threshold scoped to a home or a device."""
    __tablename__ = "alert_rules"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    home_id: Mapped[Optional[str]] = mapped_column(ForeignKey("homes.id"), nullable=True)
    device_id: Mapped[Optional[str]] = mapped_column(ForeignKey("devices.id"), nullable=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(20), default="usage_limit")
    limit_kwh: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    limit_cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    period: Mapped[str] = mapped_column(String(10), default="daily")
    threshold: Mapped[float] = mapped_column(Float, default=80.0)  # percent of limit
    is_enabled: Mapped[int] = mapped_column(Integer, default=1)
    notification_methods: Mapped[list] = mapped_column(JSON, default=lambda: ["in_app"])
    trigger_count: Mapped[int] = mapped_column(Integer, default=0)
    last_triggered: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<AlertRule(id={self.id}, name='{self.name}', type='{self.type}')>"


class TriggeredAlert(Base):
    """A fired alert; only acknowledgement mutates it."""
    __tablename__ = "triggered_alerts"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    alert_id: Mapped[str] = mapped_column(ForeignKey("alert_rules.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    home_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    device_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    current_value: Mapped[float] = mapped_column(Float, nullable=False)
    limit_value: Mapped[float] = mapped_column(Float, nullable=False)
    percentage_used: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    severity: Mapped[str] = mapped_column(String(10), default="medium")
    acknowledged: Mapped[int] = mapped_column(Integer, default=0)
    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    triggered_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<TriggeredAlert(id={self.id}, severity='{self.severity}')>"
