"""Alert rule and triggered-alert schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

AlertType = Literal["usage_limit", "cost_limit", "unusual_activity", "device_offline"]
AlertPeriod = Literal["hourly", "daily", "weekly", "monthly"]
NotificationMethod = Literal["in_app", "email", "sms"]


class AlertCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    home_id: str | None = None
    device_id: str | None = None
    type: AlertType = "usage_limit"
    limit_kwh: float | None = Field(default=None, ge=0)
    limit_cost: float | None = Field(default=None, ge=0)
    period: AlertPeriod = "daily"
    threshold: float = Field(default=80.0, ge=0, le=1000)
    is_enabled: bool = True
    notification_methods: list[NotificationMethod] = ["in_app"]

    @model_validator(mode="after")
    def _check_scope(self):
        if not self.home_id and not self.device_id:
            raise ValueError("Either home_id or device_id is required")
        if self.type == "usage_limit" and self.limit_kwh is None:
            raise ValueError("usage_limit alerts require limit_kwh")
        if self.type == "cost_limit" and self.limit_cost is None:
            raise ValueError("cost_limit alerts require limit_cost")
        return self


class AlertUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    type: AlertType | None = None
    limit_kwh: float | None = Field(default=None, ge=0)
    limit_cost: float | None = Field(default=None, ge=0)
    period: AlertPeriod | None = None
    threshold: float | None = Field(default=None, ge=0, le=1000)
    is_enabled: bool | None = None
    notification_methods: list[NotificationMethod] | None = None


class AlertOut(BaseModel):
    id: str
    user_id: str
    home_id: str | None = None
    device_id: str | None = None
    name: str
    type: str
    limit_kwh: float | None = None
    limit_cost: float | None = None
    period: str
    threshold: float
    is_enabled: bool
    notification_methods: list[str]
    trigger_count: int
    last_triggered: datetime | None = None
    created_at: datetime | None = None


class TriggeredAlertOut(BaseModel):
    id: str
    alert_id: str
    alert_name: str | None = None
    home_id: str | None = None
    device_id: str | None = None
    message: str
    current_value: float
    limit_value: float
    percentage_used: float | None = None
    severity: str
    acknowledged: bool
    acknowledged_at: datetime | None = None
    triggered_at: datetime


class TriggeredAlertPage(BaseModel):
    items: list[TriggeredAlertOut]
    total: int
    page: int
    limit: int
    unacknowledged: int
