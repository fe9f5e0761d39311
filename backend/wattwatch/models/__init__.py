"""SQLAlchemy ORM models for WattWatch."""

from wattwatch.models.base import Base
from wattwatch.models.user import User
from wattwatch.models.home import Home
from wattwatch.models.device import Device
from wattwatch.models.device_template import DeviceTemplate
from wattwatch.models.reading import Reading
from wattwatch.models.alert import AlertRule, TriggeredAlert

__all__ = [
    "Base",
    "User",
    "Home",
    "Device",
    "DeviceTemplate",
    "Reading",
    "AlertRule",
    "TriggeredAlert",
]
