"""Live session consumption — watts x elapsed time x tariff rate."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import datetime

from wattwatch.services.tariff import Tariff, effective_rate, marginal_cost


@dataclass(frozen=True)
class SessionConsumption:
    """Derived figures for the session a device is currently in."""
    is_active: bool
    current_watts: float
    session_kwh: float
    session_cost: float
    session_duration_minutes: int
    session_start: datetime | None
    effective_rate: float

    def to_dict(self) -> dict:
        data = asdict(self)
        data["session_kwh"] = round(self.session_kwh, 4)
        data["session_cost"] = round(self.session_cost, 2)
        data["effective_rate"] = round(self.effective_rate, 2)
        return data


def _clean(value: float | None) -> float:
    if value is None or not math.isfinite(value) or value < 0:
        return 0.0
    return float(value)


def session_hours(start: datetime | None, now: datetime) -> float:
    """Elapsed hours since ``start``; 0 when absent or in the future."""
    if start is None:
        return 0.0
    return max((now - start).total_seconds(), 0.0) / 3600.0


def session_kwh(wattage: float | None, hours: float | None) -> float:
    return _clean(wattage) * _clean(hours) / 1000.0


def session_cost(kwh: float, tariff: Tariff, prior_month_kwh: float = 0.0) -> float:
    """Cost of a session; under slabs it is billed on top of prior monthly units."""
    return marginal_cost(kwh, tariff, prior_month_kwh)


def compute_session(
    wattage: float | None,
    is_active: bool,
    last_turned_on: datetime | None,
    now: datetime,
    tariff: Tariff,
    prior_month_kwh: float = 0.0,
) -> SessionConsumption:
    """Live session figures for one device; inactive devices yield zeros."""
    rate = effective_rate(prior_month_kwh, tariff)
    if not is_active or last_turned_on is None:
        return SessionConsumption(
            is_active=False,
            current_watts=0.0,
            session_kwh=0.0,
            session_cost=0.0,
            session_duration_minutes=0,
            session_start=None,
            effective_rate=rate,
        )

    hours = session_hours(last_turned_on, now)
    kwh = session_kwh(wattage, hours)
    cost = session_cost(kwh, tariff, prior_month_kwh)
    return SessionConsumption(
        is_active=True,
        current_watts=_clean(wattage),
        session_kwh=kwh,
        session_cost=cost,
        session_duration_minutes=int(hours * 60),
        session_start=last_turned_on,
        effective_rate=cost / kwh if kwh > 0 else rate,
    )
