"""Rule-based savings tips derived from usage patterns."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable

PRIORITY_ORDER = {"high": 1, "medium": 2, "low": 3}
PEAK_HOURS = range(10, 18)  # weekdays only
QUICK_WIN_CATEGORIES = ("lighting", "general", "appliances")


@dataclass(frozen=True)
class DeviceUsage:
    device_type: str
    total_kwh: float
    percentage: float
    utilization_rate: float
    active_hours: int


@dataclass
class UsageAnalysis:
    """Aggregated usage shape over an analysis window."""
    avg_daily_kwh: float = 0.0
    total_kwh: float = 0.0
    devices: list[DeviceUsage] = field(default_factory=list)
    peak_hour_percentage: float = 0.0
    nighttime_percentage: float = 0.0
    month: int = 1

    def device(self, device_type: str) -> DeviceUsage | None:
        return next((d for d in self.devices if d.device_type == device_type), None)


@dataclass(frozen=True)
class TipRule:
    id: str
    priority: str
    category: str
    title: str
    description: str
    recommendations: tuple[str, ...]
    savings_min: int
    savings_max: int
    condition: Callable[[UsageAnalysis], bool]

    def to_dict(self, currency: str = "INR") -> dict:
        return {
            "id": self.id,
            "priority": self.priority,
            "category": self.category,
            "title": self.title,
            "description": self.description,
            "recommendations": list(self.recommendations),
            "potential_savings": f"{self.savings_min:,}-{self.savings_max:,} {currency}/month",
            "savings_min": self.savings_min,
            "savings_max": self.savings_max,
        }


def _share_above(device_type: str, pct: float) -> Callable[[UsageAnalysis], bool]:
    def check(a: UsageAnalysis) -> bool:
        d = a.device(device_type)
        return d is not None and d.percentage > pct
    return check


TIP_RULES: tuple[TipRule, ...] = (
    TipRule(
        "high_overall_usage", "high", "general",
        "High Energy Consumption Detected",
        "Your home is using significantly more energy than average.",
        (
            "Consider an energy audit to identify major energy consumers",
            "Check for devices left on unnecessarily",
            "Review your HVAC settings and usage patterns",
        ),
        4000, 8000,
        lambda a: a.avg_daily_kwh > 30,
    ),
    TipRule(
        "hvac_high_usage", "high", "hvac",
        "HVAC System Using Too Much Energy",
        "Your heating/cooling system accounts for over 50% of your energy usage.",
        (
            "Set thermostat to 20°C in winter and 26°C in summer",
            "Use a programmable thermostat to reduce usage when away",
            "Replace air filters monthly",
            "Seal air leaks around windows and doors",
        ),
        2500, 5000,
        _share_above("hvac", 50),
    ),
    TipRule(
        "hvac_off_peak_shift", "medium", "hvac",
        "Shift HVAC Usage to Off-Peak Hours",
        "Your HVAC runs heavily during peak electricity rate hours.",
        (
            "Pre-cool or pre-heat your home during off-peak hours",
            "Use ceiling fans to extend comfort periods",
            "Close blinds during peak heat hours",
        ),
        1600, 3300,
        lambda a: a.device("hvac") is not None and a.peak_hour_percentage > 40,
    ),
    TipRule(
        "water_heater_always_on", "medium", "water_heating",
        "Water Heater Running Constantly",
        "Your water heater is on more than 80% of the time.",
        (
            "Lower water heater temperature to 50°C",
            "Install a timer to heat water only when needed",
            "Insulate your water heater tank",
        ),
        1200, 2500,
        lambda a: (d := a.device("water_heater")) is not None and d.utilization_rate > 80,
    ),
    TipRule(
        "vampire_power", "medium", "general",
        "High Nighttime Energy Usage",
        "Significant energy is being used while you sleep.",
        (
            "Use power strips for electronics and turn them off at night",
            "Unplug chargers when not in use",
            "Enable power-saving modes on all devices",
        ),
        800, 1600,
        lambda a: a.nighttime_percentage > 30,
    ),
    TipRule(
        "old_appliances", "low", "appliances",
        "Consider Energy-Efficient Appliances",
        "Major appliances are using significant energy.",
        (
            "Look for BEE 5-star rated appliances when replacing",
            "Run dishwasher and washing machine only with full loads",
            "Clean refrigerator coils regularly",
        ),
        1600, 3300,
        lambda a: any(
            d.device_type in ("refrigerator", "washer", "dryer") and d.percentage > 15
            for d in a.devices
        ),
    ),
    TipRule(
        "high_lighting_usage", "low", "lighting",
        "Lighting Optimization",
        "Lighting accounts for a large portion of your energy use.",
        (
            "Replace incandescent bulbs with LED bulbs",
            "Install motion sensors in low-traffic areas",
            "Turn off lights in unoccupied rooms",
        ),
        800, 2000,
        _share_above("lighting", 15),
    ),
    TipRule(
        "ev_peak_charging", "high", "ev_charging",
        "Optimize EV Charging Schedule",
        "Your EV is charging during expensive peak hours.",
        (
            "Charge your EV between 12am-6am for lowest rates",
            "Use your EV's scheduled charging feature",
        ),
        3300, 6600,
        lambda a: a.device("ev_charger") is not None and a.peak_hour_percentage > 30,
    ),
    TipRule(
        "pool_pump_schedule", "medium", "outdoor",
        "Reduce Pool Pump Runtime",
        "Your pool pump is running more than necessary.",
        (
            "Run pool pump 6-8 hours per day instead of 12+",
            "Run pump during off-peak hours",
            "Keep filters clean to reduce runtime needed",
        ),
        2000, 4000,
        lambda a: (d := a.device("pool_pump")) is not None and d.active_hours > 12,
    ),
    TipRule(
        "summer_cooling", "medium", "seasonal",
        "Summer Cooling Tips",
        "Hot summer months are driving up your energy costs.",
        (
            "Use ceiling fans to feel cooler at higher thermostat settings",
            "Close curtains during the hottest part of the day",
            "Avoid using heat-generating appliances during the day",
        ),
        2500, 5800,
        lambda a: 6 <= a.month <= 8 and a.avg_daily_kwh > 25,
    ),
    TipRule(
        "winter_heating", "medium", "seasonal",
        "Winter Heating Efficiency",
        "Cold weather is increasing your heating costs.",
        (
            "Lower thermostat to 20°C and use layers/blankets",
            "Reverse ceiling fans to circulate warm air downward",
            "Use door draft stoppers",
        ),
        2000, 5000,
        lambda a: (a.month >= 11 or a.month <= 2) and a.avg_daily_kwh > 25,
    ),
)


def analyze_usage(
    readings: Iterable,
    device_types: dict[str, str],
    start: datetime,
    end: datetime,
) -> UsageAnalysis:
    """Summarize readings (objects with device_id, kwh, watts, timestamp)."""
    readings = list(readings)
    total = sum(r.kwh for r in readings)
    if not readings or total <= 0:
        return UsageAnalysis(month=end.month)

    days = max((end - start).total_seconds() / 86400.0, 1.0)

    per_device: dict[str, list[float]] = defaultdict(lambda: [0.0, 0, 0])
    peak_kwh = night_kwh = 0.0
    for r in readings:
        bucket = per_device[r.device_id]
        bucket[0] += r.kwh
        bucket[1] += 1
        if (r.watts or 0) > 0:
            bucket[2] += 1
        hour = r.timestamp.hour
        if r.timestamp.weekday() < 5 and hour in PEAK_HOURS:
            peak_kwh += r.kwh
        if hour >= 22 or hour < 6:
            night_kwh += r.kwh

    devices = [
        DeviceUsage(
            device_type=device_types.get(device_id, "unknown"),
            total_kwh=kwh,
            percentage=kwh / total * 100,
            utilization_rate=active / count * 100,
            active_hours=int(active),
        )
        for device_id, (kwh, count, active) in per_device.items()
    ]
    return UsageAnalysis(
        avg_daily_kwh=round(total / days, 4),
        total_kwh=round(total, 4),
        devices=devices,
        peak_hour_percentage=round(peak_kwh / total * 100, 2),
        nighttime_percentage=round(night_kwh / total * 100, 2),
        month=end.month,
    )


def generate_tips(
    analysis: UsageAnalysis,
    category: str | None = None,
    priority: str | None = None,
    currency: str = "INR",
) -> list[dict]:
    """Tips whose rule matches, highest priority first."""
    tips = [
        rule.to_dict(currency)
        for rule in TIP_RULES
        if rule.condition(analysis)
        and (category is None or rule.category == category)
        and (priority is None or rule.priority == priority)
    ]
    tips.sort(key=lambda t: PRIORITY_ORDER[t["priority"]])
    return tips


def quick_wins(tips: list[dict]) -> list[dict]:
    return [
        t for t in tips
        if t["category"] in QUICK_WIN_CATEGORIES and t["priority"] in ("high", "medium")
    ]


def potential_savings(tips: list[dict], currency: str = "INR") -> dict:
    low = sum(t["savings_min"] for t in tips)
    high = sum(t["savings_max"] for t in tips)
    return {
        "monthly": {"min": low, "max": high, "average": round((low + high) / 2)},
        "yearly": {"min": low * 12, "max": high * 12, "average": round((low + high) / 2 * 12)},
        "currency": currency,
    }
