"""Alert rules — CRUD, threshold evaluation and triggered-alert handling."""

from __future__ import annotations

import calendar
import logging
import uuid
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from wattwatch.exceptions import ForbiddenError, NotFoundError, ValidationFailed
from wattwatch.models.alert import AlertRule, TriggeredAlert
from wattwatch.models.device import Device
from wattwatch.models.home import Home
from wattwatch.models.user import User
from wattwatch.utils.clock import utcnow

if TYPE_CHECKING:
    from wattwatch.services.device_service import DeviceService
    from wattwatch.services.home_service import HomeService
    from wattwatch.services.reading_service import ReadingService

logger = logging.getLogger(__name__)


def _midnight(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def period_start(period: str, now: datetime) -> datetime:
    """Start of the evaluation window for ``period`` ending at ``now``."""
    if period == "hourly":
        return now - timedelta(hours=1)
    if period == "weekly":
        return _midnight(now - timedelta(days=7))
    if period == "monthly":
        year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
        day = min(now.day, calendar.monthrange(year, month)[1])
        return _midnight(now.replace(year=year, month=month, day=day))
    return _midnight(now)


def severity_for(percentage: float) -> str:
    if percentage >= 100:
        return "critical"
    if percentage >= 90:
        return "high"
    if percentage >= 80:
        return "medium"
    return "low"


def alert_to_dict(rule: AlertRule) -> dict:
    return {
        "id": rule.id,
        "user_id": rule.user_id,
        "home_id": rule.home_id,
        "device_id": rule.device_id,
        "name": rule.name,
        "type": rule.type,
        "limit_kwh": rule.limit_kwh,
        "limit_cost": rule.limit_cost,
        "period": rule.period,
        "threshold": rule.threshold,
        "is_enabled": bool(rule.is_enabled),
        "notification_methods": list(rule.notification_methods or []),
        "trigger_count": rule.trigger_count,
        "last_triggered": rule.last_triggered,
        "created_at": rule.created_at,
    }


def triggered_to_dict(t: TriggeredAlert, alert_name: str | None = None) -> dict:
    return {
        "id": t.id,
        "alert_id": t.alert_id,
        "alert_name": alert_name,
        "home_id": t.home_id,
        "device_id": t.device_id,
        "message": t.message,
        "current_value": t.current_value,
        "limit_value": t.limit_value,
        "percentage_used": t.percentage_used,
        "severity": t.severity,
        "acknowledged": bool(t.acknowledged),
        "acknowledged_at": t.acknowledged_at,
        "triggered_at": t.triggered_at,
    }


class AlertService:
    """Evaluates user thresholds against stored readings."""

    def __init__(
        self,
        homes: HomeService,
        devices: DeviceService,
        readings: ReadingService,
    ):
        self._homes = homes
        self._devices = devices
        self._readings = readings

    # --- rule CRUD ------------------------------------------------------

    async def get_owned(self, db: AsyncSession, alert_id: str, user: User) -> AlertRule:
        rule = await db.get(AlertRule, alert_id)
        if rule is None:
            raise NotFoundError("Alert not found")
        if rule.user_id != user.id and not user.is_admin:
            raise ForbiddenError("Not authorized to access this alert")
        return rule

    async def list_alerts(
        self, db: AsyncSession, user: User, home_id: str | None = None
    ) -> list[dict]:
        stmt = select(AlertRule).where(AlertRule.user_id == user.id)
        if home_id:
            stmt = stmt.where(AlertRule.home_id == home_id)
        rules = (await db.execute(stmt.order_by(AlertRule.created_at.desc()))).scalars().all()
        return [alert_to_dict(r) for r in rules]

    async def get_alert(self, db: AsyncSession, alert_id: str, user: User) -> dict:
        return alert_to_dict(await self.get_owned(db, alert_id, user))

    async def create_alert(self, db: AsyncSession, user: User, data: dict[str, Any]) -> dict:
        home_id = data.get("home_id")
        device_id = data.get("device_id")
        if device_id:
            device, home = await self._devices.get_owned(db, device_id, user)
            if home_id and home_id != home.id:
                raise ValidationFailed("Device does not belong to the given home")
            home_id = home.id
        elif home_id:
            await self._homes.get_owned(db, home_id, user)
        else:
            raise ValidationFailed("Either home_id or device_id is required")

        rule = AlertRule(
            id=str(uuid.uuid4()),
            user_id=user.id,
            home_id=home_id,
            device_id=device_id,
            name=data["name"],
            type=data.get("type") or "usage_limit",
            limit_kwh=data.get("limit_kwh"),
            limit_cost=data.get("limit_cost"),
            period=data.get("period") or "daily",
            threshold=data.get("threshold", 80.0),
            is_enabled=1 if data.get("is_enabled", True) else 0,
            notification_methods=list(data.get("notification_methods") or ["in_app"]),
            trigger_count=0,
        )
        db.add(rule)
        await db.commit()
        await db.refresh(rule)
        logger.info("Alert rule created: %s (%s, %s)", rule.name, rule.type, rule.period)
        return alert_to_dict(rule)

    async def update_alert(
        self, db: AsyncSession, alert_id: str, user: User, data: dict[str, Any]
    ) -> dict:
        rule = await self.get_owned(db, alert_id, user)
        for key, value in data.items():
            if value is None or not hasattr(rule, key):
                continue
            if key == "is_enabled":
                value = 1 if value else 0
            setattr(rule, key, value)
        await db.commit()
        await db.refresh(rule)
        return alert_to_dict(rule)

    async def delete_alert(self, db: AsyncSession, alert_id: str, user: User) -> None:
        rule = await self.get_owned(db, alert_id, user)
        triggered = await db.execute(
            select(TriggeredAlert).where(TriggeredAlert.alert_id == rule.id)
        )
        for row in triggered.scalars().all():
            await db.delete(row)
        await db.delete(rule)
        await db.commit()

    async def toggle_alert(self, db: AsyncSession, alert_id: str, user: User) -> dict:
        rule = await self.get_owned(db, alert_id, user)
        rule.is_enabled = 0 if rule.is_enabled else 1
        await db.commit()
        await db.refresh(rule)
        return alert_to_dict(rule)

    # --- evaluation -----------------------------------------------------

    async def _scope_name(self, db: AsyncSession, rule: AlertRule) -> str:
        if rule.device_id:
            device = await db.get(Device, rule.device_id)
            return device.name if device else "Unknown Device"
        home = await db.get(Home, rule.home_id) if rule.home_id else None
        return home.name if home else "Your Home"

    async def _measure(
        self, db: AsyncSession, rule: AlertRule, now: datetime
    ) -> dict | None:
        """Current value, limit and percentage for a rule; None if not measurable."""
        scope = {"home_id": None, "device_id": rule.device_id} if rule.device_id else {
            "home_id": rule.home_id, "device_id": None,
        }
        if not (scope["home_id"] or scope["device_id"]):
            return None

        if rule.type == "device_offline":
            return None

        if rule.type == "unusual_activity":
            today = _midnight(now)
            today_kwh = await self._readings.sum_kwh(db, start=today, end=now, **scope)
            history = await self._readings.sum_kwh(
                db, start=today - timedelta(days=7), end=today - timedelta(microseconds=1), **scope
            )
            avg = history / 7
            if avg <= 0:
                return None
            increase = (today_kwh - avg) / avg * 100
            return {
                "window_start": today,
                "current": today_kwh,
                "limit": avg,
                "percentage": increase,
                "unit": "kWh",
                "triggers": increase >= rule.threshold,
            }

        start = period_start(rule.period, now)
        if rule.type == "cost_limit" and rule.limit_cost:
            current = await self._readings.sum_cost(db, start=start, end=now, **scope)
            limit, unit = rule.limit_cost, "cost"
        elif rule.limit_kwh:
            current = await self._readings.sum_kwh(db, start=start, end=now, **scope)
            limit, unit = rule.limit_kwh, "kWh"
        elif rule.limit_cost:
            current = await self._readings.sum_cost(db, start=start, end=now, **scope)
            limit, unit = rule.limit_cost, "cost"
        else:
            return None

        percentage = current / limit * 100
        return {
            "window_start": start,
            "current": current,
            "limit": limit,
            "percentage": percentage,
            "unit": unit,
            "triggers": percentage >= rule.threshold,
        }

    def _message(self, rule: AlertRule, name: str, m: dict) -> str:
        if rule.type == "unusual_activity":
            return (
                f"Unusual activity detected: {name} used {m['current']:.2f} kWh today, "
                f"{m['percentage']:.1f}% higher than the 7-day average ({m['limit']:.2f} kWh)."
            )
        return (
            f"Alert: {rule.name} - {name} has used {m['current']:.2f} {m['unit']} "
            f"({m['percentage']:.1f}% of {m['limit']:g} {m['unit']} limit) "
            f"in the {rule.period} period."
        )

    async def evaluate(
        self, db: AsyncSession, rule: AlertRule, now: datetime | None = None
    ) -> TriggeredAlert | None:
        """Trigger ``rule`` if its threshold is crossed and it has not fired this window."""
        if not rule.is_enabled:
            return None
        now = now or utcnow()
        m = await self._measure(db, rule, now)
        if m is None or not m["triggers"]:
            return None

        recent = await db.execute(
            select(TriggeredAlert.id).where(
                TriggeredAlert.alert_id == rule.id,
                TriggeredAlert.triggered_at >= m["window_start"],
            ).limit(1)
        )
        if recent.first():
            return None

        name = await self._scope_name(db, rule)
        percentage = round(m["percentage"], 2)
        triggered = TriggeredAlert(
            id=str(uuid.uuid4()),
            alert_id=rule.id,
            user_id=rule.user_id,
            home_id=rule.home_id,
            device_id=rule.device_id,
            message=self._message(rule, name, m),
            current_value=round(m["current"], 4),
            limit_value=round(m["limit"], 4),
            percentage_used=percentage,
            severity=severity_for(percentage),
            acknowledged=0,
            triggered_at=now,
        )
        db.add(triggered)
        rule.trigger_count = (rule.trigger_count or 0) + 1
        rule.last_triggered = now
        await db.commit()
        logger.info(
            "Alert triggered: %s (%s, %.1f%%, %s)",
            rule.name, rule.id, percentage, triggered.severity,
        )
        return triggered

    async def test_alert(self, db: AsyncSession, alert_id: str, user: User) -> dict:
        """Dry run: report what the rule would measure now without persisting."""
        rule = await self.get_owned(db, alert_id, user)
        now = utcnow()
        m = await self._measure(db, rule, now)
        if m is None:
            return {
                "alert_id": rule.id,
                "measurable": False,
                "would_trigger": False,
                "message": "No usage data available for this alert type",
            }
        name = await self._scope_name(db, rule)
        return {
            "alert_id": rule.id,
            "measurable": True,
            "would_trigger": m["triggers"],
            "current_value": round(m["current"], 4),
            "limit_value": round(m["limit"], 4),
            "percentage_used": round(m["percentage"], 2),
            "severity": severity_for(m["percentage"]),
            "window_start": m["window_start"],
            "message": self._message(rule, name, m),
        }

    async def check_all(self, db: AsyncSession, now: datetime | None = None) -> dict:
        """Evaluate every enabled rule; per-rule failures are collected, not raised."""
        now = now or utcnow()
        rule_ids = (await db.execute(
            select(AlertRule.id).where(AlertRule.is_enabled == 1)
        )).scalars().all()

        triggered, errors = [], []
        for rule_id in rule_ids:
            # A rollback expires loaded rows, so each rule is fetched fresh.
            rule = await db.get(AlertRule, rule_id)
            if rule is None:
                continue
            rule_name = rule.name
            try:
                result = await self.evaluate(db, rule, now)
            except Exception as e:
                await db.rollback()
                logger.error("Alert check failed for %s: %s", rule_id, e)
                errors.append({"alert_id": rule_id, "error": str(e)})
                continue
            if result is not None:
                triggered.append({
                    "alert_id": rule_id,
                    "alert_name": rule_name,
                    "triggered_alert_id": result.id,
                    "severity": result.severity,
                })

        logger.info(
            "Alert check: %d rules, %d triggered, %d errors",
            len(rule_ids), len(triggered), len(errors),
        )
        return {
            "timestamp": now,
            "total_checked": len(rule_ids),
            "triggered": triggered,
            "errors": errors,
        }

    # --- triggered alerts -----------------------------------------------

    async def list_triggered(
        self,
        db: AsyncSession,
        user: User,
        acknowledged: bool | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        conditions = [TriggeredAlert.user_id == user.id]
        if acknowledged is not None:
            conditions.append(TriggeredAlert.acknowledged == (1 if acknowledged else 0))

        total = (await db.execute(
            select(func.count()).select_from(TriggeredAlert).where(*conditions)
        )).scalar_one()
        unacknowledged = (await db.execute(
            select(func.count()).select_from(TriggeredAlert).where(
                TriggeredAlert.user_id == user.id, TriggeredAlert.acknowledged == 0
            )
        )).scalar_one()

        stmt = (
            select(TriggeredAlert, AlertRule.name)
            .join(AlertRule, AlertRule.id == TriggeredAlert.alert_id, isouter=True)
            .where(*conditions)
            .order_by(TriggeredAlert.triggered_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        rows = (await db.execute(stmt)).all()
        return {
            "items": [triggered_to_dict(t, name) for t, name in rows],
            "total": total,
            "page": page,
            "limit": limit,
            "unacknowledged": unacknowledged,
        }

    async def acknowledge(self, db: AsyncSession, triggered_id: str, user: User) -> dict:
        """Mark a triggered alert acknowledged; repeats keep the first timestamp."""
        triggered = await db.get(TriggeredAlert, triggered_id)
        if triggered is None:
            raise NotFoundError("Triggered alert not found")
        if triggered.user_id != user.id and not user.is_admin:
            raise ForbiddenError("Not authorized to acknowledge this alert")
        if not triggered.acknowledged:
            triggered.acknowledged = 1
            triggered.acknowledged_at = utcnow()
            await db.commit()
            await db.refresh(triggered)
        rule = await db.get(AlertRule, triggered.alert_id)
        return triggered_to_dict(triggered, rule.name if rule else None)
