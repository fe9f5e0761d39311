"""Tariff math — flat and progressive slab pricing, monthly bill breakdown.

Pure functions; no database access. A *tariff* is anything exposing the
attributes of :class:`Tariff` (a ``Home`` row works directly).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable

INFINITY_LABEL = "∞"


@dataclass(frozen=True)
class Tariff:
    """Tariff configuration detached from the ORM."""
    tariff_structure: str = "slab"  # flat, slab
    electricity_rate: float = 6.0
    tariff_slabs: list[dict] = field(default_factory=list)
    fixed_charges: float = 50.0
    sanctioned_load_kw: float = 5.0
    per_kw_charge: float = 20.0
    tax_percentage: float = 5.0

    @classmethod
    def from_home(cls, home: Any) -> "Tariff":
        return cls(
            tariff_structure=home.tariff_structure,
            electricity_rate=home.electricity_rate,
            tariff_slabs=list(home.tariff_slabs or []),
            fixed_charges=home.fixed_charges or 0.0,
            sanctioned_load_kw=home.sanctioned_load_kw or 0.0,
            per_kw_charge=home.per_kw_charge or 0.0,
            tax_percentage=home.tax_percentage or 0.0,
        )

    @property
    def uses_slabs(self) -> bool:
        return self.tariff_structure == "slab" and bool(self.tariff_slabs)


def _finite_non_negative(value: float | None) -> float:
    if value is None or not math.isfinite(value) or value < 0:
        return 0.0
    return float(value)


def sorted_slabs(slabs: Iterable[dict]) -> list[dict]:
    return sorted(slabs, key=lambda s: s.get("min_units") or 0)


def check_slabs(slabs: list[dict]) -> list[str]:
    """Return a list of problems; empty when slabs partition [0, inf).

    Consecutive slabs may either share a bound (0-100, 100-300) or start one
    unit above the previous bound (0-100, 101-300).
    """
    if not slabs:
        return ["at least one tariff slab is required"]

    errors: list[str] = []
    ordered = sorted_slabs(slabs)
    if (ordered[0].get("min_units") or 0) != 0:
        errors.append("first slab must start at 0 units")

    for i, slab in enumerate(ordered):
        rate = slab.get("rate")
        if rate is None or rate < 0:
            errors.append(f"slab {i + 1}: rate must be >= 0")
        upper = slab.get("max_units")
        last = i == len(ordered) - 1
        if upper is None:
            if not last:
                errors.append(f"slab {i + 1}: only the last slab may be unbounded")
            continue
        if upper <= slab.get("min_units", 0):
            errors.append(f"slab {i + 1}: max_units must exceed min_units")
        if last:
            errors.append("last slab must be unbounded (max_units = null)")
        else:
            nxt = ordered[i + 1].get("min_units")
            if nxt not in (upper, upper + 1):
                errors.append(f"gap or overlap between slab {i + 1} and slab {i + 2}")
    return errors


def slab_cost(units: float, slabs: list[dict]) -> tuple[float, list[dict]]:
    """Progressive cost of ``units`` across ``slabs`` plus per-slab breakdown.

    Units billed in a slab are the part of the total between the previous
    slab's upper bound and this slab's upper bound.
    """
    units = _finite_non_negative(units)
    total = 0.0
    breakdown: list[dict] = []
    prev_max = 0.0

    for slab in sorted_slabs(slabs):
        if units <= prev_max:
            break
        upper = slab.get("max_units")
        upper_f = math.inf if upper is None else float(upper)
        in_slab = min(units, upper_f) - prev_max
        if in_slab > 0:
            amount = in_slab * slab["rate"]
            total += amount
            breakdown.append({
                "slab": f"{slab.get('min_units', 0)}-{INFINITY_LABEL if upper is None else upper} units",
                "units": round(in_slab, 4),
                "rate": slab["rate"],
                "cost": round(amount, 2),
            })
        prev_max = upper_f

    return total, breakdown


def energy_charge(kwh: float, tariff: Tariff) -> float:
    """Energy-only charge for ``kwh`` units billed from zero."""
    kwh = _finite_non_negative(kwh)
    if tariff.uses_slabs:
        return slab_cost(kwh, tariff.tariff_slabs)[0]
    return kwh * _finite_non_negative(tariff.electricity_rate)


def marginal_cost(kwh: float, tariff: Tariff, prior_kwh: float = 0.0) -> float:
    """Cost of ``kwh`` additional units on top of ``prior_kwh`` already billed."""
    kwh = _finite_non_negative(kwh)
    prior = _finite_non_negative(prior_kwh)
    if not tariff.uses_slabs:
        return kwh * _finite_non_negative(tariff.electricity_rate)
    return slab_cost(prior + kwh, tariff.tariff_slabs)[0] - slab_cost(prior, tariff.tariff_slabs)[0]


def effective_rate(total_kwh: float, tariff: Tariff) -> float:
    """Average energy rate per kWh at ``total_kwh`` monthly units."""
    total_kwh = _finite_non_negative(total_kwh)
    if total_kwh <= 0:
        if tariff.uses_slabs:
            return sorted_slabs(tariff.tariff_slabs)[0]["rate"]
        return tariff.electricity_rate
    return energy_charge(total_kwh, tariff) / total_kwh


def monthly_bill(total_kwh: float, tariff: Tariff, currency: str = "INR") -> dict:
    """Full bill: energy + fixed + sanctioned-load charges, then tax."""
    total_kwh = _finite_non_negative(total_kwh)
    if tariff.uses_slabs:
        energy, breakdown = slab_cost(total_kwh, tariff.tariff_slabs)
    else:
        energy, breakdown = total_kwh * tariff.electricity_rate, []

    load_charge = tariff.sanctioned_load_kw * tariff.per_kw_charge
    fixed_total = tariff.fixed_charges + load_charge
    subtotal = energy + fixed_total
    tax = subtotal * tariff.tax_percentage / 100.0
    total = subtotal + tax

    return {
        "units_consumed": round(total_kwh, 4),
        "energy_charges": round(energy, 2),
        "slab_breakdown": breakdown,
        "fixed_charges": round(fixed_total, 2),
        "fixed_charges_breakdown": {
            "base_charge": tariff.fixed_charges,
            "load_charge": round(load_charge, 2),
            "sanctioned_load_kw": tariff.sanctioned_load_kw,
            "per_kw_charge": tariff.per_kw_charge,
        },
        "subtotal": round(subtotal, 2),
        "tax_percentage": tariff.tax_percentage,
        "tax_amount": round(tax, 2),
        "total_bill": round(total, 2),
        "effective_rate": round(total / total_kwh, 2) if total_kwh > 0 else 0.0,
        "currency": currency,
    }
