"""Tests for flat and slab tariff pricing."""

import pytest

from wattwatch.services.tariff import (
    Tariff,
    check_slabs,
    effective_rate,
    energy_charge,
    marginal_cost,
    monthly_bill,
    slab_cost,
)

SLABS = [
    {"min_units": 0, "max_units": 100, "rate": 3.00},
    {"min_units": 101, "max_units": 300, "rate": 5.50},
    {"min_units": 301, "max_units": 500, "rate": 7.00},
    {"min_units": 501, "max_units": None, "rate": 8.50},
]


class TestSlabCost:
    def test_zero_units(self):
        assert slab_cost(0, SLABS) == (0.0, [])

    def test_within_first_slab(self):
        total, breakdown = slab_cost(80, SLABS)
        assert total == pytest.approx(240.0)
        assert len(breakdown) == 1

    def test_spans_two_slabs(self):
        total, breakdown = slab_cost(150, SLABS)
        assert total == pytest.approx(575.0)
        assert [b["units"] for b in breakdown] == [100, 50]
        assert breakdown[1]["rate"] == 5.50

    def test_reaches_unbounded_slab(self):
        total, breakdown = slab_cost(600, SLABS)
        assert total == pytest.approx(300 + 1100 + 1400 + 850)
        assert breakdown[-1]["slab"] == "501-∞ units"

    def test_unsorted_slabs(self):
        assert slab_cost(150, list(reversed(SLABS)))[0] == pytest.approx(575.0)

    def test_negative_units(self):
        assert slab_cost(-10, SLABS)[0] == 0.0


class TestCheckSlabs:
    def test_valid(self):
        assert check_slabs(SLABS) == []

    def test_shared_bounds_are_valid(self):
        slabs = [
            {"min_units": 0, "max_units": 100, "rate": 3},
            {"min_units": 100, "max_units": None, "rate": 5},
        ]
        assert check_slabs(slabs) == []

    def test_empty(self):
        assert check_slabs([]) == ["at least one tariff slab is required"]

    def test_must_start_at_zero(self):
        errors = check_slabs([{"min_units": 10, "max_units": None, "rate": 3}])
        assert "first slab must start at 0 units" in errors

    def test_gap(self):
        slabs = [
            {"min_units": 0, "max_units": 100, "rate": 3},
            {"min_units": 150, "max_units": None, "rate": 5},
        ]
        assert any("gap or overlap" in e for e in check_slabs(slabs))

    def test_last_slab_must_be_unbounded(self):
        slabs = [{"min_units": 0, "max_units": 100, "rate": 3}]
        assert "last slab must be unbounded (max_units = null)" in check_slabs(slabs)

    def test_negative_rate(self):
        slabs = [{"min_units": 0, "max_units": None, "rate": -1}]
        assert any("rate must be >= 0" in e for e in check_slabs(slabs))


class TestCharges:
    def test_flat_energy_charge(self):
        tariff = Tariff(tariff_structure="flat", electricity_rate=6.0)
        assert energy_charge(10, tariff) == pytest.approx(60.0)

    def test_slab_structure_without_slabs_falls_back_to_flat(self):
        tariff = Tariff(tariff_structure="slab", electricity_rate=4.0, tariff_slabs=[])
        assert energy_charge(10, tariff) == pytest.approx(40.0)

    def test_marginal_cost_sums_to_total(self):
        tariff = Tariff(tariff_slabs=SLABS)
        first = marginal_cost(120, tariff, 0)
        second = marginal_cost(200, tariff, 120)
        assert first + second == pytest.approx(slab_cost(320, SLABS)[0])

    def test_effective_rate_at_zero_uses_first_slab(self):
        assert effective_rate(0, Tariff(tariff_slabs=SLABS)) == 3.00

    def test_effective_rate_at_zero_flat(self):
        assert effective_rate(0, Tariff(tariff_structure="flat", electricity_rate=6.5)) == 6.5

    def test_effective_rate_average(self):
        assert effective_rate(150, Tariff(tariff_slabs=SLABS)) == pytest.approx(575 / 150)


class TestMonthlyBill:
    def test_slab_bill(self):
        tariff = Tariff(
            tariff_slabs=SLABS,
            fixed_charges=50,
            sanctioned_load_kw=5,
            per_kw_charge=20,
            tax_percentage=5,
        )
        bill = monthly_bill(150, tariff)
        assert bill["energy_charges"] == 575.0
        assert bill["fixed_charges"] == 150.0
        assert bill["fixed_charges_breakdown"]["load_charge"] == 100.0
        assert bill["subtotal"] == 725.0
        assert bill["tax_amount"] == 36.25
        assert bill["total_bill"] == 761.25
        assert bill["effective_rate"] == pytest.approx(761.25 / 150, abs=0.01)
        assert bill["currency"] == "INR"
        assert len(bill["slab_breakdown"]) == 2

    def test_flat_bill(self):
        tariff = Tariff(
            tariff_structure="flat",
            electricity_rate=6.0,
            fixed_charges=0,
            sanctioned_load_kw=0,
            per_kw_charge=0,
            tax_percentage=0,
        )
        bill = monthly_bill(10, tariff, currency="USD")
        assert bill["total_bill"] == 60.0
        assert bill["slab_breakdown"] == []
        assert bill["currency"] == "USD"

    def test_zero_units(self):
        bill = monthly_bill(0, Tariff(tariff_slabs=SLABS))
        assert bill["energy_charges"] == 0.0
        assert bill["effective_rate"] == 0.0
