"""Tests for live session consumption math."""

import math
from datetime import datetime, timedelta

import pytest

from wattwatch.services.consumption import (
    compute_session,
    session_cost,
    session_hours,
    session_kwh,
)
from wattwatch.services.tariff import Tariff

FLAT = Tariff(tariff_structure="flat", electricity_rate=6.0, tariff_slabs=[])
SLABS = Tariff(tariff_slabs=[
    {"min_units": 0, "max_units": 100, "rate": 3.00},
    {"min_units": 101, "max_units": 300, "rate": 5.50},
    {"min_units": 301, "max_units": 500, "rate": 7.00},
    {"min_units": 501, "max_units": None, "rate": 8.50},
])
NOW = datetime(2026, 3, 15, 12, 0, 0)


class TestSessionHours:
    def test_elapsed(self):
        assert session_hours(NOW - timedelta(minutes=90), NOW) == pytest.approx(1.5)

    def test_missing_start(self):
        assert session_hours(None, NOW) == 0.0

    def test_future_start_clamps_to_zero(self):
        assert session_hours(NOW + timedelta(minutes=5), NOW) == 0.0


class TestSessionKwh:
    def test_100w_for_30_minutes(self):
        assert session_kwh(100, 0.5) == pytest.approx(0.05)

    def test_2000w_for_2_hours(self):
        assert session_kwh(2000, 2) == pytest.approx(4.0)

    def test_invalid_inputs_degrade_to_zero(self):
        assert session_kwh(-100, 1) == 0.0
        assert session_kwh(100, -1) == 0.0
        assert session_kwh(math.nan, 1) == 0.0
        assert session_kwh(100, math.inf) == 0.0
        assert session_kwh(None, 1) == 0.0

    def test_monotonic_in_time(self):
        values = [session_kwh(750, h / 4) for h in range(0, 20)]
        assert values == sorted(values)


class TestSessionCost:
    def test_flat_rate(self):
        assert session_cost(0.05, FLAT) == pytest.approx(0.30)

    def test_flat_rate_is_linear(self):
        assert session_cost(3.0, FLAT) == pytest.approx(2 * session_cost(1.5, FLAT))

    def test_slab_cost_is_priced_above_prior_units(self):
        # 90 -> 110 kWh: 10 units at 3.00 and 10 units at 5.50
        assert session_cost(20, SLABS, prior_month_kwh=90) == pytest.approx(85.0)

    def test_slab_cost_from_zero(self):
        assert session_cost(50, SLABS) == pytest.approx(150.0)


class TestComputeSession:
    def test_inactive_device_yields_zeros(self):
        result = compute_session(1500, False, NOW - timedelta(hours=1), NOW, FLAT)
        assert result.is_active is False
        assert result.current_watts == 0.0
        assert result.session_kwh == 0.0
        assert result.session_cost == 0.0
        assert result.session_duration_minutes == 0
        assert result.session_start is None

    def test_active_without_start_yields_zeros(self):
        result = compute_session(1500, True, None, NOW, FLAT)
        assert result.is_active is False
        assert result.session_kwh == 0.0

    def test_active_session(self):
        start = NOW - timedelta(minutes=30)
        result = compute_session(100, True, start, NOW, FLAT)
        assert result.is_active is True
        assert result.current_watts == 100
        assert result.session_kwh == pytest.approx(0.05)
        assert result.session_cost == pytest.approx(0.30)
        assert result.session_duration_minutes == 30
        assert result.session_start == start
        assert result.effective_rate == pytest.approx(6.0)

    def test_effective_rate_reflects_slab_position(self):
        result = compute_session(2000, True, NOW - timedelta(hours=10), NOW, SLABS, 90)
        assert result.session_kwh == pytest.approx(20.0)
        assert result.effective_rate == pytest.approx(85.0 / 20.0)

    def test_to_dict_rounds(self):
        result = compute_session(333, True, NOW - timedelta(minutes=7), NOW, FLAT)
        data = result.to_dict()
        assert data["session_kwh"] == round(result.session_kwh, 4)
        assert data["session_cost"] == round(result.session_cost, 2)
        assert data["is_active"] is True
