"""Unit tests for the fare formula and rounding."""

import pytest

from ridelink.domain.entities import FareConfig
from ridelink.domain.pricing import PricingEngine, round_to_step

DEFAULT_CONFIG = FareConfig(base_fare=500, rate_per_km=100, rate_per_minute=20)


class TestRounding:
    @pytest.mark.parametrize(
        "amount, expected",
        [(1900, 1900), (1924.99, 1900), (1925, 1950), (1949, 1950), (0, 0), (24, 0), (25, 50)],
    )
    def test_rounds_half_up_to_nearest_50(self, amount, expected):
        assert round_to_step(amount) == expected

    def test_custom_step(self):
        assert round_to_step(1234, step=100) == 1200
        assert round_to_step(1250, step=100) == 1300


class TestPricingEngine:
    def test_fare_for_ten_km_twenty_minutes(self):
        engine = PricingEngine(DEFAULT_CONFIG)
        assert engine.raw_fare(10, 20) == 1900
        assert engine.calculate_fare(10, 20) == 1900

    def test_fare_is_rounded(self):
        engine = PricingEngine(DEFAULT_CONFIG)
        # 500 + 3.3*100 + 7*20 = 970
        assert engine.calculate_fare(3.3, 7) == 950

    def test_zero_route_costs_base_fare(self):
        assert PricingEngine(DEFAULT_CONFIG).calculate_fare(0, 0) == 500

    def test_merged_config_keeps_unspecified_fields(self):
        merged = DEFAULT_CONFIG.merged(rate_per_km=150, rate_per_minute=None)
        assert merged == FareConfig(base_fare=500, rate_per_km=150, rate_per_minute=20)
