"""
Fare Estimation Engine
======================

Formula
-------
Fare = round_to_step(Base_Fare + Distance x Rate_Per_KM + Duration x Rate_Per_Minute)

* Distance and duration come from the external route oracle.
* The result is rounded half-up to the nearest ``step`` (default 50) so the
  passenger sees a clean figure; drivers still bid their own price.

Complexity: O(1) per calculation.
"""

from __future__ import annotations

import math

from .entities import FareConfig


def round_to_step(amount: float, step: int = 50) -> int:
    """Round *amount* half-up to the nearest multiple of *step*."""
    return int(math.floor(amount / step + 0.5) * step)


class PricingEngine:
    """High-level API used by the fare service and the API layer."""

    def __init__(self, config: FareConfig, rounding_step: int = 50):
        self.config = config
        self.rounding_step = rounding_step

    def raw_fare(self, distance_km: float, duration_minutes: float) -> float:
        return (
            self.config.base_fare
            + distance_km * self.config.rate_per_km
            + duration_minutes * self.config.rate_per_minute
        )

    def calculate_fare(self, distance_km: float, duration_minutes: float) -> int:
        return round_to_step(
            self.raw_fare(distance_km, duration_minutes), self.rounding_step
        )
