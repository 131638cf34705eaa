"""
Fare Policy Store and fare estimation.

The policy is a singleton row that only admins may change, always by
partial merge.  Estimates combine the policy with the external route
oracle and degrade to ``None`` whenever the oracle cannot answer.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from .base import Service
from .context import SessionContext
from ridelink.domain.entities import FareConfig
from ridelink.domain.exceptions import ValidationError
from ridelink.domain.pricing import PricingEngine
from ridelink.external.fare_oracle import FareOracle
from ridelink.infrastructure.change_feed import FARE_CONFIG_CHANNEL
from ridelink.infrastructure.repositories import (
    FareConfigRepository,
    fare_config_to_entity,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FareEstimate:
    distance_km: float
    duration_minutes: float
    fare: int


class FareService(Service):
    def __init__(
        self,
        session_factory,
        feed,
        defaults: FareConfig,
        oracle: Optional[FareOracle] = None,
        rounding_step: int = 50,
    ):
        super().__init__(session_factory, feed)
        self.defaults = defaults
        self.oracle = oracle
        self.rounding_step = rounding_step

    async def get_config(self) -> FareConfig:
        async def work(session) -> FareConfig:
            row = await FareConfigRepository(session).get()
            return fare_config_to_entity(row) if row else self.defaults

        return await self._read(work)

    async def update_config(
        self,
        ctx: SessionContext,
        *,
        base_fare: Optional[float] = None,
        rate_per_km: Optional[float] = None,
        rate_per_minute: Optional[float] = None,
    ) -> FareConfig:
        ctx.require_admin()
        changes = {
            "base_fare": base_fare,
            "rate_per_km": rate_per_km,
            "rate_per_minute": rate_per_minute,
        }
        invalid = {
            name: value
            for name, value in changes.items()
            if value is not None and (not math.isfinite(value) or value < 0)
        }
        if invalid:
            raise ValidationError(
                "Fare values must be non-negative numbers",
                code="INVALID_FARE_CONFIG",
                details=invalid,
            )

        async def work(session) -> FareConfig:
            repo = FareConfigRepository(session)
            row = await repo.get_for_update()
            current = fare_config_to_entity(row) if row else self.defaults
            merged = current.merged(**changes)
            await repo.save(merged)
            return merged

        config = await self._write(work)
        logger.info("Admin %s updated fare config: %s", ctx.user_id, config)
        await self._notify(FARE_CONFIG_CHANNEL)
        return config

    async def estimate(self, origin: str, destination: str) -> Optional[FareEstimate]:
        if not origin.strip() or not destination.strip() or self.oracle is None:
            return None
        try:
            route = await self.oracle.estimate(origin.strip(), destination.strip())
        except Exception:
            logger.exception("Route oracle raised; no fare estimate")
            return None
        if route is None:
            return None

        engine = PricingEngine(await self.get_config(), self.rounding_step)
        return FareEstimate(
            distance_km=route.distance_km,
            duration_minutes=route.duration_minutes,
            fare=engine.calculate_fare(route.distance_km, route.duration_minutes),
        )
