"""Wires the services together over one store and one change feed."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .bids import BidService
from .fares import FareService
from .messaging import MessageService
from .profiles import ProfileService
from .ratings import RatingService
from .ride_requests import RideRequestService
from .session import SessionManager
from ridelink.config import Settings
from ridelink.domain.entities import FareConfig
from ridelink.external.blob_storage import BlobStorage
from ridelink.external.fare_oracle import FareOracle
from ridelink.infrastructure.change_feed import ChangeFeed


@dataclass
class Services:
    feed: ChangeFeed
    profiles: ProfileService
    sessions: SessionManager
    fares: FareService
    ride_requests: RideRequestService
    bids: BidService
    ratings: RatingService
    messages: MessageService

    async def close(self) -> None:
        await self.sessions.close()
        await self.feed.close()


def build_services(
    config: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    feed: ChangeFeed,
    blob_storage: BlobStorage,
    fare_oracle: Optional[FareOracle] = None,
) -> Services:
    profiles = ProfileService(session_factory, feed, blob_storage, config.admin_email)
    defaults = FareConfig(
        base_fare=config.base_fare,
        rate_per_km=config.rate_per_km,
        rate_per_minute=config.rate_per_minute,
    )
    return Services(
        feed=feed,
        profiles=profiles,
        sessions=SessionManager(profiles),
        fares=FareService(
            session_factory,
            feed,
            defaults,
            oracle=fare_oracle,
            rounding_step=config.fare_rounding_step,
        ),
        ride_requests=RideRequestService(
            session_factory, feed, recent_limit=config.recent_requests_limit
        ),
        bids=BidService(session_factory, feed, speed_kmh=config.average_speed_kmh),
        ratings=RatingService(session_factory, feed),
        messages=MessageService(session_factory, feed),
    )
