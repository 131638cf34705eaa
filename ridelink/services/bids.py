"""
Bid Ledger
==========

Bids are append-only children of a ride request.  A driver may bid more
than once on the same request; every bid carries a frozen snapshot of the
driver's profile (vehicle, rating) as it was when the bid was placed.

Canonical order is cheapest first, ties by submission order.  Once the
request leaves PENDING, the losing bids are inert: the standing view only
shows the accepted bid, while the full ledger remains available for audit.

Distance and ETA are projected at read time from the passenger's pickup
coordinates and the driver's reported position; they are never stored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .base import Service
from .context import SessionContext
from ridelink.domain.distance import (
    AVERAGE_SPEED_KMH,
    eta_minutes,
    haversine_km,
    parse_coordinates,
)
from ridelink.domain.entities import Bid, Coordinates, RideRequest
from ridelink.domain.enums import RequestStatus, UserRole
from ridelink.domain.exceptions import (
    InvalidStateError,
    PermissionDeniedError,
    RequestNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from ridelink.infrastructure.change_feed import Subscription, bids_channel
from ridelink.infrastructure.models import BidModel
from ridelink.infrastructure.repositories import (
    BidRepository,
    RideRequestRepository,
    UserRepository,
    bid_to_entity,
    request_to_entity,
    user_to_entity,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BidView:
    """A bid plus its read-side distance/ETA projection."""

    bid: Bid
    distance_km: Optional[float] = None
    eta_minutes: Optional[int] = None


def project_bid(
    bid: Bid, pickup: Optional[Coordinates], speed_kmh: float = AVERAGE_SPEED_KMH
) -> BidView:
    if pickup is None or bid.driver_location is None:
        return BidView(bid)
    distance = haversine_km(
        pickup.latitude,
        pickup.longitude,
        bid.driver_location.latitude,
        bid.driver_location.longitude,
    )
    return BidView(bid, distance, eta_minutes(distance, speed_kmh))


def standing_bids(request: RideRequest, bids: list[Bid]) -> list[Bid]:
    if request.status == RequestStatus.PENDING:
        return bids
    return [b for b in bids if b.id == request.accepted_bid_id]


class BidService(Service):
    def __init__(self, session_factory, feed, speed_kmh: float = AVERAGE_SPEED_KMH):
        super().__init__(session_factory, feed)
        self.speed_kmh = speed_kmh

    async def add_bid(
        self,
        ctx: SessionContext,
        request_id: int,
        amount: int,
        driver_location: Optional[Coordinates] = None,
    ) -> Bid:
        ctx.require_verified_driver()
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError(
                "Bid amount must be a positive whole number",
                code="INVALID_BID_AMOUNT",
                details={"amount": amount},
            )
        if driver_location is not None and not (
            -90 <= driver_location.latitude <= 90
            and -180 <= driver_location.longitude <= 180
        ):
            raise ValidationError(
                "Driver location is out of range",
                code="INVALID_DRIVER_LOCATION",
                details=driver_location.to_dict(),
            )
        driver_id = ctx.user_id

        async def work(session) -> Bid:
            request_row = await RideRequestRepository(session).get_by_id(request_id)
            if request_row is None:
                raise RequestNotFoundError(request_id)
            if request_row.status != RequestStatus.PENDING:
                raise InvalidStateError(
                    "This ride request is no longer accepting bids",
                    code="REQUEST_NOT_PENDING",
                    details={"request_id": request_id, "status": request_row.status.value},
                )

            # Snapshot the live profile so the bid carries the current rating.
            driver_row = await UserRepository(session).get_by_id(driver_id)
            if driver_row is None:
                raise UserNotFoundError(driver_id)
            row = await BidRepository(session).add(
                BidModel(
                    request_id=request_id,
                    driver_id=driver_id,
                    driver=user_to_entity(driver_row).snapshot().to_dict(),
                    amount=amount,
                    driver_lat=driver_location.latitude if driver_location else None,
                    driver_lng=driver_location.longitude if driver_location else None,
                )
            )
            return bid_to_entity(row)

        bid = await self._write(work)
        logger.info(
            "Bid %s submitted on request %s by %s (amount=%s)",
            bid.id,
            request_id,
            driver_id,
            amount,
        )
        await self._notify(bids_channel(request_id))
        return bid

    async def list_bids(
        self, ctx: SessionContext, request_id: int, include_inert: bool = False
    ) -> list[BidView]:
        async def work(session) -> tuple[RideRequest, list[Bid]]:
            row = await RideRequestRepository(session).get_by_id(request_id)
            if row is None:
                # Bids left behind by a cancelled request are void.
                raise RequestNotFoundError(request_id)
            rows = await BidRepository(session).get_for_request(request_id)
            return request_to_entity(row), [bid_to_entity(r) for r in rows]

        request, bids = await self._read(work)
        if request.passenger_id != ctx.user_id and ctx.user.role != UserRole.ADMIN:
            raise PermissionDeniedError(
                "Only the passenger who created the request can see its bids",
                code="NOT_REQUEST_OWNER",
                details={"request_id": request_id},
            )
        if not include_inert:
            bids = standing_bids(request, bids)
        pickup = parse_coordinates(request.location)
        return [project_bid(b, pickup, self.speed_kmh) for b in bids]

    def subscribe_bids(
        self, ctx: SessionContext, request_id: int
    ) -> Subscription[list[BidView]]:
        return ctx.track(
            self.feed.subscribe(
                [bids_channel(request_id)], lambda: self.list_bids(ctx, request_id)
            )
        )
