"""
Rating Ledger
=============

One rating per completed ride, folded into the driver's running average::

    new_average = (average * count + rating) / (count + 1)

The aggregate update on ``users`` (versioned) and the ``ratings`` insert
(unique on ``ride_request_id``) commit in one transaction.  Two racing
submissions for the same ride end with exactly one row: the loser either
hits the version check and retries into "already rated", or hits the
unique constraint directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError

from .base import Service
from .context import SessionContext
from ridelink.domain.entities import DriverRating, Rating, RideRequest, User
from ridelink.domain.enums import RequestStatus, UserRole
from ridelink.domain.exceptions import (
    InvalidStateError,
    PermissionDeniedError,
    RequestNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from ridelink.infrastructure.change_feed import (
    USERS_CHANNEL,
    Subscription,
    passenger_channel,
    user_channel,
)
from ridelink.infrastructure.models import RatingModel
from ridelink.infrastructure.repositories import (
    RatingRepository,
    RideRequestRepository,
    UserRepository,
    rating_to_entity,
    request_to_entity,
    user_to_entity,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatingPrompt:
    request: RideRequest
    driver: User


def _already_rated(ride_request_id: int) -> InvalidStateError:
    return InvalidStateError(
        "This ride has already been rated",
        code="ALREADY_RATED",
        details={"ride_request_id": ride_request_id},
    )


class RatingService(Service):
    async def submit_rating(
        self,
        ctx: SessionContext,
        driver_id: str,
        ride_request_id: int,
        rating: int,
        review: Optional[str] = None,
    ) -> Rating:
        ctx.require_role(UserRole.PASSENGER)
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError(
                "Rating must be a whole number from 1 to 5",
                code="INVALID_RATING",
                details={"rating": rating},
            )
        review = (review or "").strip() or None
        passenger_id = ctx.user_id

        async def work(session) -> Rating:
            request_row = await RideRequestRepository(session).get_by_id(ride_request_id)
            if request_row is None:
                raise RequestNotFoundError(ride_request_id)
            request = request_to_entity(request_row)
            if request.passenger_id != passenger_id:
                raise PermissionDeniedError(
                    "Only the passenger on this ride can rate it",
                    code="NOT_REQUEST_OWNER",
                    details={"ride_request_id": ride_request_id},
                )
            if request.status != RequestStatus.COMPLETED:
                raise InvalidStateError(
                    "Only completed rides can be rated",
                    code="RIDE_NOT_COMPLETED",
                    details={"ride_request_id": ride_request_id, "status": request.status.value},
                )
            if request.accepted_driver_id != driver_id:
                raise ValidationError(
                    "That driver did not drive this ride",
                    code="DRIVER_MISMATCH",
                    details={"ride_request_id": ride_request_id, "driver_id": driver_id},
                )

            ratings = RatingRepository(session)
            if await ratings.get_for_ride(ride_request_id) is not None:
                raise _already_rated(ride_request_id)

            driver = await UserRepository(session).get_by_id(driver_id)
            if driver is None:
                raise UserNotFoundError(driver_id)
            aggregate = DriverRating(driver.rating_average, driver.rating_count).add(rating)
            driver.rating_average = aggregate.average
            driver.rating_count = aggregate.count

            try:
                row = await ratings.add(
                    RatingModel(
                        driver_id=driver_id,
                        ride_request_id=ride_request_id,
                        passenger_id=passenger_id,
                        rating=rating,
                        review=review,
                    )
                )
            except IntegrityError as exc:
                raise _already_rated(ride_request_id) from exc
            return rating_to_entity(row)

        record = await self._write(work)
        logger.info(
            "Ride %s rated %d by %s for driver %s",
            ride_request_id,
            rating,
            passenger_id,
            driver_id,
        )
        await self._notify(user_channel(driver_id), passenger_channel(passenger_id), USERS_CHANNEL)
        return record

    async def pending_prompt(self, ctx: SessionContext) -> Optional[RatingPrompt]:
        """
        The rating the passenger should be asked for, if any.

        Only the most recently completed ride is considered.  If it is
        already rated there is no prompt, even if an older ride never was.
        """
        ctx.require_role(UserRole.PASSENGER)
        passenger_id = ctx.user_id

        async def work(session) -> Optional[RatingPrompt]:
            row = await RideRequestRepository(session).get_latest_completed_for_passenger(
                passenger_id
            )
            if row is None:
                return None
            if await RatingRepository(session).get_for_ride(row.id) is not None:
                return None
            request = request_to_entity(row)
            driver = await UserRepository(session).get_by_id(request.accepted_driver_id)
            if driver is None:
                return None
            return RatingPrompt(request=request, driver=user_to_entity(driver))

        return await self._read(work)

    async def list_for_driver(self, driver_id: str) -> list[Rating]:
        async def work(session) -> list[Rating]:
            return [
                rating_to_entity(r)
                for r in await RatingRepository(session).get_for_driver(driver_id)
            ]

        return await self._read(work)

    def subscribe_prompt(self, ctx: SessionContext) -> Subscription[Optional[RatingPrompt]]:
        ctx.require_role(UserRole.PASSENGER)
        return ctx.track(
            self.feed.subscribe(
                [passenger_channel(ctx.user_id)], lambda: self.pending_prompt(ctx)
            )
        )
