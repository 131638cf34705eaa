"""
Ride Request Lifecycle
======================

State machine::

    PENDING ──accept_bid──> ACCEPTED ──complete──> COMPLETED
       │
       └──cancel──> CANCELLED  (the record is deleted)

Concurrency safety
------------------
* Every transition runs inside ``run_in_transaction``.  ``ride_requests``
  rows are versioned, so when two passengers' devices race to accept
  different bids on the same request, the second UPDATE matches no row,
  the transaction is retried, the retry sees ACCEPTED and fails with
  ``InvalidStateError``: exactly one winner.
* Acceptance writes status, ``accepted_bid_id`` and the frozen
  ``accepted_bid`` snapshot in the same UPDATE; no reader can observe one
  without the others.
* ``create`` checks for an existing active request and then inserts.  Two
  simultaneous creates by the same passenger can both pass the check; this
  read-then-write race is known and deliberately not papered over.
"""

from __future__ import annotations

import logging
from typing import Optional

from .base import Service
from .context import SessionContext
from ridelink.domain.entities import RideRequest
from ridelink.domain.enums import RequestStatus, UserRole
from ridelink.domain.exceptions import (
    BidNotFoundError,
    ConflictError,
    PermissionDeniedError,
    RequestNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from ridelink.infrastructure.change_feed import (
    ALL_REQUESTS_CHANNEL,
    PENDING_REQUESTS_CHANNEL,
    Subscription,
    bids_channel,
    driver_channel,
    passenger_channel,
    request_channel,
)
from ridelink.infrastructure.models import RideRequestModel
from ridelink.infrastructure.repositories import (
    BidRepository,
    RideRequestRepository,
    UserRepository,
    bid_to_entity,
    request_to_entity,
    user_to_entity,
)

logger = logging.getLogger(__name__)


def can_view(ctx: SessionContext, request: RideRequest) -> bool:
    user = ctx.user
    if user.role == UserRole.ADMIN:
        return True
    if user.role == UserRole.PASSENGER:
        return request.passenger_id == user.id
    return (
        request.status == RequestStatus.PENDING
        or request.accepted_driver_id == user.id
    )


class RideRequestService(Service):
    def __init__(self, session_factory, feed, recent_limit: int = 50):
        super().__init__(session_factory, feed)
        self.recent_limit = recent_limit

    # ── Commands ──────────────────────────────────────────────────────

    async def create(
        self, ctx: SessionContext, location: str, destination: str
    ) -> RideRequest:
        ctx.require_role(UserRole.PASSENGER)
        location, destination = (location or "").strip(), (destination or "").strip()
        missing = [
            name
            for name, value in (("location", location), ("destination", destination))
            if not value
        ]
        if missing:
            raise ValidationError(
                "Pickup location and destination are required",
                code="MISSING_FIELDS",
                details={"missing": missing},
            )
        passenger_id = ctx.user_id

        async def work(session) -> RideRequest:
            requests = RideRequestRepository(session)
            existing = await requests.get_active_for_passenger(passenger_id)
            if existing is not None:
                raise ConflictError(
                    "You already have an active ride request; cancel it first",
                    code="ACTIVE_REQUEST_EXISTS",
                    details={"request_id": existing.id},
                )
            passenger = await UserRepository(session).get_by_id(passenger_id)
            if passenger is None:
                raise UserNotFoundError(passenger_id)
            row = await requests.add(
                RideRequestModel(
                    passenger_id=passenger_id,
                    passenger=user_to_entity(passenger).snapshot().to_dict(),
                    location=location,
                    destination=destination,
                    status=RequestStatus.PENDING,
                )
            )
            return request_to_entity(row)

        request = await self._write(work)
        logger.info("Ride request %s created by %s", request.id, passenger_id)
        await self._notify(
            PENDING_REQUESTS_CHANNEL,
            ALL_REQUESTS_CHANNEL,
            passenger_channel(passenger_id),
            request_channel(request.id),
        )
        return request

    async def cancel(self, ctx: SessionContext, request_id: int) -> RideRequest:
        """Withdraw a PENDING request.  The record (and its bids) are discarded."""

        async def work(session) -> RideRequest:
            requests = RideRequestRepository(session)
            row = await requests.get_by_id(request_id)
            if row is None:
                raise RequestNotFoundError(request_id)
            if row.passenger_id != ctx.user_id and not ctx.user.is_admin:
                raise PermissionDeniedError(
                    "Only the passenger who created the request can cancel it",
                    code="NOT_REQUEST_OWNER",
                    details={"request_id": request_id},
                )
            request = request_to_entity(row)
            request.transition_to(RequestStatus.CANCELLED)
            await BidRepository(session).delete_for_request(request_id)
            await requests.delete(row)
            return request

        request = await self._write(work)
        logger.info("Ride request %s cancelled by %s", request_id, ctx.user_id)
        await self._notify(
            PENDING_REQUESTS_CHANNEL,
            ALL_REQUESTS_CHANNEL,
            passenger_channel(request.passenger_id),
            request_channel(request_id),
            bids_channel(request_id),
        )
        return request

    async def accept_bid(
        self, ctx: SessionContext, request_id: int, bid_id: int
    ) -> RideRequest:
        async def work(session) -> RideRequest:
            row = await RideRequestRepository(session).get_by_id(request_id)
            if row is None:
                raise RequestNotFoundError(request_id)
            if row.passenger_id != ctx.user_id:
                raise PermissionDeniedError(
                    "Only the passenger who created the request can accept a bid",
                    code="NOT_REQUEST_OWNER",
                    details={"request_id": request_id},
                )
            request = request_to_entity(row)
            request.ensure_transition(RequestStatus.ACCEPTED)

            bid_row = await BidRepository(session).get_by_id(bid_id)
            if bid_row is None or bid_row.request_id != request_id:
                raise BidNotFoundError(request_id, bid_id)
            request.accept(bid_to_entity(bid_row))

            row.status = request.status
            row.accepted_bid_id = request.accepted_bid_id
            row.accepted_bid = request.accepted_bid.to_dict()
            row.accepted_driver_id = request.accepted_driver_id
            await session.flush()
            return request

        request = await self._write(work)
        logger.info(
            "Ride request %s accepted bid %s (amount=%s, driver=%s)",
            request_id,
            bid_id,
            request.accepted_bid.amount,
            request.accepted_driver_id,
        )
        await self._notify(
            PENDING_REQUESTS_CHANNEL,
            ALL_REQUESTS_CHANNEL,
            passenger_channel(request.passenger_id),
            driver_channel(request.accepted_driver_id),
            request_channel(request_id),
            bids_channel(request_id),
        )
        return request

    async def complete(self, ctx: SessionContext, request_id: int) -> RideRequest:
        async def work(session) -> RideRequest:
            row = await RideRequestRepository(session).get_by_id(request_id)
            if row is None:
                raise RequestNotFoundError(request_id)
            request = request_to_entity(row)
            request.ensure_transition(RequestStatus.COMPLETED)
            if request.accepted_driver_id != ctx.user_id and not ctx.user.is_admin:
                raise PermissionDeniedError(
                    "Only the driver on this ride can complete it",
                    code="NOT_ASSIGNED_DRIVER",
                    details={"request_id": request_id},
                )
            request.transition_to(RequestStatus.COMPLETED)
            row.status = request.status
            await session.flush()
            return request

        request = await self._write(work)
        logger.info("Ride request %s completed", request_id)
        await self._notify(
            ALL_REQUESTS_CHANNEL,
            passenger_channel(request.passenger_id),
            driver_channel(request.accepted_driver_id),
            request_channel(request_id),
        )
        return request

    # ── Queries ───────────────────────────────────────────────────────

    async def find(self, ctx: SessionContext, request_id: int) -> Optional[RideRequest]:
        async def work(session) -> Optional[RideRequest]:
            row = await RideRequestRepository(session).get_by_id(request_id)
            return request_to_entity(row) if row else None

        request = await self._read(work)
        if request is None or not can_view(ctx, request):
            return None
        return request

    async def get(self, ctx: SessionContext, request_id: int) -> RideRequest:
        request = await self.find(ctx, request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        return request

    async def active_for_passenger(self, ctx: SessionContext) -> Optional[RideRequest]:
        ctx.require_role(UserRole.PASSENGER)
        passenger_id = ctx.user_id

        async def work(session) -> Optional[RideRequest]:
            row = await RideRequestRepository(session).get_active_for_passenger(passenger_id)
            return request_to_entity(row) if row else None

        return await self._read(work)

    async def history_for_passenger(self, ctx: SessionContext) -> list[RideRequest]:
        ctx.require_role(UserRole.PASSENGER)
        passenger_id = ctx.user_id

        async def work(session) -> list[RideRequest]:
            rows = await RideRequestRepository(session).get_for_passenger(passenger_id)
            return [request_to_entity(r) for r in rows]

        return await self._read(work)

    async def available_for_driver(self, ctx: SessionContext) -> list[RideRequest]:
        """
        Every PENDING request, oldest first.

        Requests the driver has already bid on stay in the list; once a
        request is accepted it drops out because it is no longer PENDING.
        """
        ctx.require_verified_driver()

        async def work(session) -> list[RideRequest]:
            rows = await RideRequestRepository(session).get_pending()
            return [request_to_entity(r) for r in rows]

        return await self._read(work)

    async def accepted_for_driver(self, ctx: SessionContext) -> Optional[RideRequest]:
        ctx.require_role(UserRole.DRIVER)
        driver_id = ctx.user_id

        async def work(session) -> Optional[RideRequest]:
            row = await RideRequestRepository(session).get_accepted_for_driver(driver_id)
            return request_to_entity(row) if row else None

        return await self._read(work)

    async def recent(self, ctx: SessionContext, limit: Optional[int] = None) -> list[RideRequest]:
        ctx.require_admin()
        limit = limit or self.recent_limit

        async def work(session) -> list[RideRequest]:
            rows = await RideRequestRepository(session).get_recent(limit)
            return [request_to_entity(r) for r in rows]

        return await self._read(work)

    # ── Subscriptions ─────────────────────────────────────────────────

    def subscribe_request(
        self, ctx: SessionContext, request_id: int
    ) -> Subscription[Optional[RideRequest]]:
        """Live view of one request; yields ``None`` once it is gone."""
        return ctx.track(
            self.feed.subscribe(
                [request_channel(request_id)], lambda: self.find(ctx, request_id)
            )
        )

    def subscribe_active(self, ctx: SessionContext) -> Subscription[Optional[RideRequest]]:
        ctx.require_role(UserRole.PASSENGER)
        return ctx.track(
            self.feed.subscribe(
                [passenger_channel(ctx.user_id)], lambda: self.active_for_passenger(ctx)
            )
        )

    def subscribe_available(self, ctx: SessionContext) -> Subscription[list[RideRequest]]:
        ctx.require_verified_driver()
        return ctx.track(
            self.feed.subscribe(
                [PENDING_REQUESTS_CHANNEL], lambda: self.available_for_driver(ctx)
            )
        )

    def subscribe_accepted(self, ctx: SessionContext) -> Subscription[Optional[RideRequest]]:
        ctx.require_role(UserRole.DRIVER)
        return ctx.track(
            self.feed.subscribe(
                [driver_channel(ctx.user_id)], lambda: self.accepted_for_driver(ctx)
            )
        )

    def subscribe_recent(self, ctx: SessionContext) -> Subscription[list[RideRequest]]:
        ctx.require_admin()
        return ctx.track(
            self.feed.subscribe([ALL_REQUESTS_CHANNEL], lambda: self.recent(ctx))
        )
