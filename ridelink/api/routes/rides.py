"""
Ride request endpoints
======================

POST /api/v1/rides                     -- create a ride request (passenger)
GET  /api/v1/rides/active              -- the caller's PENDING/ACCEPTED request
GET  /api/v1/rides/history             -- all of the caller's requests
GET  /api/v1/rides/available           -- open requests (verified drivers)
GET  /api/v1/rides/accepted            -- the driver's current ride
GET  /api/v1/rides/{ride_id}           -- one request
POST /api/v1/rides/{ride_id}/cancel    -- withdraw a PENDING request
POST /api/v1/rides/{ride_id}/accept    -- accept one bid
POST /api/v1/rides/{ride_id}/complete  -- finish the ride (driver)

``.../stream`` variants push the same views as Server-Sent Events.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from ridelink.api.dependencies import get_ride_service, get_session_context
from ridelink.api.middleware import RATE_LIMIT, limiter
from ridelink.api.schemas import (
    AcceptBidRequest,
    RideCreateRequest,
    RideRequestResponse,
)
from ridelink.api.streaming import stream_subscription
from ridelink.domain.entities import RideRequest
from ridelink.services.context import SessionContext
from ridelink.services.ride_requests import RideRequestService

router = APIRouter(prefix="/rides", tags=["rides"])


def to_response(ride: Optional[RideRequest]) -> Optional[RideRequestResponse]:
    if ride is None:
        return None
    return RideRequestResponse.model_validate(ride)


def render(ride: Optional[RideRequest]):
    response = to_response(ride)
    return response.model_dump(mode="json") if response else None


def render_list(rides: list[RideRequest]):
    return [render(r) for r in rides]


@router.post(
    "",
    status_code=201,
    response_model=RideRequestResponse,
    summary="Create a ride request",
    responses={409: {"description": "The passenger already has an active request."}},
)
@limiter.limit(RATE_LIMIT)
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    ctx: SessionContext = Depends(get_session_context),
    rides: RideRequestService = Depends(get_ride_service),
):
    ride = await rides.create(ctx, body.location, body.destination)
    return to_response(ride)


@router.get(
    "/active",
    response_model=Optional[RideRequestResponse],
    summary="The passenger's active request, if any",
)
@limiter.limit(RATE_LIMIT)
async def get_active_ride(
    request: Request,
    ctx: SessionContext = Depends(get_session_context),
    rides: RideRequestService = Depends(get_ride_service),
):
    return to_response(await rides.active_for_passenger(ctx))


@router.get("/active/stream", summary="Live view of the passenger's active request")
async def stream_active_ride(
    ctx: SessionContext = Depends(get_session_context),
    rides: RideRequestService = Depends(get_ride_service),
):
    return stream_subscription(rides.subscribe_active(ctx), render)


@router.get(
    "/history",
    response_model=list[RideRequestResponse],
    summary="All of the passenger's requests, newest first",
)
@limiter.limit(RATE_LIMIT)
async def get_ride_history(
    request: Request,
    ctx: SessionContext = Depends(get_session_context),
    rides: RideRequestService = Depends(get_ride_service),
):
    return [to_response(r) for r in await rides.history_for_passenger(ctx)]


@router.get(
    "/available",
    response_model=list[RideRequestResponse],
    summary="Open requests a verified driver can bid on",
)
@limiter.limit(RATE_LIMIT)
async def get_available_rides(
    request: Request,
    ctx: SessionContext = Depends(get_session_context),
    rides: RideRequestService = Depends(get_ride_service),
):
    return [to_response(r) for r in await rides.available_for_driver(ctx)]


@router.get("/available/stream", summary="Live list of open requests")
async def stream_available_rides(
    ctx: SessionContext = Depends(get_session_context),
    rides: RideRequestService = Depends(get_ride_service),
):
    return stream_subscription(rides.subscribe_available(ctx), render_list)


@router.get(
    "/accepted",
    response_model=Optional[RideRequestResponse],
    summary="The driver's accepted ride, if any",
)
@limiter.limit(RATE_LIMIT)
async def get_accepted_ride(
    request: Request,
    ctx: SessionContext = Depends(get_session_context),
    rides: RideRequestService = Depends(get_ride_service),
):
    return to_response(await rides.accepted_for_driver(ctx))


@router.get("/accepted/stream", summary="Live view of the driver's accepted ride")
async def stream_accepted_ride(
    ctx: SessionContext = Depends(get_session_context),
    rides: RideRequestService = Depends(get_ride_service),
):
    return stream_subscription(rides.subscribe_accepted(ctx), render)


@router.get(
    "/{ride_id}",
    response_model=RideRequestResponse,
    summary="Get a ride request",
)
@limiter.limit(RATE_LIMIT)
async def get_ride(
    request: Request,
    ride_id: int,
    ctx: SessionContext = Depends(get_session_context),
    rides: RideRequestService = Depends(get_ride_service),
):
    return to_response(await rides.get(ctx, ride_id))


@router.get("/{ride_id}/stream", summary="Live view of one ride request")
async def stream_ride(
    ride_id: int,
    ctx: SessionContext = Depends(get_session_context),
    rides: RideRequestService = Depends(get_ride_service),
):
    return stream_subscription(rides.subscribe_request(ctx, ride_id), render)


@router.post(
    "/{ride_id}/cancel",
    response_model=RideRequestResponse,
    summary="Cancel a pending ride request",
    description=(
        "Only PENDING requests can be cancelled.  The request and its bids "
        "are discarded; the response is the final CANCELLED view."
    ),
)
@limiter.limit(RATE_LIMIT)
async def cancel_ride(
    request: Request,
    ride_id: int,
    ctx: SessionContext = Depends(get_session_context),
    rides: RideRequestService = Depends(get_ride_service),
):
    return to_response(await rides.cancel(ctx, ride_id))


@router.post(
    "/{ride_id}/accept",
    response_model=RideRequestResponse,
    summary="Accept a bid",
    responses={409: {"description": "The request is no longer PENDING."}},
)
@limiter.limit(RATE_LIMIT)
async def accept_bid(
    request: Request,
    ride_id: int,
    body: AcceptBidRequest,
    ctx: SessionContext = Depends(get_session_context),
    rides: RideRequestService = Depends(get_ride_service),
):
    return to_response(await rides.accept_bid(ctx, ride_id, body.bid_id))


@router.post(
    "/{ride_id}/complete",
    response_model=RideRequestResponse,
    summary="Mark an accepted ride as completed",
)
@limiter.limit(RATE_LIMIT)
async def complete_ride(
    request: Request,
    ride_id: int,
    ctx: SessionContext = Depends(get_session_context),
    rides: RideRequestService = Depends(get_ride_service),
):
    return to_response(await rides.complete(ctx, ride_id))
