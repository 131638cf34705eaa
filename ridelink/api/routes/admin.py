"""
Admin / observability endpoints
===============================

GET   /api/v1/admin/users                          -- every profile
PATCH /api/v1/admin/users/{user_id}/verification   -- verify / unverify a driver
GET   /api/v1/admin/rides/recent                   -- latest ride requests
GET   /api/v1/admin/rides/recent/stream            -- live view of the same
PATCH /api/v1/admin/fare-config                    -- partial fare policy update
GET   /api/v1/admin/health                         -- simple health check
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ridelink.api.dependencies import (
    get_fare_service,
    get_profile_service,
    get_ride_service,
    get_session_context,
)
from ridelink.api.middleware import RATE_LIMIT, limiter
from ridelink.api.routes.rides import render_list, to_response
from ridelink.api.schemas import (
    FareConfigResponse,
    FareConfigUpdate,
    HealthResponse,
    RideRequestResponse,
    UserResponse,
    VerificationRequest,
)
from ridelink.api.streaming import stream_subscription
from ridelink.services.context import SessionContext
from ridelink.services.fares import FareService
from ridelink.services.profiles import ProfileService
from ridelink.services.ride_requests import RideRequestService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users", response_model=list[UserResponse], summary="List all users")
@limiter.limit(RATE_LIMIT)
async def list_users(
    request: Request,
    ctx: SessionContext = Depends(get_session_context),
    profiles: ProfileService = Depends(get_profile_service),
):
    return [UserResponse.model_validate(u) for u in await profiles.list_users(ctx)]


@router.patch(
    "/users/{user_id}/verification",
    response_model=UserResponse,
    summary="Verify or unverify a driver",
)
@limiter.limit(RATE_LIMIT)
async def set_verification(
    request: Request,
    user_id: str,
    body: VerificationRequest,
    ctx: SessionContext = Depends(get_session_context),
    profiles: ProfileService = Depends(get_profile_service),
):
    user = await profiles.set_verification(ctx, user_id, body.verified)
    return UserResponse.model_validate(user)


@router.get(
    "/rides/recent",
    response_model=list[RideRequestResponse],
    summary="Most recent ride requests, newest first",
)
@limiter.limit(RATE_LIMIT)
async def recent_rides(
    request: Request,
    limit: Optional[int] = Query(None, ge=1, le=500),
    ctx: SessionContext = Depends(get_session_context),
    rides: RideRequestService = Depends(get_ride_service),
):
    return [to_response(r) for r in await rides.recent(ctx, limit)]


@router.get("/rides/recent/stream", summary="Live view of recent ride requests")
async def stream_recent_rides(
    ctx: SessionContext = Depends(get_session_context),
    rides: RideRequestService = Depends(get_ride_service),
):
    return stream_subscription(rides.subscribe_recent(ctx), render_list)


@router.patch(
    "/fare-config",
    response_model=FareConfigResponse,
    summary="Update the fare policy",
    description="Only the supplied fields change; the rest are kept.",
)
@limiter.limit(RATE_LIMIT)
async def update_fare_config(
    request: Request,
    body: FareConfigUpdate,
    ctx: SessionContext = Depends(get_session_context),
    fares: FareService = Depends(get_fare_service),
):
    config = await fares.update_config(
        ctx,
        base_fare=body.base_fare,
        rate_per_km=body.rate_per_km,
        rate_per_minute=body.rate_per_minute,
    )
    return FareConfigResponse.model_validate(config)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
