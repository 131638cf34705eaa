"""
Profile endpoints
=================

PUT /api/v1/profile/driver        -- vehicle details, license and photo (driver)
PUT /api/v1/profile/availability  -- toggle online/offline (driver)
GET /api/v1/users/{user_id}       -- a user's public profile
"""

import base64
import binascii
from typing import Optional

from fastapi import APIRouter, Depends, Request

from ridelink.api.dependencies import get_profile_service, get_session_context
from ridelink.api.middleware import RATE_LIMIT, limiter
from ridelink.api.schemas import AvailabilityRequest, DriverProfileRequest, UserResponse
from ridelink.domain.entities import CarDetails
from ridelink.domain.exceptions import ValidationError
from ridelink.services.context import SessionContext
from ridelink.services.profiles import ProfileService

router = APIRouter(tags=["profiles"])


def decode_image(field: str, value: Optional[str]) -> Optional[bytes]:
    if not value:
        return None
    if value.startswith("data:") and "," in value:
        value = value.split(",", 1)[1]
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError(
            f"{field} is not valid base64", code="INVALID_IMAGE", details={"field": field}
        )


@router.put(
    "/profile/driver",
    response_model=UserResponse,
    summary="Submit driver vehicle details and documents",
)
@limiter.limit(RATE_LIMIT)
async def update_driver_profile(
    request: Request,
    body: DriverProfileRequest,
    ctx: SessionContext = Depends(get_session_context),
    profiles: ProfileService = Depends(get_profile_service),
):
    user = await profiles.update_driver_profile(
        ctx,
        CarDetails(**body.car_details.model_dump()),
        license_image=decode_image("license_image", body.license_image),
        photo_image=decode_image("photo_image", body.photo_image),
    )
    return UserResponse.model_validate(user)


@router.put(
    "/profile/availability",
    response_model=UserResponse,
    summary="Set driver availability",
)
@limiter.limit(RATE_LIMIT)
async def set_availability(
    request: Request,
    body: AvailabilityRequest,
    ctx: SessionContext = Depends(get_session_context),
    profiles: ProfileService = Depends(get_profile_service),
):
    return UserResponse.model_validate(await profiles.set_availability(ctx, body.available))


@router.get("/users/{user_id}", response_model=UserResponse, summary="Get a profile")
@limiter.limit(RATE_LIMIT)
async def get_profile(
    request: Request,
    user_id: str,
    ctx: SessionContext = Depends(get_session_context),
    profiles: ProfileService = Depends(get_profile_service),
):
    return UserResponse.model_validate(await profiles.get_profile(user_id))
