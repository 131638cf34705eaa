"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ridelink.domain.enums import RequestStatus, UserRole


# ── Shared ────────────────────────────────────────────────────────────


class CoordinatesSchema(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    model_config = {"from_attributes": True}


class CarDetailsSchema(BaseModel):
    make: str = Field(..., min_length=1, max_length=64)
    model: str = Field(..., min_length=1, max_length=64)
    color: str = Field(..., min_length=1, max_length=32)
    license_plate: str = Field(..., min_length=1, max_length=16)

    model_config = {"from_attributes": True}


class DriverRatingSchema(BaseModel):
    average: float
    count: int

    model_config = {"from_attributes": True}


# ── Requests ──────────────────────────────────────────────────────────


class SignInRequest(BaseModel):
    """Identity forwarded by the authenticating gateway."""

    external_id: str = Field(..., min_length=1, max_length=128)
    display_name: Optional[str] = None
    email: Optional[str] = None
    photo_url: Optional[str] = None
    role: UserRole = UserRole.PASSENGER


class DriverProfileRequest(BaseModel):
    car_details: CarDetailsSchema
    license_image: str = Field(..., description="Base64-encoded license image.")
    photo_image: Optional[str] = Field(
        None, description="Base64-encoded profile photo; optional if one is on file."
    )


class AvailabilityRequest(BaseModel):
    available: bool


class RideCreateRequest(BaseModel):
    location: str = Field(..., max_length=512, description="Pickup, free text or 'lat,lon'.")
    destination: str = Field(..., max_length=512)


class BidCreateRequest(BaseModel):
    amount: int
    driver_location: Optional[CoordinatesSchema] = None


class AcceptBidRequest(BaseModel):
    bid_id: int


class MessageCreateRequest(BaseModel):
    text: str = Field(..., max_length=2000)


class RatingCreateRequest(BaseModel):
    driver_id: str
    ride_request_id: int
    rating: int
    review: Optional[str] = Field(None, max_length=2000)


class VerificationRequest(BaseModel):
    verified: bool


class FareConfigUpdate(BaseModel):
    base_fare: Optional[float] = None
    rate_per_km: Optional[float] = None
    rate_per_minute: Optional[float] = None


class FareEstimateRequest(BaseModel):
    origin: str
    destination: str


# ── Responses ─────────────────────────────────────────────────────────


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    avatar_url: str
    role: UserRole
    is_verified: bool
    car_details: Optional[CarDetailsSchema] = None
    license_url: Optional[str] = None
    rating: Optional[DriverRatingSchema] = None
    is_available: Optional[bool] = None

    model_config = {"from_attributes": True}


class UserSnapshotResponse(BaseModel):
    id: str
    name: str
    email: str
    avatar_url: str
    role: UserRole
    is_verified: bool
    car_details: Optional[CarDetailsSchema] = None
    rating: Optional[DriverRatingSchema] = None

    model_config = {"from_attributes": True}


class BidResponse(BaseModel):
    id: int
    request_id: int
    driver: UserSnapshotResponse
    amount: int
    driver_location: Optional[CoordinatesSchema] = None
    timestamp: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BidViewResponse(BaseModel):
    bid: BidResponse
    distance_km: Optional[float] = None
    eta_minutes: Optional[int] = None

    model_config = {"from_attributes": True}


class RideRequestResponse(BaseModel):
    id: int
    passenger: UserSnapshotResponse
    location: str
    destination: str
    status: RequestStatus
    timestamp: Optional[datetime] = None
    accepted_bid_id: Optional[int] = None
    accepted_bid: Optional[BidResponse] = None

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    id: int
    request_id: int
    sender_id: str
    text: str
    timestamp: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RatingResponse(BaseModel):
    id: int
    driver_id: str
    ride_request_id: int
    passenger_id: str
    rating: int
    review: Optional[str] = None
    timestamp: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RatingPromptResponse(BaseModel):
    request: RideRequestResponse
    driver: UserResponse

    model_config = {"from_attributes": True}


class FareConfigResponse(BaseModel):
    base_fare: float
    rate_per_km: float
    rate_per_minute: float

    model_config = {"from_attributes": True}


class FareEstimateResponse(BaseModel):
    distance_km: float
    duration_minutes: float
    fare: int

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    error: str
    message: str
    details: dict = {}
