"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``RideRequest``: enforces valid lifecycle transitions
  (PENDING -> ACCEPTED -> COMPLETED, PENDING -> CANCELLED).
- **Frozen snapshots**: ``UserSnapshot`` and ``Bid`` are immutable copies
  taken at a defined instant (request creation, bid submission, bid
  acceptance).  They are embedded in other records and never re-synced
  with the live ``User`` profile.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional

from .enums import REQUEST_TRANSITIONS, RequestStatus, UserRole
from .exceptions import BidNotFoundError, InvalidStateTransition


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    def to_dict(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional[Coordinates]:
        if not data:
            return None
        return cls(float(data["latitude"]), float(data["longitude"]))


@dataclass(frozen=True)
class CarDetails:
    make: str
    model: str
    color: str
    license_plate: str

    def to_dict(self) -> dict[str, str]:
        return {
            "make": self.make,
            "model": self.model,
            "color": self.color,
            "license_plate": self.license_plate,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional[CarDetails]:
        if not data:
            return None
        return cls(
            make=data["make"],
            model=data["model"],
            color=data["color"],
            license_plate=data["license_plate"],
        )


@dataclass(frozen=True)
class DriverRating:
    average: float
    count: int

    def add(self, score: int) -> DriverRating:
        """Fold one more score into the running average."""
        total = self.average * self.count + score
        return DriverRating(average=total / (self.count + 1), count=self.count + 1)

    def to_dict(self) -> dict[str, Any]:
        return {"average": self.average, "count": self.count}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional[DriverRating]:
        if not data:
            return None
        return cls(average=float(data["average"]), count=int(data["count"]))


@dataclass(frozen=True)
class UserSnapshot:
    """Frozen view of a user embedded in a request or a bid."""

    id: str
    name: str
    email: str
    avatar_url: str
    role: UserRole
    is_verified: bool
    car_details: Optional[CarDetails] = None
    rating: Optional[DriverRating] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "avatar_url": self.avatar_url,
            "role": self.role.value,
            "is_verified": self.is_verified,
            "car_details": self.car_details.to_dict() if self.car_details else None,
            "rating": self.rating.to_dict() if self.rating else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> UserSnapshot:
        return cls(
            id=data["id"],
            name=data["name"],
            email=data["email"],
            avatar_url=data["avatar_url"],
            role=UserRole(data["role"]),
            is_verified=bool(data["is_verified"]),
            car_details=CarDetails.from_dict(data.get("car_details")),
            rating=DriverRating.from_dict(data.get("rating")),
        )


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class User:
    """Live, mutable profile record owned by the Profile Store."""

    id: str
    name: str
    email: str
    avatar_url: str
    role: UserRole = UserRole.PASSENGER
    is_verified: bool = False
    car_details: Optional[CarDetails] = None
    license_url: Optional[str] = None
    rating: Optional[DriverRating] = None
    is_available: Optional[bool] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def snapshot(self) -> UserSnapshot:
        return UserSnapshot(
            id=self.id,
            name=self.name,
            email=self.email,
            avatar_url=self.avatar_url,
            role=self.role,
            is_verified=self.is_verified,
            car_details=self.car_details,
            rating=self.rating,
        )


@dataclass(frozen=True)
class Bid:
    id: int
    request_id: int
    driver: UserSnapshot
    amount: int
    driver_location: Optional[Coordinates] = None
    timestamp: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "driver": self.driver.to_dict(),
            "amount": self.amount,
            "driver_location": (
                self.driver_location.to_dict() if self.driver_location else None
            ),
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Bid:
        timestamp = data.get("timestamp")
        return cls(
            id=int(data["id"]),
            request_id=int(data["request_id"]),
            driver=UserSnapshot.from_dict(data["driver"]),
            amount=int(data["amount"]),
            driver_location=Coordinates.from_dict(data.get("driver_location")),
            timestamp=datetime.fromisoformat(timestamp) if timestamp else None,
        )


@dataclass
class RideRequest:
    id: Optional[int] = None
    passenger: Optional[UserSnapshot] = None
    location: str = ""
    destination: str = ""
    status: RequestStatus = RequestStatus.PENDING
    timestamp: Optional[datetime] = None
    accepted_bid_id: Optional[int] = None
    accepted_bid: Optional[Bid] = field(default=None)

    @property
    def passenger_id(self) -> Optional[str]:
        return self.passenger.id if self.passenger else None

    @property
    def accepted_driver_id(self) -> Optional[str]:
        return self.accepted_bid.driver.id if self.accepted_bid else None

    def ensure_transition(self, new_status: RequestStatus) -> None:
        allowed = REQUEST_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidStateTransition(self.id, self.status, new_status)

    def transition_to(self, new_status: RequestStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        self.ensure_transition(new_status)
        self.status = new_status

    def accept(self, bid: Bid) -> None:
        """Move to ACCEPTED and freeze *bid* onto the request in one step."""
        self.ensure_transition(RequestStatus.ACCEPTED)
        if bid.request_id != self.id:
            raise BidNotFoundError(self.id, bid.id)
        self.status = RequestStatus.ACCEPTED
        self.accepted_bid_id = bid.id
        self.accepted_bid = bid


@dataclass(frozen=True)
class Message:
    id: int
    request_id: int
    sender_id: str
    text: str
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class Rating:
    id: int
    driver_id: str
    ride_request_id: int
    passenger_id: str
    rating: int
    review: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class FareConfig:
    base_fare: float
    rate_per_km: float
    rate_per_minute: float

    def merged(self, **changes: Optional[float]) -> FareConfig:
        """Return a copy with the non-``None`` *changes* applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
