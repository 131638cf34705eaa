"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  The ``*_to_entity`` helpers convert ORM rows
into domain entities; services call them before the session closes.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    BidModel,
    FareConfigModel,
    MessageModel,
    RatingModel,
    RideRequestModel,
    UserModel,
)
from ridelink.domain.entities import (
    Bid,
    CarDetails,
    Coordinates,
    DriverRating,
    FareConfig,
    Message,
    Rating,
    RideRequest,
    User,
    UserSnapshot,
)
from ridelink.domain.enums import ACTIVE_STATUSES, RequestStatus

FARE_CONFIG_ID = 1


# ── Row -> entity mapping ─────────────────────────────────────────────


def user_to_entity(row: UserModel) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        avatar_url=row.avatar_url,
        role=row.role,
        is_verified=row.is_verified,
        car_details=CarDetails.from_dict(row.car_details),
        license_url=row.license_url,
        rating=(
            DriverRating(average=row.rating_average, count=row.rating_count)
            if row.rating_count
            else None
        ),
        is_available=row.is_available,
    )


def bid_to_entity(row: BidModel) -> Bid:
    location = None
    if row.driver_lat is not None and row.driver_lng is not None:
        location = Coordinates(row.driver_lat, row.driver_lng)
    return Bid(
        id=row.id,
        request_id=row.request_id,
        driver=UserSnapshot.from_dict(row.driver),
        amount=row.amount,
        driver_location=location,
        timestamp=row.created_at,
    )


def request_to_entity(row: RideRequestModel) -> RideRequest:
    return RideRequest(
        id=row.id,
        passenger=UserSnapshot.from_dict(row.passenger),
        location=row.location,
        destination=row.destination,
        status=RequestStatus(row.status),
        timestamp=row.created_at,
        accepted_bid_id=row.accepted_bid_id,
        accepted_bid=Bid.from_dict(row.accepted_bid) if row.accepted_bid else None,
    )


def message_to_entity(row: MessageModel) -> Message:
    return Message(
        id=row.id,
        request_id=row.request_id,
        sender_id=row.sender_id,
        text=row.text,
        timestamp=row.created_at,
    )


def rating_to_entity(row: RatingModel) -> Rating:
    return Rating(
        id=row.id,
        driver_id=row.driver_id,
        ride_request_id=row.ride_request_id,
        passenger_id=row.passenger_id,
        rating=row.rating,
        review=row.review,
        timestamp=row.created_at,
    )


def fare_config_to_entity(row: FareConfigModel) -> FareConfig:
    return FareConfig(
        base_fare=row.base_fare,
        rate_per_km=row.rate_per_km,
        rate_per_minute=row.rate_per_minute,
    )


# ── Repositories ──────────────────────────────────────────────────────


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, user: UserModel) -> UserModel:
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_by_id(self, user_id: str) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def list_all(self) -> list[UserModel]:
        result = await self.session.execute(
            select(UserModel).order_by(UserModel.name, UserModel.id)
        )
        return list(result.scalars().all())


class RideRequestRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, request: RideRequestModel) -> RideRequestModel:
        self.session.add(request)
        await self.session.flush()
        return request

    async def get_by_id(self, request_id: int) -> Optional[RideRequestModel]:
        return await self.session.get(RideRequestModel, request_id)

    async def delete(self, request: RideRequestModel) -> None:
        await self.session.delete(request)
        await self.session.flush()

    async def get_active_for_passenger(
        self, passenger_id: str
    ) -> Optional[RideRequestModel]:
        result = await self.session.execute(
            select(RideRequestModel)
            .where(
                RideRequestModel.passenger_id == passenger_id,
                RideRequestModel.status.in_(ACTIVE_STATUSES),
            )
            .order_by(RideRequestModel.created_at.desc(), RideRequestModel.id.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def get_accepted_for_driver(
        self, driver_id: str
    ) -> Optional[RideRequestModel]:
        result = await self.session.execute(
            select(RideRequestModel)
            .where(
                RideRequestModel.status == RequestStatus.ACCEPTED,
                RideRequestModel.accepted_driver_id == driver_id,
            )
            .order_by(RideRequestModel.created_at.desc(), RideRequestModel.id.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def get_pending(self) -> list[RideRequestModel]:
        result = await self.session.execute(
            select(RideRequestModel)
            .where(RideRequestModel.status == RequestStatus.PENDING)
            .order_by(RideRequestModel.created_at, RideRequestModel.id)
        )
        return list(result.scalars().all())

    async def get_for_passenger(self, passenger_id: str) -> list[RideRequestModel]:
        result = await self.session.execute(
            select(RideRequestModel)
            .where(RideRequestModel.passenger_id == passenger_id)
            .order_by(RideRequestModel.created_at.desc(), RideRequestModel.id.desc())
        )
        return list(result.scalars().all())

    async def get_latest_completed_for_passenger(
        self, passenger_id: str
    ) -> Optional[RideRequestModel]:
        result = await self.session.execute(
            select(RideRequestModel)
            .where(
                RideRequestModel.passenger_id == passenger_id,
                RideRequestModel.status == RequestStatus.COMPLETED,
            )
            .order_by(RideRequestModel.created_at.desc(), RideRequestModel.id.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def get_recent(self, limit: int) -> list[RideRequestModel]:
        result = await self.session.execute(
            select(RideRequestModel)
            .order_by(RideRequestModel.created_at.desc(), RideRequestModel.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


class BidRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, bid: BidModel) -> BidModel:
        self.session.add(bid)
        await self.session.flush()
        return bid

    async def get_by_id(self, bid_id: int) -> Optional[BidModel]:
        return await self.session.get(BidModel, bid_id)

    async def get_for_request(self, request_id: int) -> list[BidModel]:
        """Canonical order: cheapest first, ties by submission order."""
        result = await self.session.execute(
            select(BidModel)
            .where(BidModel.request_id == request_id)
            .order_by(BidModel.amount, BidModel.created_at, BidModel.id)
        )
        return list(result.scalars().all())

    async def delete_for_request(self, request_id: int) -> int:
        result = await self.session.execute(
            delete(BidModel).where(BidModel.request_id == request_id)
        )
        return result.rowcount


class MessageRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, message: MessageModel) -> MessageModel:
        self.session.add(message)
        await self.session.flush()
        return message

    async def get_for_request(self, request_id: int) -> list[MessageModel]:
        result = await self.session.execute(
            select(MessageModel)
            .where(MessageModel.request_id == request_id)
            .order_by(MessageModel.created_at, MessageModel.id)
        )
        return list(result.scalars().all())


class RatingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, rating: RatingModel) -> RatingModel:
        self.session.add(rating)
        await self.session.flush()
        return rating

    async def get_for_ride(self, ride_request_id: int) -> Optional[RatingModel]:
        result = await self.session.execute(
            select(RatingModel).where(RatingModel.ride_request_id == ride_request_id)
        )
        return result.scalar_one_or_none()

    async def get_for_driver(self, driver_id: str) -> list[RatingModel]:
        result = await self.session.execute(
            select(RatingModel)
            .where(RatingModel.driver_id == driver_id)
            .order_by(RatingModel.created_at.desc(), RatingModel.id.desc())
        )
        return list(result.scalars().all())


class FareConfigRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self) -> Optional[FareConfigModel]:
        return await self.session.get(FareConfigModel, FARE_CONFIG_ID)

    async def get_for_update(self) -> Optional[FareConfigModel]:
        """SELECT ... FOR UPDATE so concurrent partial merges serialise."""
        result = await self.session.execute(
            select(FareConfigModel)
            .where(FareConfigModel.id == FARE_CONFIG_ID)
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def save(self, config: FareConfig) -> FareConfigModel:
        row = await self.get()
        if row is None:
            row = FareConfigModel(id=FARE_CONFIG_ID)
            self.session.add(row)
        row.base_fare = config.base_fare
        row.rate_per_km = config.rate_per_km
        row.rate_per_minute = config.rate_per_minute
        await self.session.flush()
        return row
