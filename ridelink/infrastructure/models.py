"""
SQLAlchemy ORM models  (maps to PostgreSQL; SQLite in tests).

Tables
------
* ``users``          -- live profiles (passengers, drivers, admins)
* ``ride_requests``  -- the lifecycle record, with frozen passenger and
                        accepted-bid snapshots stored as JSON
* ``bids``           -- append-only driver offers, children of a request
* ``messages``       -- per-request chat log
* ``ratings``        -- one row per rated ride
* ``fare_config``    -- singleton fare policy

Optimistic concurrency
----------------------
``users`` and ``ride_requests`` carry a ``version`` column registered as the
mapper's ``version_id_col``: every ORM UPDATE/DELETE is qualified with the
version that was read, and a concurrent writer gets ``StaleDataError``.

Indexes
-------
* **B-Tree** on ``status``, ``passenger_id``, ``accepted_driver_id`` and
  ``created_at`` for the visibility queries.
* **B-Tree** on ``bids(request_id, amount)`` for the canonical bid order.
* **UNIQUE** on ``ratings.ride_request_id`` (one rating per ride).
"""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)

from .database import Base
from ridelink.domain.enums import RequestStatus, UserRole


class UserModel(Base):
    __tablename__ = "users"

    id = Column(String(128), primary_key=True)  # identity provider's id
    name = Column(String(120), nullable=False)
    email = Column(String(255), nullable=False)
    avatar_url = Column(String(1024), nullable=False)
    role = Column(Enum(UserRole, name="user_role"), nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    car_details = Column(JSON, nullable=True)
    license_url = Column(String(1024), nullable=True)
    rating_average = Column(Float, default=0.0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)
    is_available = Column(Boolean, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_users_role", "role"),
        Index("idx_users_name", "name"),
    )
    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}


class RideRequestModel(Base):
    __tablename__ = "ride_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    passenger_id = Column(String(128), ForeignKey("users.id"), nullable=False)
    passenger = Column(JSON, nullable=False)  # frozen UserSnapshot
    location = Column(String(512), nullable=False)
    destination = Column(String(512), nullable=False)
    status = Column(
        Enum(RequestStatus, name="request_status"),
        default=RequestStatus.PENDING,
        nullable=False,
    )
    accepted_bid_id = Column(Integer, nullable=True)
    accepted_bid = Column(JSON, nullable=True)  # frozen Bid
    accepted_driver_id = Column(String(128), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_ride_requests_status", "status"),
        Index("idx_ride_requests_passenger", "passenger_id", "status"),
        Index("idx_ride_requests_driver", "accepted_driver_id", "status"),
        Index("idx_ride_requests_created", "created_at"),
        # Ids of cancelled requests are never reused.
        {"sqlite_autoincrement": True},
    )
    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}


class BidModel(Base):
    __tablename__ = "bids"

    id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(
        Integer, ForeignKey("ride_requests.id", ondelete="CASCADE"), nullable=False
    )
    driver_id = Column(String(128), nullable=False)
    driver = Column(JSON, nullable=False)  # frozen UserSnapshot
    amount = Column(Integer, nullable=False)
    driver_lat = Column(Float, nullable=True)
    driver_lng = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_bids_amount_positive"),
        Index("idx_bids_request_amount", "request_id", "amount"),
        Index("idx_bids_driver", "driver_id"),
    )
    __mapper_args__ = {"eager_defaults": True}


class MessageModel(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(
        Integer, ForeignKey("ride_requests.id", ondelete="CASCADE"), nullable=False
    )
    sender_id = Column(String(128), nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_messages_request", "request_id", "created_at"),)
    __mapper_args__ = {"eager_defaults": True}


class RatingModel(Base):
    __tablename__ = "ratings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(String(128), ForeignKey("users.id"), nullable=False)
    ride_request_id = Column(
        Integer, ForeignKey("ride_requests.id"), unique=True, nullable=False
    )
    passenger_id = Column(String(128), nullable=False)
    rating = Column(Integer, nullable=False)
    review = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_ratings_range"),
        Index("idx_ratings_driver", "driver_id"),
    )
    __mapper_args__ = {"eager_defaults": True}


class FareConfigModel(Base):
    __tablename__ = "fare_config"

    id = Column(Integer, primary_key=True)  # singleton row, id = 1
    base_fare = Column(Float, nullable=False)
    rate_per_km = Column(Float, nullable=False)
    rate_per_minute = Column(Float, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    __mapper_args__ = {"eager_defaults": True}
