"""
Shared test fixtures.

Uses a throwaway SQLite file database (via aiosqlite) per test and the
in-process change feed, so tests run without Docker / PostgreSQL / Redis.
A file database (not ``:memory:``) gives every session its own
connection, which the concurrency tests rely on.
"""

from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ridelink.api.middleware import limiter
from ridelink.config import Settings
from ridelink.domain.entities import CarDetails, RideRequest
from ridelink.domain.enums import UserRole
from ridelink.external.blob_storage import LocalBlobStorage
from ridelink.infrastructure.change_feed import LocalChangeFeed
from ridelink.infrastructure.database import Base, build_engine, build_session_factory
from ridelink.infrastructure.models import UserModel
from ridelink.infrastructure.repositories import user_to_entity
from ridelink.services.container import Services, build_services
from ridelink.services.context import SessionContext

ADMIN_EMAIL = "admin@ridelink.test"

# Pickup and driver positions in Lagos used across the bid tests.
PICKUP = "6.5244,3.3792"
DESTINATION = "Victoria Island"


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite://",
        change_feed_backend="local",
        admin_email=ADMIN_EMAIL,
        fare_oracle_url=None,
    )


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create tables in a fresh database file, yield the engine, then dispose."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'ridelink.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest.fixture
def feed() -> LocalChangeFeed:
    return LocalChangeFeed()


@pytest.fixture
def blob_storage(tmp_path) -> LocalBlobStorage:
    return LocalBlobStorage(str(tmp_path / "uploads"), "/uploads")


@pytest.fixture
def services(test_settings, session_factory, feed, blob_storage) -> Services:
    return build_services(test_settings, session_factory, feed, blob_storage)


# ── Users ─────────────────────────────────────────────────────────────


async def create_user(
    session_factory,
    user_id: str,
    role: UserRole,
    *,
    verified: bool = False,
    rating: Optional[tuple[float, int]] = None,
    email: Optional[str] = None,
) -> SessionContext:
    """Insert a profile directly and return a session context for it."""
    car = (
        CarDetails("Toyota", "Corolla", "Silver", f"LND-{user_id[-3:].upper()}")
        if role == UserRole.DRIVER
        else None
    )
    average, count = rating or (0.0, 0)
    async with session_factory() as session:
        row = UserModel(
            id=user_id,
            name=user_id.replace("-", " ").title(),
            email=email or f"{user_id}@example.com",
            avatar_url=f"https://picsum.photos/seed/{user_id}/100/100",
            role=role,
            is_verified=verified,
            car_details=car.to_dict() if car else None,
            rating_average=average,
            rating_count=count,
        )
        session.add(row)
        await session.commit()
        return SessionContext(user_to_entity(row))


@pytest_asyncio.fixture
async def passenger(session_factory) -> SessionContext:
    return await create_user(session_factory, "passenger-ada", UserRole.PASSENGER)


@pytest_asyncio.fixture
async def other_passenger(session_factory) -> SessionContext:
    return await create_user(session_factory, "passenger-bayo", UserRole.PASSENGER)


@pytest_asyncio.fixture
async def driver(session_factory) -> SessionContext:
    return await create_user(
        session_factory, "driver-chidi", UserRole.DRIVER, verified=True, rating=(4.0, 3)
    )


@pytest_asyncio.fixture
async def second_driver(session_factory) -> SessionContext:
    return await create_user(
        session_factory, "driver-dayo", UserRole.DRIVER, verified=True
    )


@pytest_asyncio.fixture
async def unverified_driver(session_factory) -> SessionContext:
    return await create_user(session_factory, "driver-emeka", UserRole.DRIVER)


@pytest_asyncio.fixture
async def admin(session_factory) -> SessionContext:
    return await create_user(
        session_factory, "admin-funke", UserRole.ADMIN, email=ADMIN_EMAIL
    )


# ── Ride helpers ──────────────────────────────────────────────────────


async def accepted_ride(
    services: Services,
    passenger: SessionContext,
    driver: SessionContext,
    amount: int = 3500,
) -> RideRequest:
    request = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
    bid = await services.bids.add_bid(driver, request.id, amount)
    return await services.ride_requests.accept_bid(passenger, request.id, bid.id)


async def completed_ride(
    services: Services,
    passenger: SessionContext,
    driver: SessionContext,
    amount: int = 3500,
) -> RideRequest:
    request = await accepted_ride(services, passenger, driver, amount)
    return await services.ride_requests.complete(driver, request.id)


# ── HTTP client ───────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(test_settings, session_factory, feed, blob_storage):
    """AsyncClient against the app, wired to the test database."""
    from ridelink.api.app import create_app

    limiter.reset()
    app = create_app(
        config=test_settings,
        session_factory=session_factory,
        change_feed=feed,
        blob_storage=blob_storage,
    )
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
