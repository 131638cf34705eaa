"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 1 admin, 5 passengers and 4 drivers (3 verified)
  - the fare policy row
  - 5 ride requests: 2 PENDING with bids, 1 ACCEPTED with a chat,
    2 COMPLETED (one rated, one still waiting for a rating)
"""

import asyncio

from ridelink.config import settings
from ridelink.domain.entities import CarDetails, DriverRating
from ridelink.domain.enums import RequestStatus, UserRole
from ridelink.infrastructure.database import async_session_factory, engine
from ridelink.infrastructure.models import (
    BidModel,
    FareConfigModel,
    MessageModel,
    RatingModel,
    RideRequestModel,
    UserModel,
)
from ridelink.infrastructure.repositories import (
    FARE_CONFIG_ID,
    bid_to_entity,
    user_to_entity,
)
from ridelink.services.profiles import default_avatar_url

# Lagos landmarks (lat, lon)
PLACES = {
    "airport": "6.5774,3.3212",
    "ikeja": "6.6018,3.3515",
    "victoria_island": "6.4281,3.4219",
    "lekki": "6.4698,3.5852",
    "yaba": "6.5095,3.3711",
    "surulere": "6.5000,3.3500",
}

PASSENGERS = [
    {"id": "p-adaeze", "name": "Adaeze Okafor", "email": "adaeze@example.com"},
    {"id": "p-tunde", "name": "Tunde Bakare", "email": "tunde@example.com"},
    {"id": "p-ngozi", "name": "Ngozi Eze", "email": "ngozi@example.com"},
    {"id": "p-femi", "name": "Femi Adeyemi", "email": "femi@example.com"},
    {"id": "p-zainab", "name": "Zainab Bello", "email": "zainab@example.com"},
]

DRIVERS = [
    {
        "id": "d-chinedu", "name": "Chinedu Obi", "email": "chinedu@example.com",
        "car": CarDetails("Toyota", "Corolla", "Silver", "LND-123AA"),
        "verified": True, "location": (6.5800, 3.3300),
    },
    {
        "id": "d-kemi", "name": "Kemi Lawal", "email": "kemi@example.com",
        "car": CarDetails("Honda", "Accord", "Black", "KJA-456BB"),
        "verified": True, "location": (6.6000, 3.3400),
    },
    {
        "id": "d-ibrahim", "name": "Ibrahim Musa", "email": "ibrahim@example.com",
        "car": CarDetails("Kia", "Rio", "Blue", "EKY-789CC"),
        "verified": True, "location": (6.5200, 3.3700),
    },
    {
        "id": "d-segun", "name": "Segun Alade", "email": "segun@example.com",
        "car": CarDetails("Hyundai", "Elantra", "White", "APP-321DD"),
        "verified": False, "location": None,
    },
]


def make_user(data: dict, role: UserRole) -> UserModel:
    return UserModel(
        id=data["id"],
        name=data["name"],
        email=data["email"],
        avatar_url=default_avatar_url(data["id"]),
        role=role,
        is_verified=data.get("verified", False),
        car_details=data["car"].to_dict() if data.get("car") else None,
        license_url=f"{settings.blob_base_url}/drivers/{data['id']}/license.jpg"
        if data.get("car")
        else None,
        is_available=True if role == UserRole.DRIVER else None,
    )


def snapshot(user: UserModel) -> dict:
    return user_to_entity(user).snapshot().to_dict()


async def seed():
    async with async_session_factory() as session:
        # ── Users ─────────────────────────────────────────────────────
        admin = UserModel(
            id="admin",
            name="Marketplace Admin",
            email=settings.admin_email,
            avatar_url=default_avatar_url("admin"),
            role=UserRole.ADMIN,
            is_verified=False,
        )
        passengers = [make_user(p, UserRole.PASSENGER) for p in PASSENGERS]
        drivers = [make_user(d, UserRole.DRIVER) for d in DRIVERS]
        session.add_all([admin, *passengers, *drivers])
        await session.flush()
        print(f"  Created {1 + len(passengers) + len(drivers)} users")

        # ── Fare policy ───────────────────────────────────────────────
        session.add(
            FareConfigModel(
                id=FARE_CONFIG_ID,
                base_fare=settings.base_fare,
                rate_per_km=settings.rate_per_km,
                rate_per_minute=settings.rate_per_minute,
            )
        )
        print("  Created fare policy")

        # ── Pending requests with bids ────────────────────────────────
        pending = [
            (passengers[0], PLACES["airport"], PLACES["victoria_island"]),
            (passengers[1], PLACES["ikeja"], PLACES["lekki"]),
        ]
        bid_count = 0
        for passenger, location, destination in pending:
            request = RideRequestModel(
                passenger_id=passenger.id,
                passenger=snapshot(passenger),
                location=location,
                destination=destination,
                status=RequestStatus.PENDING,
            )
            session.add(request)
            await session.flush()
            for offset, (driver, details) in enumerate(zip(drivers[:3], DRIVERS[:3])):
                lat, lng = details["location"]
                session.add(
                    BidModel(
                        request_id=request.id,
                        driver_id=driver.id,
                        driver=snapshot(driver),
                        amount=4000 + 500 * offset,
                        driver_lat=lat,
                        driver_lng=lng,
                    )
                )
                bid_count += 1
        await session.flush()

        # ── Matched rides ─────────────────────────────────────────────
        matched = [
            (passengers[2], drivers[0], PLACES["yaba"], PLACES["surulere"], RequestStatus.ACCEPTED),
            (passengers[3], drivers[1], PLACES["lekki"], PLACES["ikeja"], RequestStatus.COMPLETED),
            (passengers[4], drivers[2], PLACES["airport"], PLACES["yaba"], RequestStatus.COMPLETED),
        ]
        requests = []
        for passenger, driver, location, destination, status in matched:
            request = RideRequestModel(
                passenger_id=passenger.id,
                passenger=snapshot(passenger),
                location=location,
                destination=destination,
                status=RequestStatus.PENDING,
            )
            session.add(request)
            await session.flush()
            bid = BidModel(
                request_id=request.id,
                driver_id=driver.id,
                driver=snapshot(driver),
                amount=3500,
            )
            session.add(bid)
            await session.flush()
            request.status = status
            request.accepted_bid_id = bid.id
            request.accepted_bid = bid_to_entity(bid).to_dict()
            request.accepted_driver_id = driver.id
            requests.append(request)
            bid_count += 1
        await session.flush()
        print(f"  Created {len(pending) + len(matched)} ride requests and {bid_count} bids")

        # ── Chat on the accepted ride ─────────────────────────────────
        accepted = requests[0]
        for sender, text in (
            (matched[0][1].id, "On my way, about 5 minutes out."),
            (matched[0][0].id, "Great, I'm by the main gate."),
        ):
            session.add(MessageModel(request_id=accepted.id, sender_id=sender, text=text))

        # ── One rated ride ────────────────────────────────────────────
        rated, rated_driver = requests[1], matched[1][1]
        session.add(
            RatingModel(
                driver_id=rated_driver.id,
                ride_request_id=rated.id,
                passenger_id=rated.passenger_id,
                rating=5,
                review="Smooth ride, very polite.",
            )
        )
        aggregate = DriverRating(
            rated_driver.rating_average or 0.0, rated_driver.rating_count or 0
        ).add(5)
        rated_driver.rating_average = aggregate.average
        rated_driver.rating_count = aggregate.count
        await session.flush()
        print("  Created 2 messages and 1 rating")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
