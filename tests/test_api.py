"""
Integration tests for the REST API endpoints.

Runs the full app over ``httpx.ASGITransport`` against the per-test SQLite
database.  Callers are identified by the ``X-User-Id`` header the gateway
would set.
"""

from __future__ import annotations

import base64

import pytest

from tests.conftest import ADMIN_EMAIL, DESTINATION, PICKUP

API = "/api/v1"


def as_user(ctx) -> dict:
    return {"X-User-Id": ctx.user_id}


async def create_ride(client, passenger) -> dict:
    response = await client.post(
        f"{API}/rides",
        json={"location": PICKUP, "destination": DESTINATION},
        headers=as_user(passenger),
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestHealthAndAuth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get(f"{API}/admin/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_error_body_is_documented(self, client):
        schema = (await client.get("/openapi.json")).json()
        responses = schema["paths"]["/api/v1/rides/{ride_id}"]["get"]["responses"]
        ref = responses["404"]["content"]["application/json"]["schema"]["$ref"]
        assert ref.endswith("/ErrorResponse")

    @pytest.mark.asyncio
    async def test_sign_in_provisions_profile(self, client):
        response = await client.post(
            f"{API}/auth/sign-in",
            json={"external_id": "gw-77", "display_name": "Kemi", "role": "DRIVER"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == "gw-77"
        assert body["role"] == "DRIVER"
        assert body["is_verified"] is False

        me = await client.get(f"{API}/auth/me", headers={"X-User-Id": "gw-77"})
        assert me.json()["name"] == "Kemi"

    @pytest.mark.asyncio
    async def test_admin_role_requires_configured_email(self, client):
        denied = await client.post(
            f"{API}/auth/sign-in", json={"external_id": "gw-1", "role": "ADMIN"}
        )
        assert denied.status_code == 403

        granted = await client.post(
            f"{API}/auth/sign-in", json={"external_id": "gw-2", "email": ADMIN_EMAIL}
        )
        assert granted.json()["role"] == "ADMIN"

    @pytest.mark.asyncio
    async def test_missing_header(self, client):
        response = await client.get(f"{API}/auth/me")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_user(self, client):
        response = await client.get(f"{API}/auth/me", headers={"X-User-Id": "ghost"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_sign_out(self, client, passenger):
        response = await client.post(f"{API}/auth/sign-out", headers=as_user(passenger))
        assert response.status_code == 204


class TestRideEndpoints:
    @pytest.mark.asyncio
    async def test_create_and_fetch(self, client, passenger):
        ride = await create_ride(client, passenger)
        assert ride["status"] == "PENDING"
        assert ride["passenger"]["id"] == passenger.user_id

        active = await client.get(f"{API}/rides/active", headers=as_user(passenger))
        assert active.json()["id"] == ride["id"]

        fetched = await client.get(f"{API}/rides/{ride['id']}", headers=as_user(passenger))
        assert fetched.json()["destination"] == DESTINATION

    @pytest.mark.asyncio
    async def test_second_active_request_conflicts(self, client, passenger):
        await create_ride(client, passenger)
        response = await client.post(
            f"{API}/rides",
            json={"location": PICKUP, "destination": "Lekki"},
            headers=as_user(passenger),
        )
        assert response.status_code == 409
        assert response.json()["error"] == "ACTIVE_REQUEST_EXISTS"

    @pytest.mark.asyncio
    async def test_blank_destination(self, client, passenger):
        response = await client.post(
            f"{API}/rides",
            json={"location": PICKUP, "destination": "  "},
            headers=as_user(passenger),
        )
        assert response.status_code == 422
        assert set(response.json()) == {"error", "message", "details"}

    @pytest.mark.asyncio
    async def test_drivers_cannot_request(self, client, driver):
        response = await client.post(
            f"{API}/rides",
            json={"location": PICKUP, "destination": DESTINATION},
            headers=as_user(driver),
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_cancel(self, client, passenger):
        ride = await create_ride(client, passenger)
        response = await client.post(
            f"{API}/rides/{ride['id']}/cancel", headers=as_user(passenger)
        )
        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"

        gone = await client.get(f"{API}/rides/{ride['id']}", headers=as_user(passenger))
        assert gone.status_code == 404

    @pytest.mark.asyncio
    async def test_unverified_driver_sees_nothing(self, client, passenger, unverified_driver):
        await create_ride(client, passenger)
        response = await client.get(
            f"{API}/rides/available", headers=as_user(unverified_driver)
        )
        assert response.status_code == 403


class TestMarketplaceFlow:
    @pytest.mark.asyncio
    async def test_bid_accept_complete_rate(
        self, client, passenger, admin, driver, unverified_driver
    ):
        verified = await client.patch(
            f"{API}/admin/users/{unverified_driver.user_id}/verification",
            json={"verified": True},
            headers=as_user(admin),
        )
        assert verified.json()["is_verified"] is True

        ride = await create_ride(client, passenger)
        bids_url = f"{API}/rides/{ride['id']}/bids"

        available = await client.get(f"{API}/rides/available", headers=as_user(driver))
        assert [r["id"] for r in available.json()] == [ride["id"]]

        for bidder, amount in ((driver, 4000), (unverified_driver, 3500)):
            response = await client.post(
                bids_url,
                json={
                    "amount": amount,
                    "driver_location": {"latitude": 6.6018, "longitude": 3.3515},
                },
                headers=as_user(bidder),
            )
            assert response.status_code == 201, response.text

        listed = (await client.get(bids_url, headers=as_user(passenger))).json()
        assert [v["bid"]["amount"] for v in listed] == [3500, 4000]
        assert listed[0]["distance_km"] == pytest.approx(9.1, abs=0.2)
        assert listed[0]["eta_minutes"] > 0

        cheapest = listed[0]["bid"]["id"]
        accepted = await client.post(
            f"{API}/rides/{ride['id']}/accept",
            json={"bid_id": cheapest},
            headers=as_user(passenger),
        )
        assert accepted.status_code == 200
        assert accepted.json()["accepted_bid"]["driver"]["id"] == unverified_driver.user_id

        late = await client.post(
            bids_url, json={"amount": 1000}, headers=as_user(driver)
        )
        assert late.status_code == 409

        message = await client.post(
            f"{API}/rides/{ride['id']}/messages",
            json={"text": "Outside now"},
            headers=as_user(unverified_driver),
        )
        assert message.status_code == 201
        outsider = await client.post(
            f"{API}/rides/{ride['id']}/messages",
            json={"text": "Still free?"},
            headers=as_user(driver),
        )
        assert outsider.status_code == 403

        completed = await client.post(
            f"{API}/rides/{ride['id']}/complete", headers=as_user(unverified_driver)
        )
        assert completed.json()["status"] == "COMPLETED"

        prompt = await client.get(f"{API}/ratings/pending", headers=as_user(passenger))
        assert prompt.json()["request"]["id"] == ride["id"]

        rating = await client.post(
            f"{API}/ratings",
            json={
                "driver_id": unverified_driver.user_id,
                "ride_request_id": ride["id"],
                "rating": 5,
                "review": "Great",
            },
            headers=as_user(passenger),
        )
        assert rating.status_code == 201

        again = await client.post(
            f"{API}/ratings",
            json={
                "driver_id": unverified_driver.user_id,
                "ride_request_id": ride["id"],
                "rating": 4,
            },
            headers=as_user(passenger),
        )
        assert again.status_code == 409

        profile = await client.get(
            f"{API}/users/{unverified_driver.user_id}", headers=as_user(passenger)
        )
        assert profile.json()["rating"] == {"average": 5.0, "count": 1}

    @pytest.mark.asyncio
    async def test_non_positive_bid(self, client, passenger, driver):
        ride = await create_ride(client, passenger)
        response = await client.post(
            f"{API}/rides/{ride['id']}/bids", json={"amount": 0}, headers=as_user(driver)
        )
        assert response.status_code == 422


class TestProfileEndpoints:
    @pytest.mark.asyncio
    async def test_driver_documents(self, client, unverified_driver):
        response = await client.put(
            f"{API}/profile/driver",
            json={
                "car_details": {
                    "make": "Honda",
                    "model": "Accord",
                    "color": "Black",
                    "license_plate": "KJA-101AA",
                },
                "license_image": "data:image/jpeg;base64,"
                + base64.b64encode(b"license").decode(),
            },
            headers=as_user(unverified_driver),
        )
        assert response.status_code == 200, response.text
        assert response.json()["license_url"].endswith("/license.jpg")

    @pytest.mark.asyncio
    async def test_bad_image_encoding(self, client, unverified_driver):
        response = await client.put(
            f"{API}/profile/driver",
            json={
                "car_details": {
                    "make": "Honda",
                    "model": "Accord",
                    "color": "Black",
                    "license_plate": "KJA-101AA",
                },
                "license_image": "not base64!",
            },
            headers=as_user(unverified_driver),
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_availability(self, client, driver):
        response = await client.put(
            f"{API}/profile/availability",
            json={"available": False},
            headers=as_user(driver),
        )
        assert response.json()["is_available"] is False


class TestAdminEndpoints:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/admin/users"),
            ("GET", "/admin/rides/recent"),
            ("PATCH", "/admin/fare-config"),
        ],
    )
    async def test_admin_only(self, client, passenger, method, path):
        response = await client.request(
            method, f"{API}{path}", json={}, headers=as_user(passenger)
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_fare_config_update(self, client, admin, passenger):
        response = await client.patch(
            f"{API}/admin/fare-config",
            json={"rate_per_km": 150},
            headers=as_user(admin),
        )
        assert response.json() == {
            "base_fare": 500.0,
            "rate_per_km": 150.0,
            "rate_per_minute": 20.0,
        }
        current = await client.get(f"{API}/fares/config", headers=as_user(passenger))
        assert current.json()["rate_per_km"] == 150.0

    @pytest.mark.asyncio
    async def test_recent_rides(self, client, admin, passenger, other_passenger):
        first = await create_ride(client, passenger)
        second = await create_ride(client, other_passenger)
        response = await client.get(
            f"{API}/admin/rides/recent", params={"limit": 1}, headers=as_user(admin)
        )
        assert [r["id"] for r in response.json()] == [second["id"]]
        assert first["id"] != second["id"]

    @pytest.mark.asyncio
    async def test_fare_estimate_without_oracle(self, client, passenger):
        response = await client.post(
            f"{API}/fares/estimate",
            json={"origin": "Ikeja", "destination": "Lekki"},
            headers=as_user(passenger),
        )
        assert response.status_code == 200
        assert response.json() is None
