"""Service tests for the ride request lifecycle."""

import pytest

from ridelink.domain.enums import RequestStatus
from ridelink.domain.exceptions import (
    BidNotFoundError,
    ConflictError,
    InvalidStateError,
    PermissionDeniedError,
    RequestNotFoundError,
    ValidationError,
)
from tests.conftest import DESTINATION, PICKUP, accepted_ride, completed_ride


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_snapshots_passenger(self, services, passenger):
        request = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        assert request.id is not None
        assert request.status == RequestStatus.PENDING
        assert request.passenger.id == passenger.user_id
        assert request.passenger.name == passenger.user.name
        assert request.timestamp is not None
        assert request.accepted_bid is None

    @pytest.mark.asyncio
    async def test_blank_fields_are_rejected(self, services, passenger):
        with pytest.raises(ValidationError) as excinfo:
            await services.ride_requests.create(passenger, "  ", DESTINATION)
        assert excinfo.value.details == {"missing": ["location"]}

    @pytest.mark.asyncio
    async def test_only_passengers_create(self, services, driver):
        with pytest.raises(PermissionDeniedError):
            await services.ride_requests.create(driver, PICKUP, DESTINATION)

    @pytest.mark.asyncio
    async def test_second_active_request_is_rejected(self, services, passenger):
        first = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        with pytest.raises(ConflictError) as excinfo:
            await services.ride_requests.create(passenger, "Yaba", "Lekki")
        assert excinfo.value.details["request_id"] == first.id

    @pytest.mark.asyncio
    async def test_accepted_request_also_blocks_create(self, services, passenger, driver):
        await accepted_ride(services, passenger, driver)
        with pytest.raises(ConflictError):
            await services.ride_requests.create(passenger, PICKUP, DESTINATION)

    @pytest.mark.asyncio
    async def test_completed_request_frees_the_passenger(self, services, passenger, driver):
        await completed_ride(services, passenger, driver)
        request = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        assert request.status == RequestStatus.PENDING


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_removes_request(self, services, passenger):
        request = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        cancelled = await services.ride_requests.cancel(passenger, request.id)
        assert cancelled.status == RequestStatus.CANCELLED
        assert await services.ride_requests.find(passenger, request.id) is None
        assert await services.ride_requests.active_for_passenger(passenger) is None

    @pytest.mark.asyncio
    async def test_cancel_twice_is_not_found(self, services, passenger):
        request = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        await services.ride_requests.cancel(passenger, request.id)
        with pytest.raises(RequestNotFoundError):
            await services.ride_requests.cancel(passenger, request.id)

    @pytest.mark.asyncio
    async def test_cannot_cancel_accepted(self, services, passenger, driver):
        request = await accepted_ride(services, passenger, driver)
        with pytest.raises(InvalidStateError):
            await services.ride_requests.cancel(passenger, request.id)

    @pytest.mark.asyncio
    async def test_only_owner_cancels(self, services, passenger, other_passenger):
        request = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        with pytest.raises(PermissionDeniedError):
            await services.ride_requests.cancel(other_passenger, request.id)

    @pytest.mark.asyncio
    async def test_admin_can_cancel(self, services, passenger, admin):
        request = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        cancelled = await services.ride_requests.cancel(admin, request.id)
        assert cancelled.status == RequestStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_bids_of_cancelled_request_are_gone(self, services, passenger, driver):
        request = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        await services.bids.add_bid(driver, request.id, 3000)
        await services.ride_requests.cancel(passenger, request.id)
        with pytest.raises(RequestNotFoundError):
            await services.bids.list_bids(passenger, request.id)

    @pytest.mark.asyncio
    async def test_next_request_starts_without_bids(
        self, services, passenger, other_passenger, driver
    ):
        request = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        stale = await services.bids.add_bid(driver, request.id, 999)
        await services.ride_requests.cancel(passenger, request.id)

        fresh = await services.ride_requests.create(other_passenger, PICKUP, DESTINATION)
        assert fresh.id != request.id
        assert await services.bids.list_bids(other_passenger, fresh.id) == []
        with pytest.raises(BidNotFoundError):
            await services.ride_requests.accept_bid(other_passenger, fresh.id, stale.id)


class TestAcceptBid:
    @pytest.mark.asyncio
    async def test_accept_freezes_bid_on_request(self, services, passenger, driver):
        request = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        bid = await services.bids.add_bid(driver, request.id, 4200)

        accepted = await services.ride_requests.accept_bid(passenger, request.id, bid.id)

        assert accepted.status == RequestStatus.ACCEPTED
        assert accepted.accepted_bid_id == bid.id
        assert accepted.accepted_bid.id == bid.id
        assert accepted.accepted_bid.amount == 4200
        assert accepted.accepted_driver_id == driver.user_id

        stored = await services.ride_requests.get(passenger, request.id)
        assert stored.status == RequestStatus.ACCEPTED
        assert stored.accepted_bid == accepted.accepted_bid

    @pytest.mark.asyncio
    async def test_accept_twice_fails(self, services, passenger, driver, second_driver):
        request = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        first = await services.bids.add_bid(driver, request.id, 3000)
        second = await services.bids.add_bid(second_driver, request.id, 2800)
        await services.ride_requests.accept_bid(passenger, request.id, first.id)

        with pytest.raises(InvalidStateError):
            await services.ride_requests.accept_bid(passenger, request.id, second.id)

        stored = await services.ride_requests.get(passenger, request.id)
        assert stored.accepted_bid_id == first.id

    @pytest.mark.asyncio
    async def test_unknown_bid(self, services, passenger):
        request = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        with pytest.raises(BidNotFoundError):
            await services.ride_requests.accept_bid(passenger, request.id, 999)

    @pytest.mark.asyncio
    async def test_bid_from_another_request(self, services, passenger, other_passenger, driver):
        mine = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        theirs = await services.ride_requests.create(other_passenger, PICKUP, "Lekki")
        foreign = await services.bids.add_bid(driver, theirs.id, 3000)
        with pytest.raises(BidNotFoundError):
            await services.ride_requests.accept_bid(passenger, mine.id, foreign.id)

    @pytest.mark.asyncio
    async def test_only_owner_accepts(self, services, passenger, other_passenger, driver):
        request = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        bid = await services.bids.add_bid(driver, request.id, 3000)
        with pytest.raises(PermissionDeniedError):
            await services.ride_requests.accept_bid(other_passenger, request.id, bid.id)


class TestComplete:
    @pytest.mark.asyncio
    async def test_driver_completes(self, services, passenger, driver):
        request = await accepted_ride(services, passenger, driver)
        completed = await services.ride_requests.complete(driver, request.id)
        assert completed.status == RequestStatus.COMPLETED
        assert completed.accepted_bid_id == request.accepted_bid_id

    @pytest.mark.asyncio
    async def test_other_driver_cannot_complete(self, services, passenger, driver, second_driver):
        request = await accepted_ride(services, passenger, driver)
        with pytest.raises(PermissionDeniedError):
            await services.ride_requests.complete(second_driver, request.id)

    @pytest.mark.asyncio
    async def test_pending_cannot_complete(self, services, passenger, admin):
        request = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        with pytest.raises(InvalidStateError):
            await services.ride_requests.complete(admin, request.id)

    @pytest.mark.asyncio
    async def test_pending_cannot_complete_for_bidder(self, services, passenger, driver):
        request = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        await services.bids.add_bid(driver, request.id, 3000)
        with pytest.raises(InvalidStateError):
            await services.ride_requests.complete(driver, request.id)

    @pytest.mark.asyncio
    async def test_complete_twice(self, services, passenger, driver):
        request = await completed_ride(services, passenger, driver)
        with pytest.raises(InvalidStateError):
            await services.ride_requests.complete(driver, request.id)
        stored = await services.ride_requests.find(passenger, request.id)
        assert stored.status == RequestStatus.COMPLETED


class TestVisibility:
    @pytest.mark.asyncio
    async def test_available_lists_pending_oldest_first(
        self, services, passenger, other_passenger, driver
    ):
        first = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        second = await services.ride_requests.create(other_passenger, PICKUP, "Lekki")
        available = await services.ride_requests.available_for_driver(driver)
        assert [r.id for r in available] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_bidding_does_not_hide_request(self, services, passenger, driver):
        request = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        await services.bids.add_bid(driver, request.id, 3000)
        available = await services.ride_requests.available_for_driver(driver)
        assert [r.id for r in available] == [request.id]

    @pytest.mark.asyncio
    async def test_accepted_request_leaves_available(self, services, passenger, driver):
        request = await accepted_ride(services, passenger, driver)
        assert await services.ride_requests.available_for_driver(driver) == []
        current = await services.ride_requests.accepted_for_driver(driver)
        assert current.id == request.id

    @pytest.mark.asyncio
    async def test_unverified_driver_sees_nothing(self, services, unverified_driver):
        with pytest.raises(PermissionDeniedError):
            await services.ride_requests.available_for_driver(unverified_driver)

    @pytest.mark.asyncio
    async def test_other_passenger_cannot_view(self, services, passenger, other_passenger):
        request = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        assert await services.ride_requests.find(other_passenger, request.id) is None
        with pytest.raises(RequestNotFoundError):
            await services.ride_requests.get(other_passenger, request.id)

    @pytest.mark.asyncio
    async def test_history_newest_first(self, services, passenger, driver):
        done = await completed_ride(services, passenger, driver)
        current = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        history = await services.ride_requests.history_for_passenger(passenger)
        assert [r.id for r in history] == [current.id, done.id]

    @pytest.mark.asyncio
    async def test_recent_is_admin_only(self, services, passenger, admin):
        request = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
        assert [r.id for r in await services.ride_requests.recent(admin)] == [request.id]
        with pytest.raises(PermissionDeniedError):
            await services.ride_requests.recent(passenger)
