"""Service tests for the rating ledger."""

import pytest
from sqlalchemy import delete, func, select

from ridelink.domain.entities import DriverRating
from ridelink.domain.exceptions import (
    InvalidStateError,
    PermissionDeniedError,
    RequestNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from ridelink.infrastructure.models import RatingModel, UserModel
from tests.conftest import DESTINATION, PICKUP, accepted_ride, completed_ride


class TestRunningAverage:
    def test_fold_into_existing_average(self):
        assert DriverRating(4.0, 3).add(5) == DriverRating(4.25, 4)

    def test_first_rating(self):
        assert DriverRating(0.0, 0).add(3) == DriverRating(3.0, 1)


class TestSubmitRating:
    @pytest.mark.asyncio
    async def test_updates_driver_average(self, services, passenger, driver):
        ride = await completed_ride(services, passenger, driver)

        record = await services.ratings.submit_rating(
            passenger, driver.user_id, ride.id, 5, "  Very smooth  "
        )

        assert record.rating == 5
        assert record.review == "Very smooth"
        assert record.passenger_id == passenger.user_id
        profile = await services.profiles.get_profile(driver.user_id)
        assert profile.rating == DriverRating(4.25, 4)

    @pytest.mark.asyncio
    async def test_blank_review_is_dropped(self, services, passenger, driver):
        ride = await completed_ride(services, passenger, driver)
        record = await services.ratings.submit_rating(passenger, driver.user_id, ride.id, 4, " ")
        assert record.review is None

    @pytest.mark.asyncio
    async def test_second_submission_is_rejected(self, services, passenger, driver):
        ride = await completed_ride(services, passenger, driver)
        await services.ratings.submit_rating(passenger, driver.user_id, ride.id, 5)

        with pytest.raises(InvalidStateError) as excinfo:
            await services.ratings.submit_rating(passenger, driver.user_id, ride.id, 1)
        assert excinfo.value.code == "ALREADY_RATED"

        assert len(await services.ratings.list_for_driver(driver.user_id)) == 1
        profile = await services.profiles.get_profile(driver.user_id)
        assert profile.rating == DriverRating(4.25, 4)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("score", [0, 6, -1])
    async def test_score_out_of_range(self, services, passenger, driver, score):
        ride = await completed_ride(services, passenger, driver)
        with pytest.raises(ValidationError):
            await services.ratings.submit_rating(passenger, driver.user_id, ride.id, score)

    @pytest.mark.asyncio
    async def test_accepted_ride_cannot_be_rated(self, services, passenger, driver):
        ride = await accepted_ride(services, passenger, driver)
        with pytest.raises(InvalidStateError):
            await services.ratings.submit_rating(passenger, driver.user_id, ride.id, 5)

    @pytest.mark.asyncio
    async def test_only_the_rides_passenger(self, services, passenger, other_passenger, driver):
        ride = await completed_ride(services, passenger, driver)
        with pytest.raises(PermissionDeniedError):
            await services.ratings.submit_rating(other_passenger, driver.user_id, ride.id, 5)

    @pytest.mark.asyncio
    async def test_driver_must_match(self, services, passenger, driver, second_driver):
        ride = await completed_ride(services, passenger, driver)
        with pytest.raises(ValidationError):
            await services.ratings.submit_rating(passenger, second_driver.user_id, ride.id, 5)

    @pytest.mark.asyncio
    async def test_missing_ride(self, services, passenger, driver):
        with pytest.raises(RequestNotFoundError):
            await services.ratings.submit_rating(passenger, driver.user_id, 404, 5)

    @pytest.mark.asyncio
    async def test_vanished_driver_aborts(self, services, session_factory, passenger, driver):
        ride = await completed_ride(services, passenger, driver)
        async with session_factory() as session:
            async with session.begin():
                await session.execute(delete(UserModel).where(UserModel.id == driver.user_id))

        with pytest.raises(UserNotFoundError):
            await services.ratings.submit_rating(passenger, driver.user_id, ride.id, 5)

        async with session_factory() as session:
            count = await session.scalar(select(func.count()).select_from(RatingModel))
        assert count == 0
        assert await services.ratings.list_for_driver(driver.user_id) == []


class TestPendingPrompt:
    @pytest.mark.asyncio
    async def test_prompt_for_latest_completed_ride(self, services, passenger, driver):
        ride = await completed_ride(services, passenger, driver)
        prompt = await services.ratings.pending_prompt(passenger)
        assert prompt.request.id == ride.id
        assert prompt.driver.id == driver.user_id

    @pytest.mark.asyncio
    async def test_no_prompt_once_rated(self, services, passenger, driver):
        ride = await completed_ride(services, passenger, driver)
        await services.ratings.submit_rating(passenger, driver.user_id, ride.id, 4)
        assert await services.ratings.pending_prompt(passenger) is None

    @pytest.mark.asyncio
    async def test_no_prompt_without_completed_ride(self, services, passenger, driver):
        await accepted_ride(services, passenger, driver)
        assert await services.ratings.pending_prompt(passenger) is None

    @pytest.mark.asyncio
    async def test_only_latest_ride_is_considered(
        self, services, passenger, driver, second_driver
    ):
        await completed_ride(services, passenger, driver)
        latest = await completed_ride(services, passenger, second_driver)
        await services.ratings.submit_rating(passenger, second_driver.user_id, latest.id, 5)
        assert await services.ratings.pending_prompt(passenger) is None

    @pytest.mark.asyncio
    async def test_list_for_driver(self, services, passenger, other_passenger, driver):
        first = await completed_ride(services, passenger, driver)
        second = await completed_ride(services, other_passenger, driver)
        await services.ratings.submit_rating(passenger, driver.user_id, first.id, 5)
        await services.ratings.submit_rating(other_passenger, driver.user_id, second.id, 3)
        records = await services.ratings.list_for_driver(driver.user_id)
        assert sorted(r.rating for r in records) == [3, 5]
        profile = await services.profiles.get_profile(driver.user_id)
        assert profile.rating == DriverRating(4.0, 5)

    @pytest.mark.asyncio
    async def test_drivers_have_no_prompt(self, services, driver):
        with pytest.raises(PermissionDeniedError):
            await services.ratings.pending_prompt(driver)
