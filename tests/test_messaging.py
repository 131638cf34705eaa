"""Service tests for the per-ride chat channel."""

import pytest

from ridelink.domain.exceptions import (
    InvalidStateError,
    PermissionDeniedError,
    RequestNotFoundError,
    ValidationError,
)
from tests.conftest import DESTINATION, PICKUP, accepted_ride, completed_ride


@pytest.mark.asyncio
async def test_conversation_is_ordered(services, passenger, driver):
    ride = await accepted_ride(services, passenger, driver)
    await services.messages.send(driver, ride.id, "On my way")
    await services.messages.send(passenger, ride.id, "I'm at the gate")
    await services.messages.send(driver, ride.id, "Two minutes")

    messages = await services.messages.list_messages(passenger, ride.id)
    assert [(m.sender_id, m.text) for m in messages] == [
        (driver.user_id, "On my way"),
        (passenger.user_id, "I'm at the gate"),
        (driver.user_id, "Two minutes"),
    ]
    assert all(m.timestamp is not None for m in messages)


@pytest.mark.asyncio
async def test_chat_stays_open_after_completion(services, passenger, driver):
    ride = await completed_ride(services, passenger, driver)
    message = await services.messages.send(passenger, ride.id, "Left my umbrella?")
    assert message.request_id == ride.id


@pytest.mark.asyncio
async def test_pending_request_has_no_chat(services, passenger):
    request = await services.ride_requests.create(passenger, PICKUP, DESTINATION)
    with pytest.raises(InvalidStateError):
        await services.messages.send(passenger, request.id, "hello?")


@pytest.mark.asyncio
async def test_outsiders_cannot_post(services, passenger, driver, second_driver):
    ride = await accepted_ride(services, passenger, driver)
    with pytest.raises(PermissionDeniedError):
        await services.messages.send(second_driver, ride.id, "I can do it cheaper")


@pytest.mark.asyncio
async def test_empty_text(services, passenger, driver):
    ride = await accepted_ride(services, passenger, driver)
    with pytest.raises(ValidationError):
        await services.messages.send(passenger, ride.id, "   ")


@pytest.mark.asyncio
async def test_missing_request(services, passenger):
    with pytest.raises(RequestNotFoundError):
        await services.messages.send(passenger, 404, "hello")
