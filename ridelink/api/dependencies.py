"""FastAPI dependency injection helpers."""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from ridelink.domain.exceptions import UserNotFoundError
from ridelink.services.bids import BidService
from ridelink.services.container import Services
from ridelink.services.context import SessionContext
from ridelink.services.fares import FareService
from ridelink.services.messaging import MessageService
from ridelink.services.profiles import ProfileService
from ridelink.services.ratings import RatingService
from ridelink.services.ride_requests import RideRequestService
from ridelink.services.session import SessionManager


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_session_manager(services: Services = Depends(get_services)) -> SessionManager:
    return services.sessions


def get_profile_service(services: Services = Depends(get_services)) -> ProfileService:
    return services.profiles


def get_fare_service(services: Services = Depends(get_services)) -> FareService:
    return services.fares


def get_ride_service(services: Services = Depends(get_services)) -> RideRequestService:
    return services.ride_requests


def get_bid_service(services: Services = Depends(get_services)) -> BidService:
    return services.bids


def get_rating_service(services: Services = Depends(get_services)) -> RatingService:
    return services.ratings


def get_message_service(services: Services = Depends(get_services)) -> MessageService:
    return services.messages


async def get_session_context(
    x_user_id: Optional[str] = Header(None),
    sessions: SessionManager = Depends(get_session_manager),
) -> SessionContext:
    """
    Resolve the caller from the ``X-User-Id`` header set by the gateway.

    The profile is re-read on every call so role and verification
    changes take effect immediately.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        return await sessions.resume(x_user_id)
    except UserNotFoundError:
        raise HTTPException(status_code=401, detail="Unknown user; sign in first")
