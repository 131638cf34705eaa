"""
Rating endpoints
================

POST /api/v1/ratings                     -- rate the driver of a completed ride
GET  /api/v1/ratings/pending             -- the ride the passenger should rate next
GET  /api/v1/drivers/{driver_id}/ratings -- a driver's rating records
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from ridelink.api.dependencies import get_rating_service, get_session_context
from ridelink.api.middleware import RATE_LIMIT, limiter
from ridelink.api.schemas import RatingCreateRequest, RatingPromptResponse, RatingResponse
from ridelink.services.context import SessionContext
from ridelink.services.ratings import RatingService

router = APIRouter(tags=["ratings"])


@router.post(
    "/ratings",
    status_code=201,
    response_model=RatingResponse,
    summary="Rate a completed ride",
    responses={409: {"description": "The ride is not completed or already rated."}},
)
@limiter.limit(RATE_LIMIT)
async def submit_rating(
    request: Request,
    body: RatingCreateRequest,
    ctx: SessionContext = Depends(get_session_context),
    ratings: RatingService = Depends(get_rating_service),
):
    record = await ratings.submit_rating(
        ctx, body.driver_id, body.ride_request_id, body.rating, body.review
    )
    return RatingResponse.model_validate(record)


@router.get(
    "/ratings/pending",
    response_model=Optional[RatingPromptResponse],
    summary="Latest completed ride still waiting for a rating",
)
@limiter.limit(RATE_LIMIT)
async def pending_rating(
    request: Request,
    ctx: SessionContext = Depends(get_session_context),
    ratings: RatingService = Depends(get_rating_service),
):
    prompt = await ratings.pending_prompt(ctx)
    return RatingPromptResponse.model_validate(prompt) if prompt else None


@router.get(
    "/drivers/{driver_id}/ratings",
    response_model=list[RatingResponse],
    summary="Ratings received by a driver",
)
@limiter.limit(RATE_LIMIT)
async def driver_ratings(
    request: Request,
    driver_id: str,
    ctx: SessionContext = Depends(get_session_context),
    ratings: RatingService = Depends(get_rating_service),
):
    return [RatingResponse.model_validate(r) for r in await ratings.list_for_driver(driver_id)]
