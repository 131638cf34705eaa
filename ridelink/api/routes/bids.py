"""
Bid endpoints
=============

POST /api/v1/rides/{ride_id}/bids         -- submit a bid (verified driver)
GET  /api/v1/rides/{ride_id}/bids         -- bids, cheapest first (owner)
GET  /api/v1/rides/{ride_id}/bids/stream  -- live bid list
"""

from fastapi import APIRouter, Depends, Query, Request

from ridelink.api.dependencies import get_bid_service, get_session_context
from ridelink.api.middleware import RATE_LIMIT, limiter
from ridelink.api.schemas import BidCreateRequest, BidResponse, BidViewResponse
from ridelink.api.streaming import stream_subscription
from ridelink.domain.entities import Coordinates
from ridelink.services.bids import BidService, BidView
from ridelink.services.context import SessionContext

router = APIRouter(prefix="/rides/{ride_id}/bids", tags=["bids"])


def render_views(views: list[BidView]):
    return [BidViewResponse.model_validate(v).model_dump(mode="json") for v in views]


@router.post(
    "",
    status_code=201,
    response_model=BidResponse,
    summary="Submit a bid on a pending request",
)
@limiter.limit(RATE_LIMIT)
async def submit_bid(
    request: Request,
    ride_id: int,
    body: BidCreateRequest,
    ctx: SessionContext = Depends(get_session_context),
    bids: BidService = Depends(get_bid_service),
):
    location = (
        Coordinates(body.driver_location.latitude, body.driver_location.longitude)
        if body.driver_location
        else None
    )
    bid = await bids.add_bid(ctx, ride_id, body.amount, location)
    return BidResponse.model_validate(bid)


@router.get(
    "",
    response_model=list[BidViewResponse],
    summary="List bids on a request",
    description=(
        "Cheapest first, ties by submission order.  Once the request has "
        "left PENDING only the accepted bid is listed unless "
        "``include_inert`` is set."
    ),
)
@limiter.limit(RATE_LIMIT)
async def list_bids(
    request: Request,
    ride_id: int,
    include_inert: bool = Query(False),
    ctx: SessionContext = Depends(get_session_context),
    bids: BidService = Depends(get_bid_service),
):
    views = await bids.list_bids(ctx, ride_id, include_inert=include_inert)
    return [BidViewResponse.model_validate(v) for v in views]


@router.get("/stream", summary="Live bid list")
async def stream_bids(
    ride_id: int,
    ctx: SessionContext = Depends(get_session_context),
    bids: BidService = Depends(get_bid_service),
):
    return stream_subscription(bids.subscribe_bids(ctx, ride_id), render_views)
