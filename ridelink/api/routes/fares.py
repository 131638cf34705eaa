"""
Fare endpoints
==============

GET  /api/v1/fares/config    -- current fare policy
POST /api/v1/fares/estimate  -- route-based fare estimate (null when unavailable)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from ridelink.api.dependencies import get_fare_service, get_session_context
from ridelink.api.middleware import RATE_LIMIT, limiter
from ridelink.api.schemas import (
    FareConfigResponse,
    FareEstimateRequest,
    FareEstimateResponse,
)
from ridelink.services.context import SessionContext
from ridelink.services.fares import FareService

router = APIRouter(prefix="/fares", tags=["fares"])


@router.get("/config", response_model=FareConfigResponse, summary="Current fare policy")
@limiter.limit(RATE_LIMIT)
async def get_fare_config(
    request: Request,
    ctx: SessionContext = Depends(get_session_context),
    fares: FareService = Depends(get_fare_service),
):
    return FareConfigResponse.model_validate(await fares.get_config())


@router.post(
    "/estimate",
    response_model=Optional[FareEstimateResponse],
    summary="Estimate the fare between two places",
)
@limiter.limit(RATE_LIMIT)
async def estimate_fare(
    request: Request,
    body: FareEstimateRequest,
    ctx: SessionContext = Depends(get_session_context),
    fares: FareService = Depends(get_fare_service),
):
    estimate = await fares.estimate(body.origin, body.destination)
    return FareEstimateResponse.model_validate(estimate) if estimate else None
