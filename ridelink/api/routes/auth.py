"""
Session endpoints
=================

POST /api/v1/auth/sign-in   -- provision / load the profile for a gateway identity
POST /api/v1/auth/sign-out  -- close the caller's session and live streams
GET  /api/v1/auth/me        -- the caller's live profile
"""

from fastapi import APIRouter, Depends, Request, Response

from ridelink.api.dependencies import get_session_context, get_session_manager
from ridelink.api.middleware import RATE_LIMIT, limiter
from ridelink.api.schemas import SignInRequest, UserResponse
from ridelink.external.identity import Identity, TrustedGatewayIdentity
from ridelink.services.context import SessionContext
from ridelink.services.session import SessionManager

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/sign-in",
    response_model=UserResponse,
    summary="Sign in with a verified identity",
    description=(
        "Creates the profile on first sign-in with the requested role.  "
        "The ADMIN role is only granted to the configured admin email."
    ),
)
@limiter.limit(RATE_LIMIT)
async def sign_in(
    request: Request,
    body: SignInRequest,
    sessions: SessionManager = Depends(get_session_manager),
):
    provider = TrustedGatewayIdentity(
        Identity(
            external_id=body.external_id,
            display_name=body.display_name,
            email=body.email,
            photo_url=body.photo_url,
        )
    )
    ctx = await sessions.sign_in(provider, body.role)
    return UserResponse.model_validate(ctx.user)


@router.post("/sign-out", status_code=204, summary="Sign out")
@limiter.limit(RATE_LIMIT)
async def sign_out(
    request: Request,
    ctx: SessionContext = Depends(get_session_context),
    sessions: SessionManager = Depends(get_session_manager),
):
    await sessions.sign_out(ctx.user_id)
    return Response(status_code=204)


@router.get("/me", response_model=UserResponse, summary="Current profile")
@limiter.limit(RATE_LIMIT)
async def me(
    request: Request,
    ctx: SessionContext = Depends(get_session_context),
):
    return UserResponse.model_validate(ctx.user)
