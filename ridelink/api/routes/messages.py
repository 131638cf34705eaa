"""
Chat endpoints
==============

POST /api/v1/rides/{ride_id}/messages         -- send (passenger or matched driver)
GET  /api/v1/rides/{ride_id}/messages         -- conversation, oldest first
GET  /api/v1/rides/{ride_id}/messages/stream  -- live conversation
"""

from fastapi import APIRouter, Depends, Request

from ridelink.api.dependencies import get_message_service, get_session_context
from ridelink.api.middleware import RATE_LIMIT, limiter
from ridelink.api.schemas import MessageCreateRequest, MessageResponse
from ridelink.api.streaming import stream_subscription
from ridelink.services.context import SessionContext
from ridelink.services.messaging import MessageService

router = APIRouter(prefix="/rides/{ride_id}/messages", tags=["messages"])


@router.post("", status_code=201, response_model=MessageResponse, summary="Send a message")
@limiter.limit(RATE_LIMIT)
async def send_message(
    request: Request,
    ride_id: int,
    body: MessageCreateRequest,
    ctx: SessionContext = Depends(get_session_context),
    messages: MessageService = Depends(get_message_service),
):
    return MessageResponse.model_validate(await messages.send(ctx, ride_id, body.text))


@router.get("", response_model=list[MessageResponse], summary="List messages")
@limiter.limit(RATE_LIMIT)
async def list_messages(
    request: Request,
    ride_id: int,
    ctx: SessionContext = Depends(get_session_context),
    messages: MessageService = Depends(get_message_service),
):
    return [
        MessageResponse.model_validate(m)
        for m in await messages.list_messages(ctx, ride_id)
    ]


@router.get("/stream", summary="Live conversation")
async def stream_messages(
    ride_id: int,
    ctx: SessionContext = Depends(get_session_context),
    messages: MessageService = Depends(get_message_service),
):
    return stream_subscription(
        messages.subscribe_messages(ctx, ride_id),
        lambda items: [
            MessageResponse.model_validate(m).model_dump(mode="json") for m in items
        ],
    )
