"""
Messaging Channel: the chat log between a passenger and their matched
driver.  Open once the request is ACCEPTED and kept readable after
completion.  Messages are append-only and ordered by server timestamp.
"""

from __future__ import annotations

import logging

from .base import Service
from .context import SessionContext
from ridelink.domain.entities import Message
from ridelink.domain.enums import CHAT_STATUSES
from ridelink.domain.exceptions import (
    InvalidStateError,
    PermissionDeniedError,
    RequestNotFoundError,
    ValidationError,
)
from ridelink.infrastructure.change_feed import Subscription, messages_channel
from ridelink.infrastructure.models import MessageModel
from ridelink.infrastructure.repositories import (
    MessageRepository,
    RideRequestRepository,
    message_to_entity,
    request_to_entity,
)

logger = logging.getLogger(__name__)


class MessageService(Service):
    async def send(self, ctx: SessionContext, request_id: int, text: str) -> Message:
        if not (text or "").strip():
            raise ValidationError("Message text cannot be empty", code="EMPTY_MESSAGE")
        sender_id = ctx.user_id

        async def work(session) -> Message:
            row = await RideRequestRepository(session).get_by_id(request_id)
            if row is None:
                raise RequestNotFoundError(request_id)
            request = request_to_entity(row)
            if request.status not in CHAT_STATUSES:
                raise InvalidStateError(
                    "Chat opens once a bid has been accepted",
                    code="CHAT_NOT_OPEN",
                    details={"request_id": request_id, "status": request.status.value},
                )
            if sender_id not in (request.passenger_id, request.accepted_driver_id):
                raise PermissionDeniedError(
                    "Only the passenger and the matched driver can chat",
                    code="NOT_A_PARTICIPANT",
                    details={"request_id": request_id},
                )
            message = await MessageRepository(session).add(
                MessageModel(request_id=request_id, sender_id=sender_id, text=text)
            )
            return message_to_entity(message)

        message = await self._write(work)
        logger.debug("Message %s sent on request %s", message.id, request_id)
        await self._notify(messages_channel(request_id))
        return message

    async def list_messages(self, ctx: SessionContext, request_id: int) -> list[Message]:
        async def work(session) -> list[Message]:
            if await RideRequestRepository(session).get_by_id(request_id) is None:
                raise RequestNotFoundError(request_id)
            rows = await MessageRepository(session).get_for_request(request_id)
            return [message_to_entity(r) for r in rows]

        return await self._read(work)

    def subscribe_messages(
        self, ctx: SessionContext, request_id: int
    ) -> Subscription[list[Message]]:
        return ctx.track(
            self.feed.subscribe(
                [messages_channel(request_id)], lambda: self.list_messages(ctx, request_id)
            )
        )
