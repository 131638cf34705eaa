"""
Server-Sent Events bridge for live subscriptions.

Each snapshot a ``Subscription`` yields is rendered through a pydantic
schema and sent as one ``snapshot`` event.  When the client disconnects
the subscription is cancelled, detaching it from the change feed.
"""

import json
import logging
from typing import Any, Callable, TypeVar

from sse_starlette.sse import EventSourceResponse

from ridelink.infrastructure.change_feed import Subscription

logger = logging.getLogger(__name__)

T = TypeVar("T")


def stream_subscription(
    subscription: Subscription[T], render: Callable[[T], Any]
) -> EventSourceResponse:
    async def events():
        try:
            async for snapshot in subscription:
                yield {"event": "snapshot", "data": json.dumps(render(snapshot))}
        finally:
            await subscription.unsubscribe()
            logger.debug("Stream on %s closed", subscription.channels)

    return EventSourceResponse(events())
