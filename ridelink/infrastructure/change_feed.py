"""
Change feed and live subscriptions.

Writers publish a notification on one or more *channels* after their
transaction commits.  Readers hold a ``Subscription``: an async-iterable
stream that yields a fresh snapshot of its query immediately and again
after every notification on the channels it watches.  Snapshots are
re-read from the store, so each one reflects server-assigned ordering.

Backends
--------
* ``RedisChangeFeed``  -- Redis pub/sub; works across API processes.
* ``LocalChangeFeed``  -- in-process fan-out for single-process runs and
  tests.

Publishing is best-effort: a failed notification is logged and never
changes the outcome of the write that triggered it.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Awaitable, Callable, Generic, Optional, TypeVar

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()

# ── Channel names ─────────────────────────────────────────────────────

PENDING_REQUESTS_CHANNEL = "ride-requests:pending"
ALL_REQUESTS_CHANNEL = "ride-requests"
USERS_CHANNEL = "users"
FARE_CONFIG_CHANNEL = "fare-config"


def request_channel(request_id: int) -> str:
    return f"ride-request:{request_id}"


def bids_channel(request_id: int) -> str:
    return f"ride-request:{request_id}:bids"


def messages_channel(request_id: int) -> str:
    return f"ride-request:{request_id}:messages"


def passenger_channel(passenger_id: str) -> str:
    return f"passenger:{passenger_id}"


def driver_channel(driver_id: str) -> str:
    return f"driver:{driver_id}"


def user_channel(user_id: str) -> str:
    return f"user:{user_id}"


# ── Listener ──────────────────────────────────────────────────────────


class Listener:
    """Queue of change notifications for a set of channels."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def notify(self, channel: str) -> None:
        if not self.closed:
            self._queue.put_nowait(channel)

    def __aiter__(self) -> Listener:
        return self

    async def __anext__(self) -> str:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        # Coalesce a burst of notifications into one re-read.
        while not self._queue.empty():
            extra = self._queue.get_nowait()
            if extra is _CLOSED:
                self._queue.put_nowait(_CLOSED)
                break
        return item

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(_CLOSED)


class ChangeFeed(ABC):
    @abstractmethod
    async def publish(self, *channels: str) -> None: ...

    @abstractmethod
    async def listen(self, *channels: str) -> Listener: ...

    async def close(self) -> None:
        return None

    def subscribe(
        self, channels: list[str], fetch: Callable[[], Awaitable[T]]
    ) -> Subscription[T]:
        return Subscription(self, channels, fetch)


class LocalChangeFeed(ChangeFeed):
    """Fan-out inside one event loop."""

    def __init__(self) -> None:
        self._listeners: dict[str, set[Listener]] = {}

    async def publish(self, *channels: str) -> None:
        for channel in channels:
            for listener in list(self._listeners.get(channel, ())):
                listener.notify(channel)

    async def listen(self, *channels: str) -> Listener:
        listener = _LocalListener(self, channels)
        for channel in channels:
            self._listeners.setdefault(channel, set()).add(listener)
        return listener

    def _detach(self, listener: Listener, channels: tuple[str, ...]) -> None:
        for channel in channels:
            watchers = self._listeners.get(channel)
            if watchers is None:
                continue
            watchers.discard(listener)
            if not watchers:
                del self._listeners[channel]

    def listener_count(self, channel: str) -> int:
        return len(self._listeners.get(channel, ()))


class _LocalListener(Listener):
    def __init__(self, feed: LocalChangeFeed, channels: tuple[str, ...]):
        super().__init__()
        self._feed = feed
        self._channels = channels

    async def close(self) -> None:
        self._feed._detach(self, self._channels)
        await super().close()


class RedisChangeFeed(ChangeFeed):
    """Redis pub/sub backend; channel names are namespaced by *prefix*."""

    def __init__(self, client: aioredis.Redis, prefix: str = "ridelink:"):
        self.redis = client
        self.prefix = prefix

    async def publish(self, *channels: str) -> None:
        for channel in channels:
            try:
                await self.redis.publish(f"{self.prefix}{channel}", "changed")
            except RedisError:
                logger.warning("Could not publish change on %s", channel, exc_info=True)

    async def listen(self, *channels: str) -> Listener:
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(*(f"{self.prefix}{c}" for c in channels))
        return _RedisListener(pubsub, self.prefix)

    async def close(self) -> None:
        await self.redis.aclose()


class _RedisListener(Listener):
    def __init__(self, pubsub, prefix: str):
        super().__init__()
        self._pubsub = pubsub
        self._prefix = prefix
        self._pump = asyncio.create_task(self._run())

    async def _run(self) -> None:
        try:
            async for message in self._pubsub.listen():
                if message.get("type") != "message":
                    continue
                self.notify(str(message["channel"]).removeprefix(self._prefix))
        except RedisError:
            logger.warning("Change feed connection lost", exc_info=True)
            await super().close()

    async def close(self) -> None:
        if self.closed:
            return
        self._pump.cancel()
        try:
            await self._pump
        except asyncio.CancelledError:
            pass
        try:
            await self._pubsub.unsubscribe()
            await self._pubsub.aclose()
        except RedisError:
            logger.warning("Error while closing change feed subscription", exc_info=True)
        await super().close()


# ── Subscription ──────────────────────────────────────────────────────


class Subscription(Generic[T]):
    """
    Cancellable live view over a query.

    Iterating yields the current snapshot, then a new snapshot after each
    change, until ``unsubscribe()`` is called.  Starting a new iteration
    after the previous one ended re-attaches to the feed, so a consumer
    can resubscribe with the same object unless it was unsubscribed.
    """

    def __init__(
        self,
        feed: ChangeFeed,
        channels: list[str],
        fetch: Callable[[], Awaitable[T]],
    ):
        self._feed = feed
        self._channels = channels
        self._fetch = fetch
        self._listener: Optional[Listener] = None
        self.cancelled = False

    @property
    def channels(self) -> list[str]:
        return list(self._channels)

    def __aiter__(self) -> AsyncIterator[T]:
        return self._snapshots()

    async def _snapshots(self) -> AsyncIterator[T]:
        if self.cancelled:
            return
        # Attach before the first read so no change between them is lost.
        listener = await self._feed.listen(*self._channels)
        self._listener = listener
        try:
            yield await self._fetch()
            async for _ in listener:
                if self.cancelled:
                    break
                yield await self._fetch()
        finally:
            await listener.close()
            if self._listener is listener:
                self._listener = None

    async def unsubscribe(self) -> None:
        self.cancelled = True
        if self._listener is not None:
            await self._listener.close()
