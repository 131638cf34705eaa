"""Shared plumbing for the service layer."""

from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ridelink.infrastructure.change_feed import ChangeFeed
from ridelink.infrastructure.transactions import run_in_transaction

T = TypeVar("T")


class Service:
    """
    Base for services that own their transactions.

    Reads run in a short-lived session; writes go through
    ``run_in_transaction`` so conflicting writers are retried.  Change
    notifications are published only after the write committed.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        feed: ChangeFeed,
    ):
        self.session_factory = session_factory
        self.feed = feed

    async def _read(self, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async with self.session_factory() as session:
            return await work(session)

    async def _write(self, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        return await run_in_transaction(self.session_factory, work)

    async def _notify(self, *channels: str) -> None:
        await self.feed.publish(*channels)
