"""
Retrying unit of work.

``run_in_transaction`` opens a fresh session, runs ``work(session)`` inside
``session.begin()`` and commits.  When a versioned row was changed by
another writer between our read and our write, SQLAlchemy raises
``StaleDataError``; the whole unit is rolled back and re-run from the read,
so the retry observes the other writer's committed state.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from ridelink.config import settings
from ridelink.domain.exceptions import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_in_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    work: Callable[[AsyncSession], Awaitable[T]],
    *,
    max_attempts: Optional[int] = None,
    backoff_seconds: Optional[float] = None,
) -> T:
    attempts = max_attempts or settings.transaction_max_attempts
    backoff = (
        settings.transaction_retry_backoff_seconds
        if backoff_seconds is None
        else backoff_seconds
    )

    attempt = 0
    while True:
        attempt += 1
        try:
            async with session_factory() as session:
                async with session.begin():
                    return await work(session)
        except StaleDataError:
            if attempt >= attempts:
                logger.warning("Transaction still conflicting after %d attempts", attempt)
                raise ConflictError(
                    "The record was changed concurrently; please retry",
                    code="TRANSACTION_CONFLICT",
                    details={"attempts": attempt},
                )
            logger.info("Write conflict on attempt %d, retrying", attempt)
            await asyncio.sleep(backoff * attempt)
