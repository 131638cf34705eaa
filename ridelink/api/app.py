"""
FastAPI application factory.

* Wires the services over the shared store and the change feed.
* Registers routes for sessions, profiles, rides, bids, chat, ratings,
  fares and admin.
* Closes open sessions and the change feed via lifespan events.
* Applies rate limiting and maps domain errors to HTTP statuses.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ridelink.api.errors import ERROR_RESPONSES, register_exception_handlers
from ridelink.api.middleware import limiter
from ridelink.api.routes import admin, auth, bids, fares, messages, profiles, ratings, rides
from ridelink.config import Settings, settings as default_settings
from ridelink.external.blob_storage import BlobStorage, LocalBlobStorage
from ridelink.external.fare_oracle import FareOracle, HttpFareOracle
from ridelink.infrastructure.change_feed import ChangeFeed, LocalChangeFeed, RedisChangeFeed
from ridelink.infrastructure.database import async_session_factory
from ridelink.infrastructure.redis_client import create_redis
from ridelink.services.container import build_services

logger = logging.getLogger(__name__)


def build_change_feed(config: Settings) -> ChangeFeed:
    if config.change_feed_backend == "local":
        return LocalChangeFeed()
    return RedisChangeFeed(create_redis(config.redis_url), prefix=config.change_feed_prefix)


def build_fare_oracle(config: Settings) -> Optional[FareOracle]:
    if not config.fare_oracle_url:
        logger.info("No fare oracle configured; fare estimates are disabled")
        return None
    return HttpFareOracle(
        config.fare_oracle_url,
        api_key=config.fare_oracle_api_key,
        timeout=config.fare_oracle_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Tear down open sessions and the change feed on shutdown."""
    yield
    await app.state.services.close()


def create_app(
    config: Optional[Settings] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    change_feed: Optional[ChangeFeed] = None,
    blob_storage: Optional[BlobStorage] = None,
    fare_oracle: Optional[FareOracle] = None,
) -> FastAPI:
    config = config or default_settings
    logging.basicConfig(level=config.log_level)

    app = FastAPI(
        title="RideLink Marketplace API",
        description=(
            "Passengers post ride requests, verified drivers bid on them, "
            "and the passenger accepts one bid.  Covers chat between the "
            "matched pair, post-ride ratings, and admin oversight."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.services = build_services(
        config,
        session_factory or async_session_factory,
        change_feed or build_change_feed(config),
        blob_storage or LocalBlobStorage(config.blob_storage_dir, config.blob_base_url),
        fare_oracle if fare_oracle is not None else build_fare_oracle(config),
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    register_exception_handlers(app)

    # Routers
    for module in (auth, profiles, rides, bids, messages, ratings, fares, admin):
        app.include_router(module.router, prefix="/api/v1", responses=ERROR_RESPONSES)

    return app
