"""Maps the marketplace error taxonomy onto HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ridelink.api.schemas import ErrorResponse
from ridelink.domain.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    RideLinkError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_CODES: list[tuple[type[RideLinkError], int]] = [
    (ValidationError, 422),
    (PermissionDeniedError, 403),
    (NotFoundError, 404),
    (InvalidStateError, 409),
    (ConflictError, 409),
]

# Error bodies documented on every router.
ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (403, 404, 409)
}


def status_for(exc: RideLinkError) -> int:
    for cls, status in STATUS_CODES:
        if isinstance(exc, cls):
            return status
    return 400


async def ridelink_error_handler(request: Request, exc: RideLinkError) -> JSONResponse:
    status = status_for(exc)
    logger.info(
        "%s %s -> %d %s", request.method, request.url.path, status, exc.code
    )
    return JSONResponse(status_code=status, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RideLinkError, ridelink_error_handler)
