"""
Error taxonomy for the marketplace core.

Every lifecycle and ledger operation reports failures through one of these
classes; the API layer maps each to an HTTP status.
"""

from typing import Any, Optional


class RideLinkError(Exception):
    """Base exception for all marketplace errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(RideLinkError):
    """Malformed input: non-positive bid, blank field, rating out of range."""


class PermissionDeniedError(RideLinkError):
    """Actor lacks the role or verification the operation requires."""


class InvalidStateError(RideLinkError):
    """Operation attempted against a request or rating in the wrong state."""


class NotFoundError(RideLinkError):
    """Referenced entity does not exist at operation time."""


class ConflictError(RideLinkError):
    """Invariant violation on create, or a transaction that kept conflicting."""


class RequestNotFoundError(NotFoundError):
    def __init__(self, request_id: int):
        super().__init__(
            f"Ride request not found: {request_id}",
            code="REQUEST_NOT_FOUND",
            details={"request_id": request_id},
        )


class BidNotFoundError(NotFoundError):
    def __init__(self, request_id: int, bid_id: int):
        super().__init__(
            f"Bid {bid_id} not found on ride request {request_id}",
            code="BID_NOT_FOUND",
            details={"request_id": request_id, "bid_id": bid_id},
        )


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str):
        super().__init__(
            f"User not found: {user_id}",
            code="USER_NOT_FOUND",
            details={"user_id": user_id},
        )


class InvalidStateTransition(InvalidStateError):
    """Raised when a request status change violates the state machine."""

    def __init__(self, request_id, current, target):
        super().__init__(
            f"Cannot transition ride request from {current.value} to {target.value}",
            code="INVALID_STATE_TRANSITION",
            details={
                "request_id": request_id,
                "status": current.value,
                "target": target.value,
            },
        )
