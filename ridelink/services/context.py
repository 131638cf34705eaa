"""
Explicit per-user session context.

Replaces ambient "current user" state: every lifecycle operation receives
the context of the actor performing it.  The context also owns the live
subscriptions opened on the user's behalf, so signing out tears them all
down.
"""

from __future__ import annotations

import logging

from ridelink.domain.entities import User
from ridelink.domain.enums import UserRole
from ridelink.domain.exceptions import InvalidStateError, PermissionDeniedError
from ridelink.infrastructure.change_feed import Subscription

logger = logging.getLogger(__name__)


class SessionContext:
    def __init__(self, user: User):
        self.user = user
        self.closed = False
        self._subscriptions: list[Subscription] = []

    @property
    def user_id(self) -> str:
        return self.user.id

    def require_role(self, *roles: UserRole) -> None:
        if self.user.role not in roles:
            allowed = ", ".join(r.value for r in roles)
            raise PermissionDeniedError(
                f"This action requires one of the roles: {allowed}",
                code="ROLE_REQUIRED",
                details={"role": self.user.role.value, "allowed": [r.value for r in roles]},
            )

    def require_admin(self) -> None:
        self.require_role(UserRole.ADMIN)

    def require_verified_driver(self) -> None:
        self.require_role(UserRole.DRIVER)
        if not self.user.is_verified:
            raise PermissionDeniedError(
                "Your driver profile has not been verified yet",
                code="DRIVER_NOT_VERIFIED",
                details={"user_id": self.user.id},
            )

    def track(self, subscription: Subscription) -> Subscription:
        """Register *subscription* so it is cancelled when the session closes."""
        if self.closed:
            raise InvalidStateError(
                "Session has been signed out", code="SESSION_CLOSED"
            )
        self._subscriptions = [s for s in self._subscriptions if not s.cancelled]
        self._subscriptions.append(subscription)
        return subscription

    @property
    def subscription_count(self) -> int:
        return sum(1 for s in self._subscriptions if not s.cancelled)

    async def close(self) -> None:
        self.closed = True
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            await subscription.unsubscribe()
        logger.debug("Closed session for %s (%d subscriptions)", self.user.id, len(subscriptions))
