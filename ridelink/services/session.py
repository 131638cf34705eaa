"""Sign-in / sign-out and the registry of open session contexts."""

from __future__ import annotations

import logging
from typing import Optional

from .context import SessionContext
from .profiles import ProfileService
from ridelink.domain.entities import User
from ridelink.domain.enums import UserRole
from ridelink.external.identity import IdentityProvider

logger = logging.getLogger(__name__)


class SessionManager:
    def __init__(self, profiles: ProfileService):
        self.profiles = profiles
        self._contexts: dict[str, SessionContext] = {}

    async def sign_in(
        self, provider: IdentityProvider, requested_role: UserRole = UserRole.PASSENGER
    ) -> SessionContext:
        identity = await provider.sign_in()
        user = await self.profiles.provision(identity, requested_role)
        ctx = self._attach(user)
        logger.info("%s signed in as %s", user.id, user.role.value)
        return ctx

    async def resume(self, user_id: str) -> SessionContext:
        """
        Context for an already-provisioned user, with a fresh profile.

        Raises ``UserNotFoundError`` when no profile exists.
        """
        user = await self.profiles.get_profile(user_id)
        return self._attach(user)

    def _attach(self, user: User) -> SessionContext:
        self._prune(keep=user.id)
        ctx = self._contexts.get(user.id)
        if ctx is None or ctx.closed:
            ctx = SessionContext(user)
            self._contexts[user.id] = ctx
        else:
            ctx.user = user
        return ctx

    def _prune(self, keep: str) -> None:
        """Forget contexts that hold no live subscriptions."""
        idle = [
            user_id
            for user_id, ctx in self._contexts.items()
            if user_id != keep and ctx.subscription_count == 0
        ]
        for user_id in idle:
            del self._contexts[user_id]

    def get(self, user_id: str) -> Optional[SessionContext]:
        return self._contexts.get(user_id)

    async def sign_out(
        self, user_id: str, provider: Optional[IdentityProvider] = None
    ) -> None:
        ctx = self._contexts.pop(user_id, None)
        if ctx is not None:
            await ctx.close()
        if provider is not None:
            await provider.sign_out()
        logger.info("%s signed out", user_id)

    async def close(self) -> None:
        for user_id in list(self._contexts):
            await self.sign_out(user_id)
