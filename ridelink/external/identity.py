"""
Identity provider contract.

The marketplace never authenticates anyone itself.  An identity provider
signs the user in and hands back the identity it vouches for; the Profile
Store turns that into (or finds) a profile.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class Identity:
    external_id: str
    display_name: Optional[str]
    email: Optional[str]
    photo_url: Optional[str] = None


@runtime_checkable
class IdentityProvider(Protocol):
    async def sign_in(self) -> Identity:
        """Authenticate the user and return the verified identity."""
        ...

    async def sign_out(self) -> None:
        """End the provider-side session."""
        ...


class TrustedGatewayIdentity:
    """
    Identity already verified by an upstream gateway.

    The HTTP sign-in endpoint receives the identity the gateway vouched
    for; this adapter lets it flow through the same ``IdentityProvider``
    contract as an interactive provider.
    """

    def __init__(self, identity: Identity):
        self._identity = identity

    async def sign_in(self) -> Identity:
        return self._identity

    async def sign_out(self) -> None:
        return None
