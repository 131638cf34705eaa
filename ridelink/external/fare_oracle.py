"""
Route estimation oracle.

Fare estimates need a driving distance and duration between two free-text
places.  The oracle is an external service; a missing or unusable answer
degrades to "no estimate" and never fails the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteEstimate:
    distance_km: float
    duration_minutes: float


@runtime_checkable
class FareOracle(Protocol):
    async def estimate(self, origin: str, destination: str) -> Optional[RouteEstimate]:
        """Return the route estimate, or ``None`` when it cannot be determined."""
        ...


class HttpFareOracle:
    """
    JSON-over-HTTP oracle.

    POSTs ``{"origin": ..., "destination": ...}`` and expects
    ``{"distance_km": <number|null>, "duration_minutes": <number|null>}``.
    """

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._url = url
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    async def estimate(self, origin: str, destination: str) -> Optional[RouteEstimate]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self._url,
                    json={"origin": origin, "destination": destination},
                    headers=headers,
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError):
            logger.warning("Route oracle request failed", exc_info=True)
            return None

        return _parse_estimate(data)


def _parse_estimate(data) -> Optional[RouteEstimate]:
    if not isinstance(data, dict):
        return None
    distance = data.get("distance_km")
    duration = data.get("duration_minutes")
    numeric = (int, float)
    if (
        isinstance(distance, bool)
        or isinstance(duration, bool)
        or not isinstance(distance, numeric)
        or not isinstance(duration, numeric)
    ):
        return None
    if distance < 0 or duration < 0:
        return None
    return RouteEstimate(distance_km=float(distance), duration_minutes=float(duration))
