"""
Distance and ETA projection for bids.

Assumption
----------
We use great-circle (Haversine) distance between the passenger's pickup
coordinates and the driver's reported position, and a flat average speed
for the ETA.  Both are read-side projections and are never persisted.

Complexity: O(1) per call.
"""

from __future__ import annotations

import math
import re
from typing import Optional

from .entities import Coordinates

EARTH_RADIUS_KM = 6_371.0
AVERAGE_SPEED_KMH = 30.0

# "6.5244,3.3792" or "Lat: 6.5244, Lon: 3.3792"
_PLAIN_PAIR = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*$")
_LABELLED_PAIR = re.compile(
    r"Lat:\s*(-?\d+(?:\.\d+)?),\s*Lon:\s*(-?\d+(?:\.\d+)?)", re.IGNORECASE
)


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def eta_minutes(distance_km: float, speed_kmh: float = AVERAGE_SPEED_KMH) -> int:
    """Minutes to cover *distance_km*; at least 1 for any non-zero distance."""
    if distance_km <= 0:
        return 0
    return max(1, round_half_up(distance_km / speed_kmh * 60))


def parse_coordinates(location: str) -> Optional[Coordinates]:
    """Extract coordinates from a free-text location, if it encodes any."""
    match = _PLAIN_PAIR.match(location) or _LABELLED_PAIR.search(location)
    if not match:
        return None
    lat, lng = float(match.group(1)), float(match.group(2))
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None
    return Coordinates(lat, lng)
