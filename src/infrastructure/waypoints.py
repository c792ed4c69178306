"""
Waypoint (de)serialisation at the storage boundary.

Stored routes come from several clients over time and are tolerant of
``{"latitude", "longitude"}`` as well as ``{"lat", "lng"}`` keys.  That
leniency stops here: everything past this module sees strict
``Coordinate`` tuples.
"""

from __future__ import annotations

import math
from typing import Any, Optional, Sequence

import polyline

from src.domain.entities import Coordinate, InvalidRouteError, Route
from src.domain.routes import remove_consecutive_duplicates

_LAT_KEYS = ("latitude", "lat")
_LNG_KEYS = ("longitude", "lng", "lon")


def _first_number(raw: dict, keys: tuple[str, ...]) -> Optional[float]:
    for key in keys:
        value = raw.get(key)
        if value is None or isinstance(value, bool):
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        return number if math.isfinite(number) else None
    return None


def parse_stored_waypoints(raw: Any) -> Optional[Route]:
    """
    Normalise a stored JSON waypoint list.

    Unusable entries are skipped.  Returns ``None`` when fewer than two
    distinct points survive, so the caller falls back to [start, end].
    """
    if not isinstance(raw, list):
        return None

    points: list[Coordinate] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        lat = _first_number(item, _LAT_KEYS)
        lng = _first_number(item, _LNG_KEYS)
        if lat is None or lng is None:
            continue
        if abs(lat) > 90 or abs(lng) > 180:
            continue
        points.append(Coordinate(lat, lng))

    route = remove_consecutive_duplicates(points)
    return route if len(route) >= 2 else None


def serialize_waypoints(route: Sequence[Coordinate]) -> list[dict[str, float]]:
    return [{"latitude": p.latitude, "longitude": p.longitude} for p in route]


def decode_polyline(encoded: Optional[str], precision: int = 5) -> Route:
    """Decode a Google encoded polyline into coordinates."""
    if not encoded:
        return ()
    try:
        coords = polyline.decode(encoded, precision)
    except (IndexError, TypeError, ValueError) as exc:
        raise InvalidRouteError("Malformed encoded polyline") from exc
    return tuple(Coordinate(lat, lng) for lat, lng in coords)
