"""
Route metrics, simplification and reconstruction.

Simplification
--------------
``simplify_route_waypoints`` = consecutive-duplicate removal followed by
Douglas-Peucker.  Insertion search is O(n^3) in route length, so dense
driver polylines are simplified before they are persisted.

Douglas-Peucker complexity: O(n log n) expected, O(n^2) worst case.
Recursion depth is bounded by the route length; routes are small.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

from .distance import haversine_km, point_to_segment_distance_m
from .entities import (
    Coordinate,
    InvalidCoordinateError,
    InvalidRouteError,
    Route,
    RouteMetrics,
)

DUPLICATE_EPSILON_DEG = 1e-6
ENDPOINT_EPSILON_DEG = 1e-5


def estimate_route_metrics(
    route: Sequence[Coordinate], average_speed_kmh: float
) -> RouteMetrics:
    """Sum of haversine legs, duration at *average_speed_kmh* (floored at 1)."""
    if len(route) < 2:
        return RouteMetrics()

    distance = sum(haversine_km(a, b) for a, b in zip(route, route[1:]))
    speed = max(average_speed_kmh, 1.0)
    return RouteMetrics(
        total_distance_km=distance,
        total_duration_minutes=(distance / speed) * 60,
    )


def coordinates_close(
    a: Optional[Coordinate], b: Coordinate, epsilon: float
) -> bool:
    return (
        a is not None
        and abs(a.latitude - b.latitude) <= epsilon
        and abs(a.longitude - b.longitude) <= epsilon
    )


def remove_consecutive_duplicates(route: Sequence[Coordinate]) -> Route:
    """Drop points within 1e-6 deg (lat AND lng) of the previous kept point."""
    deduped: list[Coordinate] = []
    for point in route:
        if deduped and coordinates_close(deduped[-1], point, DUPLICATE_EPSILON_DEG):
            continue
        deduped.append(point)
    return tuple(deduped)


def douglas_peucker(route: Sequence[Coordinate], epsilon_m: float) -> Route:
    """Classic recursive Douglas-Peucker with a tolerance in meters."""
    if len(route) <= 2:
        return tuple(route)

    start, end = route[0], route[-1]
    max_distance = 0.0
    max_index = 0
    for index in range(1, len(route) - 1):
        distance = point_to_segment_distance_m(route[index], start, end)
        if distance > max_distance:
            max_distance = distance
            max_index = index

    if max_distance <= epsilon_m:
        return (start, end)

    left = douglas_peucker(route[: max_index + 1], epsilon_m)
    right = douglas_peucker(route[max_index:], epsilon_m)
    return left[:-1] + right


def simplify_route_waypoints(
    route: Sequence[Coordinate],
    tolerance_m: float,
    minimum_points: int = 2,
) -> Route:
    """
    Deduplicate then Douglas-Peucker *route*, never returning fewer than
    ``min(len(route), minimum_points)`` points.

    If simplification is too aggressive the deduplicated route is
    truncated to ``minimum_points`` instead; callers rely on keeping at
    least start + end.
    """
    if len(route) <= minimum_points:
        return tuple(route)

    deduped = remove_consecutive_duplicates(route)
    if len(deduped) < minimum_points:
        return tuple(route[:minimum_points])

    epsilon = max(tolerance_m, 0.0)
    if epsilon == 0 or len(deduped) <= minimum_points:
        return deduped

    simplified = douglas_peucker(deduped, epsilon)
    if len(simplified) < minimum_points:
        return deduped[:minimum_points]
    return simplified


# ── Validation & reconstruction ───────────────────────────────────────


def validate_coordinate(latitude: float, longitude: float, label: str) -> Coordinate:
    """Build a ``Coordinate`` or raise ``InvalidCoordinateError`` naming *label*."""
    if not math.isfinite(latitude) or not -90 <= latitude <= 90:
        raise InvalidCoordinateError(f"Invalid {label} latitude: {latitude}")
    if not math.isfinite(longitude) or not -180 <= longitude <= 180:
        raise InvalidCoordinateError(f"Invalid {label} longitude: {longitude}")
    return Coordinate(latitude, longitude)


def build_trip_route(
    start: Coordinate,
    end: Coordinate,
    waypoints: Optional[Sequence[Coordinate]] = None,
) -> Route:
    """
    Reconstruct a trip's route.

    Stored *waypoints* win when there are at least two of them, otherwise
    the route is ``[start, end]``.  The result always begins at *start*
    and finishes at *end* (within 1e-5 deg); missing endpoints are
    prepended / appended, and consecutive duplicates are collapsed.
    """
    route = list(waypoints) if waypoints and len(waypoints) >= 2 else [start, end]

    if not coordinates_close(route[0], start, ENDPOINT_EPSILON_DEG):
        route.insert(0, start)
    if not coordinates_close(route[-1], end, ENDPOINT_EPSILON_DEG):
        route.append(end)

    cleaned = remove_consecutive_duplicates(route)
    if len(cleaned) < 2:
        raise InvalidRouteError("Trip route must include at least origin and destination")
    return cleaned
