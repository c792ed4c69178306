"""
Geometry primitives: great-circle distance, point-to-segment distance
and bounding boxes.

Assumption
----------
We use great-circle (Haversine) distance instead of a real routing engine
(OSRM / Google Maps).  Travel time is derived from it with an assumed
average speed, see ``src.domain.routes.estimate_route_metrics``.

Local projection
----------------
``project_to_meters`` is an equirectangular approximation around a
reference latitude (111,132 m per degree of latitude, 111,320 x cos(lat)
m per degree of longitude).  It is only accurate over short distances
(tens of km), which is fine for intra-city matching but not for
continental-scale routes.  The bounding-box helpers use the same
constants, so change them together or not at all.

None of these functions validate coordinate ranges; callers do.
Complexity: O(1) per call, O(n) for the route-level helpers.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

from .entities import BoundingBox, Coordinate

EARTH_RADIUS_KM = 6_371.0

METERS_PER_DEGREE_LAT = 111_132.0
METERS_PER_DEGREE_LON_EQUATOR = 111_320.0


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(a.latitude), math.radians(b.latitude)
    dlat = lat2_r - lat1_r
    dlng = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    # Rounding can push sqrt(h) just past 1 near antipodes.
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, max(0.0, math.sqrt(h))))


def project_to_meters(
    point: Coordinate, reference_latitude: float
) -> tuple[float, float]:
    """Project *point* onto a local (x, y) plane in meters."""
    meters_per_degree_lon = METERS_PER_DEGREE_LON_EQUATOR * math.cos(
        math.radians(reference_latitude)
    )
    return (
        point.longitude * meters_per_degree_lon,
        point.latitude * METERS_PER_DEGREE_LAT,
    )


def point_to_segment_distance_m(
    point: Coordinate, segment_start: Coordinate, segment_end: Coordinate
) -> float:
    """
    Minimum distance in meters from *point* to the segment
    [*segment_start*, *segment_end*].

    The projection scalar is clamped to [0, 1], so the closest point lies
    on the segment and not on the infinite line through it.
    """
    if segment_start == segment_end:
        return haversine_km(point, segment_start) * 1000

    reference_latitude = (segment_start.latitude + segment_end.latitude) / 2
    px, py = project_to_meters(point, reference_latitude)
    sx, sy = project_to_meters(segment_start, reference_latitude)
    ex, ey = project_to_meters(segment_end, reference_latitude)

    seg_x, seg_y = ex - sx, ey - sy
    length_sq = seg_x * seg_x + seg_y * seg_y
    if length_sq == 0:
        t = 0.0
    else:
        t = ((px - sx) * seg_x + (py - sy) * seg_y) / length_sq
        t = max(0.0, min(1.0, t))

    closest_x = sx + t * seg_x
    closest_y = sy + t * seg_y
    return math.hypot(px - closest_x, py - closest_y)


def min_distance_to_route_m(
    route: Sequence[Coordinate], point: Coordinate
) -> float:
    """Smallest distance from *point* to any segment of *route* (inf if < 2 points)."""
    if len(route) < 2:
        return math.inf
    return min(
        point_to_segment_distance_m(point, start, end)
        for start, end in zip(route, route[1:])
    )


# ── Bounding boxes ────────────────────────────────────────────────────


def meters_to_latitude_degrees(meters: float) -> float:
    return meters / METERS_PER_DEGREE_LAT


def meters_to_longitude_degrees(meters: float, reference_latitude: float) -> float:
    meters_per_degree_lon = METERS_PER_DEGREE_LON_EQUATOR * math.cos(
        math.radians(reference_latitude)
    )
    if meters_per_degree_lon == 0:
        return 0.0
    return meters / meters_per_degree_lon


def compute_route_bounding_box(
    route: Sequence[Coordinate],
) -> Optional[BoundingBox]:
    """Min/max lat-lng box around *route*; ``None`` for an empty route."""
    if not route:
        return None
    latitudes = [p.latitude for p in route]
    longitudes = [p.longitude for p in route]
    return BoundingBox(
        min_latitude=min(latitudes),
        max_latitude=max(latitudes),
        min_longitude=min(longitudes),
        max_longitude=max(longitudes),
    )


def expand_bounding_box(box: BoundingBox, meters: float) -> BoundingBox:
    """Grow *box* by a margin of *meters* on every side."""
    if meters <= 0:
        return box
    average_latitude = (box.min_latitude + box.max_latitude) / 2
    lat_delta = meters_to_latitude_degrees(meters)
    lng_delta = meters_to_longitude_degrees(meters, average_latitude)
    return BoundingBox(
        min_latitude=box.min_latitude - lat_delta,
        max_latitude=box.max_latitude + lat_delta,
        min_longitude=box.min_longitude - lng_delta,
        max_longitude=box.max_longitude + lng_delta,
    )


def is_within_bounding_box(point: Coordinate, box: BoundingBox) -> bool:
    return (
        box.min_latitude <= point.latitude <= box.max_latitude
        and box.min_longitude <= point.longitude <= box.max_longitude
    )
