"""Unit tests for the geometry primitives."""

import math

import pytest

from src.domain.distance import (
    compute_route_bounding_box,
    expand_bounding_box,
    haversine_km,
    is_within_bounding_box,
    meters_to_latitude_degrees,
    min_distance_to_route_m,
    point_to_segment_distance_m,
)
from src.domain.entities import BoundingBox, Coordinate


class TestHaversine:
    def test_same_point_is_zero(self):
        p = Coordinate(38.72, -9.14)
        assert haversine_km(p, p) == 0.0

    def test_one_degree_of_longitude_on_equator(self):
        d = haversine_km(Coordinate(0, 0), Coordinate(0, 1))
        assert d == pytest.approx(111.195, abs=0.01)

    def test_symmetric(self):
        a, b = Coordinate(19.0, 72.0), Coordinate(20.0, 73.0)
        assert abs(haversine_km(a, b) - haversine_km(b, a)) < 1e-9

    def test_triangle_inequality(self):
        a, b, c = Coordinate(0, 0), Coordinate(1, 1), Coordinate(2, 0)
        assert haversine_km(a, c) <= haversine_km(a, b) + haversine_km(b, c)

    def test_antipodes_do_not_raise(self):
        d = haversine_km(Coordinate(0, 0), Coordinate(0, 180))
        assert d == pytest.approx(math.pi * 6371.0, rel=1e-9)


class TestPointToSegment:
    def test_point_on_segment_is_zero(self):
        d = point_to_segment_distance_m(
            Coordinate(0, 0.5), Coordinate(0, 0), Coordinate(0, 1)
        )
        assert d < 1e-6

    def test_perpendicular_offset(self):
        # 0.001 deg of latitude ~ 111 m
        d = point_to_segment_distance_m(
            Coordinate(0.001, 0.5), Coordinate(0, 0), Coordinate(0, 1)
        )
        assert d == pytest.approx(111.132, rel=1e-3)

    def test_projection_clamped_to_endpoint(self):
        """A point past the end measures to the endpoint, not the infinite line."""
        d = point_to_segment_distance_m(
            Coordinate(0, 1.5), Coordinate(0, 0), Coordinate(0, 1)
        )
        assert d == pytest.approx(0.5 * 111_320, rel=1e-3)

    def test_degenerate_segment_uses_haversine(self):
        a = Coordinate(10, 10)
        p = Coordinate(10.01, 10.01)
        d = point_to_segment_distance_m(p, a, a)
        assert d == pytest.approx(haversine_km(p, a) * 1000)


class TestMinDistanceToRoute:
    def test_picks_nearest_segment(self):
        route = [Coordinate(0, 0), Coordinate(0, 1), Coordinate(1, 1)]
        d = min_distance_to_route_m(route, Coordinate(0.5, 1.0))
        assert d < 1e-6

    def test_short_route_is_infinite(self):
        assert min_distance_to_route_m([Coordinate(0, 0)], Coordinate(1, 1)) == math.inf
        assert min_distance_to_route_m([], Coordinate(1, 1)) == math.inf


class TestBoundingBox:
    def test_box_covers_every_point(self):
        route = [Coordinate(1, 5), Coordinate(-2, 3), Coordinate(4, -1)]
        box = compute_route_bounding_box(route)
        assert box == BoundingBox(-2, 4, -1, 5)
        assert all(is_within_bounding_box(p, box) for p in route)

    def test_empty_route_has_no_box(self):
        assert compute_route_bounding_box([]) is None

    def test_expand_adds_margin(self):
        box = BoundingBox(0, 1, 0, 1)
        grown = expand_bounding_box(box, 1000)
        assert grown.min_latitude == pytest.approx(-meters_to_latitude_degrees(1000))
        assert grown.max_latitude == pytest.approx(1 + meters_to_latitude_degrees(1000))
        assert grown.min_longitude < 0
        assert grown.max_longitude > 1
        assert is_within_bounding_box(Coordinate(1.005, 0.5), grown)
        assert not is_within_bounding_box(Coordinate(1.005, 0.5), box)

    def test_non_positive_margin_is_noop(self):
        box = BoundingBox(0, 1, 0, 1)
        assert expand_bounding_box(box, 0) is box
