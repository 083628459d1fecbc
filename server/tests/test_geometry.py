"""Tests for the distance and geometry kernel."""

from __future__ import annotations

import math

import pytest

from conftest import OFFICE, offset, square_ring
from geoclock.core.geometry import (
    buffer_polygon,
    calculate_polygon_area,
    circle_to_polygon,
    destination_point,
    distance_to_edge_m,
    get_distance_to_polygon_edge,
    get_polygon_center,
    haversine_m,
    point_in_ring,
    polygon_area_m2,
    polygon_centroid,
    sanitize_ring,
)
from geoclock.core.models import GeoPoint


@pytest.mark.parametrize("point", [
    GeoPoint(0.0, 0.0),
    GeoPoint(-6.2, 106.8166),
    GeoPoint(89.9, -179.9),
    GeoPoint(-90.0, 180.0),
])
def test_haversine_zero_for_same_point(point):
    assert haversine_m(point, point) == 0


def test_haversine_one_degree_latitude():
    d = haversine_m(GeoPoint(0.0, 0.0), GeoPoint(1.0, 0.0))
    assert d == pytest.approx(111_195, rel=1e-4)


def test_haversine_is_symmetric():
    a, b = OFFICE, offset(OFFICE, north_m=300, east_m=-400)
    assert haversine_m(a, b) == pytest.approx(haversine_m(b, a))
    assert haversine_m(a, b) == pytest.approx(500, rel=1e-3)


def test_destination_point_round_trips_distance():
    p = destination_point(OFFICE, 250.0, 73.0)
    assert haversine_m(OFFICE, p) == pytest.approx(250.0, rel=1e-6)


def test_sanitize_ring_closes_and_drops_invalid():
    ring = square_ring(OFFICE, 50)
    dirty = ring[:2] + [GeoPoint(float("nan"), 0.0), GeoPoint(95.0, 0.0)] + ring[2:]
    clean = sanitize_ring(dirty)
    assert len(clean) == 5
    assert clean[0] == clean[-1]


def test_square_center_inside():
    ring = square_ring(OFFICE, 100)
    assert point_in_ring(OFFICE, ring)
    assert point_in_ring(polygon_centroid(ring), ring)


def test_far_point_outside():
    ring = square_ring(OFFICE, 100)
    assert not point_in_ring(GeoPoint(40.0, -74.0), ring)
    assert not point_in_ring(offset(OFFICE, north_m=101), ring)


def test_point_in_ring_accepts_closed_ring():
    ring = square_ring(OFFICE, 100)
    assert point_in_ring(OFFICE, ring + [ring[0]])


def test_degenerate_ring_is_never_inside():
    assert not point_in_ring(OFFICE, [OFFICE, offset(OFFICE, north_m=10)])
    assert not point_in_ring(OFFICE, [OFFICE, OFFICE, OFFICE, OFFICE])
    assert not point_in_ring(OFFICE, [])


def test_polygon_area_of_square():
    ring = square_ring(OFFICE, 100)
    assert polygon_area_m2(ring) == pytest.approx(40_000, rel=0.01)
    assert calculate_polygon_area(ring) == polygon_area_m2(ring)


def test_polygon_area_invalid_ring_is_zero():
    assert polygon_area_m2([OFFICE, offset(OFFICE, east_m=5)]) == 0.0


def test_polygon_centroid_of_square():
    center = get_polygon_center(square_ring(OFFICE, 100))
    assert center is not None
    assert haversine_m(center, OFFICE) < 0.5


def test_polygon_centroid_invalid_ring():
    assert polygon_centroid([OFFICE]) is None


def test_distance_to_edge_from_center():
    ring = square_ring(OFFICE, 100)
    assert distance_to_edge_m(OFFICE, ring) == pytest.approx(100, abs=0.5)
    assert get_distance_to_polygon_edge(OFFICE, ring) == distance_to_edge_m(OFFICE, ring)


def test_distance_to_edge_from_outside():
    ring = square_ring(OFFICE, 100)
    outside = offset(OFFICE, north_m=160)
    assert distance_to_edge_m(outside, ring) == pytest.approx(60, abs=0.5)


def test_distance_to_edge_invalid_ring_is_infinite():
    assert distance_to_edge_m(OFFICE, [OFFICE]) == math.inf


def test_buffer_shrinks_square():
    ring = square_ring(OFFICE, 100)
    shrunk = buffer_polygon(ring, -25)
    assert shrunk is not None
    assert polygon_area_m2(shrunk) == pytest.approx(150 * 150, rel=0.01)
    assert point_in_ring(OFFICE, shrunk)
    assert not point_in_ring(offset(OFFICE, north_m=80), shrunk)


def test_buffer_grows_square():
    grown = buffer_polygon(square_ring(OFFICE, 100), 10)
    assert grown is not None
    assert point_in_ring(offset(OFFICE, north_m=105), grown)


def test_buffer_collapse_returns_none():
    assert buffer_polygon(square_ring(OFFICE, 10), -25) is None


def test_circle_to_polygon_vertices_on_radius():
    radius = 120.0
    ring = circle_to_polygon(OFFICE, radius)
    assert len(ring) == 33
    assert ring[0] == ring[-1]
    for vertex in ring:
        assert radius * 0.99 <= haversine_m(OFFICE, vertex) <= radius * 1.01


def test_circle_to_polygon_custom_steps():
    ring = circle_to_polygon(OFFICE, 50.0, steps=8)
    assert len(ring) == 9
    assert point_in_ring(OFFICE, ring)


def test_circle_to_polygon_rejects_bad_input():
    assert circle_to_polygon(OFFICE, 0) == []
    assert circle_to_polygon(GeoPoint(100.0, 0.0), 50) == []
