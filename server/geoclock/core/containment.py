"""Geofence containment — is a location inside an authorized work area?

Circles and polygons get GPS-accuracy-aware leniency in different ways:

- Circle: the acceptance radius is grown by the adaptive tolerance
  (see ``tolerance.calculate_adaptive_tolerance``).
- Polygon: for large polygons and poor accuracy the ring is shrunk inward
  before the point-in-polygon test, so a fuzzy reading must be clearly inside.
  Small polygons are never buffered; they would be swallowed entirely.
"""

from __future__ import annotations

import math
from typing import Sequence

import structlog

from geoclock.core.geometry import (
    Ring,
    buffer_polygon,
    circle_to_polygon,
    distance_to_edge_m,
    haversine_m,
    is_valid_ring,
    point_in_ring,
    polygon_area_m2,
    sanitize_ring,
)
from geoclock.core.models import Circle, ContainmentResult, GeofenceArea, GeoPoint, Polygon
from geoclock.core.tolerance import calculate_adaptive_tolerance

log = structlog.get_logger()

# Polygon buffering gate.
BUFFER_MIN_ACCURACY_M = 10.0
BUFFER_MIN_POLYGON_SIZE_M = 100.0
BUFFER_ACCURACY_FACTOR = 0.5
BUFFER_MAX_M = 25.0


def area_ring(area: GeofenceArea) -> list[GeoPoint]:
    """The area's boundary as a closed ring (circles approximated)."""
    shape = area.shape
    if isinstance(shape, Circle):
        return circle_to_polygon(shape.center, shape.radius_m)
    if isinstance(shape, Polygon):
        return sanitize_ring(shape.vertices)
    raise TypeError(f"unknown area shape: {type(shape).__name__}")


def is_point_in_polygon(point: GeoPoint, accuracy_m: float, ring: Ring) -> bool:
    """Point-in-polygon with an inward accuracy buffer for large polygons."""
    clean = sanitize_ring(ring)
    if not is_valid_ring(clean):
        return False

    check_ring: Ring = clean
    polygon_size = math.sqrt(polygon_area_m2(clean))
    if accuracy_m > BUFFER_MIN_ACCURACY_M and polygon_size > BUFFER_MIN_POLYGON_SIZE_M:
        buffer_m = min(accuracy_m * BUFFER_ACCURACY_FACTOR, BUFFER_MAX_M)
        buffered = buffer_polygon(clean, -buffer_m)
        if buffered is not None:
            check_ring = buffered
        else:
            log.debug("polygon_buffer_collapsed", buffer_m=buffer_m,
                      polygon_size_m=round(polygon_size, 1))

    return point_in_ring(point, check_ring)


def is_point_in_any_polygon(
    point: GeoPoint,
    accuracy_m: float,
    polygons: Sequence[tuple[str, Ring]],
) -> tuple[bool, str | None]:
    """First matching (name, ring) wins."""
    for name, ring in polygons:
        if is_point_in_polygon(point, accuracy_m, ring):
            return True, name
    return False, None


def is_inside_circle(point: GeoPoint, accuracy_m: float, circle: Circle,
                     admin_tolerance_m: float = 0.0) -> bool:
    tolerance = calculate_adaptive_tolerance(accuracy_m, admin_tolerance_m)
    distance = haversine_m(point, circle.center)
    return distance <= circle.radius_m + tolerance.final_tolerance_m


def is_inside_single_area(point: GeoPoint, accuracy_m: float, area: GeofenceArea,
                          admin_tolerance_m: float = 0.0) -> bool:
    shape = area.shape
    if isinstance(shape, Circle):
        return is_inside_circle(point, accuracy_m, shape, admin_tolerance_m)
    if isinstance(shape, Polygon):
        return is_point_in_polygon(point, accuracy_m, shape.vertices)
    raise TypeError(f"unknown area shape: {type(shape).__name__}")


def _distance_to_area_edge(point: GeoPoint, area: GeofenceArea) -> float:
    shape = area.shape
    if isinstance(shape, Circle):
        return abs(haversine_m(point, shape.center) - shape.radius_m)
    return distance_to_edge_m(point, area_ring(area))


def check_areas(
    point: GeoPoint,
    accuracy_m: float,
    areas: Sequence[GeofenceArea],
    admin_tolerance_m: float = 0.0,
) -> ContainmentResult:
    """Containment against every active area, in the given order.

    When no area matches, the result still names the nearest area and the
    distance to its edge.
    """
    active = [a for a in areas if a.is_active]

    for area in active:
        if is_inside_single_area(point, accuracy_m, area, admin_tolerance_m):
            distance = _distance_to_area_edge(point, area)
            return ContainmentResult(
                is_inside=True,
                matched_area_name=area.name,
                distance_to_edge_m=distance if math.isfinite(distance) else None,
                nearest_area_name=area.name,
            )

    nearest_name = None
    nearest_distance = math.inf
    for area in active:
        distance = _distance_to_area_edge(point, area)
        if distance < nearest_distance:
            nearest_distance = distance
            nearest_name = area.name

    return ContainmentResult(
        is_inside=False,
        matched_area_name=None,
        distance_to_edge_m=nearest_distance if math.isfinite(nearest_distance) else None,
        nearest_area_name=nearest_name,
    )
