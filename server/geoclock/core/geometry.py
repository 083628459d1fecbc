"""Distance and geometry kernel.

Works on lat/lng rings with a spherical earth. Point-in-polygon runs directly
on lng/lat coordinates; operations that need metres (buffering, area,
centroid, distance to edge) project the ring onto a local equirectangular
plane around its own mean vertex, which is accurate at office-campus scale.
Distances returned to callers are always haversine distances.

A ring is a sequence of GeoPoint. Rings handed in may be open or closed;
every function sanitizes its input first (invalid vertices dropped, ring
closed).
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from shapely.geometry import MultiPolygon, Point
from shapely.geometry import Polygon as ShapelyPolygon

from geoclock.core.errors import DegenerateGeometryError
from geoclock.core.models import GeoPoint

# Mean Earth radius in meters (for Haversine).
EARTH_RADIUS_M = 6_371_000.0

Ring = Sequence[GeoPoint]


def haversine_m(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in meters between two points."""
    rlat1, rlat2 = math.radians(a.lat), math.radians(b.lat)
    dlat = math.radians(b.lat - a.lat)
    dlng = math.radians(b.lng - a.lng)
    h = math.sin(dlat / 2) ** 2 + math.cos(rlat1) * math.cos(rlat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))


def destination_point(origin: GeoPoint, distance_m: float, bearing_deg: float) -> GeoPoint:
    """Point reached by travelling ``distance_m`` along ``bearing_deg`` on the sphere."""
    delta = distance_m / EARTH_RADIUS_M
    theta = math.radians(bearing_deg)
    phi1 = math.radians(origin.lat)
    lam1 = math.radians(origin.lng)

    phi2 = math.asin(
        math.sin(phi1) * math.cos(delta)
        + math.cos(phi1) * math.sin(delta) * math.cos(theta)
    )
    lam2 = lam1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(phi1),
        math.cos(delta) - math.sin(phi1) * math.sin(phi2),
    )
    lng = (math.degrees(lam2) + 540.0) % 360.0 - 180.0
    return GeoPoint(lat=math.degrees(phi2), lng=lng)


def sanitize_ring(vertices: Iterable[GeoPoint]) -> list[GeoPoint]:
    """Drop invalid vertices and close the ring if last != first."""
    ring = [v for v in vertices if v.is_valid]
    if ring and ring[0] != ring[-1]:
        ring.append(ring[0])
    return ring


def is_valid_ring(ring: Ring) -> bool:
    """At least 3 distinct vertices."""
    return len(set(ring)) >= 3


class _LocalProjection:
    """Equirectangular projection centred on a reference point, in meters."""

    def __init__(self, reference: GeoPoint) -> None:
        self._lat0 = reference.lat
        self._lng0 = reference.lng
        self._cos_lat0 = math.cos(math.radians(reference.lat))

    @classmethod
    def for_ring(cls, ring: Ring) -> _LocalProjection:
        open_ring = ring[:-1] if len(ring) > 1 and ring[0] == ring[-1] else ring
        lat = sum(v.lat for v in open_ring) / len(open_ring)
        lng = sum(v.lng for v in open_ring) / len(open_ring)
        return cls(GeoPoint(lat=lat, lng=lng))

    def forward(self, p: GeoPoint) -> tuple[float, float]:
        x = math.radians(p.lng - self._lng0) * EARTH_RADIUS_M * self._cos_lat0
        y = math.radians(p.lat - self._lat0) * EARTH_RADIUS_M
        return x, y

    def inverse(self, x: float, y: float) -> GeoPoint:
        lat = self._lat0 + math.degrees(y / EARTH_RADIUS_M)
        lng = self._lng0 + math.degrees(x / (EARTH_RADIUS_M * self._cos_lat0))
        return GeoPoint(lat=lat, lng=lng)

    def polygon(self, ring: Ring) -> ShapelyPolygon:
        return ShapelyPolygon([self.forward(v) for v in ring])


def _prepared(ring: Ring) -> list[GeoPoint] | None:
    clean = sanitize_ring(ring)
    return clean if is_valid_ring(clean) else None


def point_in_ring(p: GeoPoint, ring: Ring) -> bool:
    """Ray-casting containment over lng/lat; points on the boundary count as inside."""
    clean = _prepared(ring)
    if clean is None or not p.is_valid:
        return False
    polygon = ShapelyPolygon([(v.lng, v.lat) for v in clean])
    return polygon.covers(Point(p.lng, p.lat))


def _buffer_projected(polygon: ShapelyPolygon, delta_m: float) -> ShapelyPolygon:
    buffered = polygon.buffer(delta_m)
    if buffered.is_empty or buffered.area <= 0:
        raise DegenerateGeometryError(f"buffer of {delta_m}m collapsed polygon")
    if isinstance(buffered, MultiPolygon):
        # A shrink can split a concave polygon; keep the largest piece.
        buffered = max(buffered.geoms, key=lambda g: g.area)
    return buffered


def buffer_polygon(ring: Ring, delta_m: float) -> list[GeoPoint] | None:
    """Grow (delta > 0) or shrink (delta < 0) a ring by ``delta_m`` meters.

    Returns None when the input ring is invalid or shrinking collapses the
    polygon; callers then use the original ring.
    """
    clean = _prepared(ring)
    if clean is None:
        return None
    projection = _LocalProjection.for_ring(clean)
    try:
        buffered = _buffer_projected(projection.polygon(clean), delta_m)
    except DegenerateGeometryError:
        return None
    return [projection.inverse(x, y) for x, y in buffered.exterior.coords]


def polygon_area_m2(ring: Ring) -> float:
    clean = _prepared(ring)
    if clean is None:
        return 0.0
    return _LocalProjection.for_ring(clean).polygon(clean).area


def polygon_centroid(ring: Ring) -> GeoPoint | None:
    clean = _prepared(ring)
    if clean is None:
        return None
    projection = _LocalProjection.for_ring(clean)
    centroid = projection.polygon(clean).centroid
    if centroid.is_empty:
        return None
    return projection.inverse(centroid.x, centroid.y)


def distance_to_edge_m(p: GeoPoint, ring: Ring) -> float:
    """Haversine distance from ``p`` to the nearest point on the ring's boundary."""
    clean = _prepared(ring)
    if clean is None or not p.is_valid:
        return math.inf
    projection = _LocalProjection.for_ring(clean)
    boundary = projection.polygon(clean).exterior
    nearest = boundary.interpolate(boundary.project(Point(projection.forward(p))))
    return haversine_m(p, projection.inverse(nearest.x, nearest.y))


def circle_to_polygon(center: GeoPoint, radius_m: float, steps: int = 32) -> list[GeoPoint]:
    """Regular ``steps``-gon approximating a circle, returned as a closed ring."""
    if steps < 3 or radius_m <= 0 or not center.is_valid:
        return []
    ring = [
        destination_point(center, radius_m, -360.0 * i / steps)
        for i in range(steps)
    ]
    ring.append(ring[0])
    return ring


# Names used by the client-facing API.
calculate_polygon_area = polygon_area_m2
get_polygon_center = polygon_centroid
get_distance_to_polygon_edge = distance_to_edge_m
