"""Conversion of stored geofence rows into GeofenceArea values.

The admin store keeps one row shape for both kinds of area:
``{id, name, center_lat, center_lng, radius, coordinates, is_active}``.
A row with at least three coordinates is a polygon; otherwise a row with a
center and a positive radius is a circle.
"""

from __future__ import annotations

from typing import Any, Iterable

import structlog

from geoclock.core.models import Circle, GeofenceArea, GeoPoint, Polygon

log = structlog.get_logger()


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_vertex(raw: Any) -> GeoPoint | None:
    if not isinstance(raw, dict):
        return None
    lat = _to_float(raw.get("lat"))
    lng = _to_float(raw.get("lng"))
    if lat is None or lng is None:
        return None
    return GeoPoint(lat=lat, lng=lng)


def area_from_record(row: dict) -> GeofenceArea | None:
    """Build an area from a stored row; None when the row has no usable shape."""
    coordinates = row.get("coordinates") or []
    vertices = [v for v in (_parse_vertex(c) for c in coordinates) if v is not None]
    area_id = str(row.get("id", ""))
    name = str(row.get("name", "")) or area_id
    is_active = bool(row.get("is_active", True))

    if len(vertices) >= 3:
        return GeofenceArea(id=area_id, name=name, shape=Polygon(tuple(vertices)),
                            is_active=is_active)

    lat = _to_float(row.get("center_lat"))
    lng = _to_float(row.get("center_lng"))
    radius = _to_float(row.get("radius"))
    if lat is not None and lng is not None and radius is not None and radius > 0:
        return GeofenceArea(id=area_id, name=name,
                            shape=Circle(center=GeoPoint(lat=lat, lng=lng), radius_m=radius),
                            is_active=is_active)

    log.warning("geofence_row_skipped", area_id=area_id, name=name)
    return None


def areas_from_records(rows: Iterable[dict]) -> list[GeofenceArea]:
    """Convert rows, dropping the unusable ones. Order is preserved."""
    areas = []
    for row in rows:
        area = area_from_record(row)
        if area is not None:
            areas.append(area)
    return areas
