"""Geofence area API endpoints."""

from __future__ import annotations

import json

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from geoclock.core.containment import area_ring, check_areas
from geoclock.core.geometry import polygon_area_m2, polygon_centroid
from geoclock.core.models import Circle, GeofenceArea, GeoPoint
from geoclock.core.tolerance import calculate_adaptive_tolerance

router = APIRouter(prefix="/api/v1")


def area_to_geojson_feature(area: GeofenceArea) -> dict:
    """Circles are rendered as their polygon approximation."""
    ring = area_ring(area)
    centroid = polygon_centroid(ring)
    properties = {
        "id": area.id,
        "name": area.name,
        "kind": "circle" if isinstance(area.shape, Circle) else "polygon",
        "is_active": area.is_active,
        "area_m2": round(polygon_area_m2(ring), 1),
        "centroid": [round(centroid.lng, 7), round(centroid.lat, 7)] if centroid else None,
    }
    if isinstance(area.shape, Circle):
        properties["radius_m"] = area.shape.radius_m
    return {
        "type": "Feature",
        "geometry": {
            "type": "Polygon",
            "coordinates": [[[round(v.lng, 7), round(v.lat, 7)] for v in ring]],
        },
        "properties": properties,
    }


def areas_to_geojson(areas: list[GeofenceArea]) -> dict:
    """Convert areas to a GeoJSON FeatureCollection."""
    return {
        "type": "FeatureCollection",
        "features": [area_to_geojson_feature(a) for a in areas],
    }


@router.get("/areas")
async def get_areas_geojson() -> JSONResponse:
    """Return the configured geofence areas as a GeoJSON FeatureCollection."""
    from geoclock.main import get_areas

    geojson = areas_to_geojson(get_areas().list_areas())
    return JSONResponse(content=geojson, media_type="application/geo+json")


@router.post("/areas/locate")
async def locate(request: Request) -> JSONResponse:
    """Run containment for one point.

    Body: {"lat": .., "lng": .., "accuracy_m": .., "admin_tolerance_m": ..}
    """
    from geoclock.main import get_areas, get_config

    try:
        body = json.loads(await request.body())
        point = GeoPoint(lat=float(body["lat"]), lng=float(body["lng"]))
        accuracy = float(body.get("accuracy_m", 0.0))
        tolerance = body.get("admin_tolerance_m")
        tolerance = float(tolerance) if tolerance is not None else get_config().geofence.admin_tolerance_m
    except (json.JSONDecodeError, UnicodeDecodeError, KeyError, TypeError, ValueError):
        return JSONResponse(content={"error": "invalid request"}, status_code=400)
    if not point.is_valid or accuracy < 0:
        return JSONResponse(content={"error": "coordinates out of range"}, status_code=422)

    result = check_areas(point, accuracy, get_areas().list_areas(), tolerance)
    adaptive = calculate_adaptive_tolerance(accuracy, tolerance)
    distance = result.distance_to_edge_m
    return JSONResponse(content={
        "is_inside": result.is_inside,
        "matched_area_name": result.matched_area_name,
        "nearest_area_name": result.nearest_area_name,
        "distance_to_edge_m": round(distance, 1) if distance is not None else None,
        "tolerance": {
            "final_m": adaptive.final_tolerance_m,
            "gps_m": adaptive.gps_tolerance_m,
        },
    })
