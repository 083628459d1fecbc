"""Shared test fixtures."""

from __future__ import annotations

import math
import time

import pytest
from httpx import ASGITransport, AsyncClient

import geoclock.main as main_module
from geoclock.config import AppConfig
from geoclock.core.models import Circle, GeofenceArea, GeoPoint, LocationReading, Polygon
from geoclock.core.stats import CheckStats
from geoclock.storage.area_file import StaticAreaSource

# A quiet spot in Jakarta used as the office.
OFFICE = GeoPoint(lat=-6.2000, lng=106.8166)


def square_ring(center: GeoPoint, half_side_m: float) -> list[GeoPoint]:
    """Open square ring of side 2 * half_side_m around center."""
    dlat = half_side_m / 111_195.0
    dlng = dlat / math.cos(math.radians(center.lat))
    return [
        GeoPoint(center.lat - dlat, center.lng - dlng),
        GeoPoint(center.lat - dlat, center.lng + dlng),
        GeoPoint(center.lat + dlat, center.lng + dlng),
        GeoPoint(center.lat + dlat, center.lng - dlng),
    ]


def offset(point: GeoPoint, north_m: float = 0.0, east_m: float = 0.0) -> GeoPoint:
    dlat = north_m / 111_195.0
    dlng = east_m / (111_195.0 * math.cos(math.radians(point.lat)))
    return GeoPoint(point.lat + dlat, point.lng + dlng)


def make_reading(point: GeoPoint = OFFICE, accuracy_m: float = 12.0, *,
                 captured_at_ms: int | None = None, altitude_m: float | None = 8.0,
                 altitude_accuracy_m: float | None = 4.0,
                 speed_mps: float | None = None) -> LocationReading:
    if captured_at_ms is None:
        captured_at_ms = int(time.time() * 1000)
    return LocationReading(
        point=point,
        accuracy_m=accuracy_m,
        captured_at_ms=captured_at_ms,
        altitude_m=altitude_m,
        altitude_accuracy_m=altitude_accuracy_m,
        speed_mps=speed_mps,
    )


@pytest.fixture
def office_areas() -> list[GeofenceArea]:
    return [
        GeofenceArea(id="a1", name="Head Office",
                     shape=Polygon(tuple(square_ring(OFFICE, 150.0)))),
        GeofenceArea(id="a2", name="Warehouse",
                     shape=Circle(center=offset(OFFICE, north_m=2_000.0), radius_m=80.0)),
        GeofenceArea(id="a3", name="Closed Branch", is_active=False,
                     shape=Circle(center=offset(OFFICE, east_m=5_000.0), radius_m=500.0)),
    ]


@pytest.fixture(autouse=True)
def _init_server(tmp_path, office_areas):
    """Initialize server singletons for every test, using a temp directory."""
    config = AppConfig()
    config.storage.base_dir = str(tmp_path / "data")
    config.geofence.areas_file = ""
    config.acquisition.watch_timeout_ms = 50
    config.logging.level = "warning"

    stats = CheckStats(active_window_seconds=config.limits.active_window_seconds)
    areas = StaticAreaSource(office_areas)
    processor = main_module.build_processor(config, stats, areas)

    # Patch module-level singletons
    main_module._config = config
    main_module._stats = stats
    main_module._areas = areas
    main_module._processor = processor

    yield

    # Cleanup
    main_module._config = None
    main_module._stats = None
    main_module._areas = None
    main_module._processor = None


@pytest.fixture
async def client():
    from geoclock.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
