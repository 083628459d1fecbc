"""Tests for the clock-check, area and monitoring API endpoints."""

from __future__ import annotations

import json
import time

import pytest

import geoclock.main as main_module
from conftest import OFFICE, offset


def _samples(point=OFFICE, accuracy_m=12.0, count=3):
    now_ms = int(time.time() * 1000)
    return [
        {
            "lat": point.lat,
            "lng": point.lng,
            "accuracy_m": accuracy_m,
            "timestamp_ms": now_ms - (count - 1 - i) * 1000,
            "altitude_m": 12.0,
            "altitude_accuracy_m": 3.0,
        }
        for i in range(count)
    ]


async def _post_check(client, payload):
    return await client.post(
        "/api/v1/clock-checks",
        content=json.dumps(payload),
        headers={"content-type": "application/json"},
    )


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["areas_loaded"] == 3
    assert "uptime_seconds" in data
    assert "disk_free_gb" in data


@pytest.mark.asyncio
async def test_stats_empty(client):
    resp = await client.get("/api/v1/stats")
    assert resp.status_code == 200
    data = resp.json()
    assert data["checks_received"] == 0
    assert data["active_devices"]["total"] == 0
    assert data["active_devices"]["clock_in"] == 0
    assert data["active_devices"]["clock_out"] == 0


@pytest.mark.asyncio
async def test_config_endpoint(client):
    resp = await client.get("/api/v1/config")
    assert resp.status_code == 200
    data = resp.json()
    assert data["acquisition"]["readings_count"] == 3
    assert data["acquisition"]["reading_interval_ms"] == 0
    assert data["acquisition"]["watch_timeout_ms"] == 50
    assert data["debounce_ms"] == 2000
    assert data["tolerance"] == {"min_m": 10.0, "max_m": 150.0, "gps_factor": 0.5, "admin_m": 0.0}
    assert data["enforce_for_modes"] == ["wfo"]
    assert "max_samples_per_check" in data


@pytest.mark.asyncio
async def test_config_endpoint_follows_server_config(client):
    main_module.get_config().acquisition.debounce_ms = 3000
    main_module.get_config().acquisition.readings_count = 5
    data = (await client.get("/api/v1/config")).json()
    assert data["debounce_ms"] == 3000
    assert data["acquisition"]["readings_count"] == 5


@pytest.mark.asyncio
async def test_clock_in_accepted(client):
    resp = await _post_check(client, {
        "device_id": "test-device-001",
        "employee_id": "emp-7",
        "action": "clock_in",
        "work_mode": "wfo",
        "samples": _samples(),
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["accepted"] is True
    assert data["reasons"] == []
    assert data["location"]["sample_count"] == 3
    assert data["containment"]["matched_area_name"] == "Head Office"
    assert data["verdict"]["confidence_score"] == 100
    assert data["accuracy_level"] == "good"

    stats = (await client.get("/api/v1/stats")).json()
    assert stats["checks_accepted"] == 1
    assert stats["active_devices"]["clock_in"] == 1


@pytest.mark.asyncio
async def test_clock_out_outside_rejected(client):
    resp = await _post_check(client, {
        "device_id": "test-device-002",
        "action": "clock_out",
        "samples": _samples(offset(OFFICE, north_m=800)),
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["accepted"] is False
    assert data["reasons"] == ["outside_geofence"]
    assert data["containment"]["nearest_area_name"] == "Head Office"
    assert data["containment"]["distance_to_edge_m"] == pytest.approx(650, abs=2)


@pytest.mark.asyncio
async def test_platform_errors_are_reported(client):
    resp = await _post_check(client, {
        "device_id": "test-device-003",
        "samples": [{"error": "permission_denied", "message": "blocked"}],
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["accepted"] is False
    assert data["error_code"] == "permission_denied"
    assert data["location"] is None
    assert "accuracy_level" not in data


@pytest.mark.asyncio
async def test_unknown_error_code_means_unavailable(client):
    resp = await _post_check(client, {
        "device_id": "test-device-004",
        "samples": [{"error": "weird"}],
    })
    assert resp.json()["error_code"] == "position_unavailable"


@pytest.mark.asyncio
async def test_invalid_json(client):
    resp = await client.post(
        "/api/v1/clock-checks",
        content=b"not json",
        headers={"content-type": "application/json"},
    )
    assert resp.status_code == 400
    stats = (await client.get("/api/v1/stats")).json()
    assert stats["invalid_requests"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"samples": _samples()},
    {"device_id": "d", "samples": []},
    {"device_id": "d", "action": "lunch_break", "samples": _samples()},
    {"device_id": "d", "samples": [{"lat": 91.0, "lng": 0.0, "accuracy_m": 5, "timestamp_ms": 1}]},
    {"device_id": "d", "samples": [{"lat": 1.0, "accuracy_m": 5, "timestamp_ms": 1}]},
    {"device_id": "d", "samples": [{"lat": 1.0, "lng": 1.0, "accuracy_m": -5, "timestamp_ms": 1}]},
    {"device_id": "d", "samples": ["nope"]},
    {"device_id": "d", "samples": 5},
    {"device_id": "d", "samples": {"lat": 1.0, "lng": 1.0}},
    {"device_id": "d", "samples": "lat=1,lng=1"},
    [1, 2, 3],
])
async def test_invalid_requests(client, payload):
    resp = await _post_check(client, payload)
    assert resp.status_code == 422
    assert resp.json()["accepted"] is False


@pytest.mark.asyncio
async def test_too_many_samples(client):
    resp = await _post_check(client, {
        "device_id": "d",
        "samples": _samples(count=21),
    })
    assert resp.status_code == 422
    assert "too many samples" in resp.json()["error"]


@pytest.mark.asyncio
async def test_areas_geojson(client):
    resp = await client.get("/api/v1/areas")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/geo+json")
    data = resp.json()
    assert data["type"] == "FeatureCollection"
    names = [f["properties"]["name"] for f in data["features"]]
    assert names == ["Head Office", "Warehouse", "Closed Branch"]

    warehouse = data["features"][1]
    assert warehouse["properties"]["kind"] == "circle"
    assert warehouse["properties"]["radius_m"] == 80.0
    ring = warehouse["geometry"]["coordinates"][0]
    assert len(ring) == 33
    assert ring[0] == ring[-1]
    assert data["features"][2]["properties"]["is_active"] is False


@pytest.mark.asyncio
async def test_locate_inside(client):
    resp = await client.post("/api/v1/areas/locate", json={
        "lat": OFFICE.lat, "lng": OFFICE.lng, "accuracy_m": 65,
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["is_inside"] is True
    assert data["matched_area_name"] == "Head Office"
    assert data["tolerance"] == {"final_m": 32.5, "gps_m": 32.5}


@pytest.mark.asyncio
async def test_locate_outside_with_admin_tolerance(client):
    warehouse = offset(OFFICE, north_m=2_000)
    point = offset(warehouse, east_m=100)
    body = {"lat": point.lat, "lng": point.lng, "accuracy_m": 8}
    data = (await client.post("/api/v1/areas/locate", json=body)).json()
    assert data["is_inside"] is False
    assert data["nearest_area_name"] == "Warehouse"
    assert data["distance_to_edge_m"] == pytest.approx(20, abs=0.5)

    body["admin_tolerance_m"] = 30
    data = (await client.post("/api/v1/areas/locate", json=body)).json()
    assert data["is_inside"] is True
    assert data["tolerance"]["final_m"] == 30


@pytest.mark.asyncio
async def test_locate_bad_requests(client):
    resp = await client.post("/api/v1/areas/locate", content=b"{")
    assert resp.status_code == 400
    resp = await client.post("/api/v1/areas/locate", json={"lat": 1.0})
    assert resp.status_code == 400
    resp = await client.post("/api/v1/areas/locate", json={"lat": 100.0, "lng": 0.0})
    assert resp.status_code == 422


@pytest.mark.asyncio
@pytest.mark.parametrize("tolerance", [150, "150", [1], None])
async def test_client_cannot_widen_admin_tolerance(client, tolerance):
    """Admin tolerance comes from server config; a value in the body is ignored."""
    warehouse = offset(OFFICE, north_m=2_000)
    resp = await _post_check(client, {
        "device_id": "test-device-tol",
        "samples": _samples(offset(warehouse, east_m=100), accuracy_m=8.0, count=1),
        "admin_tolerance_m": tolerance,
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["accepted"] is False
    assert data["reasons"] == ["outside_geofence"]
    assert data["containment"]["is_inside"] is False
