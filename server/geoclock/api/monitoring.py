"""Health check and monitoring endpoints."""

from __future__ import annotations

import json
import shutil
from dataclasses import asdict
from pathlib import Path

from fastapi import APIRouter

from geoclock.core import tolerance

router = APIRouter(prefix="/api/v1")

# Load build info once at import time.
_BUILD_INFO_PATH = Path(__file__).parent.parent / "build_info.json"
_BUILD_INFO: dict = {}
if _BUILD_INFO_PATH.exists():
    try:
        _BUILD_INFO = json.loads(_BUILD_INFO_PATH.read_text())
    except (json.JSONDecodeError, OSError):
        pass


@router.get("/health")
async def health() -> dict:
    """Basic health check."""
    from geoclock.main import get_areas, get_config, get_stats

    stats = get_stats()
    config = get_config()

    storage_path = Path(config.storage.base_dir)
    try:
        disk = shutil.disk_usage(storage_path if storage_path.exists() else ".")
        disk_free_gb = round(disk.free / (1024 ** 3), 1)
        storage_writable = True
    except OSError:
        disk_free_gb = -1
        storage_writable = False

    snapshot = stats.snapshot()
    result = {
        "status": "ok",
        "version": "0.1.0",
        "uptime_seconds": snapshot["uptime_seconds"],
        "queue_depth": snapshot["queue_depth"],
        "areas_loaded": len(get_areas().list_areas()),
        "storage_writable": storage_writable,
        "disk_free_gb": disk_free_gb,
    }
    result.update(_BUILD_INFO)
    return result


@router.get("/stats")
async def stats() -> dict:
    """Detailed clock-check statistics.

    The ``rejected`` section splits denials by cause, and ``active_devices``
    counts devices seen in the last N seconds by their last action.
    """
    from geoclock.main import get_stats

    return get_stats().snapshot()


@router.get("/config")
async def get_client_config() -> dict:
    """Configuration endpoint for the attendance app.

    The app calls this on startup to get acquisition defaults and the
    tolerance constants it should display.
    """
    from geoclock.main import get_config

    config = get_config()
    return {
        "acquisition": asdict(config.acquisition.to_acquisition_config()),
        "debounce_ms": config.acquisition.debounce_ms,
        "tolerance": {
            "min_m": tolerance.MIN_TOLERANCE_M,
            "max_m": tolerance.MAX_ABSOLUTE_TOLERANCE_M,
            "gps_factor": tolerance.GPS_TOLERANCE_FACTOR,
            "admin_m": config.geofence.admin_tolerance_m,
        },
        "max_acceptable_accuracy_m": config.geofence.max_acceptable_accuracy_m,
        "enforce_for_modes": list(config.geofence.enforce_for_modes),
        "max_samples_per_check": config.limits.max_samples_per_check,
    }
