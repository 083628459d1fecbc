"""Clock-check API endpoint.

This is the thin FastAPI adapter. It parses the JSON request, converts it to
internal models, and calls the processor.
"""

from __future__ import annotations

import json
import math

from fastapi import APIRouter, Request, Response

from geoclock.core.errors import ERRORS_BY_CODE, PositionUnavailableError
from geoclock.core.models import ClockCheckRecord, ClockCheckRequest, GeoPoint, LocationReading
from geoclock.core.tolerance import accuracy_level, accuracy_message
from geoclock.storage.file_storage import serialize_record

router = APIRouter(prefix="/api/v1")

_ACTIONS = ("clock_in", "clock_out")


def _optional_float(data: dict, key: str) -> float | None:
    value = data.get(key)
    if value is None:
        return None
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"{key} must be finite")
    return value


def parse_sample(data: dict):
    """Parse one device sample: a position fix, or a platform error."""
    if not isinstance(data, dict):
        raise ValueError("sample must be an object")
    if "error" in data:
        error_cls = ERRORS_BY_CODE.get(data["error"], PositionUnavailableError)
        return error_cls(str(data.get("message", "")))

    point = GeoPoint(lat=float(data["lat"]), lng=float(data["lng"]))
    if not point.is_valid:
        raise ValueError("sample coordinates out of range")
    accuracy = float(data.get("accuracy_m", 0.0))
    if not math.isfinite(accuracy) or accuracy < 0:
        raise ValueError("accuracy_m must be a non-negative number")
    return LocationReading(
        point=point,
        accuracy_m=accuracy,
        captured_at_ms=int(data["timestamp_ms"]),
        altitude_m=_optional_float(data, "altitude_m"),
        altitude_accuracy_m=_optional_float(data, "altitude_accuracy_m"),
        speed_mps=_optional_float(data, "speed_mps"),
        heading_deg=_optional_float(data, "heading_deg"),
    )


def parse_check_request(body: dict, max_samples: int) -> ClockCheckRequest:
    """Parse and validate a clock-check body. Raises ValueError when invalid."""
    if not isinstance(body, dict):
        raise ValueError("body must be an object")
    device_id = body.get("device_id", "")
    if not device_id:
        raise ValueError("device_id is required")
    action = body.get("action", "clock_in")
    if action not in _ACTIONS:
        raise ValueError(f"action must be one of {', '.join(_ACTIONS)}")
    raw_samples = body.get("samples") or []
    if not isinstance(raw_samples, list):
        raise ValueError("samples must be a list")
    if not raw_samples:
        raise ValueError("at least one sample is required")
    if len(raw_samples) > max_samples:
        raise ValueError(f"too many samples, maximum is {max_samples}")

    try:
        samples = tuple(parse_sample(s) for s in raw_samples)
    except (KeyError, TypeError) as exc:
        raise ValueError(f"malformed sample: {exc}") from None

    return ClockCheckRequest(
        device_id=str(device_id),
        employee_id=str(body.get("employee_id", "")),
        action=action,
        work_mode=str(body.get("work_mode", "wfo")),
        samples=samples,
        kiosk=bool(body.get("kiosk", False)),
    )


def record_to_response(record: ClockCheckRecord) -> dict:
    result = serialize_record(record)
    if record.location is not None:
        result["accuracy_level"] = accuracy_level(record.location.accuracy_m)
        result["accuracy_message"] = accuracy_message(record.location.accuracy_m)
    return result


def _json(payload: dict, status_code: int = 200) -> Response:
    return Response(
        content=json.dumps(payload),
        status_code=status_code,
        media_type="application/json",
    )


@router.post("/clock-checks")
async def submit_clock_check(request: Request) -> Response:
    """Decide a clock-in/out attempt from the samples the device recorded."""
    from geoclock.main import get_config, get_processor, get_stats

    processor = get_processor()
    config = get_config()
    body_bytes = await request.body()

    try:
        body = json.loads(body_bytes)
    except (json.JSONDecodeError, UnicodeDecodeError):
        get_stats().record_invalid()
        return _json({"accepted": False, "error": "invalid JSON"}, status_code=400)

    try:
        req = parse_check_request(body, config.limits.max_samples_per_check)
    except ValueError as exc:
        get_stats().record_invalid()
        return _json({"accepted": False, "error": str(exc)}, status_code=422)

    record = await processor.process_check(req)
    return _json(record_to_response(record))
