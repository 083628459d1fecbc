"""geoclock — core value objects.

These are plain frozen dataclasses with no framework dependencies.
JSON request bodies and stored area rows are converted to/from these at the
boundary.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Union


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float

    @property
    def is_valid(self) -> bool:
        """Finite and inside [-90, 90] x [-180, 180]."""
        return (
            math.isfinite(self.lat)
            and math.isfinite(self.lng)
            and -90.0 <= self.lat <= 90.0
            and -180.0 <= self.lng <= 180.0
        )


@dataclass(frozen=True)
class LocationReading:
    """A raw device sample, as delivered by the positioning capability."""
    point: GeoPoint
    accuracy_m: float
    captured_at_ms: int
    altitude_m: float | None = None
    altitude_accuracy_m: float | None = None
    speed_mps: float | None = None
    heading_deg: float | None = None


@dataclass(frozen=True)
class AveragedLocation:
    point: GeoPoint
    accuracy_m: float
    captured_at_ms: int
    sample_count: int = 1


@dataclass(frozen=True)
class PositionOptions:
    """Options handed to the positioning capability for one request."""
    enable_high_accuracy: bool = True
    timeout_ms: int = 15_000
    max_age_ms: int = 0


@dataclass(frozen=True)
class Circle:
    center: GeoPoint
    radius_m: float


@dataclass(frozen=True)
class Polygon:
    vertices: tuple[GeoPoint, ...]


AreaShape = Union[Circle, Polygon]


@dataclass(frozen=True)
class GeofenceArea:
    id: str
    name: str
    shape: AreaShape
    is_active: bool = True


@dataclass(frozen=True)
class ToleranceResult:
    final_tolerance_m: float
    gps_tolerance_m: float


@dataclass(frozen=True)
class PlausibilityVerdict:
    is_valid: bool
    is_mocked: bool
    confidence_score: int
    reasons: tuple[str, ...] = ()

    @property
    def effective_confidence(self) -> int:
        """Confidence clamped into 0..100; negative sums mean no confidence."""
        return max(0, min(100, self.confidence_score))


@dataclass(frozen=True)
class ContainmentResult:
    is_inside: bool
    matched_area_name: str | None = None
    distance_to_edge_m: float | None = None
    nearest_area_name: str | None = None


@dataclass
class ClockCheckRecord:
    """A decided clock check, queued for the decision log."""
    server_timestamp_ms: int
    device_id: str
    employee_id: str
    action: str
    work_mode: str
    accepted: bool
    location: AveragedLocation | None
    verdict: PlausibilityVerdict | None
    containment: ContainmentResult | None
    reasons: list[str] = field(default_factory=list)
    error_code: str = ""
    record_id: int = 0


@dataclass(frozen=True)
class ClockCheckRequest:
    """A clock-in/out attempt with the raw samples recorded by the device.

    ``samples`` holds LocationReading values, or LocationError instances for
    platform callbacks that failed, in the order the device produced them.
    """
    device_id: str
    employee_id: str
    action: str
    work_mode: str
    samples: tuple = ()
    kiosk: bool = False
