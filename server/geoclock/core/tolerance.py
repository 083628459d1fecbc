"""Adaptive GPS tolerance and accuracy classification.

Tolerance grows with GPS inaccuracy so indoor users with poor fixes can still
clock in, but it is capped so it can never grow unbounded.
"""

from __future__ import annotations

from geoclock.core.models import ToleranceResult

MIN_TOLERANCE_M = 10.0
MAX_ABSOLUTE_TOLERANCE_M = 150.0
GPS_TOLERANCE_FACTOR = 0.5
MAX_ACCEPTABLE_ACCURACY_M = 200.0


def calculate_adaptive_tolerance(gps_accuracy_m: float, admin_tolerance_m: float) -> ToleranceResult:
    """Combine device accuracy and the admin tolerance into an acceptance radius.

    1. GPS tolerance = max(accuracy * 0.5, 10)
    2. the larger of GPS tolerance and admin tolerance wins
    3. capped at 150
    """
    gps_tolerance = max(gps_accuracy_m * GPS_TOLERANCE_FACTOR, MIN_TOLERANCE_M)
    raw_tolerance = max(gps_tolerance, admin_tolerance_m)
    final_tolerance = min(raw_tolerance, MAX_ABSOLUTE_TOLERANCE_M)
    return ToleranceResult(final_tolerance_m=final_tolerance, gps_tolerance_m=gps_tolerance)


def accuracy_level(accuracy_m: float) -> str:
    if accuracy_m <= 10:
        return "excellent"
    if accuracy_m <= 30:
        return "good"
    return "poor"


_ACCURACY_MESSAGES = {
    "excellent": "Location is very accurate",
    "good": "Location is reasonably accurate",
    "poor": "Weak GPS signal, move to an open area or near a window",
}


def accuracy_message(accuracy_m: float) -> str:
    return _ACCURACY_MESSAGES[accuracy_level(accuracy_m)]
