"""GPS plausibility validator — flags spoofed or mocked location signals.

Every check is a soft penalty subtracted from a starting confidence of 100;
no single check rejects a reading on its own. A reading is considered mocked
once the score drops below 50.

The validator keeps a short rolling history of the readings it has seen so it
can detect teleportation and frozen coordinates. Keep one instance per device.
"""

from __future__ import annotations

import time
from collections import deque

import structlog

from geoclock.core.geometry import haversine_m
from geoclock.core.models import LocationReading, PlausibilityVerdict

log = structlog.get_logger()

HISTORY_SIZE = 10
MOCKED_BELOW = 50

# Penalties.
PERFECT_ACCURACY_M = 3.0
PERFECT_ACCURACY_PENALTY = 25
POOR_ACCURACY_M = 100.0
POOR_ACCURACY_PENALTY = 10
STALE_AFTER_MS = 30_000
STALE_PENALTY = 20
NO_ALTITUDE_PENALTY = 5
ALTITUDE_RANGE_M = (-500.0, 10_000.0)
ALTITUDE_PENALTY = 15
MOVEMENT_WINDOW_S = 60.0
TELEPORT_SPEED_MPS = 100.0
TELEPORT_PENALTY = 40
HIGH_SPEED_MPS = 50.0
HIGH_SPEED_ACCURACY_M = 10.0
HIGH_SPEED_PENALTY = 20
FROZEN_SAMPLES = 3
FROZEN_ACCURACY_M = 5.0
FROZEN_PENALTY = 15
REPORTED_SPEED_MAX_MPS = 100.0
NEGATIVE_SPEED_PENALTY = 30
REPORTED_SPEED_PENALTY = 20

# Quick validation (kiosk devices).
QUICK_MIN_ACCURACY_M = 2.0
QUICK_STALE_AFTER_MS = 60_000


def _now_ms() -> int:
    return int(time.time() * 1000)


class GPSValidator:
    """Scores readings against heuristics and a rolling position history."""

    def __init__(self, history_size: int = HISTORY_SIZE) -> None:
        self._history: deque[LocationReading] = deque(maxlen=history_size)

    @property
    def history(self) -> tuple[LocationReading, ...]:
        return tuple(self._history)

    def clear_history(self) -> None:
        self._history.clear()

    async def validate(self, reading: LocationReading, now_ms: int | None = None) -> PlausibilityVerdict:
        """Score a reading, then append it to the history."""
        if now_ms is None:
            now_ms = _now_ms()
        reasons: list[str] = []
        score = 100
        accuracy = reading.accuracy_m

        if accuracy < PERFECT_ACCURACY_M:
            reasons.append("accuracy_too_perfect")
            score -= PERFECT_ACCURACY_PENALTY
        elif accuracy > POOR_ACCURACY_M:
            reasons.append("accuracy_very_poor")
            score -= POOR_ACCURACY_PENALTY

        if now_ms - reading.captured_at_ms > STALE_AFTER_MS:
            reasons.append("reading_stale")
            score -= STALE_PENALTY

        if reading.altitude_m is None and reading.altitude_accuracy_m is None:
            # Many legitimate devices omit altitude, so no reason is recorded.
            score -= NO_ALTITUDE_PENALTY
        elif reading.altitude_m is not None:
            low, high = ALTITUDE_RANGE_M
            if reading.altitude_m < low or reading.altitude_m > high:
                reasons.append("altitude_implausible")
                score -= ALTITUDE_PENALTY

        if self._history:
            last = self._history[-1]
            elapsed_s = (reading.captured_at_ms - last.captured_at_ms) / 1000
            if 0 < elapsed_s < MOVEMENT_WINDOW_S:
                speed = haversine_m(last.point, reading.point) / elapsed_s
                if speed > TELEPORT_SPEED_MPS:
                    reasons.append("teleportation")
                    score -= TELEPORT_PENALTY
                elif speed > HIGH_SPEED_MPS and accuracy < HIGH_SPEED_ACCURACY_M:
                    reasons.append("impossible_speed_high_precision")
                    score -= HIGH_SPEED_PENALTY

        if len(self._history) >= FROZEN_SAMPLES:
            recent = list(self._history)[-FROZEN_SAMPLES:]
            frozen = all(r.point == reading.point for r in recent)
            if frozen and accuracy < FROZEN_ACCURACY_M:
                reasons.append("frozen_coordinates")
                score -= FROZEN_PENALTY

        if reading.speed_mps is not None:
            if reading.speed_mps < 0:
                reasons.append("negative_speed")
                score -= NEGATIVE_SPEED_PENALTY
            elif reading.speed_mps > REPORTED_SPEED_MAX_MPS:
                reasons.append("reported_speed_implausible")
                score -= REPORTED_SPEED_PENALTY

        self._history.append(reading)

        is_mocked = score < MOCKED_BELOW
        if is_mocked:
            log.warning("gps_suspicious", confidence=score, reasons=reasons)
        return PlausibilityVerdict(
            is_valid=not is_mocked,
            is_mocked=is_mocked,
            confidence_score=score,
            reasons=tuple(reasons),
        )


def quick_validate(reading: LocationReading, now_ms: int | None = None) -> bool:
    """History-free check for unattended kiosk devices."""
    if now_ms is None:
        now_ms = _now_ms()
    if reading.accuracy_m < QUICK_MIN_ACCURACY_M:
        return False
    if now_ms - reading.captured_at_ms > QUICK_STALE_AFTER_MS:
        return False
    return True


def worst_verdict(verdicts: list[PlausibilityVerdict]) -> PlausibilityVerdict | None:
    """Lowest-confidence verdict, carrying every distinct reason seen."""
    if not verdicts:
        return None
    worst = min(verdicts, key=lambda v: v.confidence_score)
    reasons: list[str] = []
    for verdict in verdicts:
        for reason in verdict.reasons:
            if reason not in reasons:
                reasons.append(reason)
    return PlausibilityVerdict(
        is_valid=worst.is_valid,
        is_mocked=worst.is_mocked,
        confidence_score=worst.confidence_score,
        reasons=tuple(reasons),
    )
