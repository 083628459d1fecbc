"""Clock-check processor — acquires, validates, and decides clock-in/out attempts.

This is the core business logic. It depends on the DecisionQueue,
DecisionStorage and AreaSource protocols, not concrete implementations.

Pipeline per check: replay the device's samples through the acquisition
engine, score every raw reading with the device's plausibility validator,
run geofence containment on the averaged location, decide, and enqueue the
decision for the log.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

import structlog

from geoclock.core.acquisition import AcquisitionConfig, LocationAcquirer, LocationCache
from geoclock.core.containment import check_areas
from geoclock.core.errors import LocationError
from geoclock.core.models import (
    ClockCheckRecord,
    ClockCheckRequest,
    LocationReading,
    PlausibilityVerdict,
)
from geoclock.core.plausibility import GPSValidator, quick_validate, worst_verdict
from geoclock.core.tolerance import MAX_ACCEPTABLE_ACCURACY_M
from geoclock.positioning.sample_feed import SampleFeedProvider

if TYPE_CHECKING:
    from geoclock.core.stats import CheckStats
    from geoclock.queue.base import DecisionQueue
    from geoclock.storage.base import AreaSource, DecisionStorage

log = structlog.get_logger()


@dataclass
class DeviceSession:
    """Per-device state: position history and the debounce cache."""
    validator: GPSValidator
    cache: LocationCache
    last_verdict: PlausibilityVerdict | None = None
    last_seen: float = 0.0          # clock() timestamp of the last check


@dataclass
class DecisionPolicy:
    admin_tolerance_m: float = 0.0
    max_acceptable_accuracy_m: float = MAX_ACCEPTABLE_ACCURACY_M
    enforce_for_modes: list[str] = field(default_factory=lambda: ["wfo"])


def _kiosk_verdict(reading: LocationReading) -> PlausibilityVerdict:
    ok = quick_validate(reading)
    return PlausibilityVerdict(
        is_valid=ok,
        is_mocked=not ok,
        confidence_score=100 if ok else 0,
        reasons=() if ok else ("quick_check_failed",),
    )


class ClockCheckProcessor:
    """Decides clock checks and enqueues the decisions for storage."""

    def __init__(
        self,
        queue: DecisionQueue,
        storage: DecisionStorage,
        stats: CheckStats,
        areas: AreaSource,
        acquisition: AcquisitionConfig | None = None,
        policy: DecisionPolicy | None = None,
        debounce_ms: int = 2_000,
        session_idle_seconds: float = 120.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._queue = queue
        self._storage = storage
        self._stats = stats
        self._areas = areas
        self._acquisition = acquisition or AcquisitionConfig()
        self._policy = policy or DecisionPolicy()
        self._debounce_ms = debounce_ms
        self._session_idle = session_idle_seconds
        self._clock = clock
        self._sessions: dict[str, DeviceSession] = {}
        self._next_record_id = 1

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def _prune_idle_sessions(self, now: float) -> None:
        """Drop sessions with no check inside the idle window, unless mid-acquisition."""
        cutoff = now - self._session_idle
        idle = [
            did for did, s in self._sessions.items()
            if s.last_seen < cutoff and not s.cache.lock.locked()
        ]
        for did in idle:
            del self._sessions[did]
        if idle:
            log.debug("device_sessions_pruned", count=len(idle), remaining=len(self._sessions))

    def session(self, device_id: str) -> DeviceSession:
        """The device's session, created on first use. Touching it marks it active."""
        now = self._clock()
        self._prune_idle_sessions(now)
        session = self._sessions.get(device_id)
        if session is None:
            session = DeviceSession(
                validator=GPSValidator(),
                cache=LocationCache(ttl_ms=self._debounce_ms),
            )
            self._sessions[device_id] = session
        session.last_seen = now
        return session

    def _new_record(self, req: ClockCheckRequest, **kwargs) -> ClockCheckRecord:
        record = ClockCheckRecord(
            server_timestamp_ms=int(time.time() * 1000),
            device_id=req.device_id,
            employee_id=req.employee_id,
            action=req.action,
            work_mode=req.work_mode,
            record_id=self._next_record_id,
            **kwargs,
        )
        self._next_record_id += 1
        return record

    async def process_check(self, req: ClockCheckRequest) -> ClockCheckRecord:
        """Decide a clock check. Never raises for bad signal; denial is a result."""
        self._stats.record_check(req.device_id, req.action)
        session = self.session(req.device_id)
        verdicts: list[PlausibilityVerdict] = []

        async def score(reading: LocationReading) -> None:
            if req.kiosk:
                verdicts.append(_kiosk_verdict(reading))
            else:
                verdicts.append(await session.validator.validate(reading))

        acquirer = LocationAcquirer(
            SampleFeedProvider(req.samples), cache=session.cache, on_reading=score,
        )
        try:
            location = await acquirer.get_enhanced_location(self._acquisition)
        except LocationError as exc:
            self._stats.record_rejected("acquisition")
            record = self._new_record(
                req, accepted=False, location=None, verdict=None, containment=None,
                reasons=[exc.code], error_code=exc.code,
            )
            log.info("clock_check_decided", device=req.device_id[:8],
                     accepted=False, error=exc.code)
            await self._enqueue(record)
            return record

        verdict = worst_verdict(verdicts)
        if verdict is None:
            # Debounce cache hit: no new readings were taken.
            verdict = session.last_verdict
        else:
            session.last_verdict = verdict

        containment = check_areas(
            location.point, location.accuracy_m, self._areas.list_areas(),
            self._policy.admin_tolerance_m,
        )

        reasons: list[str] = []
        cause = None
        if verdict is not None and not verdict.is_valid:
            reasons.append("gps_mocked")
            cause = "mocked"
        if location.accuracy_m > self._policy.max_acceptable_accuracy_m:
            reasons.append("accuracy_too_poor")
            cause = cause or "accuracy"
        if req.work_mode in self._policy.enforce_for_modes and not containment.is_inside:
            reasons.append("outside_geofence")
            cause = cause or "outside"

        accepted = cause is None
        if accepted:
            self._stats.record_accepted()
        else:
            self._stats.record_rejected(cause)

        record = self._new_record(
            req, accepted=accepted, location=location, verdict=verdict,
            containment=containment, reasons=reasons,
        )
        log.info("clock_check_decided", device=req.device_id[:8],
                 action=req.action, accepted=accepted, reasons=reasons,
                 area=containment.matched_area_name,
                 confidence=verdict.confidence_score if verdict else None)
        await self._enqueue(record)
        return record

    async def _enqueue(self, record: ClockCheckRecord) -> None:
        try:
            await self._queue.put(record)
        except Exception:
            log.error("queue_put_failed", device=record.device_id[:8],
                      record_id=record.record_id, exc_info=True)
        self._stats.update_queue_depth(self._queue.qsize())

    async def run_storage_consumer(self) -> None:
        """Consume from the queue and write to storage. Runs as a background task."""
        log.info("storage_consumer_started")
        while True:
            record = await self._queue.get()
            try:
                await self._storage.store(record)
                self._stats.record_stored(1)
                self._stats.update_queue_depth(self._queue.qsize())
                log.debug("decision_stored", record_id=record.record_id,
                          device=record.device_id[:8])
            except Exception:
                log.error("storage_write_failed", record_id=record.record_id,
                          exc_info=True)
                self._stats.record_storage_error()
