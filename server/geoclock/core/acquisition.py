"""Location acquisition — best-effort current position from a positioning provider.

Strategies are tried in order until one produces a location:

1. ``multiple_readings``: up to N sequential single readings, averaged.
2. ``watch_fallback``: one single reading raced against the timeout, then a
   short-lived watch subscription if that timed out.

Results are memoized in a ``LocationCache`` for a short debounce window so
near-simultaneous callers share one answer instead of waking the GPS again.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, AsyncIterator, Awaitable, Callable

import structlog

from geoclock.core.errors import (
    AcquisitionFailedError,
    LocationError,
    LocationTimeoutError,
    PositionUnavailableError,
    UnsupportedCapabilityError,
)
from geoclock.core.models import AveragedLocation, GeoPoint, LocationReading, PositionOptions

if TYPE_CHECKING:
    from geoclock.positioning.base import PositioningProvider, PositionWatch

log = structlog.get_logger()

DEBOUNCE_MS = 2_000
WATCH_TIMEOUT_MS = 5_000

ReadingHook = Callable[[LocationReading], Awaitable[None]]


@dataclass(frozen=True)
class AcquisitionConfig:
    enable_high_accuracy: bool = True
    timeout_ms: int = 15_000
    max_age_ms: int = 0
    use_multiple_readings: bool = True
    readings_count: int = 3
    reading_interval_ms: int = 500
    watch_timeout_ms: int = WATCH_TIMEOUT_MS

    def position_options(self) -> PositionOptions:
        return PositionOptions(
            enable_high_accuracy=self.enable_high_accuracy,
            timeout_ms=self.timeout_ms,
            max_age_ms=self.max_age_ms,
        )


class LocationCache:
    """Debounce cache holding the most recent acquired location."""

    def __init__(self, ttl_ms: int = DEBOUNCE_MS, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl_ms = ttl_ms
        self._clock = clock
        self._entry: tuple[AveragedLocation, float] | None = None
        # Serializes acquisitions so concurrent callers observe one result.
        self.lock = asyncio.Lock()

    def get(self) -> AveragedLocation | None:
        if self._entry is None:
            return None
        location, stored_at = self._entry
        if (self._clock() - stored_at) * 1000 < self._ttl_ms:
            return location
        return None

    def put(self, location: AveragedLocation) -> None:
        self._entry = (location, self._clock())

    def clear(self) -> None:
        self._entry = None


def average_readings(readings: list[LocationReading]) -> AveragedLocation:
    """Arithmetic mean of lat, lng and accuracy."""
    if not readings:
        raise PositionUnavailableError("no readings available")
    n = len(readings)
    return AveragedLocation(
        point=GeoPoint(
            lat=sum(r.point.lat for r in readings) / n,
            lng=sum(r.point.lng for r in readings) / n,
        ),
        accuracy_m=sum(r.accuracy_m for r in readings) / n,
        captured_at_ms=int(time.time() * 1000),
        sample_count=n,
    )


def _as_location(reading: LocationReading) -> AveragedLocation:
    return AveragedLocation(
        point=reading.point,
        accuracy_m=reading.accuracy_m,
        captured_at_ms=int(time.time() * 1000),
        sample_count=1,
    )


@asynccontextmanager
async def _watching(provider: PositioningProvider, options: PositionOptions) -> AsyncIterator[PositionWatch]:
    watch = provider.watch_position(options)
    try:
        yield watch
    finally:
        watch.clear()


class LocationAcquirer:
    """Runs acquisition strategies against a positioning provider.

    ``provider`` is None when the platform has no positioning capability.
    ``on_reading`` is awaited with every raw reading obtained, in acquisition
    order (used to feed the plausibility validator).
    """

    def __init__(
        self,
        provider: PositioningProvider | None,
        cache: LocationCache | None = None,
        on_reading: ReadingHook | None = None,
    ) -> None:
        self._provider = provider
        self._cache = cache if cache is not None else LocationCache()
        self._on_reading = on_reading

    @property
    def cache(self) -> LocationCache:
        return self._cache

    async def _emit(self, reading: LocationReading) -> LocationReading:
        if self._on_reading is not None:
            await self._on_reading(reading)
        return reading

    async def get_single_reading(self, options: PositionOptions) -> LocationReading:
        if self._provider is None:
            raise UnsupportedCapabilityError("geolocation not supported")
        return await self._provider.get_current_position(options)

    async def get_reading_with_fallback(
        self,
        options: PositionOptions,
        watch_timeout_ms: int = WATCH_TIMEOUT_MS,
    ) -> LocationReading:
        """One-shot request; on timeout, wait on a watch subscription instead."""
        try:
            reading = await asyncio.wait_for(
                self.get_single_reading(options), options.timeout_ms / 1000,
            )
            return await self._emit(reading)
        except (asyncio.TimeoutError, LocationTimeoutError):
            log.info("watch_fallback_started", timeout_ms=options.timeout_ms)

        provider = self._provider
        if provider is None:
            raise UnsupportedCapabilityError("geolocation not supported")
        async with _watching(provider, options) as watch:
            try:
                reading = await asyncio.wait_for(watch.next_position(), watch_timeout_ms / 1000)
            except asyncio.TimeoutError:
                raise AcquisitionFailedError("location acquisition failed") from None
        return await self._emit(reading)

    async def get_multiple_readings(
        self,
        count: int,
        interval_ms: int,
        options: PositionOptions,
    ) -> list[LocationReading]:
        """Sequential readings; failed ones are skipped."""
        readings: list[LocationReading] = []
        for i in range(count):
            try:
                reading = await asyncio.wait_for(
                    self.get_single_reading(options), options.timeout_ms / 1000,
                )
            except UnsupportedCapabilityError:
                raise
            except asyncio.TimeoutError:
                log.warning("reading_failed", index=i + 1, count=count, error="timeout")
                continue
            except LocationError as exc:
                log.warning("reading_failed", index=i + 1, count=count, error=exc.code)
                continue

            readings.append(await self._emit(reading))
            log.debug("reading_acquired", index=i + 1, count=count,
                      lat=reading.point.lat, lng=reading.point.lng,
                      accuracy_m=reading.accuracy_m)
            if i < count - 1:
                await asyncio.sleep(interval_ms / 1000)
        return readings

    async def _averaged_readings(self, config: AcquisitionConfig) -> AveragedLocation:
        readings = await self.get_multiple_readings(
            config.readings_count, config.reading_interval_ms, config.position_options(),
        )
        location = average_readings(readings)
        log.info("location_averaged", readings=location.sample_count,
                 accuracy_m=round(location.accuracy_m, 1))
        return location

    async def _fallback_reading(self, config: AcquisitionConfig) -> AveragedLocation:
        reading = await self.get_reading_with_fallback(
            config.position_options(), config.watch_timeout_ms,
        )
        return _as_location(reading)

    async def get_enhanced_location(self, config: AcquisitionConfig | None = None) -> AveragedLocation:
        """Top-level entry point. Raises the last LocationError if every strategy fails."""
        if config is None:
            config = AcquisitionConfig()

        async with self._cache.lock:
            cached = self._cache.get()
            if cached is not None:
                log.debug("location_cache_hit")
                return cached

            if self._provider is None:
                raise UnsupportedCapabilityError("geolocation not supported")

            strategies: list[tuple[str, Callable[[], Awaitable[AveragedLocation]]]] = []
            if config.use_multiple_readings and config.readings_count > 1:
                strategies.append(("multiple_readings", partial(self._averaged_readings, config)))
            strategies.append(("watch_fallback", partial(self._fallback_reading, config)))

            last_error: LocationError = AcquisitionFailedError("location acquisition failed")
            for name, strategy in strategies:
                try:
                    location = await strategy()
                except UnsupportedCapabilityError:
                    raise
                except LocationError as exc:
                    log.warning("acquisition_strategy_failed", strategy=name, error=exc.code)
                    last_error = exc
                    continue
                self._cache.put(location)
                return location

            log.error("location_acquisition_failed", error=last_error.code)
            raise last_error
