"""PositioningProvider that replays samples uploaded by a device.

The client app records its own burst of position fixes (or the platform
errors it got) and uploads them with the clock check; this provider hands them
back to the acquisition engine one request at a time, in upload order.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Iterable, Union

from geoclock.core.errors import LocationError, PermissionDeniedError, PositionUnavailableError
from geoclock.core.models import LocationReading, PositionOptions

Sample = Union[LocationReading, LocationError]


class _FeedWatch:
    def __init__(self, feed: SampleFeedProvider) -> None:
        self._feed = feed
        self._cleared = asyncio.Event()

    async def next_position(self) -> LocationReading:
        if self._feed.remaining:
            return self._feed._take()
        # No more samples: behave like a watch that never fires.
        await self._cleared.wait()
        raise PositionUnavailableError("watch cleared")

    def clear(self) -> None:
        if not self._cleared.is_set():
            self._cleared.set()
            self._feed.active_watches -= 1


class SampleFeedProvider:
    """Replays a fixed sequence of readings and platform errors."""

    def __init__(self, samples: Iterable[Sample]) -> None:
        self._samples: deque[Sample] = deque(samples)
        self.requests = 0
        self.active_watches = 0
        self._denied: PermissionDeniedError | None = None

    @property
    def remaining(self) -> int:
        return len(self._samples)

    def _take(self) -> LocationReading:
        sample = self._samples.popleft()
        if isinstance(sample, LocationError):
            if isinstance(sample, PermissionDeniedError):
                # A denial holds for every later request, like the real platform.
                self._denied = sample
            raise sample
        return sample

    async def get_current_position(self, options: PositionOptions) -> LocationReading:
        self.requests += 1
        if self._denied is not None:
            raise self._denied
        if not self._samples:
            raise PositionUnavailableError("no more samples")
        return self._take()

    def watch_position(self, options: PositionOptions) -> _FeedWatch:
        self.active_watches += 1
        return _FeedWatch(self)
