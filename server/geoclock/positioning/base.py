"""Positioning capability interface (port)."""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from geoclock.core.models import LocationReading, PositionOptions


class PositionWatch(Protocol):
    """A standing location subscription. Must be cleared once done with."""

    async def next_position(self) -> LocationReading: ...

    def clear(self) -> None: ...


class PositioningProvider(Protocol):
    """Port: delivers device position fixes.

    Failures are raised as ``geoclock.core.errors.LocationError`` subclasses.
    """

    async def get_current_position(self, options: PositionOptions) -> LocationReading: ...

    def watch_position(self, options: PositionOptions) -> PositionWatch: ...
