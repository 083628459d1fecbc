"""Storage interfaces (ports) for decision records and geofence areas."""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from geoclock.core.models import ClockCheckRecord, GeofenceArea


class DecisionStorage(Protocol):
    """Port: persists decided clock checks to durable storage."""

    async def store(self, record: ClockCheckRecord) -> None: ...

    async def store_batch(self, records: list[ClockCheckRecord]) -> None: ...


class AreaSource(Protocol):
    """Port: supplies the admin-managed geofence areas, in creation order."""

    def list_areas(self) -> list[GeofenceArea]: ...
