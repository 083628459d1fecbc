"""Queue interface (port) for decided clock-check records."""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from geoclock.core.models import ClockCheckRecord


class DecisionQueue(Protocol):
    """Port: accepts decision records and delivers them to consumers."""

    async def put(self, record: ClockCheckRecord) -> None: ...

    async def get(self) -> ClockCheckRecord: ...

    def qsize(self) -> int: ...
