"""In-process asyncio queue implementation of DecisionQueue."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from geoclock.core.models import ClockCheckRecord


class AsyncioDecisionQueue:
    """DecisionQueue backed by asyncio.Queue. Full queues reject immediately."""

    def __init__(self, max_size: int = 10_000) -> None:
        self._queue: asyncio.Queue[ClockCheckRecord] = asyncio.Queue(maxsize=max_size)

    async def put(self, record: ClockCheckRecord) -> None:
        self._queue.put_nowait(record)

    async def get(self) -> ClockCheckRecord:
        return await self._queue.get()

    def qsize(self) -> int:
        return self._queue.qsize()
