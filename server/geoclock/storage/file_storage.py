"""File-based decision log.

Stores decided clock checks as JSON Lines, one file per UTC day:
base_dir/YYYY/MM/DD/decisions.jsonl
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from geoclock.core.models import ClockCheckRecord

log = structlog.get_logger()


def serialize_record(record: ClockCheckRecord) -> dict:
    """Convert a record to a JSON-serializable dict."""
    location = None
    if record.location is not None:
        location = {
            "lat": record.location.point.lat,
            "lng": record.location.point.lng,
            "accuracy_m": round(record.location.accuracy_m, 2),
            "captured_at_ms": record.location.captured_at_ms,
            "sample_count": record.location.sample_count,
        }
    verdict = None
    if record.verdict is not None:
        verdict = {
            "is_valid": record.verdict.is_valid,
            "is_mocked": record.verdict.is_mocked,
            "confidence_score": record.verdict.confidence_score,
            "reasons": list(record.verdict.reasons),
        }
    containment = None
    if record.containment is not None:
        distance = record.containment.distance_to_edge_m
        containment = {
            "is_inside": record.containment.is_inside,
            "matched_area_name": record.containment.matched_area_name,
            "nearest_area_name": record.containment.nearest_area_name,
            "distance_to_edge_m": round(distance, 1) if distance is not None else None,
        }
    return {
        "id": record.record_id,
        "server_timestamp_ms": record.server_timestamp_ms,
        "device_id": record.device_id,
        "employee_id": record.employee_id,
        "action": record.action,
        "work_mode": record.work_mode,
        "accepted": record.accepted,
        "reasons": list(record.reasons),
        "error_code": record.error_code,
        "location": location,
        "verdict": verdict,
        "containment": containment,
    }


class FileDecisionStorage:
    """DecisionStorage backed by day-partitioned JSON Lines files on disk."""

    def __init__(self, base_dir: str | Path) -> None:
        self._base_dir = Path(base_dir)
        self._base_dir.mkdir(parents=True, exist_ok=True)

    def _day_dir(self, timestamp_ms: int) -> Path:
        """Return the directory for a given timestamp."""
        dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
        path = self._base_dir / f"{dt.year:04d}" / f"{dt.month:02d}" / f"{dt.day:02d}"
        path.mkdir(parents=True, exist_ok=True)
        return path

    async def store(self, record: ClockCheckRecord) -> None:
        """Append a single record to its day's log."""
        day_dir = self._day_dir(record.server_timestamp_ms)
        line = json.dumps(serialize_record(record), separators=(",", ":"))
        with open(day_dir / "decisions.jsonl", "a") as f:
            f.write(line + "\n")

        log.debug("decision_written", record_id=record.record_id,
                  path=str(day_dir))

    async def store_batch(self, records: list[ClockCheckRecord]) -> None:
        """Store a batch of records."""
        for record in records:
            await self.store(record)

    def read_all(self) -> list[dict]:
        """Read every logged decision, oldest file first."""
        records = []
        for path in sorted(self._base_dir.glob("*/*/*/decisions.jsonl")):
            with open(path) as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        records.append(json.loads(line))
                    except json.JSONDecodeError:
                        log.warning("decision_line_corrupt", path=str(path))
        return records
