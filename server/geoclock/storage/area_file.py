"""AreaSource backed by a YAML export of the admin geofence table.

The file holds either a list of rows or a mapping with an ``areas`` list;
each row uses the stored shape understood by ``core.areas.area_from_record``.
"""

from __future__ import annotations

from pathlib import Path

import structlog
import yaml

from geoclock.core.areas import areas_from_records
from geoclock.core.models import GeofenceArea

log = structlog.get_logger()


class YamlAreaSource:
    """Loads areas once; ``reload()`` re-reads the file."""

    def __init__(self, path: str | Path | None) -> None:
        self._path = Path(path) if path else None
        self._areas: list[GeofenceArea] = []
        self.reload()

    def reload(self) -> None:
        if self._path is None or not self._path.exists():
            if self._path is not None:
                log.warning("areas_file_missing", path=str(self._path))
            self._areas = []
            return

        with open(self._path) as f:
            raw = yaml.safe_load(f) or []
        rows = raw.get("areas", []) if isinstance(raw, dict) else raw
        self._areas = areas_from_records(r for r in rows if isinstance(r, dict))
        log.info("areas_loaded", path=str(self._path), count=len(self._areas))

    def list_areas(self) -> list[GeofenceArea]:
        return list(self._areas)


class StaticAreaSource:
    """AreaSource over an in-memory list."""

    def __init__(self, areas: list[GeofenceArea] | None = None) -> None:
        self._areas = list(areas or [])

    def list_areas(self) -> list[GeofenceArea]:
        return list(self._areas)
