"""Server statistics and active-device tracking.

Tracks in-memory clock-check counters and a sliding window of devices that
recently attempted a clock check. No framework dependencies.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass


@dataclass
class DeviceActivity:
    """Tracks a single device's recent activity."""
    last_seen: float          # time.monotonic() timestamp
    last_action: str          # "clock_in" or "clock_out"
    checks_sent: int = 0


class CheckStats:
    """Thread-safe clock-check statistics.

    A device is "active" while its last clock check was within
    ``active_window_seconds`` (default 120s).
    """

    def __init__(self, active_window_seconds: float = 120.0) -> None:
        self._lock = threading.Lock()
        self._started_at = time.time()
        self._active_window = active_window_seconds

        # Counters
        self.checks_received: int = 0
        self.checks_accepted: int = 0
        self.rejected_outside: int = 0
        self.rejected_mocked: int = 0
        self.rejected_accuracy: int = 0
        self.acquisition_failures: int = 0
        self.invalid_requests: int = 0
        self.records_stored: int = 0
        self.storage_errors: int = 0
        self.queue_depth: int = 0
        self.queue_max_depth: int = 0

        # Device tracking: device_id → DeviceActivity
        self._devices: dict[str, DeviceActivity] = {}

    def record_check(self, device_id: str, action: str) -> None:
        """Record that a clock check was received from a device."""
        now = time.monotonic()
        with self._lock:
            self.checks_received += 1
            if device_id in self._devices:
                dev = self._devices[device_id]
                dev.last_seen = now
                dev.last_action = action
                dev.checks_sent += 1
            else:
                self._devices[device_id] = DeviceActivity(
                    last_seen=now, last_action=action, checks_sent=1,
                )

    def record_accepted(self) -> None:
        with self._lock:
            self.checks_accepted += 1

    def record_rejected(self, cause: str) -> None:
        """Count a rejection by cause: outside, mocked, accuracy, acquisition."""
        with self._lock:
            if cause == "outside":
                self.rejected_outside += 1
            elif cause == "mocked":
                self.rejected_mocked += 1
            elif cause == "accuracy":
                self.rejected_accuracy += 1
            elif cause == "acquisition":
                self.acquisition_failures += 1

    def record_invalid(self) -> None:
        with self._lock:
            self.invalid_requests += 1

    def record_stored(self, count: int = 1) -> None:
        with self._lock:
            self.records_stored += count

    def record_storage_error(self) -> None:
        with self._lock:
            self.storage_errors += 1

    def update_queue_depth(self, depth: int) -> None:
        with self._lock:
            self.queue_depth = depth
            if depth > self.queue_max_depth:
                self.queue_max_depth = depth

    def _prune_stale_devices(self, now: float) -> None:
        """Remove devices not seen within the active window. Caller holds lock."""
        cutoff = now - self._active_window
        stale = [did for did, dev in self._devices.items() if dev.last_seen < cutoff]
        for did in stale:
            del self._devices[did]

    def snapshot(self) -> dict:
        """Return a JSON-serializable snapshot of all stats."""
        now_mono = time.monotonic()
        with self._lock:
            self._prune_stale_devices(now_mono)

            clocked_in = sum(
                1 for dev in self._devices.values()
                if dev.last_action == "clock_in"
            )
            clocked_out = sum(
                1 for dev in self._devices.values()
                if dev.last_action == "clock_out"
            )

            return {
                "uptime_seconds": round(time.time() - self._started_at, 1),
                "checks_received": self.checks_received,
                "checks_accepted": self.checks_accepted,
                "rejected": {
                    "outside": self.rejected_outside,
                    "mocked": self.rejected_mocked,
                    "accuracy": self.rejected_accuracy,
                    "acquisition": self.acquisition_failures,
                },
                "invalid_requests": self.invalid_requests,
                "records_stored": self.records_stored,
                "storage_errors": self.storage_errors,
                "queue_depth": self.queue_depth,
                "queue_max_depth_ever": self.queue_max_depth,
                "active_devices": {
                    "total": len(self._devices),
                    "clock_in": clocked_in,
                    "clock_out": clocked_out,
                    "window_seconds": self._active_window,
                },
            }
