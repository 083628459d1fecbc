"""Location acquisition error taxonomy.

Each error carries a stable ``code`` so callers can tell actionable failures
(permission: change device settings) from transient ones (timeout: retry).
"""

from __future__ import annotations


class LocationError(Exception):
    code = "location_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class UnsupportedCapabilityError(LocationError):
    """No positioning capability on this platform. Never retried."""
    code = "unsupported"


class PermissionDeniedError(LocationError):
    code = "permission_denied"


class LocationTimeoutError(LocationError):
    code = "timeout"


class PositionUnavailableError(LocationError):
    code = "position_unavailable"


class AcquisitionFailedError(LocationError):
    """The watch fallback produced nothing within its own bound."""
    code = "acquisition_failed"


class DegenerateGeometryError(ValueError):
    """Buffering collapsed a polygon. Internal to the geometry kernel."""


ERRORS_BY_CODE: dict[str, type[LocationError]] = {
    cls.code: cls
    for cls in (
        UnsupportedCapabilityError,
        PermissionDeniedError,
        LocationTimeoutError,
        PositionUnavailableError,
        AcquisitionFailedError,
    )
}
