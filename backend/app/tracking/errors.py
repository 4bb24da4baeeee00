"""Failure taxonomy for location tracking and run persistence."""

from enum import Enum


class TrackingError(Exception):
    """Base class for errors surfaced to callers of the tracking core."""


class SessionStateError(TrackingError):
    """The requested live-run action does not apply to the current state."""


class PermissionDenied(TrackingError):
    """Location access was refused; tracking cannot proceed."""


class LocationUnavailable(TrackingError):
    """The platform has no usable location capability."""


class PersistenceFailure(TrackingError):
    """Saving or loading a run failed. In-memory run data is left intact."""


class LocationErrorKind(str, Enum):
    """Errors a location source can report through its error callback."""

    permission_denied = "permission_denied"
    position_unavailable = "position_unavailable"
    timeout = "timeout"


class GpsStatus(str, Enum):
    idle = "idle"
    # Tracking started, nothing usable received yet
    acquiring = "acquiring"
    # Fixes arriving but too inaccurate to show
    low_accuracy = "low_accuracy"
    ok = "ok"
    # No fix within the source timeout; the source keeps retrying
    signal_unavailable = "signal_unavailable"
    unavailable = "unavailable"
    permission_denied = "permission_denied"

    @property
    def is_terminal(self) -> bool:
        return self in (GpsStatus.unavailable, GpsStatus.permission_denied)

    @property
    def awaiting_fix(self) -> bool:
        return self in (
            GpsStatus.acquiring,
            GpsStatus.low_accuracy,
            GpsStatus.signal_unavailable,
        )


ERROR_STATUS = {
    LocationErrorKind.permission_denied: GpsStatus.permission_denied,
    LocationErrorKind.position_unavailable: GpsStatus.unavailable,
    LocationErrorKind.timeout: GpsStatus.signal_unavailable,
}
