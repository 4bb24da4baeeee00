"""Value types flowing through the tracking pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RunState(str, Enum):
    idle = "idle"
    running = "running"
    paused = "paused"
    stopped = "stopped"


@dataclass(frozen=True, slots=True)
class LocationFix:
    """A raw reading from the platform location service.

    Attributes:
        lat: Latitude in decimal degrees.
        lng: Longitude in decimal degrees.
        timestamp_ms: Unix epoch milliseconds reported by the device.
        accuracy_m: Horizontal accuracy radius in meters.
    """

    lat: float
    lng: float
    timestamp_ms: int
    accuracy_m: float


@dataclass(frozen=True, slots=True)
class TrackPoint:
    """A fix that passed the filter and belongs to the recorded route."""

    lat: float
    lng: float
    timestamp_ms: int
    accuracy_m: float

    @classmethod
    def from_fix(cls, fix: LocationFix) -> "TrackPoint":
        return cls(
            lat=fix.lat,
            lng=fix.lng,
            timestamp_ms=fix.timestamp_ms,
            accuracy_m=fix.accuracy_m,
        )

    def to_dict(self) -> dict:
        return {
            "lat": self.lat,
            "lng": self.lng,
            "timestamp_ms": self.timestamp_ms,
            "accuracy_m": self.accuracy_m,
        }


@dataclass(frozen=True, slots=True)
class MetricsSnapshot:
    """Consistent readout of a session at one instant."""

    state: RunState
    distance_km: float
    active_duration_sec: float
    points_count: int
