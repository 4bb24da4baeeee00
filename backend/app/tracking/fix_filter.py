"""Gate raw location fixes into a live position and recordable track points.

Every fix is surfaced as the live position. Only fixes that clear both the
display and record accuracy ceilings, and that moved far enough from the last
recorded point, become track points.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from app.core import constants
from app.tracking.errors import ERROR_STATUS, GpsStatus, LocationErrorKind
from app.tracking.geo import pair_distance_km
from app.tracking.models import LocationFix, TrackPoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FixFilterConfig:
    display_accuracy_ceiling_m: float = constants.DISPLAY_ACCURACY_CEILING_M
    record_accuracy_ceiling_m: float = constants.RECORD_ACCURACY_CEILING_M
    min_displacement_m: float = constants.MIN_DISPLACEMENT_M

    @classmethod
    def from_settings(cls, settings) -> "FixFilterConfig":
        return cls(
            display_accuracy_ceiling_m=settings.display_accuracy_ceiling_m,
            record_accuracy_ceiling_m=settings.record_accuracy_ceiling_m,
            min_displacement_m=settings.min_displacement_m,
        )


@dataclass(frozen=True, slots=True)
class FilterDecision:
    """Outcome of filtering one fix.

    Attributes:
        fix: The fix, always usable as the live display candidate.
        displayable: Accuracy is within the display ceiling.
        point: The recordable track point, or None when the fix was gated out.
    """

    fix: LocationFix
    displayable: bool
    point: TrackPoint | None = None


def _is_finite(fix: LocationFix) -> bool:
    return all(math.isfinite(v) for v in (fix.lat, fix.lng, fix.accuracy_m))


class FixFilter:
    def __init__(self, config: FixFilterConfig | None = None):
        self.config = config or FixFilterConfig()
        self.last_recorded_point: TrackPoint | None = None
        self.has_acceptable_fix = False
        self.live_position: LocationFix | None = None
        self.status = GpsStatus.idle

    def begin(self) -> None:
        """Start a fresh tracking period: forget memory, wait for a fix."""
        self.reset()
        self.status = GpsStatus.acquiring

    def reset(self) -> None:
        self.last_recorded_point = None
        self.has_acceptable_fix = False
        self.live_position = None
        self.status = GpsStatus.idle

    @property
    def awaiting_fix(self) -> bool:
        return self.status.awaiting_fix

    def process(self, fix: LocationFix) -> FilterDecision:
        """Apply the gating rules to one fix. Never raises on bad input.

        Non-finite fixes are dropped before they can become the live position.
        """
        if not _is_finite(fix):
            logger.debug("Discarding non-finite fix %s", fix)
            return FilterDecision(fix=fix, displayable=False)

        self.live_position = fix

        if fix.accuracy_m > self.config.display_accuracy_ceiling_m:
            self._set_status(GpsStatus.low_accuracy)
            return FilterDecision(fix=fix, displayable=False)

        self.has_acceptable_fix = True
        self._set_status(GpsStatus.ok)

        if fix.accuracy_m > self.config.record_accuracy_ceiling_m:
            return FilterDecision(fix=fix, displayable=True)

        last = self.last_recorded_point
        if last is not None:
            moved_m = pair_distance_km(last, fix) * 1000
            if moved_m < self.config.min_displacement_m:
                logger.debug("Fix moved %.1fm, below %.1fm", moved_m, self.config.min_displacement_m)
                return FilterDecision(fix=fix, displayable=True)

        point = TrackPoint.from_fix(fix)
        self.last_recorded_point = point
        return FilterDecision(fix=fix, displayable=True, point=point)

    def report_error(self, kind: LocationErrorKind) -> GpsStatus:
        """Translate a location source error into a status.

        A timeout never overrides a terminal condition.
        """
        status = ERROR_STATUS[LocationErrorKind(kind)]
        if status is GpsStatus.signal_unavailable and self.status.is_terminal:
            return self.status
        self._set_status(status)
        return self.status

    def _set_status(self, status: GpsStatus) -> None:
        if status is not self.status:
            logger.info("GPS status %s -> %s", self.status.value, status.value)
            self.status = status
