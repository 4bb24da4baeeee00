"""Lifecycle of one run activity: idle -> running <-> paused -> stopped.

Transitions that do not apply to the current state are no-ops returning
False, so a double pause or a late resume cannot corrupt the duration
bookkeeping. Active duration is derived from wall-clock time minus the total
time spent paused.

Not thread-safe on its own; LiveRunController serializes access.
"""

from __future__ import annotations

import logging

from app.tracking.clock import Clock, SystemClock
from app.tracking.geo import path_distance_km
from app.tracking.models import MetricsSnapshot, RunState, TrackPoint

logger = logging.getLogger(__name__)


class RunSession:
    def __init__(self, clock: Clock | None = None):
        self.clock = clock or SystemClock()
        self._clear()

    def _clear(self) -> None:
        self.state = RunState.idle
        self.started_at_ms: int | None = None
        self.finished_at_ms: int | None = None
        self._points: list[TrackPoint] = []
        self.distance_km = 0.0
        self.active_duration_sec = 0.0
        self._paused_total_ms = 0
        self._paused_at_ms: int | None = None

    # ------------------------------------------------------------------ #
    # Transitions

    def start(self) -> bool:
        if self.state is not RunState.idle:
            logger.debug("start() ignored in state %s", self.state.value)
            return False
        self._clear()
        self.started_at_ms = self.clock.now_ms()
        self.state = RunState.running
        logger.info("Run started at %s", self.started_at_ms)
        return True

    def pause(self) -> bool:
        if self.state is not RunState.running:
            logger.debug("pause() ignored in state %s", self.state.value)
            return False
        now = self.clock.now_ms()
        self.active_duration_sec = self.elapsed_active_sec(now)
        self._paused_at_ms = now
        self.state = RunState.paused
        logger.info("Run paused after %.1fs active", self.active_duration_sec)
        return True

    def resume(self) -> bool:
        if self.state is not RunState.paused:
            logger.debug("resume() ignored in state %s", self.state.value)
            return False
        self._close_pause(self.clock.now_ms())
        self.state = RunState.running
        logger.info("Run resumed")
        return True

    def stop(self) -> bool:
        if self.state not in (RunState.running, RunState.paused):
            logger.debug("stop() ignored in state %s", self.state.value)
            return False
        now = self.clock.now_ms()
        if self.state is RunState.running:
            self.active_duration_sec = self.elapsed_active_sec(now)
        else:
            self._close_pause(now)
        self.distance_km = path_distance_km(self._points)
        self.finished_at_ms = now
        self.state = RunState.stopped
        logger.info(
            "Run stopped: %.3f km in %.1fs (%.1fs paused), %d points",
            self.distance_km,
            self.active_duration_sec,
            self.paused_total_sec,
            len(self._points),
        )
        return True

    def reset(self) -> None:
        """Back to an empty idle session, from any state."""
        if self.state is not RunState.idle:
            logger.info("Run session reset from %s", self.state.value)
        self._clear()

    # ------------------------------------------------------------------ #
    # Data

    def add_point(self, point: TrackPoint) -> bool:
        """Append a track point. Points outside Running are GPS drift and dropped."""
        if self.state is not RunState.running:
            return False
        self._points.append(point)
        return True

    def update_metrics(self, distance_km: float, duration_sec: float) -> bool:
        if self.state not in (RunState.running, RunState.paused):
            return False
        self.distance_km = distance_km
        self.active_duration_sec = duration_sec
        return True

    @property
    def points(self) -> tuple[TrackPoint, ...]:
        return tuple(self._points)

    @property
    def points_count(self) -> int:
        return len(self._points)

    @property
    def paused_total_sec(self) -> float:
        return self._paused_total_ms / 1000.0

    def elapsed_active_sec(self, now_ms: int | None = None) -> float:
        """Wall-clock time since start minus time spent paused.

        While paused or stopped this is the frozen value.
        """
        if self.state is not RunState.running or self.started_at_ms is None:
            return self.active_duration_sec
        if now_ms is None:
            now_ms = self.clock.now_ms()
        elapsed_ms = now_ms - self.started_at_ms - self._paused_total_ms
        return max(0.0, elapsed_ms / 1000.0)

    def snapshot(self) -> MetricsSnapshot:
        return MetricsSnapshot(
            state=self.state,
            distance_km=self.distance_km,
            active_duration_sec=self.active_duration_sec,
            points_count=len(self._points),
        )

    def _close_pause(self, now_ms: int) -> None:
        if self._paused_at_ms is not None:
            self._paused_total_ms += max(0, now_ms - self._paused_at_ms)
            self._paused_at_ms = None
