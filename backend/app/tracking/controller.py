"""Orchestrates one live run from first fix to saved record.

Fix delivery and the metrics timer are independent producers. Every mutation
of filter or session state, and every snapshot read, happens under a single
re-entrant lock so the two never interleave mid-update.
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from app.core.constants import (
    METRICS_INTERVAL_S,
    NO_PACE_LABEL,
    PACE_MIN_DISTANCE_KM,
    SIGNAL_TIMEOUT_S,
)
from app.core.time_utils import compute_pace
from app.schemas.run import RunCreate, RunRead, RunType, TrackPointSchema
from app.store import generate_run_id
from app.tracking.clock import Clock, SystemClock
from app.tracking.errors import (
    GpsStatus,
    LocationErrorKind,
    LocationUnavailable,
    PermissionDenied,
    PersistenceFailure,
    SessionStateError,
)
from app.tracking.fix_filter import FilterDecision, FixFilter, FixFilterConfig
from app.tracking.location import LocationSource, LocationSubscription
from app.tracking.metrics import MetricsUpdater
from app.tracking.models import LocationFix, MetricsSnapshot, RunState
from app.tracking.session import RunSession
from app.tracking.sinks import NullRenderSink, RenderSink

logger = logging.getLogger(__name__)


class RunSaver(Protocol):
    def save_run(self, payload: RunCreate) -> RunRead: ...


class LiveRunController:
    def __init__(
        self,
        source: LocationSource,
        store: RunSaver,
        *,
        clock: Clock | None = None,
        render: RenderSink | None = None,
        config: FixFilterConfig | None = None,
        metrics_interval_s: float = METRICS_INTERVAL_S,
        pace_min_distance_km: float = PACE_MIN_DISTANCE_KM,
        signal_timeout_s: float = SIGNAL_TIMEOUT_S,
        auto_tick: bool = True,
    ):
        self._lock = threading.RLock()
        self.clock = clock or SystemClock()
        self.store = store
        self.render = render or NullRenderSink()
        self.filter = FixFilter(config)
        self.session = RunSession(self.clock)
        self.subscription = LocationSubscription(source)
        self.updater = MetricsUpdater(
            self.session,
            self.clock,
            metrics_interval_s,
            lock=self._lock,
            on_update=self._check_signal,
        )
        self.pace_min_distance_km = pace_min_distance_km
        self.signal_timeout_s = signal_timeout_s
        self._last_fix_at_ms: int | None = None
        self.auto_tick = auto_tick
        self.pending_run: RunCreate | None = None

    @classmethod
    def from_settings(cls, source, store, settings, **kwargs) -> "LiveRunController":
        kwargs.setdefault("config", FixFilterConfig.from_settings(settings))
        kwargs.setdefault("metrics_interval_s", settings.metrics_interval_s)
        kwargs.setdefault("pace_min_distance_km", settings.pace_min_distance_km)
        kwargs.setdefault("signal_timeout_s", settings.signal_timeout_s)
        return cls(source, store, **kwargs)

    # ------------------------------------------------------------------ #
    # Readout

    @property
    def state(self) -> RunState:
        return self.session.state

    @property
    def gps_status(self) -> GpsStatus:
        return self.filter.status

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return self.session.snapshot()

    def pace_label(self, snapshot: MetricsSnapshot | None = None) -> str | None:
        snap = snapshot or self.snapshot()
        return compute_pace(snap.active_duration_sec, snap.distance_km, self.pace_min_distance_km)

    # ------------------------------------------------------------------ #
    # Lifecycle

    def start(self) -> bool:
        with self._lock:
            if self.pending_run is not None:
                raise SessionStateError("Previous run has not been saved yet")
            if not self.session.start():
                return False
            self.filter.begin()
            try:
                self.subscription.start(self.handle_fix, self.handle_error)
            except PermissionDenied:
                self.filter.report_error(LocationErrorKind.permission_denied)
                self.session.reset()
                raise
            status = self.filter.status
            if status.is_terminal:
                # The source reported the error from inside subscribe()
                self.stop_tracking()
                self.session.reset()
                if status is GpsStatus.permission_denied:
                    raise PermissionDenied("Location permission was denied")
                raise LocationUnavailable("Location is unavailable on this device")
            self._last_fix_at_ms = self.clock.now_ms()
            self._start_timer()
            return True

    def pause(self) -> bool:
        with self._lock:
            if not self.session.pause():
                return False
            self.updater.stop()
            return True

    def resume(self) -> bool:
        with self._lock:
            if self.filter.status is GpsStatus.permission_denied:
                raise PermissionDenied("Location permission was denied")
            if not self.session.resume():
                return False
            self._last_fix_at_ms = self.clock.now_ms()
            self._start_timer()
            return True

    def tick(self) -> MetricsSnapshot | None:
        return self.updater.tick()

    def _check_signal(self, snapshot: MetricsSnapshot) -> None:
        """Mark the signal lost when Running with no fix for signal_timeout_s."""
        with self._lock:
            if self.session.state is not RunState.running or self._last_fix_at_ms is None:
                return
            status = self.filter.status
            if status is GpsStatus.signal_unavailable or status.is_terminal:
                return
            silent_ms = self.clock.now_ms() - self._last_fix_at_ms
            if silent_ms >= self.signal_timeout_s * 1000:
                logger.warning("No location fix for %.1fs", silent_ms / 1000.0)
                self.filter.report_error(LocationErrorKind.timeout)

    async def aclose(self) -> None:
        """Async teardown: wait for the timer task, then release location updates."""
        await self.updater.aclose()
        self.close()

    def stop_tracking(self) -> bool:
        """Release the location subscription; safe to call repeatedly."""
        return self.subscription.stop()

    def close(self) -> None:
        """Teardown path: stop the timer and location updates."""
        with self._lock:
            self.updater.stop()
            self.stop_tracking()

    # ------------------------------------------------------------------ #
    # Producers

    def handle_fix(self, fix: LocationFix) -> FilterDecision:
        with self._lock:
            decision = self.filter.process(fix)
            if self.filter.live_position is fix:
                self._last_fix_at_ms = self.clock.now_ms()
            if self.filter.live_position is fix:
                self.render.set_live_position(fix.lat, fix.lng, fix.accuracy_m)
            if decision.point is not None and self.session.add_point(decision.point):
                logger.debug("Track point %d at %s", self.session.points_count, decision.point)
                self.render.set_route(self.session.points)
            return decision

    def handle_error(self, kind: LocationErrorKind) -> GpsStatus:
        with self._lock:
            status = self.filter.report_error(kind)
            if status.is_terminal:
                logger.warning("Location unusable (%s); stopping tracking", status.value)
                self.stop_tracking()
            return status

    # ------------------------------------------------------------------ #
    # Finish

    def finish(
        self,
        run_type: RunType | None = RunType.tempo,
        notes: str | None = None,
        location: str | None = None,
    ) -> RunRead:
        """Stop the run, persist it, then reset for the next activity.

        On PersistenceFailure the finished run is kept in ``pending_run`` and
        can be saved later with ``retry_save``.
        """
        with self._lock:
            self.updater.stop()
            self.stop_tracking()
            if self.pending_run is None:
                if not self.session.stop():
                    raise SessionStateError(f"Cannot finish a run in state {self.session.state.value}")
                self.pending_run = self._build_run(run_type, notes, location)
            return self._save_pending()

    def retry_save(self) -> RunRead:
        with self._lock:
            if self.pending_run is None:
                raise SessionStateError("No finished run waiting to be saved")
            return self._save_pending()

    def discard(self) -> None:
        """Abandon the current run without saving."""
        with self._lock:
            self.updater.stop()
            self.stop_tracking()
            self.pending_run = None
            self.session.reset()
            self.filter.reset()
            self.render.set_route(())

    def _build_run(self, run_type, notes, location) -> RunCreate:
        session = self.session
        duration = session.active_duration_sec
        distance = session.distance_km
        pace = compute_pace(duration, distance, self.pace_min_distance_km)
        return RunCreate(
            id=generate_run_id(session.started_at_ms),
            started_at_ms=session.started_at_ms,
            finished_at_ms=session.finished_at_ms,
            duration_sec=int(duration),
            distance_km=distance,
            avg_pace=pace.removesuffix("/km") if pace else NO_PACE_LABEL,
            points=[TrackPointSchema(**p.to_dict()) for p in session.points],
            run_type=run_type,
            notes=notes,
            location=location,
        )

    def _save_pending(self) -> RunRead:
        try:
            saved = self.store.save_run(self.pending_run)
        except PersistenceFailure:
            logger.warning("Run %s kept in memory for retry", self.pending_run.id)
            raise
        self.pending_run = None
        self.session.reset()
        self.filter.reset()
        return saved

    def _start_timer(self) -> None:
        if not self.auto_tick:
            return
        try:
            self.updater.start()
        except RuntimeError:
            logger.debug("No running event loop; metrics update on explicit tick()")
