import asyncio

import pytest

from app.tracking.clock import ManualClock
from app.tracking.controller import LiveRunController
from app.tracking.errors import (
    GpsStatus,
    LocationErrorKind,
    LocationUnavailable,
    PermissionDenied,
    PersistenceFailure,
    SessionStateError,
)
from app.tracking.location import PushLocationSource
from app.tracking.models import RunState
from app.tracking.sinks import LiveMapState

from conftest import LAT_STEP, fix


class MemoryStore:
    def __init__(self, failures=0):
        self.failures = failures
        self.saved = []

    def save_run(self, payload):
        if self.failures:
            self.failures -= 1
            raise PersistenceFailure("disk full")
        self.saved.append(payload)
        return payload


class CountingSource(PushLocationSource):
    def __init__(self):
        super().__init__()
        self.unsubscribed = 0

    def subscribe(self, on_fix, on_error):
        inner = super().subscribe(on_fix, on_error)

        def unsubscribe():
            self.unsubscribed += 1
            inner()

        return unsubscribe


class DeniedSource:
    def subscribe(self, on_fix, on_error):
        raise PermissionDenied("user said no")


class FailingOnSubscribeSource(CountingSource):
    """Reports an error from inside subscribe(), before returning the handle."""

    def __init__(self, kind):
        super().__init__()
        self.kind = kind

    def subscribe(self, on_fix, on_error):
        unsubscribe = super().subscribe(on_fix, on_error)
        on_error(self.kind)
        return unsubscribe


@pytest.fixture
def clock():
    return ManualClock(1_700_000_000_000)


def make_controller(clock, store=None, source=None, render=None):
    return LiveRunController(
        source or PushLocationSource(),
        store if store is not None else MemoryStore(),
        clock=clock,
        render=render,
        auto_tick=False,
    )


def test_full_run_is_saved_and_session_reset(clock):
    store = MemoryStore()
    source = PushLocationSource()
    live = make_controller(clock, store, source)

    assert live.start()
    assert live.gps_status is GpsStatus.acquiring
    for i in range(5):
        clock.advance(10)
        source.push(fix(i * LAT_STEP, t=clock.now_ms()))
        live.tick()

    snap = live.snapshot()
    assert snap.points_count == 5
    assert snap.active_duration_sec == pytest.approx(50.0)

    run = live.finish(notes="felt good")
    assert store.saved == [run]
    assert run.distance_km == pytest.approx(4 * 0.0111195, rel=1e-3)
    assert run.duration_sec == 50
    assert len(run.points) == 5
    assert run.run_type.value == "tempo"
    assert run.notes == "felt good"
    assert run.id.startswith(f"{run.started_at_ms}-")
    # 50 s over ~44 m
    assert run.avg_pace == "18:44"

    assert live.state is RunState.idle
    assert live.snapshot().points_count == 0
    assert not source.subscribed


def test_short_run_has_no_pace_label(clock):
    live = make_controller(clock)
    live.start()
    clock.advance(60)
    run = live.finish()
    assert run.avg_pace == "--:--"
    assert live.pace_label() is None


def test_points_during_pause_are_dropped(clock):
    source = PushLocationSource()
    live = make_controller(clock, source=source)
    live.start()
    source.push(fix(0.0))
    live.pause()
    before = live.snapshot().points_count
    source.push(fix(10 * LAT_STEP))
    assert live.snapshot().points_count == before == 1
    live.resume()
    source.push(fix(20 * LAT_STEP))
    assert live.snapshot().points_count == 2


def test_render_sink_gets_every_fix_and_route_changes(clock):
    live_map = LiveMapState()
    source = PushLocationSource()
    live = make_controller(clock, source=source, render=live_map)
    live.start()
    source.push(fix(0.0, acc=3000.0))
    assert live_map.position == {"lat": 0.0, "lng": 0.0, "accuracy_m": 3000.0}
    assert live_map.version == 0
    source.push(fix(0.0))
    source.push(fix(LAT_STEP))
    source.push(fix(LAT_STEP, 0.00001))
    assert live_map.position["lng"] == 0.00001
    assert live_map.version == 2
    assert live_map.route["coordinates"] == [[0.0, 0.0], [0.0, LAT_STEP]]


def test_stop_tracking_unsubscribes_exactly_once(clock):
    source = CountingSource()
    live = make_controller(clock, source=source)
    live.start()
    live.finish()
    live.close()
    live.stop_tracking()
    assert source.unsubscribed == 1


def test_illegal_transitions_are_rejected(clock):
    live = make_controller(clock)
    assert not live.pause()
    assert not live.resume()
    with pytest.raises(SessionStateError):
        live.finish()
    live.start()
    assert not live.start()
    assert live.pause()
    assert not live.pause()


def test_persistence_failure_keeps_run_for_retry(clock):
    store = MemoryStore(failures=1)
    source = PushLocationSource()
    live = make_controller(clock, store, source)
    live.start()
    source.push(fix(0.0))
    source.push(fix(LAT_STEP))
    clock.advance(30)

    with pytest.raises(PersistenceFailure):
        live.finish()
    assert live.state is RunState.stopped
    assert live.pending_run is not None
    assert live.snapshot().points_count == 2
    with pytest.raises(SessionStateError):
        live.start()

    run = live.retry_save()
    assert store.saved == [run]
    assert run.duration_sec == 30
    assert live.pending_run is None
    assert live.state is RunState.idle


def test_retry_without_pending_run(clock):
    with pytest.raises(SessionStateError):
        make_controller(clock).retry_save()


def test_discard_abandons_run(clock):
    store = MemoryStore()
    source = PushLocationSource()
    live = make_controller(clock, store, source)
    live.start()
    source.push(fix(0.0))
    live.discard()
    assert store.saved == []
    assert live.state is RunState.idle
    assert not source.subscribed
    assert live.start()


def test_permission_denied_on_subscribe(clock):
    live = make_controller(clock, source=DeniedSource())
    with pytest.raises(PermissionDenied):
        live.start()
    assert live.state is RunState.idle
    assert live.gps_status is GpsStatus.permission_denied


def test_permission_denied_reported_during_subscribe(clock):
    source = FailingOnSubscribeSource(LocationErrorKind.permission_denied)
    live = make_controller(clock, source=source)
    with pytest.raises(PermissionDenied):
        live.start()
    assert not live.subscription.active
    assert source.unsubscribed == 1
    assert not source.subscribed
    assert live.state is RunState.idle
    assert live.gps_status is GpsStatus.permission_denied


def test_position_unavailable_reported_during_subscribe(clock):
    source = FailingOnSubscribeSource(LocationErrorKind.position_unavailable)
    live = make_controller(clock, source=source)
    with pytest.raises(LocationUnavailable):
        live.start()
    assert not live.subscription.active
    assert source.unsubscribed == 1
    assert live.state is RunState.idle


def test_permission_denied_error_stops_tracking(clock):
    source = CountingSource()
    live = make_controller(clock, source=source)
    live.start()
    live.pause()
    source.fail(LocationErrorKind.permission_denied)
    assert live.gps_status is GpsStatus.permission_denied
    assert source.unsubscribed == 1
    with pytest.raises(PermissionDenied):
        live.resume()
    # the activity data is still there to finish
    assert live.finish().duration_sec == 0


def test_timeout_is_transient(clock):
    source = PushLocationSource()
    live = make_controller(clock, source=source)
    live.start()
    source.fail(LocationErrorKind.timeout)
    assert live.gps_status is GpsStatus.signal_unavailable
    assert live.filter.awaiting_fix
    assert source.subscribed
    source.push(fix(0.0))
    assert live.gps_status is GpsStatus.ok


def test_silence_past_signal_timeout_marks_signal_unavailable(clock):
    source = PushLocationSource()
    live = make_controller(clock, source=source)
    live.start()
    source.push(fix(0.0, t=clock.now_ms()))
    clock.advance(29)
    live.tick()
    assert live.gps_status is GpsStatus.ok

    clock.advance(1)
    live.tick()
    assert live.gps_status is GpsStatus.signal_unavailable
    assert live.filter.awaiting_fix
    assert source.subscribed

    source.push(fix(LAT_STEP, t=clock.now_ms()))
    assert live.gps_status is GpsStatus.ok
    clock.advance(10)
    live.tick()
    assert live.gps_status is GpsStatus.ok


def test_signal_timeout_counts_from_start_and_resume(clock):
    live = make_controller(clock)
    live.start()
    clock.advance(30)
    live.tick()
    assert live.gps_status is GpsStatus.signal_unavailable

    live.discard()
    live.start()
    clock.advance(20)
    live.pause()
    # no timeout while paused
    clock.advance(60)
    assert live.tick() is None
    live.resume()
    clock.advance(20)
    live.tick()
    assert live.gps_status is GpsStatus.acquiring


def test_signal_timeout_never_overrides_permission_denied(clock):
    source = PushLocationSource()
    live = make_controller(clock, source=source)
    live.start()
    source.fail(LocationErrorKind.permission_denied)
    clock.advance(120)
    live.tick()
    assert live.gps_status is GpsStatus.permission_denied


def test_aclose_cancels_timer_and_releases_location(clock):
    source = CountingSource()
    live = LiveRunController(source, MemoryStore(), clock=clock, metrics_interval_s=0.01)

    async def scenario():
        live.start()
        assert live.updater.running
        await live.aclose()
        assert not live.updater.running

    asyncio.run(scenario())
    assert not live.subscription.active
    assert source.unsubscribed == 1


def test_from_settings_uses_thresholds(clock):
    class S:
        display_accuracy_ceiling_m = 1000.0
        record_accuracy_ceiling_m = 20.0
        min_displacement_m = 5.0
        metrics_interval_s = 2.0
        signal_timeout_s = 45.0
        pace_min_distance_km = 0.01

    live = LiveRunController.from_settings(PushLocationSource(), MemoryStore(), S(), clock=clock, auto_tick=False)
    assert live.filter.config.record_accuracy_ceiling_m == 20.0
    assert live.updater.interval_s == 2.0
    assert live.signal_timeout_s == 45.0
