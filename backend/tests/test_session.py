import logging

import pytest

from app.tracking.clock import ManualClock
from app.tracking.models import RunState, TrackPoint
from app.tracking.session import RunSession


def point(lat, t=0):
    return TrackPoint(lat=lat, lng=0.0, timestamp_ms=t, accuracy_m=5.0)


@pytest.fixture
def clock():
    return ManualClock(1_000_000)


@pytest.fixture
def session(clock):
    return RunSession(clock)


def test_initial_state_is_idle(session):
    assert session.state is RunState.idle
    assert session.points == ()
    assert session.distance_km == 0.0


def test_pause_time_excluded_from_active_duration(session, clock):
    session.start()
    clock.advance(3)
    session.pause()
    clock.advance(5)
    session.resume()
    clock.advance(2)
    session.stop()
    assert session.active_duration_sec == pytest.approx(5.0)
    assert session.paused_total_sec == pytest.approx(5.0)
    assert session.finished_at_ms - session.started_at_ms == 10_000


def test_stop_logs_paused_time(session, clock, caplog):
    session.start()
    clock.advance(4)
    session.pause()
    clock.advance(6)
    with caplog.at_level(logging.INFO, logger="app.tracking.session"):
        session.stop()
    assert "(6.0s paused)" in caplog.text


def test_active_duration_frozen_while_paused(session, clock):
    session.start()
    clock.advance(4)
    session.pause()
    clock.advance(60)
    assert session.elapsed_active_sec() == pytest.approx(4.0)
    session.resume()
    clock.advance(1)
    assert session.elapsed_active_sec() == pytest.approx(5.0)


def test_stop_from_paused_excludes_trailing_pause(session, clock):
    session.start()
    clock.advance(7)
    session.pause()
    clock.advance(30)
    assert session.stop()
    assert session.active_duration_sec == pytest.approx(7.0)


def test_points_dropped_while_paused(session):
    session.start()
    assert session.add_point(point(0.0))
    session.pause()
    before = session.points_count
    assert not session.add_point(point(0.001))
    assert session.points_count == before
    session.resume()
    assert session.add_point(point(0.002))
    assert session.points_count == 2


def test_points_dropped_when_not_running(session):
    assert not session.add_point(point(0.0))
    session.start()
    session.stop()
    assert not session.add_point(point(0.001))
    assert session.points_count == 0


def test_start_does_not_reinitialize_running_session(session, clock):
    session.start()
    started = session.started_at_ms
    session.add_point(point(0.0))
    clock.advance(10)
    assert not session.start()
    assert session.started_at_ms == started
    assert session.points_count == 1


def test_duplicate_pause_and_resume_are_noops(session, clock):
    session.start()
    clock.advance(2)
    assert session.pause()
    clock.advance(3)
    assert not session.pause()
    clock.advance(3)
    assert session.resume()
    assert not session.resume()
    clock.advance(1)
    session.stop()
    assert session.active_duration_sec == pytest.approx(3.0)


def test_stopped_is_terminal(session):
    session.start()
    session.stop()
    assert not session.start()
    assert not session.pause()
    assert not session.resume()
    assert not session.stop()
    assert session.state is RunState.stopped


def test_stop_freezes_distance_from_points(session):
    session.start()
    session.add_point(point(0.0))
    session.add_point(point(0.001))
    session.stop()
    assert session.distance_km == pytest.approx(0.1112, abs=1e-4)


def test_update_metrics_only_while_active(session):
    assert not session.update_metrics(1.0, 10.0)
    session.start()
    assert session.update_metrics(1.0, 10.0)
    session.pause()
    assert session.update_metrics(1.5, 12.0)
    assert (session.distance_km, session.active_duration_sec) == (1.5, 12.0)
    session.stop()
    assert not session.update_metrics(2.0, 20.0)
    assert session.distance_km != 2.0


def test_reset_after_stop_allows_new_start(session, clock):
    session.start()
    session.add_point(point(0.0))
    session.add_point(point(0.001))
    clock.advance(20)
    session.stop()
    session.reset()
    assert session.state is RunState.idle
    assert session.points == ()
    assert session.distance_km == 0.0
    assert session.active_duration_sec == 0.0
    assert session.started_at_ms is None
    assert session.start()
    assert session.state is RunState.running


def test_reset_abandons_running_session(session):
    session.start()
    session.add_point(point(0.0))
    session.reset()
    assert session.snapshot().points_count == 0
    assert session.state is RunState.idle


def test_points_snapshot_is_immutable_copy(session):
    session.start()
    session.add_point(point(0.0))
    snap = session.points
    session.add_point(point(0.001))
    assert len(snap) == 1
    assert session.points_count == 2
