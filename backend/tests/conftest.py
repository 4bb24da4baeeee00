from datetime import datetime, timedelta, timezone

import gpxpy.gpx
import pytest

from app.db import init_db, make_engine, make_session_factory
from app.schemas.run import RunCreate, TrackPointSchema
from app.store import RunStore
from app.tracking.models import LocationFix

MEMORY_DB = "sqlite+pysqlite:///:memory:"

# 0.0001 degrees of latitude is ~11.1 m
LAT_STEP = 0.0001


@pytest.fixture
def store():
    engine = make_engine(MEMORY_DB)
    init_db(engine)
    yield RunStore(make_session_factory(engine))
    engine.dispose()


def fix(lat, lng=0.0, t=0, acc=10.0):
    return LocationFix(lat=lat, lng=lng, timestamp_ms=t, accuracy_m=acc)


def northward_fixes(n, step=LAT_STEP, interval_ms=10_000, acc=10.0):
    return [fix(i * step, 0.0, i * interval_ms, acc) for i in range(n)]


def make_run(run_id="1735714800000-abc123xyz", points=3, **overrides):
    data = dict(
        id=run_id,
        started_at_ms=1_735_714_800_000,
        finished_at_ms=1_735_716_300_000,
        duration_sec=1500,
        distance_km=5.0,
        avg_pace="5:00",
        run_type="tempo",
        points=[
            TrackPointSchema(lat=i * LAT_STEP, lng=0.0, timestamp_ms=1_735_714_800_000 + i * 1000, accuracy_m=5.0)
            for i in range(points)
        ],
    )
    data.update(overrides)
    return RunCreate(**data)


def make_gpx(n=11, step=LAT_STEP, interval_s=10, start=None) -> str:
    start = start or datetime(2025, 1, 1, 7, 0, tzinfo=timezone.utc)
    gpx = gpxpy.gpx.GPX()
    track = gpxpy.gpx.GPXTrack()
    gpx.tracks.append(track)
    segment = gpxpy.gpx.GPXTrackSegment()
    track.segments.append(segment)
    for i in range(n):
        segment.points.append(
            gpxpy.gpx.GPXTrackPoint(
                i * step, 0.0, time=start + timedelta(seconds=i * interval_s)
            )
        )
    return gpx.to_xml()
