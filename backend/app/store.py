"""Durable storage of finished runs.

Every database error is rolled back and re-raised as PersistenceFailure so
callers can keep the run in memory and retry.
"""

import logging
import random
import string
import time
from contextlib import contextmanager

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from app.models.run import Run
from app.models.run_track import RunTrack
from app.schemas.run import RunCreate, RunRead, RunStats, RunSummary, RunType, RunUpdate
from app.core.time_utils import seconds_to_hhmmss
from app.tracking.errors import PersistenceFailure
from app.tracking.geo import route_bounds, route_geojson

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_run_id(now_ms: int | None = None) -> str:
    """'<epoch ms>-<9 random base36 chars>', unique enough per device."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{now_ms}-{suffix}"


def _to_read(run: Run, track: RunTrack | None) -> RunRead:
    return RunRead(
        id=run.id,
        started_at_ms=run.started_at_ms,
        finished_at_ms=run.finished_at_ms,
        duration_sec=run.duration_sec,
        distance_km=run.distance_km,
        avg_pace=run.avg_pace,
        notes=run.notes,
        run_type=run.run_type,
        location=run.location,
        points=track.points if track is not None else [],
    )


def _to_summary(run: Run, points_count: int | None) -> RunSummary:
    return RunSummary(
        id=run.id,
        started_at_ms=run.started_at_ms,
        finished_at_ms=run.finished_at_ms,
        duration_sec=run.duration_sec,
        duration=seconds_to_hhmmss(run.duration_sec),
        distance_km=run.distance_km,
        avg_pace=run.avg_pace,
        notes=run.notes,
        run_type=run.run_type,
        location=run.location,
        points_count=points_count or 0,
    )


class RunStore:
    def __init__(self, session_factory):
        self._session_factory = session_factory

    @contextmanager
    def _session(self, action: str):
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Failed to %s: %s", action, exc)
            raise PersistenceFailure(f"Could not {action}") from exc
        finally:
            db.close()

    def save_run(self, payload: RunCreate) -> RunRead:
        """Insert a finished run and its route in one transaction."""
        with self._session(f"save run {payload.id}") as db:
            run = Run(
                id=payload.id,
                started_at_ms=payload.started_at_ms,
                finished_at_ms=payload.finished_at_ms,
                duration_sec=payload.duration_sec,
                distance_km=payload.distance_km,
                avg_pace=payload.avg_pace,
                notes=payload.notes,
                run_type=payload.run_type.value if payload.run_type else None,
                location=payload.location,
            )
            points = [p.model_dump() for p in payload.points]
            track = RunTrack(
                run_id=payload.id,
                points=points,
                geojson=route_geojson(payload.points) if payload.points else None,
                bounds=route_bounds(payload.points),
                points_count=len(points),
            )
            db.add(run)
            db.add(track)
            db.commit()
            logger.info("Saved run %s (%.3f km, %d points)", run.id, run.distance_km, len(points))
            return _to_read(run, track)

    def load_runs(self) -> list[RunRead]:
        """All runs with routes, oldest first."""
        with self._session("load runs") as db:
            runs = db.query(Run).order_by(Run.started_at_ms).all()
            tracks = {t.run_id: t for t in db.query(RunTrack).all()}
            return [_to_read(r, tracks.get(r.id)) for r in runs]

    def list_summaries(self) -> list[RunSummary]:
        """All runs without routes, most recent first."""
        with self._session("list runs") as db:
            rows = (
                db.query(Run, RunTrack.points_count)
                .outerjoin(RunTrack, RunTrack.run_id == Run.id)
                .order_by(Run.started_at_ms.desc())
                .all()
            )
            return [_to_summary(run, count) for run, count in rows]

    def get_run(self, run_id: str) -> RunRead | None:
        with self._session(f"load run {run_id}") as db:
            run = db.query(Run).filter(Run.id == run_id).first()
            if not run:
                return None
            track = db.query(RunTrack).filter(RunTrack.run_id == run_id).first()
            return _to_read(run, track)

    def get_track(self, run_id: str) -> dict | None:
        with self._session(f"load track {run_id}") as db:
            track = db.query(RunTrack).filter(RunTrack.run_id == run_id).first()
            if not track:
                return None
            return {
                "geojson": track.geojson,
                "bounds": track.bounds,
                "points_count": track.points_count,
            }

    def update_metadata(self, run_id: str, payload: RunUpdate) -> RunRead | None:
        """Apply notes/run_type/location edits; route and totals never change."""
        with self._session(f"update run {run_id}") as db:
            run = db.query(Run).filter(Run.id == run_id).first()
            if not run:
                return None
            update_data = payload.model_dump(exclude_unset=True)
            if "run_type" in update_data and update_data["run_type"] is not None:
                update_data["run_type"] = RunType(update_data["run_type"]).value
            for key, value in update_data.items():
                setattr(run, key, value)
            db.commit()
            db.refresh(run)
            track = db.query(RunTrack).filter(RunTrack.run_id == run_id).first()
            return _to_read(run, track)

    def delete_run(self, run_id: str) -> bool:
        with self._session(f"delete run {run_id}") as db:
            run = db.query(Run).filter(Run.id == run_id).first()
            if not run:
                return False
            db.query(RunTrack).filter(RunTrack.run_id == run_id).delete()
            db.delete(run)
            db.commit()
            logger.info("Deleted run %s", run_id)
            return True

    def stats(self) -> RunStats:
        with self._session("compute run stats") as db:
            count = db.query(func.count(Run.id)).scalar() or 0
            total = db.query(func.sum(Run.distance_km)).scalar() or 0.0
            rows = (
                db.query(Run.run_type, func.sum(Run.distance_km))
                .group_by(Run.run_type)
                .all()
            )
            by_type: dict[str, float] = {t.value: 0.0 for t in RunType}
            for t, s in rows:
                if t is not None:
                    by_type[str(t)] = float(s or 0.0)
            return RunStats(runs=int(count), total_km=float(total), by_type=by_type)
