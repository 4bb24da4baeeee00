"""Turn recorded GPX/FIT activity files into fix streams and replay them.

A replay runs the same filter, session and metrics code as a live run, with
a clock that follows the fix timestamps instead of the wall clock.
"""

from __future__ import annotations

import logging
from typing import BinaryIO, Iterable, TextIO

import gpxpy
import gpxpy.gpx
from fitparse import FitFile, FitParseError

from app.core.constants import DEFAULT_REPLAY_ACCURACY_M, GPX_UERE_M
from app.schemas.run import RunRead, RunType
from app.tracking.clock import ManualClock
from app.tracking.controller import LiveRunController, RunSaver
from app.tracking.fix_filter import FixFilterConfig
from app.tracking.location import PushLocationSource
from app.tracking.models import LocationFix

logger = logging.getLogger(__name__)


class ReplayError(ValueError):
    """The activity file could not be read or holds no positions."""


def _epoch_ms(dt) -> int | None:
    if dt is None:
        return None
    from datetime import timezone

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def fixes_from_gpx(fileobj: TextIO | str) -> list[LocationFix]:
    """Track points of every GPX track segment, in file order.

    GPX rarely carries accuracy, so HDOP (when present) is scaled to meters.
    """
    try:
        gpx = gpxpy.parse(fileobj)
    except gpxpy.gpx.GPXException as exc:
        raise ReplayError(f"Invalid GPX: {exc}") from exc

    fixes: list[LocationFix] = []
    for track in gpx.tracks:
        for segment in track.segments:
            for p in segment.points:
                ts = _epoch_ms(p.time)
                if ts is None:
                    continue
                if p.horizontal_dilution is not None:
                    accuracy = float(p.horizontal_dilution) * GPX_UERE_M
                else:
                    accuracy = DEFAULT_REPLAY_ACCURACY_M
                fixes.append(LocationFix(p.latitude, p.longitude, ts, accuracy))
    return fixes


def _semicircles_to_degrees(val):
    return val * (180 / 2**31) if val is not None else None


def fixes_from_fit(fileobj: BinaryIO | str) -> list[LocationFix]:
    """GPS records of a FIT activity, in file order."""
    fixes: list[LocationFix] = []
    try:
        ff = FitFile(fileobj)
        for record in ff.get_messages("record"):
            fields = {f.name: f.value for f in record}
            lat = _semicircles_to_degrees(fields.get("position_lat"))
            lon = _semicircles_to_degrees(fields.get("position_long"))
            ts = _epoch_ms(fields.get("timestamp"))
            if lat is None or lon is None or ts is None:
                continue
            fixes.append(LocationFix(lat, lon, ts, DEFAULT_REPLAY_ACCURACY_M))
    except FitParseError as exc:
        raise ReplayError(f"Invalid FIT: {exc}") from exc
    return fixes


def replay_fixes(
    fixes: Iterable[LocationFix],
    store: RunSaver,
    *,
    config: FixFilterConfig | None = None,
    run_type: RunType | None = None,
    notes: str | None = None,
    location: str | None = None,
) -> RunRead:
    """Feed fixes through a live-run pipeline and save the resulting run."""
    fixes = list(fixes)
    if not fixes:
        raise ReplayError("No timestamped positions to replay")

    clock = ManualClock(fixes[0].timestamp_ms)
    source = PushLocationSource()
    controller = LiveRunController(
        source, store, clock=clock, config=config, auto_tick=False
    )
    controller.start()
    for fix in fixes:
        clock.set(fix.timestamp_ms)
        source.push(fix)
        controller.tick()
    run = controller.finish(run_type=run_type, notes=notes, location=location)
    logger.info("Replayed %d fixes into run %s", len(fixes), run.id)
    return run
