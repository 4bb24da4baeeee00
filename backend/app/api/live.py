from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_live, get_live_map, get_live_source
from app.core.time_utils import format_duration
from app.schemas.run import LiveError, LiveFinish, LiveFix, LiveMetrics, RunRead
from app.tracking.controller import LiveRunController
from app.tracking.errors import (
    LocationErrorKind,
    LocationUnavailable,
    PermissionDenied,
    SessionStateError,
)
from app.tracking.location import PushLocationSource
from app.tracking.models import LocationFix
from app.tracking.sinks import LiveMapState

router = APIRouter(prefix="/live", tags=["live"])

# Handlers are async so the metrics timer runs on the server's event loop.


def _metrics(live: LiveRunController) -> LiveMetrics:
    snap = live.snapshot()
    return LiveMetrics(
        state=snap.state.value,
        distance_km=snap.distance_km,
        active_duration_sec=snap.active_duration_sec,
        duration=format_duration(snap.active_duration_sec),
        pace=live.pace_label(snap),
        gps_status=live.gps_status.value,
        awaiting_fix=live.filter.awaiting_fix,
        points_count=snap.points_count,
        pending_save=live.pending_run is not None,
        signal_timeout_s=live.signal_timeout_s,
    )


@router.get("", response_model=LiveMetrics)
async def get_live_metrics(live: LiveRunController = Depends(get_live)):
    return _metrics(live)


@router.get("/map")
async def get_live_map_state(live_map: LiveMapState = Depends(get_live_map)):
    return live_map.as_dict()


@router.post("/start", response_model=LiveMetrics)
async def start_run(live: LiveRunController = Depends(get_live)):
    try:
        started = live.start()
    except PermissionDenied as e:
        raise HTTPException(status_code=403, detail=str(e))
    except LocationUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not started:
        raise HTTPException(status_code=409, detail="A run is already in progress")
    return _metrics(live)


@router.post("/pause", response_model=LiveMetrics)
async def pause_run(live: LiveRunController = Depends(get_live)):
    if not live.pause():
        raise HTTPException(status_code=409, detail=f"Cannot pause a run that is {live.state.value}")
    return _metrics(live)


@router.post("/resume", response_model=LiveMetrics)
async def resume_run(live: LiveRunController = Depends(get_live)):
    try:
        resumed = live.resume()
    except PermissionDenied as e:
        raise HTTPException(status_code=403, detail=str(e))
    if not resumed:
        raise HTTPException(status_code=409, detail=f"Cannot resume a run that is {live.state.value}")
    return _metrics(live)


@router.post("/fix", response_model=LiveMetrics)
async def push_fix(
    payload: LiveFix,
    live: LiveRunController = Depends(get_live),
    source: PushLocationSource = Depends(get_live_source),
):
    timestamp_ms = payload.timestamp_ms if payload.timestamp_ms is not None else live.clock.now_ms()
    fix = LocationFix(
        lat=payload.lat,
        lng=payload.lng,
        timestamp_ms=timestamp_ms,
        accuracy_m=payload.accuracy_m,
    )
    if not source.push(fix):
        raise HTTPException(status_code=409, detail="Location tracking is not active")
    return _metrics(live)


@router.post("/error", response_model=LiveMetrics)
async def push_location_error(
    payload: LiveError,
    live: LiveRunController = Depends(get_live),
    source: PushLocationSource = Depends(get_live_source),
):
    try:
        kind = LocationErrorKind(payload.kind)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown location error kind {payload.kind!r}")
    if not source.fail(kind):
        raise HTTPException(status_code=409, detail="Location tracking is not active")
    return _metrics(live)


@router.post("/finish", response_model=RunRead)
async def finish_run(
    payload: LiveFinish | None = None,
    live: LiveRunController = Depends(get_live),
):
    payload = payload or LiveFinish()
    try:
        return live.finish(run_type=payload.run_type, notes=payload.notes, location=payload.location)
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/finish/retry", response_model=RunRead)
async def retry_finish(live: LiveRunController = Depends(get_live)):
    try:
        return live.retry_save()
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/discard", response_model=LiveMetrics)
async def discard_run(live: LiveRunController = Depends(get_live)):
    live.discard()
    return _metrics(live)
