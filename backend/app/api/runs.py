import io
import os
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile

from app.api.deps import get_settings, get_store
from app.core.time_utils import epoch_ms_to_local_datetime
from app.schemas.run import RunRead, RunStats, RunSummary, RunType, RunUpdate
from app.store import RunStore
from app.tracking.fix_filter import FixFilterConfig
from app.tracking.replay import ReplayError, fixes_from_fit, fixes_from_gpx, replay_fixes

router = APIRouter(prefix="/runs", tags=["runs"])


@router.get("/", response_model=list[RunSummary])
def list_runs(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    run_type: Optional[RunType] = Query(None),
    store: RunStore = Depends(get_store),
    settings=Depends(get_settings),
):
    """
    List runs, most recent first, optionally filtered by local start date.

      GET /runs?start_date=2025-01-06&end_date=2025-01-12
    """
    results: list[RunSummary] = []
    for run in store.list_summaries():
        day = epoch_ms_to_local_datetime(run.started_at_ms, settings.timezone).date()
        if start_date is not None and day < start_date:
            continue
        if end_date is not None and day > end_date:
            continue
        if run_type is not None and run.run_type != run_type:
            continue
        results.append(run)
    return results


@router.get("/stats", response_model=RunStats)
def get_run_stats(store: RunStore = Depends(get_store)):
    return store.stats()


@router.post("/import", response_model=RunRead)
def import_activity(
    file: UploadFile = File(...),
    run_type: Optional[RunType] = Query(None),
    notes: Optional[str] = Query(None),
    store: RunStore = Depends(get_store),
    settings=Depends(get_settings),
):
    """Replay a GPX or FIT file through the live pipeline and save the run."""
    ext = os.path.splitext(file.filename or "")[1].lower()
    content = file.file.read()
    try:
        if ext == ".gpx":
            fixes = fixes_from_gpx(content.decode("utf-8"))
        elif ext == ".fit":
            fixes = fixes_from_fit(io.BytesIO(content))
        else:
            raise HTTPException(status_code=422, detail="Only .gpx and .fit files are supported")
        return replay_fixes(
            fixes,
            store,
            config=FixFilterConfig.from_settings(settings),
            run_type=run_type,
            notes=notes,
        )
    except (ReplayError, UnicodeDecodeError) as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/{run_id}", response_model=RunRead)
def get_run(run_id: str, store: RunStore = Depends(get_store)):
    run = store.get_run(run_id)
    if not run:
        raise HTTPException(status_code=404, detail="Run not found")
    return run


@router.get("/{run_id}/track")
def get_run_track(run_id: str, store: RunStore = Depends(get_store)):
    track = store.get_track(run_id)
    if not track:
        raise HTTPException(status_code=404, detail="Track not found")
    return track


@router.put("/{run_id}", response_model=RunRead)
def update_run(run_id: str, payload: RunUpdate, store: RunStore = Depends(get_store)):
    run = store.update_metadata(run_id, payload)
    if not run:
        raise HTTPException(status_code=404, detail="Run not found")
    return run


@router.delete("/{run_id}")
def delete_run(run_id: str, store: RunStore = Depends(get_store)):
    if not store.delete_run(run_id):
        raise HTTPException(status_code=404, detail="Run not found")
    return {"deleted": run_id}
