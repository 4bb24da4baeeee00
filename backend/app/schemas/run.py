from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RunType(str, Enum):
    tempo = "tempo"
    trail = "trail"
    easy = "easy"
    interval = "interval"


class TrackPointSchema(BaseModel):
    lat: float
    lng: float
    timestamp_ms: int
    accuracy_m: float


class RunBase(BaseModel):
    started_at_ms: int
    finished_at_ms: int
    duration_sec: int      # active time, pauses excluded
    distance_km: float
    avg_pace: str          # e.g. "5:00", "--:--" when unknown

    notes: Optional[str] = None
    run_type: Optional[RunType] = None
    location: Optional[str] = None


class RunCreate(RunBase):
    """A finished run ready to be persisted. `id` is generated by the caller."""

    id: str
    points: list[TrackPointSchema] = Field(default_factory=list)


class RunRead(RunCreate):
    """Full run including its recorded route."""

    model_config = ConfigDict(from_attributes=True)


class RunSummary(RunBase):
    """Run as listed, without the route."""

    id: str
    duration: str          # "HH:MM:SS"
    points_count: int = 0


class RunUpdate(BaseModel):
    """Editable metadata. Route, distance and duration are immutable history."""

    notes: Optional[str] = None
    run_type: Optional[RunType] = None
    location: Optional[str] = None

    # Clients may send the whole run back; only metadata is applied
    model_config = ConfigDict(extra="ignore")


class RunStats(BaseModel):
    runs: int
    total_km: float
    by_type: dict[str, float]


class LiveFix(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    accuracy_m: float = Field(ge=0)
    # Server time is used when the client does not send one
    timestamp_ms: Optional[int] = None


class LiveError(BaseModel):
    kind: str


class LiveFinish(BaseModel):
    run_type: RunType = RunType.tempo
    notes: Optional[str] = None
    location: Optional[str] = None


class LiveMetrics(BaseModel):
    state: str
    distance_km: float
    active_duration_sec: float
    duration: str          # "MM:SS"
    pace: Optional[str]    # "M:SS/km", None when not available
    gps_status: str
    awaiting_fix: bool
    points_count: int
    pending_save: bool = False
    signal_timeout_s: float = 30.0
