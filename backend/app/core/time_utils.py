from app.core.constants import PACE_MIN_DISTANCE_KM


def seconds_to_hhmmss(total_seconds: int) -> str:
    """
    Convert total seconds (int) -> 'HH:MM:SS'.
    Example: 2732 -> '00:45:32'
    """
    total_seconds = int(total_seconds)
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_duration(total_seconds: float) -> str:
    """
    Format a live duration as 'MM:SS' (minutes keep growing past 59).
    Example: 754.8 -> '12:34'
    """
    total = int(max(0.0, total_seconds))
    return f"{total // 60:02d}:{total % 60:02d}"


def pace_seconds_per_km(
    duration_seconds: float,
    distance_km: float,
    min_distance_km: float = PACE_MIN_DISTANCE_KM,
) -> float | None:
    """Seconds per kilometer, or None when the distance is too short to tell."""
    if distance_km < min_distance_km or duration_seconds <= 0:
        return None
    return duration_seconds / distance_km


def compute_pace(
    duration_seconds: float,
    distance_km: float,
    min_distance_km: float = PACE_MIN_DISTANCE_KM,
) -> str | None:
    """
    Compute pace per kilometer as 'M:SS/km'.
    Example: duration=1500 sec, distance=5.0 -> '5:00/km'

    Returns None when no pace is available (distance below min_distance_km
    or no elapsed time).
    """
    pace_sec = pace_seconds_per_km(duration_seconds, distance_km, min_distance_km)
    if pace_sec is None:
        return None

    pace_sec = int(pace_sec)
    minutes = pace_sec // 60
    seconds = pace_sec % 60
    return f"{minutes}:{seconds:02d}/km"


def to_local_datetime(dt, tz_name: str | None = None):
    """Convert a datetime from source tz (assume UTC if naive) to local or given tz.

    - If `tz_name` is 'local' or None: use system local timezone.
    - If `tz_name` is IANA tz name (e.g., 'America/New_York'): use that.
    - If `dt` has no tzinfo, assume UTC.
    """
    from datetime import timezone
    from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    if tz_name and tz_name != "local":
        try:
            return dt.astimezone(ZoneInfo(tz_name))
        except (ZoneInfoNotFoundError, ValueError):
            return dt.astimezone()
    return dt.astimezone()


def epoch_ms_to_local_datetime(epoch_ms: int, tz_name: str | None = None):
    """Epoch milliseconds -> timezone-aware datetime in the configured zone."""
    from datetime import datetime, timezone

    return to_local_datetime(
        datetime.fromtimestamp(epoch_ms / 1000.0, tz=timezone.utc), tz_name
    )
