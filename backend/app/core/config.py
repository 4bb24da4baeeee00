from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    database_url: str = "sqlite+pysqlite:///./stride.db"
    # Timezone for grouping runs by local day.
    # Examples: "America/New_York", "Europe/London", or "local" to use system tz.
    timezone: str = "local"
    log_level: str = "INFO"

    # Fix filter thresholds (meters)
    display_accuracy_ceiling_m: float = 1000.0
    record_accuracy_ceiling_m: float = 50.0
    min_displacement_m: float = 5.0

    # Live metrics cadence (seconds)
    metrics_interval_s: float = 1.0
    # Running with no fix for this long marks the signal unavailable
    signal_timeout_s: float = 30.0
    # Below this distance no pace is reported
    pace_min_distance_km: float = 0.01

    # Allow empty env strings to fall back to system tz
    @field_validator("timezone", mode="before")
    @classmethod
    def _empty_to_local(cls, v):
        if v in ("", None, "null", "None"):
            return "local"
        return v

    @field_validator("metrics_interval_s")
    @classmethod
    def _positive_interval(cls, v):
        if v <= 0:
            raise ValueError("metrics_interval_s must be > 0")
        return v

    class Config:
        env_file = ".env"


settings = Settings()
