"""Shared application constants.

Centralizes repeat values used across tracking and formatting logic so we can
document and adjust them in one place.
"""

# Mean Earth radius used by the haversine distance
EARTH_RADIUS_KM = 6371.0

# Fixes less accurate than this are not even shown on the map
DISPLAY_ACCURACY_CEILING_M = 1000.0

# Fixes less accurate than this never become track points
RECORD_ACCURACY_CEILING_M = 50.0

# Minimum displacement between two recorded points
MIN_DISPLACEMENT_M = 5.0

# Default metrics recompute cadence while running
METRICS_INTERVAL_S = 1.0

# Below this distance pace is meaningless (~10 m)
PACE_MIN_DISTANCE_KM = 0.01

# Running with no fix for this long marks the signal unavailable
SIGNAL_TIMEOUT_S = 30.0

# Pace label stored on runs too short to have one
NO_PACE_LABEL = "--:--"

# GPX files rarely carry accuracy; HDOP is scaled by a typical user range error
GPX_UERE_M = 5.0
DEFAULT_REPLAY_ACCURACY_M = 5.0
