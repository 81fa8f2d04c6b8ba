"""Shared constants for the ParkCheck backend.

These tables are load-bearing business rules: tests pin them exactly.
"""

# Report lifecycle windows (hours)
FRESHNESS_WINDOW_HOURS: float = 4.0
STALE_AFTER_HOURS: float = 4.0
ARCHIVE_AFTER_HOURS: float = 12.0

# Active report list cap per park (most recent first)
MAX_ACTIVE_REPORTS: int = 20

# Rate limit enforced at ingestion (per reporter per UTC day)
MAX_REPORTS_PER_DAY: int = 10

# Optimistic concurrency retries for per-key read/modify/write
MAX_WRITE_ATTEMPTS: int = 5

# Reputation levels, highest first: (level, min reputation, vote weight)
REPUTATION_LEVELS: list[tuple[str, int, float]] = [
    ("legend", 2000, 3.0),
    ("local", 500, 2.0),
    ("regular", 100, 1.5),
    ("rookie", 0, 1.0),
]

ANONYMOUS_REPORTER = "anonymous"
ANONYMOUS_WEIGHT: float = 0.5
# Reporters with a profile but fewer recorded reports than this
NEW_REPORTER_WEIGHT: float = 0.7
MIN_TENURE_REPORTS: int = 3

# Reputation points
BASE_REPORT_POINTS: int = 10
FIRST_AFTER_RAIN_POINTS: int = 20
PHOTO_POINTS: int = 5
FIRST_AFTER_RAIN_WINDOW_HOURS: float = 6.0

# Fingerprints kept per reporter for replay detection
RECENT_FINGERPRINTS_KEPT: int = 20

# Dry-out model
NO_RAIN_LOOKBACK_HOURS: float = 24.0

# (upper bound mm exclusive, base hours); anything above the last bound -> 10h
BASE_DRY_HOURS_STEPS: list[tuple[float, float]] = [
    (2.0, 2.0),
    (10.0, 4.0),
    (25.0, 6.0),
]
BASE_DRY_HOURS_MAX: float = 10.0

SURFACE_MODIFIERS: dict[str, float] = {
    "smooth_concrete": 1.0,
    "rough_concrete": 1.3,
    "asphalt": 0.9,
    "coated": 0.8,
}

DRAINAGE_MODIFIERS: dict[str, float] = {
    "excellent": 0.6,
    "average": 1.0,
    "poor": 1.5,
}

# Sun exposure: daylight value is base + slope * cloud fraction
SUN_DAYLIGHT_MODIFIERS: dict[str, tuple[float, float]] = {
    "full_sun": (0.5, 0.4),
    "partial_shade": (0.7, 0.3),
}
SUN_NIGHT_MODIFIER: float = 1.2
FULL_SHADE_MODIFIER: float = 1.4
DAYLIGHT_START_HOUR: int = 7
DAYLIGHT_END_HOUR: int = 18  # exclusive

# (wind speed strictly above, modifier), checked in order
WIND_MODIFIERS: list[tuple[float, float]] = [
    (20.0, 0.6),
    (10.0, 0.8),
]

# (precip upper bound mm exclusive, confidence); anything above -> "low"
CONFIDENCE_STEPS: list[tuple[float, str]] = [
    (5.0, "high"),
    (15.0, "medium"),
]

COVERED_AREA_NOTE_PCT: float = 30.0

# Alerts
RAIN_INCOMING_POP: float = 0.6
RAIN_INCOMING_LOOKAHEAD_HOURS: int = 2
MAX_NOTIFICATIONS: int = 50
