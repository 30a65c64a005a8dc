import os
from pathlib import Path

# Path to the SQLite database file used by stores. Can be overridden
# using the PHONETAG_DB_PATH environment variable.
DB_PATH = os.environ.get("PHONETAG_DB_PATH", str(Path(__file__).parent / "db.sqlite3"))

# Canonical timezone used for every midnight boundary (daily tag reset,
# miss zone expiry) of a game. Stored per game at creation time.
GAME_TIMEZONE = os.environ.get("PHONETAG_TIMEZONE", "America/Toronto")

REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/2")
# "log" or "redis"
NOTIFICATION_BACKEND = os.environ.get("PHONETAG_NOTIFICATION_BACKEND", "log")
NOTIFICATION_CHANNEL = os.environ.get("PHONETAG_NOTIFICATION_CHANNEL", "phonetag:notifications")
NOTIFICATION_TIMEOUT_SEC = float(os.environ.get("PHONETAG_NOTIFICATION_TIMEOUT_SEC", "5"))

# Store calls: bounded timeout with a small retry budget for transient failures
STORE_TIMEOUT_SEC = float(os.environ.get("PHONETAG_STORE_TIMEOUT_SEC", "10"))
STORE_RETRY_ATTEMPTS = int(os.environ.get("PHONETAG_STORE_RETRY_ATTEMPTS", "3"))

INACTIVITY_SWEEP_MINUTES = int(os.environ.get("PHONETAG_INACTIVITY_SWEEP_MINUTES", "30"))
# Run the inactivity sweep inside the web process as well as in Celery beat.
INPROCESS_SWEEP = os.environ.get("PHONETAG_INPROCESS_SWEEP", "0") == "1"

# --- Game rules ---

# Tag radii (meters)
BASIC_TAG_RADIUS = 80.0        # ~1 city block
WIDE_TAG_RADIUS = 300.0        # ~3-5 blocks
TAG_WARNING_RADIUS = 457.0     # ~1500 ft

STARTING_STRIKES = 3
DAILY_TAG_LIMIT = 5

HOME_BASE_RADIUS = 50.0
MISS_ZONE_RADIUS = 50.0
HIT_ZONE_RADIUS = BASIC_TAG_RADIUS
HOME_BASES_PER_PLAYER = 2

MIN_PLAYERS = 2
MAX_PLAYERS = 5
GAME_TITLE_MAX_LENGTH = 8
JOIN_CODE_LENGTH = 6

TRIPWIRE_RADIUS = 15.0
MAX_GEOFENCE_REGIONS = 20

RADAR_RADIUS = 610.0           # ~2000 ft
RADAR_DURATION_SEC = 10
RADAR_DECOY_MIN_DISTANCE = 1500.0
RADAR_DECOY_MAX_DISTANCE = 3000.0

OFFLINE_WARNING_HOURS = 47
OFFLINE_PENALTY_HOURS = 48
NUDGE_RESPONSE_WINDOW_HOURS = 6

# Reported as the miss distance when no opponent had a recorded location
MISS_SENTINEL_DISTANCE = 9999.0
EARTH_RADIUS_M = 6_371_000.0
