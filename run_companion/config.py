"""Central configuration for the running companion.

All values are constants imported by the rest of the package. Adjust as needed
for your environment. Secrets are read from environment variables (optionally
via a local `.env`).
"""

from __future__ import annotations

import importlib
import os


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env variables when python-dotenv is available.
_load_dotenv = None
try:
    _dotenv_mod = importlib.import_module("dotenv")
    _load_dotenv = getattr(_dotenv_mod, "load_dotenv", None)
except Exception:
    _load_dotenv = None

if callable(_load_dotenv):
    # Load .env from the current directory or any parent folder.
    _load_dotenv()


# ---------------------------------------------------------------------------
# Record store (PostgREST / Supabase REST endpoint)
# ---------------------------------------------------------------------------
STORE_URL = os.getenv("STORE_URL", "").rstrip("/")
STORE_API_KEY = os.getenv("STORE_API_KEY", "")
# Optional user JWT; falls back to the API key when empty.
STORE_ACCESS_TOKEN = os.getenv("STORE_ACCESS_TOKEN", "")

STORE_WORKOUTS_TABLE = "workouts"
STORE_ROUTES_TABLE = "routes"
STORE_PROFILES_TABLE = "coach_profiles"
STORE_TRAINING_PLAN_TABLE = "training_plan"


# ---------------------------------------------------------------------------
# Directions provider (Google Directions JSON API)
# ---------------------------------------------------------------------------
DIRECTIONS_URL = os.getenv(
    "DIRECTIONS_URL", "https://maps.googleapis.com/maps/api/directions/json"
)
GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY", "")
DIRECTIONS_MODE = os.getenv("DIRECTIONS_MODE", "walking")
DIRECTIONS_LANGUAGE = os.getenv("DIRECTIONS_LANGUAGE", "en")
# Coordinates per request including start and end; the provider caps the
# query length so long routes are split into batches.
DIRECTIONS_BATCH_SIZE = _env_int("DIRECTIONS_BATCH_SIZE", 25)


# ---------------------------------------------------------------------------
# Speech rendering (ElevenLabs text-to-speech)
# ---------------------------------------------------------------------------
ELEVENLABS_BASE_URL = os.getenv("ELEVENLABS_BASE_URL", "https://api.elevenlabs.io/v1")
ELEVENLABS_API_KEY = os.getenv("ELEVENLABS_API_KEY", "")
ELEVENLABS_VOICE_ID = os.getenv("ELEVENLABS_VOICE_ID", "2OcnG4mH3jIMtWz3vKus")
ELEVENLABS_MODEL_ID = os.getenv("ELEVENLABS_MODEL_ID", "eleven_multilingual_v2")
ELEVENLABS_STABILITY = _env_float("ELEVENLABS_STABILITY", 0.5)
ELEVENLABS_SIMILARITY_BOOST = _env_float("ELEVENLABS_SIMILARITY_BOOST", 0.75)

# Command used to play synthesized mp3 audio; the file path is appended.
AUDIO_PLAYER_COMMAND = tuple(
    os.getenv("AUDIO_PLAYER_COMMAND", "mpg123 -q").split()
)


# ---------------------------------------------------------------------------
# Text generation (OpenAI chat completions)
# ---------------------------------------------------------------------------
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4")
OPENAI_TEMPERATURE = _env_float("OPENAI_TEMPERATURE", 0.8)

# Threads used to fetch motivational phrases off the tracking thread.
PHRASE_WORKERS = _env_int("PHRASE_WORKERS", 2)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------
HTTP_POOL_CONNECTIONS = 10
HTTP_POOL_MAXSIZE = 10

# Request timeout in seconds.
REQUEST_TIMEOUT = _env_int("REQUEST_TIMEOUT", 15)


# ---------------------------------------------------------------------------
# Location stream
# ---------------------------------------------------------------------------
LOCATION_MIN_INTERVAL_S = _env_float("LOCATION_MIN_INTERVAL_S", 1.0)
LOCATION_MIN_DISTANCE_M = _env_float("LOCATION_MIN_DISTANCE_M", 1.0)


# ---------------------------------------------------------------------------
# Tracking session
# ---------------------------------------------------------------------------
COUNTDOWN_SECONDS = _env_int("COUNTDOWN_SECONDS", 10)
COUNTDOWN_EXTEND_SECONDS = 10

# Used when no body weight is stored for the runner.
DEFAULT_WEIGHT_KG = _env_float("DEFAULT_WEIGHT_KG", 70.0)

# Keep appending fixes to the track while paused. When disabled, fixes are
# dropped during a pause and the pause gap adds no distance.
PAUSE_RECORDS_LOCATION = _env_bool("PAUSE_RECORDS_LOCATION", True)

# Duration timer and speech queue poll cadence (seconds).
TIMER_INTERVAL_S = 1.0
SPEECH_POLL_INTERVAL_S = _env_float("SPEECH_POLL_INTERVAL_S", 0.5)


# ---------------------------------------------------------------------------
# Route matching
# ---------------------------------------------------------------------------
# Bounded search window around the cursor (route indices).
ROUTE_SEARCH_BACK = 2
ROUTE_SEARCH_AHEAD = 10

# Next waypoint must be at least this far from the runner.
MIN_WAYPOINT_SEPARATION_M = _env_float("MIN_WAYPOINT_SEPARATION_M", 15.0)

# Bearing change that makes a route point a turn.
TURN_MIN_ANGLE_DEG = _env_float("TURN_MIN_ANGLE_DEG", 30.0)

# Turns are only reported inside this distance band.
TURN_MIN_DISTANCE_M = 20.0
TURN_MAX_DISTANCE_M = 200.0

# Fixes further than this from the route are left unsnapped and flagged as
# off-route. Set to 0 to always snap.
SNAP_MAX_OFFSET_M = _env_float("SNAP_MAX_OFFSET_M", 40.0)


# ---------------------------------------------------------------------------
# Announcements
# ---------------------------------------------------------------------------
NAV_ANNOUNCE_DISTANCE_M = 100.0
NAV_PRECISE_DISTANCE_M = 50.0
# Identical navigation text is not repeated within this window.
NAV_REPEAT_SUPPRESS_S = _env_float("NAV_REPEAT_SUPPRESS_S", 10.0)

# Pace deviation (min/km) that triggers coaching.
PACE_TOLERANCE_MIN_PER_KM = _env_float("PACE_TOLERANCE_MIN_PER_KM", 0.3)
PACE_MAX_MESSAGES_PER_KM = _env_int("PACE_MAX_MESSAGES_PER_KM", 2)
PACE_FIRST_MESSAGE_OFFSET_KM = 0.1
PACE_MESSAGE_SPACING_KM = 0.5

# One-shot callouts before the target distance.
FINAL_KM_CALLOUT_KM = 1.0
FINAL_STRETCH_CALLOUT_KM = 0.1

# Augment kilometre splits with a generated motivational phrase.
MILESTONE_PHRASES_ENABLED = _env_bool("MILESTONE_PHRASES_ENABLED", True)
