"""
RepVoice shared constants.
All modules import from here. Single source of truth.
"""

import os
from pathlib import Path

# === Project Paths ===
PROJECT_ROOT = Path(__file__).parent
DATA_DIR = Path(os.environ.get(
    "REPVOICE_DATA_DIR",
    str(Path.home() / ".repvoice"),
))

# === Intent Parsing ===
CONFIDENCE_THRESHOLD = 0.7
FUZZY_MATCH_THRESHOLD = 0.8
ALTERNATIVE_SIMILARITY = 0.5   # min similarity for "did you mean" suggestions
MAX_ALTERNATIVES = 3
WORKOUT_CONFIDENCE_BOOST = 0.05

INTENT_KINDS = [
    "log_set",
    "start_workout",
    "edit_last",
    "undo_last",
    "rest_timer",
    "exercise_mention",
    "unknown",
]

# === Units ===
# Factors to the base unit of each family: pounds, seconds, metres
WEIGHT_UNITS = {
    "kg": 2.20462, "kgs": 2.20462, "kilo": 2.20462, "kilos": 2.20462,
    "kilogram": 2.20462, "kilograms": 2.20462,
    "lb": 1.0, "lbs": 1.0, "pound": 1.0, "pounds": 1.0,
    "stone": 14.0, "stones": 14.0,
    "oz": 0.0625, "ounce": 0.0625, "ounces": 0.0625,
}

TIME_UNITS = {
    "s": 1, "sec": 1, "secs": 1, "second": 1, "seconds": 1,
    "min": 60, "mins": 60, "minute": 60, "minutes": 60,
    "hr": 3600, "hrs": 3600, "hour": 3600, "hours": 3600,
}

DISTANCE_UNITS = {
    "m": 1.0, "meter": 1.0, "meters": 1.0, "metre": 1.0, "metres": 1.0,
    "cm": 0.01, "centimeter": 0.01, "centimeters": 0.01,
    "km": 1000.0, "kilometer": 1000.0, "kilometers": 1000.0,
    "ft": 0.3048, "foot": 0.3048, "feet": 0.3048,
    "in": 0.0254, "inch": 0.0254, "inches": 0.0254,
    "yd": 0.9144, "yard": 0.9144, "yards": 0.9144,
    "mile": 1609.34, "miles": 1609.34,
}

RPE_MIN = 1
RPE_MAX = 10

# === Speech ===
MAX_LISTEN_SECONDS = 15.0      # auto-stop for a single transcription
TRANSCRIPT_LOG_SIZE = 200
SPEAK_TIMEOUT_SECONDS = 30.0
WHISPER_MAX_FILE_BYTES = 25 * 1024 * 1024
WHISPER_TIMEOUT_SECONDS = 30.0

# === TTS Queue ===
TTS_MAX_QUEUE_SIZE = 50
TTS_MAX_RETRIES = 3
TTS_RETRY_DELAY_S = 1.0
TTS_DEBOUNCE_S = 0.3
TTS_FEEDBACK_LOG_SIZE = 100     # spoken items kept for get_feedback_log
PRIORITY_ORDER = {"high": 0, "normal": 1, "low": 2}

# === Offline Queue ===
OFFLINE_STORAGE_NAMESPACE = "voice_offline"
OFFLINE_MAX_QUEUE_SIZE = 1000
OFFLINE_MAX_RETRIES = 5
SYNC_INTERVAL_S = 30.0
SYNC_MAX_BACKOFF_S = 300.0
SYNC_TIMEOUT_S = 10.0
COMPRESS_MIN_LENGTH = 50       # transcripts shorter than this are stored as-is
