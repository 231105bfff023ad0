"""
Voice layer configuration.
Provider credentials, voice persona, cooldowns and spoken confirmation templates.
"""

import os

# === OpenAI Whisper (network STT) ===
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
WHISPER_ENDPOINT = os.environ.get(
    "WHISPER_ENDPOINT", "https://api.openai.com/v1/audio/transcriptions"
)
WHISPER_MODEL = "whisper-1"
WHISPER_LANGUAGE = "en"
WHISPER_SUPPORTED_FORMATS = ["mp3", "mp4", "mpeg", "mpga", "m4a", "wav", "webm"]

# Biases recognition toward gym vocabulary
FITNESS_PROMPT = (
    "Workout log. Bench press, back squat, deadlift, overhead press, pull-ups, "
    "barbell, dumbbell, reps, sets, RPE, pounds, lbs, kilos, kg, rest timer."
)

# === ElevenLabs TTS ===
ELEVENLABS_API_KEY = os.environ.get("ELEVENLABS_API_KEY", "")
ELEVENLABS_VOICE_ID = os.environ.get("ELEVENLABS_VOICE_ID", "21m00Tcm4TlvDq8ikWAM")  # "Rachel" default
ELEVENLABS_MODEL_ID = "eleven_turbo_v2"

TTS_VOICE_SETTINGS = {
    "stability": 0.7,
    "similarity_boost": 0.8,
    "speed": 1.15,
}

# === Browser (Web Speech API) ===
BROWSER_LANGUAGE = "en-US"
BROWSER_MAX_ALTERNATIVES = 3

# === Provider selection ===
DEFAULT_STT_PROVIDER = os.environ.get("REPVOICE_STT_PROVIDER", "browser")
FALLBACK_STT_PROVIDER = os.environ.get("REPVOICE_FALLBACK_STT_PROVIDER", "whisper")
DEFAULT_TTS_PROVIDER = os.environ.get("REPVOICE_TTS_PROVIDER", "browser")

# === Voice persona ===
DEFAULT_PERSONA = {
    "rate": 1.0,
    "pitch": 1.0,
    "volume": 0.8,
    "voice": None,
    "confirmation_style": "concise",   # "minimal" | "concise" | "detailed"
    "use_natural_pauses": True,
}

CONFIRMATION_STYLES = ("minimal", "concise", "detailed")

# === Cooldowns (seconds) per event type ===
COOLDOWNS = {
    "command_unclear": 3.0,
    "needs_confirmation": 1.0,
    "general": 0.0,
}

# === Pronunciation ===
ABBREVIATIONS = {
    "DB": "dumbbell",
    "BB": "barbell",
    "OHP": "overhead press",
    "BP": "bench press",
    "DL": "deadlift",
    "BS": "back squat",
    "FS": "front squat",
    "RDL": "Romanian deadlift",
    "RPE": "rate of perceived exertion",
    "AMRAP": "as many reps as possible",
}

UNIT_WORDS = {
    r"lbs?": "pounds",
    r"kgs?": "kilograms",
    r"reps?": "repetitions",
    r"secs?": "seconds",
    r"mins?": "minutes",
    r"hrs?": "hours",
}

# === Feedback templates ===
FEEDBACK_EVENTS = {
    "command_unclear": "Didn't catch that. Please repeat.",
    "needs_confirmation": "Did you mean {option}?",
    "sync_conflict": "Some entries conflict with the server. Please review them.",
    "offline": "You're offline. I'll keep your sets and sync them later.",
}
