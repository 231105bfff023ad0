"""RepVoice server configuration, integrates with shared constants.py."""

import os

from constants import DATA_DIR, SYNC_TIMEOUT_S

# Server
HOST = os.environ.get("REPVOICE_HOST", "0.0.0.0")
PORT = int(os.environ.get("REPVOICE_PORT", "8000"))

# Remote session/event endpoints (the workout backend)
SYNC_BASE_URL = os.environ.get("REPVOICE_SYNC_BASE_URL", "http://localhost:3000/api")
SYNC_TOKEN = os.environ.get("REPVOICE_SYNC_TOKEN") or None
SYNC_TIMEOUT = float(os.environ.get("REPVOICE_SYNC_TIMEOUT", str(SYNC_TIMEOUT_S)))

# Connectivity probe; empty disables it and connectivity is then driven via the API
CONNECTIVITY_URL = os.environ.get("REPVOICE_CONNECTIVITY_URL", "")
CONNECTIVITY_INTERVAL = float(os.environ.get("REPVOICE_CONNECTIVITY_INTERVAL", "15"))

# Offline store
OFFLINE_DATA_DIR = os.environ.get("REPVOICE_DATA_DIR", str(DATA_DIR))

# Transcripts with ASR confidence below this are answered with the unclear prompt
MIN_TRANSCRIPT_CONFIDENCE = float(os.environ.get("REPVOICE_MIN_TRANSCRIPT_CONFIDENCE", "0.4"))
