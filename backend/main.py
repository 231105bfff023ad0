"""
RepVoice Backend: FastAPI application.
REST + WebSocket API for voice workout logging.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

# Load .env from project root
from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(PROJECT_ROOT / ".env")

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.api.routes import router as api_router
from backend.api.websocket import broadcast, cancel_background, router as ws_router, spawn_background
from backend.services.voice_service import create_connectivity_monitor, create_voice_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    service = getattr(app.state, "voice_service", None) or create_voice_service()
    app.state.voice_service = service

    async def push_tts(text, audio_base64, event_type):
        await broadcast({"type": "tts_audio", "text": text, "audio": audio_base64, "event_type": event_type})

    def push_listener_state(state):
        spawn_background(broadcast({"type": "listener_state", "state": state.value}))

    service.feedback.set_audio_callback(push_tts)
    service.listener.set_state_callback(push_listener_state)

    monitor = create_connectivity_monitor(service)
    if monitor is not None:
        monitor.start()
    logger.info("RepVoice backend started")
    try:
        yield
    finally:
        if monitor is not None:
            await monitor.stop()
        await cancel_background()
        await service.close()
        logger.info("RepVoice backend stopped")


app = FastAPI(
    title="RepVoice API",
    description="Voice workout logging: intent parsing, spoken confirmations, offline sync",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api")
app.include_router(ws_router)


@app.get("/")
async def root():
    return {"name": "RepVoice", "status": "running"}


@app.get("/health")
async def health():
    return {"status": "ok"}
