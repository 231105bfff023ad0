"""
ElevenLabs speech synthesis.

Server-side TTS: returns base64 mp3 and hands it to the audio callback
(the WebSocket handler plays it in the browser through an <audio> element).
"""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import Callable

import requests

from voice.config import (
    ELEVENLABS_API_KEY,
    ELEVENLABS_MODEL_ID,
    ELEVENLABS_VOICE_ID,
    TTS_VOICE_SETTINGS,
)
from voice.errors import ProviderNotConfiguredError, SynthesisError
from voice.providers.base import Capability, SpeechProvider, SpeechResult

logger = logging.getLogger(__name__)

AudioCallback = Callable[[str, str], object]


class ElevenLabsProvider(SpeechProvider):
    name = "elevenlabs"
    capabilities = frozenset({Capability.SPEAK})

    def __init__(
        self,
        api_key: str | None = None,
        voice_id: str | None = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key if api_key is not None else ELEVENLABS_API_KEY
        self.voice_id = voice_id or ELEVENLABS_VOICE_ID
        self.timeout = timeout
        # Callback for delivering audio to clients (set by WebSocket handler)
        self._audio_callback: AudioCallback | None = None
        self._current: asyncio.Task | None = None

        if not self.api_key:
            logger.warning("ELEVENLABS_API_KEY not set. ElevenLabs TTS disabled.")

    def set_audio_callback(self, callback: AudioCallback | None) -> None:
        """callback(text, audio_base64)"""
        self._audio_callback = callback

    def get_capabilities(self) -> dict:
        return {
            "transcribe": {"supported": False},
            "speak": {"supported": True, "available": bool(self.api_key)},
        }

    async def speak(self, text: str, options: dict | None = None) -> SpeechResult:
        if not self.api_key:
            raise ProviderNotConfiguredError("ELEVENLABS_API_KEY not set", self.name)

        self._current = asyncio.ensure_future(asyncio.to_thread(self._synthesize, text, options or {}))
        try:
            audio_b64 = await self._current
        finally:
            self._current = None

        if self._audio_callback:
            result = self._audio_callback(text, audio_b64)
            if asyncio.iscoroutine(result):
                await result
        return SpeechResult(success=True, text=text, audio_base64=audio_b64)

    def _synthesize(self, text: str, options: dict) -> str:
        """Call ElevenLabs API and return base64-encoded mp3."""
        url = f"https://api.elevenlabs.io/v1/text-to-speech/{self.voice_id}/stream"
        headers = {
            "xi-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        settings = dict(TTS_VOICE_SETTINGS)
        if options.get("rate"):
            settings["speed"] = float(options["rate"]) * TTS_VOICE_SETTINGS["speed"]
        payload = {
            "text": text,
            "model_id": ELEVENLABS_MODEL_ID,
            "voice_settings": settings,
        }
        try:
            resp = requests.post(url, json=payload, headers=headers, stream=True, timeout=self.timeout)
        except requests.RequestException as e:
            raise SynthesisError(f"ElevenLabs request failed: {e}", self.name)

        if resp.status_code != 200:
            logger.error(f"ElevenLabs API error {resp.status_code}: {resp.text[:200]}")
            raise SynthesisError(f"ElevenLabs API error {resp.status_code}", self.name)

        audio_bytes = b"".join(resp.iter_content(chunk_size=4096))
        return base64.b64encode(audio_bytes).decode("utf-8")

    async def stop_speaking(self) -> None:
        if self._current is not None and not self._current.done():
            self._current.cancel()
