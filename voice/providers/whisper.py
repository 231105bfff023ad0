"""
Network speech engine: OpenAI Whisper transcription API.

Higher accuracy, needs connectivity and an API key. Audio is uploaded as a
multipart file; there is no streaming, so interim callbacks are never fired.
"""

from __future__ import annotations

import asyncio
import io
import logging
import math
import time
from typing import Any

import requests

from constants import WHISPER_MAX_FILE_BYTES, WHISPER_TIMEOUT_SECONDS
from voice.config import (
    FITNESS_PROMPT,
    OPENAI_API_KEY,
    WHISPER_ENDPOINT,
    WHISPER_LANGUAGE,
    WHISPER_MODEL,
    WHISPER_SUPPORTED_FORMATS,
)
from voice.errors import (
    PayloadTooLargeError,
    ProviderNotConfiguredError,
    TranscriptionError,
    TranscriptionTimeoutError,
)
from voice.providers.base import (
    Capability,
    InterimCallback,
    SpeechProvider,
    TranscriptionResult,
)

logger = logging.getLogger(__name__)


def _read_audio(audio_source: Any) -> bytes:
    if audio_source is None:
        raise TranscriptionError("Whisper needs recorded audio to transcribe", "whisper")
    if isinstance(audio_source, (bytes, bytearray)):
        return bytes(audio_source)
    if hasattr(audio_source, "read"):
        return audio_source.read()
    with open(audio_source, "rb") as f:
        return f.read()


def _confidence_from_segments(segments: list[dict]) -> float:
    """Mean per-segment probability from Whisper's avg_logprob."""
    probs = [math.exp(s["avg_logprob"]) for s in segments if "avg_logprob" in s]
    if not probs:
        return 0.9
    return max(0.0, min(1.0, sum(probs) / len(probs)))


class WhisperProvider(SpeechProvider):
    name = "whisper"
    capabilities = frozenset({Capability.TRANSCRIBE})

    def __init__(
        self,
        api_key: str | None = None,
        endpoint: str = WHISPER_ENDPOINT,
        model: str = WHISPER_MODEL,
        language: str = WHISPER_LANGUAGE,
        timeout: float = WHISPER_TIMEOUT_SECONDS,
        max_file_bytes: int = WHISPER_MAX_FILE_BYTES,
        prompt: str = FITNESS_PROMPT,
    ):
        self.api_key = api_key if api_key is not None else OPENAI_API_KEY
        self.endpoint = endpoint
        self.model = model
        self.language = language
        self.timeout = timeout
        self.max_file_bytes = max_file_bytes
        self.prompt = prompt
        self._session = requests.Session()

        if not self.api_key:
            logger.warning("OPENAI_API_KEY not set. Whisper transcription disabled.")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def get_capabilities(self) -> dict:
        return {
            "transcribe": {
                "supported": True,
                "available": self.configured,
                "continuous": False,
                "interim_results": False,
                "offline": False,
                "formats": list(WHISPER_SUPPORTED_FORMATS),
                "max_file_bytes": self.max_file_bytes,
            },
            "speak": {"supported": False},
        }

    async def transcribe(
        self,
        audio_source: Any = None,
        options: dict | None = None,
        on_interim: InterimCallback | None = None,
    ) -> TranscriptionResult:
        if not self.configured:
            raise ProviderNotConfiguredError("OPENAI_API_KEY not set", self.name)

        opts = options or {}
        audio = _read_audio(audio_source)
        if not audio:
            raise TranscriptionError("Empty audio payload", self.name)
        if len(audio) > self.max_file_bytes:
            raise PayloadTooLargeError(len(audio), self.max_file_bytes, self.name)

        timeout = opts.get("timeout", self.timeout)
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._transcribe_sync, audio, opts),
                timeout=timeout + 1,
            )
        except asyncio.TimeoutError:
            raise TranscriptionTimeoutError(f"Whisper did not respond within {timeout}s", self.name)

    def _transcribe_sync(self, audio: bytes, opts: dict) -> TranscriptionResult:
        filename = opts.get("filename", "audio.webm")
        response_format = opts.get("response_format", "verbose_json")
        data = {
            "model": self.model,
            "language": opts.get("language", self.language),
            "response_format": response_format,
            "temperature": str(opts.get("temperature", 0)),
        }
        prompt = opts.get("prompt", self.prompt)
        if prompt:
            data["prompt"] = prompt

        t0 = time.monotonic()
        try:
            resp = self._session.post(
                self.endpoint,
                headers={"Authorization": f"Bearer {self.api_key}"},
                data=data,
                files={"file": (filename, io.BytesIO(audio))},
                timeout=opts.get("timeout", self.timeout),
            )
        except requests.Timeout as e:
            raise TranscriptionTimeoutError(f"Whisper request timed out: {e}", self.name)
        except requests.RequestException as e:
            raise TranscriptionError(f"Whisper request failed: {e}", self.name)

        if resp.status_code in (401, 403):
            raise ProviderNotConfiguredError(f"Whisper rejected the API key ({resp.status_code})", self.name)
        if resp.status_code == 413:
            raise PayloadTooLargeError(len(audio), self.max_file_bytes, self.name)
        if resp.status_code != 200:
            logger.error(f"Whisper API error {resp.status_code}: {resp.text[:200]}")
            raise TranscriptionError(
                f"Whisper API error {resp.status_code}", self.name, status_code=resp.status_code
            )

        elapsed = time.monotonic() - t0
        if response_format in ("text", "srt", "vtt"):
            text = resp.text.strip()
            return TranscriptionResult(
                text=text, confidence=0.9, language=data["language"],
                duration=elapsed, provider=self.name,
            )

        body = resp.json()
        text = (body.get("text") or "").strip()
        logger.info(f"Whisper transcript ({elapsed:.2f}s): '{text}'")
        return TranscriptionResult(
            text=text,
            confidence=_confidence_from_segments(body.get("segments") or []),
            language=body.get("language", data["language"]),
            duration=float(body.get("duration", elapsed)),
            provider=self.name,
        )

    async def close(self) -> None:
        self._session.close()
