"""
Voice input listener.
Runs one transcription at a time through the provider registry
(idle -> listening -> processing -> idle) and parses each transcript.
"""

from __future__ import annotations

import logging
from collections import deque
from enum import Enum
from typing import Any, Callable

from constants import MAX_LISTEN_SECONDS, TRANSCRIPT_LOG_SIZE
from voice.errors import TranscriptionInProgressError
from voice.intent_parser import Intent, IntentKind, IntentParser, ParseContext
from voice.providers.base import InterimCallback
from voice.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)


class ListenerState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"


class VoiceCommandListener:
    """
    Receives speech-to-text transcripts and parses them into intents.

    Usage:
        listener = VoiceCommandListener(parser, registry)

        # Push-to-talk: transcribe through the default provider
        intent = await listener.listen(context)
        await listener.stop()          # button released

        # Or when a transcript arrives from elsewhere (e.g. WebSocket):
        listener.on_transcript("squat 225 pounds for 5 reps", confidence=0.92)
    """

    def __init__(
        self,
        parser: IntentParser,
        registry: ProviderRegistry | None = None,
        max_listen_seconds: float = MAX_LISTEN_SECONDS,
    ):
        self.parser = parser
        self.registry = registry
        self.max_listen_seconds = max_listen_seconds
        self.state = ListenerState.IDLE
        self._provider: str | None = None
        self._transcript_log: deque[dict] = deque(maxlen=TRANSCRIPT_LOG_SIZE)
        self._state_callback: Callable[[ListenerState], Any] | None = None

    def set_state_callback(self, callback: Callable[[ListenerState], Any] | None) -> None:
        self._state_callback = callback

    def _set_state(self, state: ListenerState) -> None:
        if state is self.state:
            return
        logger.debug(f"Listener {self.state.value} -> {state.value}")
        self.state = state
        if self._state_callback:
            self._state_callback(state)

    @property
    def is_listening(self) -> bool:
        return self.state is ListenerState.LISTENING

    async def listen(
        self,
        context: ParseContext | None = None,
        audio_source: Any = None,
        options: dict | None = None,
        on_interim: InterimCallback | None = None,
        provider: str | None = None,
    ) -> Intent:
        """
        Transcribe one utterance and parse it. Raises TranscriptionInProgressError
        if a transcription is already running; provider errors propagate unchanged.
        """
        if self.registry is None:
            raise RuntimeError("VoiceCommandListener has no provider registry")
        if self.state is not ListenerState.IDLE:
            raise TranscriptionInProgressError(f"Listener is {self.state.value}")

        opts = {"max_seconds": self.max_listen_seconds, **(options or {})}
        self._provider = provider or self.registry.default_transcriber
        self._set_state(ListenerState.LISTENING)
        try:
            result = await self.registry.transcribe(audio_source, opts, on_interim, provider)
            self._set_state(ListenerState.PROCESSING)
            return self.on_transcript(result.text, result.confidence, context)
        finally:
            self._provider = None
            self._set_state(ListenerState.IDLE)

    async def stop(self) -> None:
        """Push-to-talk release: ask the active transcriber to finish now."""
        if self.state is not ListenerState.LISTENING or self.registry is None:
            return
        await self.registry.transcriber(self._provider).stop_listening()

    def on_transcript(
        self,
        transcript: str,
        confidence: float = 1.0,
        context: ParseContext | None = None,
    ) -> Intent:
        """
        Called when STT produces a transcript.
        Parses it and records it in the transcript log.
        """
        intent = self.parser.parse_intent(transcript, context)

        self._transcript_log.append({
            "text": transcript,
            "confidence": confidence,
            "kind": intent.kind.value,
            "intent_confidence": intent.confidence,
            "needs_confirmation": intent.needs_confirmation,
        })

        if intent.kind is not IntentKind.UNKNOWN:
            logger.info(f"Voice intent: {intent.kind.value} (from: '{transcript}')")
        else:
            logger.debug(f"Unrecognized transcript: '{transcript}'")

        return intent

    def get_transcript_log(self) -> list[dict]:
        """Return the most recent transcripts, oldest first."""
        return list(self._transcript_log)

    def clear(self) -> None:
        self._transcript_log.clear()
