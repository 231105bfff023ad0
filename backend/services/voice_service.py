"""
Voice service: wraps the voice and offline layers for use by the API layer.
Owns the workout session, turns transcripts into queued events and spoken
confirmations, and tracks the parse context (last exercise, active workout).
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Iterable

from backend.config import (
    CONNECTIVITY_INTERVAL,
    CONNECTIVITY_URL,
    MIN_TRANSCRIPT_CONFIDENCE,
    OFFLINE_DATA_DIR,
    SYNC_BASE_URL,
    SYNC_TIMEOUT,
    SYNC_TOKEN,
)
from offline.connectivity import ConnectivityMonitor
from offline.manager import OfflineEventManager
from offline.models import SessionRecord, SyncReport
from offline.sync_client import SyncClient
from voice.config import (
    DEFAULT_STT_PROVIDER,
    DEFAULT_TTS_PROVIDER,
    ELEVENLABS_API_KEY,
    FALLBACK_STT_PROVIDER,
    OPENAI_API_KEY,
)
from voice.intent_parser import Exercise, Intent, IntentKind, IntentParser, ParseContext
from voice.providers.browser import BrowserSpeechProvider
from voice.providers.elevenlabs import ElevenLabsProvider
from voice.providers.registry import ProviderRegistry
from voice.providers.whisper import WhisperProvider
from voice.tts_feedback import VoiceFeedback
from voice.voice_input import VoiceCommandListener

logger = logging.getLogger(__name__)

# Corrections go out ahead of ordinary sets when the offline queue is trimmed
_EVENT_PRIORITY = {
    IntentKind.EDIT_LAST: "high",
    IntentKind.UNDO_LAST: "high",
    IntentKind.START_WORKOUT: "high",
}


class VoiceService:
    """
    Central voice service used by REST and WebSocket handlers.
    Holds the parser, listener, TTS queue and offline manager.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        parser: IntentParser,
        manager: OfflineEventManager,
        feedback: VoiceFeedback | None = None,
        listener: VoiceCommandListener | None = None,
        min_transcript_confidence: float = MIN_TRANSCRIPT_CONFIDENCE,
    ):
        self.registry = registry
        self.parser = parser
        self.manager = manager
        self.feedback = feedback or VoiceFeedback(registry)
        self.listener = listener or VoiceCommandListener(parser, registry)
        self.min_transcript_confidence = min_transcript_confidence

        self.current_session: SessionRecord | None = None
        self.last_exercise: Exercise | None = None
        self._last_entry_id: str | None = None

    @property
    def context(self) -> ParseContext:
        return ParseContext(last_exercise=self.last_exercise, in_workout=self.current_session is not None)

    def load_catalogue(self, exercises: Iterable[Exercise | dict]) -> int:
        return self.parser.load_exercise_catalogue(exercises)

    # === Sessions ===

    async def start_session(self, session_type: str = "workout", metadata: dict | None = None) -> SessionRecord:
        if self.current_session is not None:
            await self.end_session()

        record = SessionRecord(
            id=f"session_{uuid.uuid4().hex[:12]}",
            type=session_type,
            start_time=time.time(),
            metadata=dict(metadata or {}),
        )
        self.manager.queue_session(record)
        self.current_session = record
        self.last_exercise = None
        self._last_entry_id = None
        logger.info(f"Session started: {record.id} ({session_type})")

        self._sync_in_background()
        return record

    async def end_session(self) -> SessionRecord | None:
        record = self.current_session
        if record is None:
            return None
        self.current_session = None
        self.last_exercise = None
        self._last_entry_id = None
        self.manager.flush_sessions()
        logger.info(f"Session ended: {record.id} ({time.time() - record.start_time:.0f}s)")
        return record

    # === Transcripts ===

    async def process_transcript(self, text: str, confidence: float = 1.0) -> dict:
        """
        Process a speech transcript: parse it, queue the resulting event,
        and speak a confirmation. Returns a summary for the caller.
        """
        if confidence < self.min_transcript_confidence:
            logger.info(f"Transcript below confidence ({confidence:.2f}): '{text}'")
            return {
                "status": "low_confidence",
                "intent": None,
                "entry_id": None,
                "tts_id": self.feedback.announce_unclear(),
            }
        intent = self.listener.on_transcript(text, confidence, self.context)
        return await self.handle_intent(intent, confidence)

    async def listen(self, audio_source: Any = None, options: dict | None = None,
                     provider: str | None = None, on_interim=None) -> dict:
        """Transcribe one utterance through the listening session, then handle it."""
        intent = await self.listener.listen(self.context, audio_source, options, on_interim, provider)
        log = self.listener.get_transcript_log()
        confidence = log[-1]["confidence"] if log else 1.0
        if confidence < self.min_transcript_confidence:
            return {
                "status": "low_confidence",
                "intent": intent.to_dict(),
                "entry_id": None,
                "tts_id": self.feedback.announce_unclear(),
            }
        return await self.handle_intent(intent, confidence)

    async def handle_intent(self, intent: Intent, asr_confidence: float = 1.0) -> dict:
        if intent.kind is IntentKind.UNKNOWN:
            return {
                "status": "unknown",
                "intent": intent.to_dict(),
                "entry_id": None,
                "tts_id": self.feedback.announce_unclear(),
            }

        if intent.kind is IntentKind.START_WORKOUT:
            title = intent.parameters.get("title")
            await self.start_session(metadata={"title": title} if title else None)
        if intent.exercise is not None:
            self.last_exercise = intent.exercise

        entry_id = None
        status = "needs_confirmation" if intent.needs_confirmation else "accepted"
        if not intent.needs_confirmation and self.current_session is not None:
            entry_id = self._record(intent, asr_confidence)
        elif self.current_session is None:
            status = "no_session"

        tts_id = self.feedback.confirm_intent(intent, priority="normal")
        if entry_id:
            self._sync_in_background()
        return {"status": status, "intent": intent.to_dict(), "entry_id": entry_id, "tts_id": tts_id}

    def _record(self, intent: Intent, asr_confidence: float) -> str | None:
        # An undo of a set that never left the device just drops it from the queue
        if intent.kind is IntentKind.UNDO_LAST and self._last_entry_id:
            if self.manager.abandon_event(self._last_entry_id):
                self._last_entry_id = None
                return None

        data = intent.to_dict()
        entry_id = self.manager.queue_event({
            "session_id": self.current_session.id,
            "intent": intent.kind.value,
            "payload": data["parameters"],
            "transcript": intent.utterance,
            "confidence": round(min(intent.confidence, asr_confidence), 3),
            "priority": _EVENT_PRIORITY.get(intent.kind, "normal"),
            "alternatives": data["alternatives"],
        })
        if intent.kind is not IntentKind.UNDO_LAST:
            self._last_entry_id = entry_id
        return entry_id

    # === Connectivity ===

    async def set_online(self, online: bool) -> SyncReport | None:
        report = await self.manager.set_online(online)
        if not online:
            self.feedback.announce_offline()
        self._announce_conflicts(report)
        return report

    def _sync_in_background(self) -> None:
        task = self.manager.schedule_sync()
        if task is not None:
            task.add_done_callback(self._background_sync_done)

    def _background_sync_done(self, task) -> None:
        if not task.cancelled() and task.exception() is None:
            self._announce_conflicts(task.result())

    async def sync(self) -> SyncReport:
        report = await self.manager.sync_queue()
        self._announce_conflicts(report)
        return report

    def _announce_conflicts(self, report: SyncReport | None) -> None:
        if report is not None and report.events is not None and report.events.conflicts:
            self.feedback.announce_conflict()

    def get_status(self) -> dict:
        return {
            "session": self.current_session.to_dict() if self.current_session else None,
            "last_exercise": self.last_exercise.to_dict() if self.last_exercise else None,
            "listener": self.listener.state.value,
            "offline": self.manager.get_status(),
            "tts": self.feedback.get_status(),
            "providers": self.registry.get_capabilities(),
        }

    async def close(self) -> None:
        await self.manager.shutdown()
        await self.feedback.close()
        await self.registry.close()


def build_registry(browser: BrowserSpeechProvider | None = None) -> ProviderRegistry:
    """Register the browser engine always, network engines when their keys are set."""
    registry = ProviderRegistry(
        default_transcriber=DEFAULT_STT_PROVIDER,
        default_speaker=DEFAULT_TTS_PROVIDER,
        fallback_transcriber=FALLBACK_STT_PROVIDER,
    )
    registry.register(browser or BrowserSpeechProvider())
    if OPENAI_API_KEY:
        registry.register(WhisperProvider())
    if ELEVENLABS_API_KEY:
        registry.register(ElevenLabsProvider())
    return registry


def create_voice_service() -> VoiceService:
    registry = build_registry()
    parser = IntentParser()
    client = SyncClient(SYNC_BASE_URL, token=SYNC_TOKEN, timeout=SYNC_TIMEOUT)
    manager = OfflineEventManager(client, data_dir=OFFLINE_DATA_DIR)
    return VoiceService(registry, parser, manager)


def create_connectivity_monitor(service: VoiceService) -> ConnectivityMonitor | None:
    if not CONNECTIVITY_URL:
        return None
    return ConnectivityMonitor(CONNECTIVITY_URL, service.set_online, interval=CONNECTIVITY_INTERVAL)
