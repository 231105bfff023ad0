"""Shared fixtures: an exercise catalogue, fake speech engine and fake sync endpoints."""

import asyncio

import pytest

from offline.errors import SyncTransportError
from offline.manager import OfflineEventManager
from offline.storage import OfflineStorage
from voice.errors import SynthesisError
from voice.intent_parser import IntentParser
from voice.providers.base import Capability, SpeechProvider, SpeechResult, TranscriptionResult
from voice.providers.registry import ProviderRegistry

CATALOGUE = [
    {"id": "ex-1", "name": "Barbell Bench Press", "synonyms": ["flat bench press"]},
    {"id": "ex-2", "name": "Back Squat"},
    {"id": "ex-3", "name": "Deadlift"},
    {"id": "ex-4", "name": "Overhead Press"},
    {"id": "ex-5", "name": "Bent Over Barbell Row"},
    {"id": "ex-6", "name": "Dumbbell Bench Press"},
    {"id": "ex-7", "name": "Incline Bench Press"},
    {"id": "ex-8", "name": "Pull Up", "synonyms": ["pullups", "pull ups"]},
]


class FakeSpeechProvider(SpeechProvider):
    """Speaks by sleeping `duration` seconds; fails the first `failures` calls."""

    name = "fake"
    capabilities = frozenset({Capability.TRANSCRIBE, Capability.SPEAK})

    def __init__(self, duration: float = 0.0, failures: int = 0):
        self.duration = duration
        self.failures = failures
        self.started: list[str] = []
        self.completed: list[str] = []
        self.stop_calls = 0
        self.next_transcript: TranscriptionResult | None = None
        self.transcribe_error: Exception | None = None
        self.transcribe_calls = 0

    async def speak(self, text, options=None):
        self.started.append(text)
        if self.failures > 0:
            self.failures -= 1
            raise SynthesisError("engine hiccup", self.name)
        await asyncio.sleep(self.duration)
        self.completed.append(text)
        return SpeechResult(success=True, text=text)

    async def stop_speaking(self):
        self.stop_calls += 1

    async def transcribe(self, audio_source=None, options=None, on_interim=None):
        self.transcribe_calls += 1
        if self.transcribe_error is not None:
            raise self.transcribe_error
        return self.next_transcript or TranscriptionResult(text="", confidence=0.0)


class FakeSyncClient:
    """Records calls; `event_errors` maps a transcript to the exception to raise for it."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.fail_sessions = False
        self.event_errors: dict[str, Exception] = {}
        self.gate: asyncio.Event | None = None
        self.closed = False

    async def create_session(self, record):
        self.calls.append(("session", record.id))
        if self.fail_sessions:
            raise SyncTransportError("connection refused")
        return f"srv_{record.id}"

    async def create_event(self, event, backend_session_id):
        if self.gate is not None:
            await self.gate.wait()
        self.calls.append(("event", event.get("transcript"), backend_session_id))
        error = self.event_errors.get(event.get("transcript"))
        if error is not None:
            raise error
        return f"evt_{len(self.calls)}"

    def close(self):
        self.closed = True

    @property
    def event_calls(self):
        return [c for c in self.calls if c[0] == "event"]


@pytest.fixture
def catalogue():
    return [dict(e) for e in CATALOGUE]


@pytest.fixture
def parser(catalogue):
    p = IntentParser()
    p.load_exercise_catalogue(catalogue)
    return p


@pytest.fixture
def speaker():
    return FakeSpeechProvider()


@pytest.fixture
def registry(speaker):
    reg = ProviderRegistry()
    reg.register(speaker)
    return reg


@pytest.fixture
def sync_client():
    return FakeSyncClient()


@pytest.fixture
def storage(tmp_path):
    return OfflineStorage(tmp_path, "test")


@pytest.fixture
def manager(sync_client, storage):
    return OfflineEventManager(sync_client, storage=storage, max_retries=3)


def make_event(session_id="s1", transcript="bench press 10 reps at 185 pounds", **extra):
    return {
        "session_id": session_id,
        "intent": "log_set",
        "payload": {"reps": 10, "weight": 185, "unit": "lbs"},
        "transcript": transcript,
        "confidence": 0.9,
        **extra,
    }
