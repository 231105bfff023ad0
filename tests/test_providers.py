"""Tests for the speech providers and the provider registry."""

import asyncio

import pytest
import requests

from voice.errors import (
    CapabilityNotSupportedError,
    DeviceNotFoundError,
    NoSpeechDetectedError,
    PayloadTooLargeError,
    PermissionDeniedError,
    ProviderNotConfiguredError,
    ProviderUnavailableError,
    SpeechInterruptedError,
    SynthesisError,
    TranscriptionError,
    TranscriptionInProgressError,
    TranscriptionTimeoutError,
)
from voice.providers.base import Capability, TranscriptionResult
from voice.providers.browser import BrowserSpeechProvider
from voice.providers.elevenlabs import ElevenLabsProvider
from voice.providers.registry import ProviderRegistry
from voice.providers.whisper import WhisperProvider


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body
        self.text = str(body)

    def json(self):
        return self._body


class Outbox:
    def __init__(self):
        self.messages = []

    async def __call__(self, message):
        self.messages.append(message)

    def of_type(self, msg_type):
        return [m for m in self.messages if m["type"] == msg_type]


# --- Capabilities ---

def test_capability_queries():
    assert BrowserSpeechProvider().supports(Capability.TRANSCRIBE)
    assert BrowserSpeechProvider().supports(Capability.SPEAK)
    whisper = WhisperProvider(api_key="sk-test")
    assert whisper.supports(Capability.TRANSCRIBE)
    assert not whisper.supports(Capability.SPEAK)
    assert whisper.get_capabilities()["speak"] == {"supported": False}
    assert not ElevenLabsProvider(api_key="el-test").supports(Capability.TRANSCRIBE)


@pytest.mark.asyncio
async def test_whisper_cannot_speak():
    with pytest.raises(CapabilityNotSupportedError):
        await WhisperProvider(api_key="sk-test").speak("hello")


# --- Browser engine ---

@pytest.mark.asyncio
async def test_browser_transcribe_final_result():
    outbox = Outbox()
    browser = BrowserSpeechProvider(send=outbox)
    interims = []

    task = asyncio.ensure_future(browser.transcribe(on_interim=interims.append))
    await asyncio.sleep(0)
    assert outbox.of_type("stt_start")[0]["continuous"] is False

    await browser.handle_client_message({"type": "stt_result", "text": "bench press", "is_final": False})
    await browser.handle_client_message({
        "type": "stt_result",
        "text": "bench press 10 reps",
        "confidence": 0.93,
        "is_final": True,
        "alternatives": [{"text": "bench press ten reps", "confidence": 0.8}],
    })
    result = await task

    assert result.text == "bench press 10 reps"
    assert result.confidence == 0.93
    assert result.alternatives[0].text == "bench press ten reps"
    assert [r.text for r in interims] == ["bench press"]


@pytest.mark.asyncio
async def test_browser_auto_stop_returns_best_interim():
    outbox = Outbox()
    browser = BrowserSpeechProvider(send=outbox, max_listen_seconds=0.05)

    task = asyncio.ensure_future(browser.transcribe())
    await asyncio.sleep(0)
    await browser.handle_client_message({"type": "stt_result", "text": "squat 225", "is_final": False})
    result = await task

    assert result.text == "squat 225"
    assert result.is_final
    assert outbox.of_type("stt_stop")


@pytest.mark.asyncio
async def test_browser_auto_stop_without_speech():
    browser = BrowserSpeechProvider(send=Outbox())
    with pytest.raises(NoSpeechDetectedError):
        await browser.transcribe(options={"max_seconds": 0.01})


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "code, error",
    [
        ("not-allowed", PermissionDeniedError),
        ("NotAllowedError", PermissionDeniedError),
        ("audio-capture", DeviceNotFoundError),
        ("NotFoundError", DeviceNotFoundError),
        ("no-speech", NoSpeechDetectedError),
        ("network", TranscriptionError),
    ],
)
async def test_browser_error_mapping(code, error):
    browser = BrowserSpeechProvider(send=Outbox())
    task = asyncio.ensure_future(browser.transcribe())
    await asyncio.sleep(0)
    await browser.handle_client_message({"type": "stt_error", "error": code})
    with pytest.raises(error):
        await task


@pytest.mark.asyncio
async def test_browser_requires_connection_and_single_transcription():
    with pytest.raises(ProviderUnavailableError):
        await BrowserSpeechProvider().transcribe()

    browser = BrowserSpeechProvider(send=Outbox())
    first = asyncio.ensure_future(browser.transcribe())
    await asyncio.sleep(0)
    with pytest.raises(TranscriptionInProgressError):
        await browser.transcribe()
    await browser.handle_client_message({"type": "stt_end"})
    with pytest.raises(NoSpeechDetectedError):
        await first


@pytest.mark.asyncio
async def test_browser_detach_fails_pending_work():
    browser = BrowserSpeechProvider(send=Outbox())
    task = asyncio.ensure_future(browser.transcribe())
    await asyncio.sleep(0)
    browser.detach()
    with pytest.raises(ProviderUnavailableError):
        await task
    assert not browser.connected


@pytest.mark.asyncio
async def test_browser_continuous_listening():
    outbox = Outbox()
    browser = BrowserSpeechProvider(send=outbox)
    finals = []

    task = asyncio.ensure_future(browser.listen_continuously(finals.append))
    await asyncio.sleep(0)
    await browser.handle_client_message({"type": "stt_result", "text": "deadlift", "is_final": True})
    await browser.handle_client_message({"type": "stt_result", "text": "five reps", "is_final": True})
    await browser.handle_client_message({"type": "stt_end"})
    results = await task

    assert [r.text for r in results] == ["deadlift", "five reps"]
    assert [r.text for r in finals] == ["deadlift", "five reps"]


@pytest.mark.asyncio
async def test_browser_speak_round_trip():
    outbox = Outbox()
    browser = BrowserSpeechProvider(send=outbox)

    task = asyncio.ensure_future(browser.speak("Logged.", {"rate": 1.2}))
    await asyncio.sleep(0)
    request = outbox.of_type("tts_request")[0]
    assert request["text"] == "Logged."
    assert request["rate"] == 1.2

    await browser.handle_client_message({"type": "tts_end", "id": request["id"]})
    result = await task
    assert result.success


@pytest.mark.asyncio
async def test_browser_stop_speaking_interrupts():
    outbox = Outbox()
    browser = BrowserSpeechProvider(send=outbox)
    task = asyncio.ensure_future(browser.speak("A long sentence"))
    await asyncio.sleep(0)
    await browser.stop_speaking()
    with pytest.raises(SpeechInterruptedError):
        await task
    assert outbox.of_type("tts_cancel")


@pytest.mark.asyncio
async def test_browser_ignores_unrelated_messages():
    browser = BrowserSpeechProvider(send=Outbox())
    assert await browser.handle_client_message({"type": "voice_transcript"}) is False


# --- Whisper ---

@pytest.mark.asyncio
async def test_whisper_transcribes(monkeypatch):
    whisper = WhisperProvider(api_key="sk-test")
    sent = {}

    def fake_post(url, headers=None, data=None, files=None, timeout=None):
        sent.update(url=url, headers=headers, data=data, files=files)
        return FakeResponse(200, {
            "text": " bench press 10 reps ",
            "language": "en",
            "segments": [{"avg_logprob": 0.0}, {"avg_logprob": 0.0}],
        })

    monkeypatch.setattr(whisper._session, "post", fake_post)
    result = await whisper.transcribe(b"\x00" * 64)

    assert result.text == "bench press 10 reps"
    assert result.confidence == pytest.approx(1.0)
    assert sent["headers"]["Authorization"] == "Bearer sk-test"
    assert sent["data"]["model"] == "whisper-1"
    assert "Bench press" in sent["data"]["prompt"]


@pytest.mark.asyncio
async def test_whisper_requires_api_key():
    with pytest.raises(ProviderNotConfiguredError):
        await WhisperProvider(api_key="").transcribe(b"audio")


@pytest.mark.asyncio
async def test_whisper_rejects_oversized_payload(monkeypatch):
    whisper = WhisperProvider(api_key="sk-test", max_file_bytes=10)
    monkeypatch.setattr(whisper._session, "post", lambda *a, **k: pytest.fail("should not upload"))
    with pytest.raises(PayloadTooLargeError):
        await whisper.transcribe(b"x" * 11)


@pytest.mark.asyncio
async def test_whisper_timeout(monkeypatch):
    whisper = WhisperProvider(api_key="sk-test")

    def fake_post(*args, **kwargs):
        raise requests.Timeout("read timed out")

    monkeypatch.setattr(whisper._session, "post", fake_post)
    with pytest.raises(TranscriptionTimeoutError):
        await whisper.transcribe(b"audio")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, error",
    [(401, ProviderNotConfiguredError), (403, ProviderNotConfiguredError), (500, TranscriptionError)],
)
async def test_whisper_http_errors(monkeypatch, status, error):
    whisper = WhisperProvider(api_key="sk-test")
    monkeypatch.setattr(whisper._session, "post", lambda *a, **k: FakeResponse(status, {}))
    with pytest.raises(error):
        await whisper.transcribe(b"audio")


# --- ElevenLabs ---

class FakeAudioResponse(FakeResponse):
    def iter_content(self, chunk_size=4096):
        yield b"ID3"
        yield b"\x00\x01"


@pytest.mark.asyncio
async def test_elevenlabs_speaks_and_delivers_audio(monkeypatch):
    monkeypatch.setattr(requests, "post", lambda *a, **k: FakeAudioResponse(200, {}))
    provider = ElevenLabsProvider(api_key="el-test")
    delivered = []
    provider.set_audio_callback(lambda text, audio: delivered.append((text, audio)))

    result = await provider.speak("Logged.")

    assert result.success
    assert result.audio_base64 == "SUQzAAE="
    assert delivered == [("Logged.", "SUQzAAE=")]


@pytest.mark.asyncio
async def test_elevenlabs_errors(monkeypatch):
    with pytest.raises(ProviderNotConfiguredError):
        await ElevenLabsProvider(api_key="").speak("hi")

    monkeypatch.setattr(requests, "post", lambda *a, **k: FakeAudioResponse(500, {}))
    with pytest.raises(SynthesisError):
        await ElevenLabsProvider(api_key="el-test").speak("hi")


# --- Registry ---

class FlakyTranscriber(BrowserSpeechProvider):
    name = "flaky"

    def __init__(self, error):
        super().__init__()
        self.error = error

    async def transcribe(self, audio_source=None, options=None, on_interim=None):
        raise self.error


def _registry_with(primary, fallback):
    reg = ProviderRegistry(default_transcriber=primary.name, fallback_transcriber=fallback.name)
    reg.register(primary)
    reg.register(fallback)
    return reg


@pytest.mark.asyncio
async def test_registry_falls_back_on_transient_error(speaker):
    speaker.next_transcript = TranscriptionResult(text="squat", confidence=0.9)
    reg = _registry_with(FlakyTranscriber(TranscriptionError("network")), speaker)
    result = await reg.transcribe()
    assert result.text == "squat"
    assert speaker.transcribe_calls == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [PermissionDeniedError("denied"), DeviceNotFoundError("no mic"), NoSpeechDetectedError("quiet")],
)
async def test_registry_does_not_fall_back_for_permanent_errors(speaker, error):
    reg = _registry_with(FlakyTranscriber(error), speaker)
    with pytest.raises(type(error)):
        await reg.transcribe()
    assert speaker.transcribe_calls == 0


@pytest.mark.asyncio
async def test_registry_explicit_provider_has_no_fallback(speaker):
    reg = _registry_with(FlakyTranscriber(TranscriptionError("network")), speaker)
    with pytest.raises(TranscriptionError):
        await reg.transcribe(provider="flaky")


def test_registry_lookup_errors(speaker):
    reg = ProviderRegistry()
    reg.register(WhisperProvider(api_key="sk-test"))
    with pytest.raises(ProviderUnavailableError):
        reg.get("missing")
    with pytest.raises(CapabilityNotSupportedError):
        reg.speaker("whisper")
    assert reg.default_transcriber == "whisper"
    assert reg.default_speaker is None
    reg.register(speaker)
    assert reg.default_speaker == "fake"
    assert [p.name for p in reg.providers_with(Capability.SPEAK)] == ["fake"]
