"""
Browser speech engine.

Recognition and synthesis run in the user's browser (Web Speech API); this
side drives them over the WebSocket. Low latency, works offline for
recognition, supports continuous listening and interim results.

Outgoing messages: stt_start, stt_stop, tts_request, tts_cancel.
Incoming messages: stt_result, stt_error, stt_end, tts_end, tts_error.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from constants import MAX_LISTEN_SECONDS, SPEAK_TIMEOUT_SECONDS
from voice.config import BROWSER_LANGUAGE, BROWSER_MAX_ALTERNATIVES, DEFAULT_PERSONA
from voice.errors import (
    DeviceNotFoundError,
    NoSpeechDetectedError,
    PermissionDeniedError,
    ProviderUnavailableError,
    SpeechInterruptedError,
    SynthesisError,
    TranscriptionError,
    TranscriptionInProgressError,
    VoiceError,
)
from voice.providers.base import (
    Alternative,
    Capability,
    InterimCallback,
    SpeechProvider,
    SpeechResult,
    TranscriptionResult,
)

logger = logging.getLogger(__name__)

SendFn = Callable[[dict], Awaitable[None]]

# SpeechRecognition error codes and getUserMedia DOMException names
_ERROR_CLASSES: dict[str, type[VoiceError]] = {
    "not-allowed": PermissionDeniedError,
    "service-not-allowed": PermissionDeniedError,
    "NotAllowedError": PermissionDeniedError,
    "SecurityError": PermissionDeniedError,
    "audio-capture": DeviceNotFoundError,
    "NotFoundError": DeviceNotFoundError,
    "NotReadableError": DeviceNotFoundError,
    "no-speech": NoSpeechDetectedError,
    "aborted": NoSpeechDetectedError,
}

_INTERRUPTED_ERRORS = {"interrupted", "canceled", "cancelled"}


def _error_for(code: str, provider: str) -> VoiceError:
    cls = _ERROR_CLASSES.get(code, TranscriptionError)
    return cls(f"Speech recognition failed: {code}", provider)


def _call(callback: Callable | None, payload: Any) -> None:
    if callback is None:
        return
    result = callback(payload)
    if inspect.isawaitable(result):
        asyncio.ensure_future(result)


@dataclass
class _ListenState:
    future: asyncio.Future
    language: str
    continuous: bool = False
    on_interim: InterimCallback | None = None
    on_result: Callable[[TranscriptionResult], Any] | None = None
    interim: TranscriptionResult | None = None
    finals: list[TranscriptionResult] = field(default_factory=list)


class BrowserSpeechProvider(SpeechProvider):
    """
    Web Speech API engine reached through a connected browser.

    Usage:
        provider = BrowserSpeechProvider()
        provider.attach(websocket_send)           # when the browser connects
        await provider.handle_client_message(msg) # for every stt_*/tts_* message
        result = await provider.transcribe(on_interim=print)
    """

    name = "browser"
    capabilities = frozenset({Capability.TRANSCRIBE, Capability.SPEAK})

    def __init__(
        self,
        send: SendFn | None = None,
        language: str = BROWSER_LANGUAGE,
        max_listen_seconds: float = MAX_LISTEN_SECONDS,
        speak_timeout: float = SPEAK_TIMEOUT_SECONDS,
        max_alternatives: int = BROWSER_MAX_ALTERNATIVES,
    ):
        self._send = send
        self.language = language
        self.max_listen_seconds = max_listen_seconds
        self.speak_timeout = speak_timeout
        self.max_alternatives = max_alternatives
        self._listen: _ListenState | None = None
        self._utterances: dict[str, asyncio.Future] = {}

    # --- Connection ---

    @property
    def connected(self) -> bool:
        return self._send is not None

    def attach(self, send: SendFn) -> None:
        """Bind the send function of the browser that owns the microphone and speakers."""
        self._send = send

    def detach(self, send: SendFn | None = None) -> None:
        """Browser went away: fail everything that waits on it.

        With `send`, only detach if that browser is still the attached one.
        """
        if send is not None and send is not self._send:
            return
        self._send = None
        error = ProviderUnavailableError("Browser disconnected", self.name)
        if self._listen and not self._listen.future.done():
            self._listen.future.set_exception(error)
        for fut in self._utterances.values():
            if not fut.done():
                fut.set_exception(error)
        self._utterances.clear()

    async def _emit(self, message: dict) -> None:
        if self._send is None:
            raise ProviderUnavailableError("No browser connected", self.name)
        await self._send(message)

    def get_capabilities(self) -> dict:
        return {
            "transcribe": {
                "supported": True,
                "available": self.connected,
                "continuous": True,
                "interim_results": True,
                "offline": True,
                "languages": ["en-US", "en-GB", "es-ES", "fr-FR", "de-DE", "it-IT", "pt-BR"],
            },
            "speak": {
                "supported": True,
                "available": self.connected,
            },
        }

    # --- Recognition ---

    def _start_listening(self, options: dict | None) -> _ListenState:
        if self._listen is not None:
            raise TranscriptionInProgressError("Browser is already listening", self.name)
        opts = options or {}
        state = _ListenState(
            future=asyncio.get_running_loop().create_future(),
            language=opts.get("language", self.language),
            continuous=bool(opts.get("continuous", False)),
        )
        self._listen = state
        return state

    def _start_message(self, state: _ListenState, options: dict | None) -> dict:
        opts = options or {}
        return {
            "type": "stt_start",
            "language": state.language,
            "continuous": state.continuous,
            "interim_results": opts.get("interim_results", True),
            "max_alternatives": opts.get("max_alternatives", self.max_alternatives),
        }

    async def transcribe(
        self,
        audio_source: Any = None,
        options: dict | None = None,
        on_interim: InterimCallback | None = None,
    ) -> TranscriptionResult:
        """
        Listen for one utterance. `audio_source` is ignored: the browser owns
        the microphone. Auto-stops after `max_listen_seconds`, returning the
        best interim transcript if no final one arrived.
        """
        if not self.connected:
            raise ProviderUnavailableError("No browser connected", self.name)

        state = self._start_listening({**(options or {}), "continuous": False})
        state.on_interim = on_interim
        max_seconds = (options or {}).get("max_seconds", self.max_listen_seconds)
        try:
            await self._emit(self._start_message(state, options))
            try:
                return await asyncio.wait_for(asyncio.shield(state.future), timeout=max_seconds)
            except asyncio.TimeoutError:
                logger.info(f"Browser listening auto-stopped after {max_seconds}s")
                if self.connected:
                    await self._emit({"type": "stt_stop"})
                if state.interim and not state.interim.is_empty():
                    return self._finalize(state.interim)
                raise NoSpeechDetectedError("No speech before timeout", self.name)
        finally:
            self._listen = None

    async def listen_continuously(
        self,
        on_result: Callable[[TranscriptionResult], Any],
        options: dict | None = None,
        on_interim: InterimCallback | None = None,
    ) -> list[TranscriptionResult]:
        """Deliver every final result to `on_result` until stop_listening() or the browser ends."""
        if not self.connected:
            raise ProviderUnavailableError("No browser connected", self.name)

        state = self._start_listening({**(options or {}), "continuous": True})
        state.on_interim = on_interim
        state.on_result = on_result
        try:
            await self._emit(self._start_message(state, options))
            await state.future
            return list(state.finals)
        finally:
            self._listen = None

    async def stop_listening(self) -> None:
        if self._listen is not None and self.connected:
            await self._emit({"type": "stt_stop"})

    def _finalize(self, result: TranscriptionResult) -> TranscriptionResult:
        return TranscriptionResult(
            text=result.text.strip(),
            confidence=result.confidence,
            alternatives=result.alternatives,
            language=result.language,
            is_final=True,
            provider=self.name,
        )

    def _result_from_message(self, message: dict, language: str) -> TranscriptionResult:
        is_final = bool(message.get("is_final", True))
        alternatives = [
            Alternative(text=a.get("text", ""), confidence=float(a.get("confidence", 0.9)))
            for a in (message.get("alternatives") or [])
        ][: self.max_alternatives]
        return TranscriptionResult(
            text=(message.get("text") or "").strip(),
            # Chrome reports 0 for some finals; 0.9 mirrors its usual range
            confidence=float(message.get("confidence") or (0.9 if is_final else 0.5)),
            alternatives=alternatives,
            language=message.get("language", language),
            is_final=is_final,
            provider=self.name,
        )

    # --- Synthesis ---

    async def speak(self, text: str, options: dict | None = None) -> SpeechResult:
        opts = {**DEFAULT_PERSONA, **(options or {})}
        utterance_id = uuid.uuid4().hex
        future = asyncio.get_running_loop().create_future()
        self._utterances[utterance_id] = future
        try:
            await self._emit({
                "type": "tts_request",
                "id": utterance_id,
                "text": text,
                "rate": opts.get("rate"),
                "pitch": opts.get("pitch"),
                "volume": opts.get("volume"),
                "voice": opts.get("voice"),
                "language": opts.get("language", self.language),
            })
            try:
                await asyncio.wait_for(future, timeout=self.speak_timeout)
            except asyncio.TimeoutError:
                raise SynthesisError(f"Browser did not finish speaking within {self.speak_timeout}s", self.name)
            return SpeechResult(success=True, text=text)
        finally:
            self._utterances.pop(utterance_id, None)

    async def stop_speaking(self) -> None:
        for fut in self._utterances.values():
            if not fut.done():
                fut.set_exception(SpeechInterruptedError("Speech cancelled", self.name))
        if self.connected:
            await self._emit({"type": "tts_cancel"})

    # --- Incoming messages ---

    async def handle_client_message(self, message: dict) -> bool:
        """Route a browser message. Returns True if it was a speech message."""
        msg_type = message.get("type", "")
        state = self._listen

        if msg_type == "stt_result":
            if state is None:
                return True
            result = self._result_from_message(message, state.language)
            if not result.is_final:
                state.interim = result
                _call(state.on_interim, result)
            elif state.continuous:
                state.finals.append(result)
                _call(state.on_result, result)
            elif not state.future.done() and not result.is_empty():
                state.future.set_result(self._finalize(result))
            return True

        if msg_type == "stt_error":
            code = message.get("error", "unknown")
            logger.warning(f"Browser recognition error: {code}")
            if state is not None and not state.future.done():
                state.future.set_exception(_error_for(code, self.name))
            return True

        if msg_type == "stt_end":
            if state is not None and not state.future.done():
                if state.continuous:
                    state.future.set_result(None)
                elif state.interim and not state.interim.is_empty():
                    state.future.set_result(self._finalize(state.interim))
                else:
                    state.future.set_exception(NoSpeechDetectedError("No speech detected", self.name))
            return True

        if msg_type in ("tts_end", "tts_error"):
            fut = self._utterances.get(message.get("id", ""))
            if fut is None or fut.done():
                return True
            if msg_type == "tts_end":
                fut.set_result(True)
            elif message.get("error") in _INTERRUPTED_ERRORS:
                fut.set_exception(SpeechInterruptedError("Speech interrupted", self.name))
            else:
                fut.set_exception(SynthesisError(f"Speech synthesis failed: {message.get('error')}", self.name))
            return True

        return False

    async def close(self) -> None:
        self.detach()
