"""
Speech provider interface.

A provider offers transcription, synthesis, or both. Callers ask
`supports(Capability.TRANSCRIBE)` instead of assuming either side exists.
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from voice.errors import CapabilityNotSupportedError


class Capability(str, Enum):
    TRANSCRIBE = "transcribe"
    SPEAK = "speak"


@dataclass
class Alternative:
    text: str
    confidence: float


@dataclass
class TranscriptionResult:
    """Final (or interim, when is_final is False) recognition output."""
    text: str
    confidence: float
    alternatives: list[Alternative] = field(default_factory=list)
    language: str | None = None
    is_final: bool = True
    duration: float = 0.0
    provider: str | None = None

    def is_empty(self) -> bool:
        return not self.text or not self.text.strip()

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "alternatives": [{"text": a.text, "confidence": a.confidence} for a in self.alternatives],
            "language": self.language,
            "is_final": self.is_final,
            "duration": self.duration,
            "provider": self.provider,
        }


@dataclass
class SpeechResult:
    success: bool
    text: str = ""
    audio_base64: str | None = None
    duration: float = 0.0


InterimCallback = Callable[[TranscriptionResult], Any]


class SpeechProvider(ABC):
    """Base class for every engine. Override the methods of the capabilities you declare."""

    name: str = "provider"
    capabilities: frozenset[Capability] = frozenset()

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def get_capabilities(self) -> dict:
        return {cap.value: {"supported": self.supports(cap)} for cap in Capability}

    async def transcribe(
        self,
        audio_source: Any = None,
        options: dict | None = None,
        on_interim: InterimCallback | None = None,
    ) -> TranscriptionResult:
        raise CapabilityNotSupportedError(f"{self.name} cannot transcribe", self.name)

    async def stop_listening(self) -> None:
        """Stop an active transcription (push-to-talk release). No-op by default."""

    async def speak(self, text: str, options: dict | None = None) -> SpeechResult:
        raise CapabilityNotSupportedError(f"{self.name} cannot speak", self.name)

    async def stop_speaking(self) -> None:
        """Cancel the current utterance. No-op by default."""

    async def close(self) -> None:
        """Release resources held by the provider."""
