"""
Provider registry.

Built once at startup and passed to whoever needs speech. Picks the default
transcriber/speaker and falls back to a second transcriber when the first one
fails with a transient error.
"""

from __future__ import annotations

import logging
from typing import Any

from voice.errors import (
    CapabilityNotSupportedError,
    NoSpeechDetectedError,
    ProviderUnavailableError,
    VoiceError,
)
from voice.providers.base import (
    Capability,
    InterimCallback,
    SpeechProvider,
    SpeechResult,
    TranscriptionResult,
)

logger = logging.getLogger(__name__)


class ProviderRegistry:
    def __init__(
        self,
        default_transcriber: str | None = None,
        default_speaker: str | None = None,
        fallback_transcriber: str | None = None,
    ):
        self._providers: dict[str, SpeechProvider] = {}
        self.default_transcriber = default_transcriber
        self.default_speaker = default_speaker
        self.fallback_transcriber = fallback_transcriber

    def register(self, provider: SpeechProvider) -> SpeechProvider:
        self._providers[provider.name] = provider
        if self.default_transcriber is None and provider.supports(Capability.TRANSCRIBE):
            self.default_transcriber = provider.name
        if self.default_speaker is None and provider.supports(Capability.SPEAK):
            self.default_speaker = provider.name
        logger.info(f"Registered speech provider '{provider.name}' ({sorted(c.value for c in provider.capabilities)})")
        return provider

    def get(self, name: str) -> SpeechProvider:
        try:
            return self._providers[name]
        except KeyError:
            raise ProviderUnavailableError(f"Unknown speech provider '{name}'", name)

    def __contains__(self, name: str) -> bool:
        return name in self._providers

    def names(self) -> list[str]:
        return list(self._providers)

    def providers_with(self, capability: Capability) -> list[SpeechProvider]:
        return [p for p in self._providers.values() if p.supports(capability)]

    def _resolve(self, name: str | None, capability: Capability) -> SpeechProvider:
        default = self.default_transcriber if capability is Capability.TRANSCRIBE else self.default_speaker
        provider_name = name or default
        if provider_name is None:
            raise ProviderUnavailableError(f"No provider registered for '{capability.value}'")
        provider = self.get(provider_name)
        if not provider.supports(capability):
            raise CapabilityNotSupportedError(
                f"{provider.name} cannot {capability.value}", provider.name
            )
        return provider

    def transcriber(self, name: str | None = None) -> SpeechProvider:
        return self._resolve(name, Capability.TRANSCRIBE)

    def speaker(self, name: str | None = None) -> SpeechProvider:
        return self._resolve(name, Capability.SPEAK)

    async def transcribe(
        self,
        audio_source: Any = None,
        options: dict | None = None,
        on_interim: InterimCallback | None = None,
        provider: str | None = None,
    ) -> TranscriptionResult:
        """
        Transcribe with the chosen (or default) provider. Transient failures
        (retryable errors) move on to the fallback transcriber when one is
        configured and can accept the same input. Permission, device and
        no-speech errors are raised as-is.
        """
        primary = self.transcriber(provider)
        try:
            return await primary.transcribe(audio_source, options, on_interim)
        except VoiceError as e:
            fallback_name = self.fallback_transcriber
            if (
                not e.retryable
                or isinstance(e, NoSpeechDetectedError)
                or provider is not None
                or not fallback_name
                or fallback_name == primary.name
                or fallback_name not in self._providers
            ):
                raise
            logger.warning(f"{primary.name} transcription failed ({e}); falling back to {fallback_name}")
            return await self.transcriber(fallback_name).transcribe(audio_source, options, on_interim)

    async def speak(self, text: str, options: dict | None = None, provider: str | None = None) -> SpeechResult:
        return await self.speaker(provider).speak(text, options)

    async def stop_speaking(self, provider: str | None = None) -> None:
        await self.speaker(provider).stop_speaking()

    def get_capabilities(self) -> dict:
        return {
            "default_transcriber": self.default_transcriber,
            "default_speaker": self.default_speaker,
            "fallback_transcriber": self.fallback_transcriber,
            "providers": {name: p.get_capabilities() for name, p in self._providers.items()},
        }

    async def close(self) -> None:
        for provider in self._providers.values():
            try:
                await provider.close()
            except Exception as e:
                logger.error(f"Closing provider {provider.name} failed: {e}")
