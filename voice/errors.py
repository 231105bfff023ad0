"""
Voice layer exceptions.

Callers branch on the class: permission and device problems need different
remediation from a failed or timed-out transcription.
"""

from __future__ import annotations


class VoiceError(Exception):
    """Base class for every speech provider / voice pipeline error."""

    retryable = False

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class PermissionDeniedError(VoiceError):
    """Microphone access was refused by the user or the platform."""


class DeviceNotFoundError(VoiceError):
    """No usable audio input device."""


class NoSpeechDetectedError(VoiceError):
    """Listening ended without any recognised speech."""


class TranscriptionError(VoiceError):
    """Generic recognition failure; the request may be retried."""

    retryable = True

    def __init__(self, message: str, provider: str | None = None, status_code: int | None = None):
        super().__init__(message, provider)
        self.status_code = status_code


class TranscriptionTimeoutError(TranscriptionError):
    """The engine did not answer within the configured bound."""


class PayloadTooLargeError(VoiceError):
    """Audio exceeds the engine's maximum upload size."""

    def __init__(self, size: int, limit: int, provider: str | None = None):
        super().__init__(f"Audio payload too large: {size} bytes (max {limit})", provider)
        self.size = size
        self.limit = limit


class ProviderNotConfiguredError(VoiceError):
    """Missing credential or setting (e.g. API key)."""


class ProviderUnavailableError(VoiceError):
    """The engine exists but cannot be reached right now (e.g. no browser connected)."""

    retryable = True


class CapabilityNotSupportedError(VoiceError):
    """The provider does not offer the requested capability."""


class SynthesisError(VoiceError):
    """Text-to-speech failed."""

    retryable = True


class SpeechInterruptedError(VoiceError):
    """Synthesis was cancelled before it finished."""


class TranscriptionInProgressError(VoiceError):
    """A second transcription was started while one is still active."""
