from voice.providers.base import (
    Alternative,
    Capability,
    SpeechProvider,
    SpeechResult,
    TranscriptionResult,
)
from voice.providers.browser import BrowserSpeechProvider
from voice.providers.elevenlabs import ElevenLabsProvider
from voice.providers.registry import ProviderRegistry
from voice.providers.whisper import WhisperProvider

__all__ = [
    "Alternative",
    "BrowserSpeechProvider",
    "Capability",
    "ElevenLabsProvider",
    "ProviderRegistry",
    "SpeechProvider",
    "SpeechResult",
    "TranscriptionResult",
    "WhisperProvider",
]
