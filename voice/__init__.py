"""
RepVoice Voice Layer
Speech providers, number/unit parsing, intent parsing, voice input
and spoken confirmations.
"""

from voice.intent_parser import Exercise, Intent, IntentKind, IntentParser, ParseContext
from voice.voice_input import ListenerState, VoiceCommandListener
from voice.tts_feedback import VoiceFeedback
