"""Interaction package: feedback channels and voice commands."""

from interaction.feedback import FeedbackConfig, FeedbackController, SpeechChannel, ToneChannel, VibrationChannel
from interaction.recognizer import RecognizerUnavailableError, VoiceConfig
from interaction.voice_commands import VoiceCommand, VoiceCommandSupervisor, parse_command

__all__ = [
    "FeedbackConfig",
    "FeedbackController",
    "RecognizerUnavailableError",
    "SpeechChannel",
    "ToneChannel",
    "VibrationChannel",
    "VoiceCommand",
    "VoiceCommandSupervisor",
    "VoiceConfig",
    "parse_command",
]
