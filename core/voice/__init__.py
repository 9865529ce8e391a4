"""
Voice Search

Transcript parsing and the confidence-gated acceptance protocol.
"""

from .parser import EXTRACTORS, describe_filters, parse_voice_command
from .session import (
    VoiceCommand,
    VoiceHistoryEntry,
    VoiceOutcome,
    VoiceOutcomeKind,
    VoiceSession,
    VoiceState,
)

__all__ = [
    "EXTRACTORS",
    "describe_filters",
    "parse_voice_command",
    "VoiceCommand",
    "VoiceHistoryEntry",
    "VoiceOutcome",
    "VoiceOutcomeKind",
    "VoiceSession",
    "VoiceState",
]
