"""
Voice Search Session - Confidence-Gated Acceptance

State machine around the pure parser:

    IDLE -> LISTENING -> (accepted) -> IDLE
                      -> LOW_CONFIDENCE_PENDING_RETRY -> retry          -> LISTENING
                                                      -> accept anyway  -> IDLE
                                                      -> dismiss        -> IDLE

Low confidence is a normal state, not an error: nothing is applied until
the user explicitly accepts.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Final, Optional

from ..errors import InvalidVoiceTransition
from ..models import ListingType, PropertyType
from ..preferences import PreferenceStore
from .parser import PartialFilters, describe_filters, parse_voice_command


DEFAULT_CONFIDENCE_THRESHOLD: Final[float] = 0.70
DEFAULT_HISTORY_LIMIT: Final[int] = 10
DEFAULT_LANGUAGE: Final[str] = "en-US"

HISTORY_KEY: Final[str] = "voice_history"
LANGUAGE_KEY: Final[str] = "voice_language"


class VoiceState(Enum):
    IDLE = "idle"
    LISTENING = "listening"
    LOW_CONFIDENCE_PENDING_RETRY = "low_confidence_pending_retry"


class VoiceOutcomeKind(Enum):
    """What the caller should do with a voice result."""
    FILTERS = "filters"          # apply parsed filters
    TEXT_SEARCH = "text_search"  # use transcript as search text
    PENDING = "pending"          # low confidence: prompt retry / accept / dismiss
    DISMISSED = "dismissed"      # nothing to apply


@dataclass(frozen=True)
class VoiceCommand:
    """A final recognition result."""
    transcript: str
    confidence: float


@dataclass(frozen=True)
class VoiceOutcome:
    kind: VoiceOutcomeKind
    command: Optional[VoiceCommand] = None
    filters: PartialFilters = field(default_factory=dict)
    search_text: Optional[str] = None

    @property
    def applies(self) -> bool:
        """Whether this outcome changes the search."""
        return self.kind in (VoiceOutcomeKind.FILTERS, VoiceOutcomeKind.TEXT_SEARCH)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "transcript": self.command.transcript if self.command else None,
            "confidence": self.command.confidence if self.command else None,
            "filters": serialise_filters(self.filters),
            "summary": describe_filters(self.filters),
            "search_text": self.search_text,
        }


@dataclass(frozen=True)
class VoiceHistoryEntry:
    transcript: str
    confidence: float
    timestamp: str
    parsed_filters: PartialFilters

    def to_dict(self) -> dict:
        return {
            "transcript": self.transcript,
            "confidence": self.confidence,
            "timestamp": self.timestamp,
            "parsed_filters": serialise_filters(self.parsed_filters),
            "summary": describe_filters(self.parsed_filters),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VoiceHistoryEntry":
        return cls(
            transcript=data["transcript"],
            confidence=float(data["confidence"]),
            timestamp=data.get("timestamp", ""),
            parsed_filters=deserialise_filters(data.get("parsed_filters", {})),
        )


def serialise_filters(filters: PartialFilters) -> dict[str, Any]:
    """Enums to their values, for JSON persistence."""
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in filters.items()}


def deserialise_filters(data: dict[str, Any]) -> PartialFilters:
    result = dict(data)
    if "property_type" in result:
        result["property_type"] = PropertyType(result["property_type"])
    if "listing_type" in result:
        result["listing_type"] = ListingType(result["listing_type"])
    return result


class VoiceSession:
    """
    Caller-level voice protocol and bounded command history.

    History holds only transcripts that produced filters, most recent
    first. It and the recognition language are persisted when a
    preference store is given.
    """

    def __init__(
        self,
        preferences: Optional[PreferenceStore] = None,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        self._preferences = preferences
        self._threshold = confidence_threshold
        self._history: deque[VoiceHistoryEntry] = deque(maxlen=history_limit)
        self._state = VoiceState.IDLE
        self._pending: Optional[VoiceCommand] = None
        self._language = DEFAULT_LANGUAGE
        self.load()

    # =========================================================================
    # Persistence
    # =========================================================================

    def load(self) -> None:
        """Load history and language from the preference store."""
        self._history.clear()
        if self._preferences is None:
            return
        for item in self._preferences.get(HISTORY_KEY, [])[: self._history.maxlen]:
            self._history.append(VoiceHistoryEntry.from_dict(item))
        self._language = self._preferences.get(LANGUAGE_KEY, DEFAULT_LANGUAGE)

    def _save_history(self) -> None:
        if self._preferences is not None:
            self._preferences.set(HISTORY_KEY, [e.to_dict() for e in self._history])

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> VoiceState:
        return self._state

    @property
    def pending(self) -> Optional[VoiceCommand]:
        """The low-confidence command awaiting a decision."""
        return self._pending

    @property
    def confidence_threshold(self) -> float:
        return self._threshold

    @property
    def history(self) -> list[VoiceHistoryEntry]:
        return list(self._history)

    @property
    def language(self) -> str:
        return self._language

    def set_language(self, language: str) -> None:
        """Remember the recognition language across sessions."""
        self._language = language
        if self._preferences is not None:
            self._preferences.set(LANGUAGE_KEY, language)

    def clear_history(self) -> None:
        self._history.clear()
        self._save_history()

    def reset(self) -> None:
        """Return to IDLE, dropping any pending command. History is kept."""
        self._state = VoiceState.IDLE
        self._pending = None

    def _require(self, *states: VoiceState) -> None:
        if self._state not in states:
            raise InvalidVoiceTransition(
                f"Cannot do that while voice search is {self._state.value}"
            )

    # =========================================================================
    # Transitions
    # =========================================================================

    def start_listening(self) -> None:
        self._require(VoiceState.IDLE)
        self._state = VoiceState.LISTENING

    def stop_listening(self) -> None:
        """Recognition ended without a final transcript."""
        self._require(VoiceState.LISTENING)
        self._state = VoiceState.IDLE

    def submit(self, transcript: str, confidence: float) -> VoiceOutcome:
        """
        Handle a final transcript.

        At or above the threshold the command is accepted immediately;
        below it the command is held for the user to retry, accept or
        dismiss.
        """
        self._require(VoiceState.LISTENING)
        command = VoiceCommand(transcript=transcript or "", confidence=max(0.0, min(1.0, confidence)))

        if command.confidence >= self._threshold:
            self._state = VoiceState.IDLE
            return self._accept(command)

        self._pending = command
        self._state = VoiceState.LOW_CONFIDENCE_PENDING_RETRY
        return VoiceOutcome(kind=VoiceOutcomeKind.PENDING, command=command)

    def retry(self) -> None:
        self._require(VoiceState.LOW_CONFIDENCE_PENDING_RETRY)
        self._pending = None
        self._state = VoiceState.LISTENING

    def accept_anyway(self) -> VoiceOutcome:
        """Apply the pending command exactly as a high-confidence one would be."""
        self._require(VoiceState.LOW_CONFIDENCE_PENDING_RETRY)
        command = self._pending
        self._pending = None
        self._state = VoiceState.IDLE
        return self._accept(command)

    def dismiss(self) -> VoiceOutcome:
        self._require(VoiceState.LOW_CONFIDENCE_PENDING_RETRY)
        command = self._pending
        self._pending = None
        self._state = VoiceState.IDLE
        return VoiceOutcome(kind=VoiceOutcomeKind.DISMISSED, command=command)

    def _accept(self, command: VoiceCommand) -> VoiceOutcome:
        parsed = parse_voice_command(command.transcript)
        if parsed:
            self._history.appendleft(VoiceHistoryEntry(
                transcript=command.transcript,
                confidence=command.confidence,
                timestamp=datetime.now(timezone.utc).isoformat(),
                parsed_filters=parsed,
            ))
            self._save_history()
            return VoiceOutcome(kind=VoiceOutcomeKind.FILTERS, command=command, filters=parsed)

        text = command.transcript.strip()
        if not text:
            return VoiceOutcome(kind=VoiceOutcomeKind.DISMISSED, command=command)
        return VoiceOutcome(kind=VoiceOutcomeKind.TEXT_SEARCH, command=command, search_text=text)
