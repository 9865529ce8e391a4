"""
Error taxonomy for the search core.

Remote-call failures are raised at the collaborator boundary and converted
to typed outcomes by the controller. Validation errors reject a mutation
before anything is written.
"""

from __future__ import annotations

from enum import Enum


class SearchError(Exception):
    """Base class for recoverable search-layer errors."""


class FetchError(SearchError):
    """
    A property query or suggestion request failed.

    The cache entry for the requested key is left unchanged.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AnalysisErrorKind(Enum):
    """Failure classes of the image analysis service."""
    RATE_LIMITED = "rate_limited"
    PAYMENT_REQUIRED = "payment_required"
    FAILED = "failed"


class AnalysisError(SearchError):
    """Image analysis call failed."""

    def __init__(self, message: str, kind: AnalysisErrorKind = AnalysisErrorKind.FAILED):
        super().__init__(message)
        self.kind = kind

    @classmethod
    def from_status(cls, status_code: int, message: str = "") -> "AnalysisError":
        """Map an HTTP status from the analysis service to an error kind."""
        if status_code == 429:
            return cls(message or "Rate limit exceeded, please try again shortly",
                       AnalysisErrorKind.RATE_LIMITED)
        if status_code == 402:
            return cls(message or "Analysis credits exhausted",
                       AnalysisErrorKind.PAYMENT_REQUIRED)
        return cls(message or f"Image analysis failed (HTTP {status_code})")


class PresetValidationError(ValueError):
    """A preset or saved search was rejected before any mutation."""


class InvalidVoiceTransition(ValueError):
    """A voice protocol action was attempted from the wrong state."""


class CanonicalKeyError(RuntimeError):
    """
    A filter state could not be serialised to its cache key.

    Unreachable for well-formed FilterState values; treated as a
    programming error and never caught.
    """
