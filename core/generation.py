"""
Request generations for stale-response discarding.

There is no network cancellation. Every new request takes a fresh token;
a response is applied only if its token is still the current one.
"""


class RequestGeneration:
    """Monotonic request counter."""

    def __init__(self) -> None:
        self._current = 0

    @property
    def current(self) -> int:
        return self._current

    def next(self) -> int:
        """Start a new request and return its token."""
        self._current += 1
        return self._current

    def is_current(self, token: int) -> bool:
        """Whether a response carrying ``token`` may still be applied."""
        return token == self._current

    def invalidate(self) -> None:
        """Mark every outstanding request stale."""
        self._current += 1
