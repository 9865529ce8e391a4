"""
Search suggestions and recent searches.

Suggestions are debounced so rapid keystrokes collapse into one remote
call per pause, and a newer partial text always supersedes an older one:
a response that arrives after a newer request started is discarded.
Suggestions are not cached.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Final, Optional

from .errors import FetchError
from .generation import RequestGeneration
from .preferences import PreferenceStore


logger = logging.getLogger(__name__)


DEFAULT_DEBOUNCE_MS: Final[int] = 200
DEFAULT_MIN_LENGTH: Final[int] = 2
DEFAULT_RECENT_LIMIT: Final[int] = 5

RECENT_SEARCHES_KEY: Final[str] = "recent_searches"


class SuggestionFetcher:
    """Debounced, last-write-wins suggestion lookups."""

    def __init__(
        self,
        api,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        min_length: int = DEFAULT_MIN_LENGTH,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialise fetcher.

        Args:
            api: SuggestionAPI implementation
            debounce_ms: Quiet period before the remote call
            min_length: Shorter input returns no suggestions without a call
            sleep: Awaitable sleep (injectable for tests)
        """
        self._api = api
        self._debounce_s = debounce_ms / 1000
        self._min_length = min_length
        self._sleep = sleep
        self._generation = RequestGeneration()

    @property
    def generation(self) -> RequestGeneration:
        return self._generation

    async def fetch(self, partial_text: str) -> Optional[list[str]]:
        """
        Fetch suggestions for ``partial_text``.

        Returns:
            Suggestions, or None if a newer request superseded this one.

        Raises:
            FetchError: If the current request fails.
        """
        token = self._generation.next()
        text = (partial_text or "").strip()
        if len(text) < self._min_length:
            return []

        await self._sleep(self._debounce_s)
        if not self._generation.is_current(token):
            return None

        try:
            suggestions = await self._api.suggest(text)
        except FetchError:
            if not self._generation.is_current(token):
                return None
            raise

        if not self._generation.is_current(token):
            logger.debug("Discarding stale suggestions for %r", text)
            return None

        seen = set()
        unique = []
        for suggestion in suggestions:
            if suggestion and suggestion not in seen:
                seen.add(suggestion)
                unique.append(suggestion)
        return unique

    async def suggestions(self, partial_text: str) -> AsyncIterator[str]:
        """Yield suggestions lazily; yields nothing if superseded."""
        results = await self.fetch(partial_text)
        for suggestion in results or []:
            yield suggestion

    def cancel(self) -> None:
        """Discard whatever is in flight (e.g. the input was cleared)."""
        self._generation.invalidate()


class RecentSearches:
    """Most-recent-first list of submitted search texts, de-duplicated."""

    def __init__(self, preferences: PreferenceStore, limit: int = DEFAULT_RECENT_LIMIT):
        self._preferences = preferences
        self._limit = limit

    def list(self) -> list[str]:
        return self._preferences.get(RECENT_SEARCHES_KEY, [])[: self._limit]

    def add(self, search: str) -> list[str]:
        text = (search or "").strip()
        if not text:
            return self.list()

        def push(current: list) -> list:
            return ([text] + [s for s in current if s != text])[: self._limit]

        return self._preferences.update(RECENT_SEARCHES_KEY, push, default=[])

    def clear(self) -> None:
        self._preferences.delete(RECENT_SEARCHES_KEY)
