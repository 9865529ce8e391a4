"""
Search Session - Session-Scoped Mutable State

Owns everything that outlives a single request: the query cache, voice
session and history, recent searches, weight presets, saved searches and
the active similarity weights. Passed to the controller explicitly; there
are no module-level singletons.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from .cache import DEFAULT_STALE_TIME_MS, FetchFn, QueryCache
from .preferences import InMemoryPreferenceStore, PreferenceStore
from .saved_searches import SavedSearchStore
from .similarity import DEFAULT_WEIGHTS, SimilarityWeights, WeightPresetStore
from .suggestions import DEFAULT_RECENT_LIMIT, RecentSearches
from .voice import VoiceSession
from .voice.session import DEFAULT_CONFIDENCE_THRESHOLD, DEFAULT_HISTORY_LIMIT


class SearchSession:
    """
    Session-scoped store with an explicit ``init`` / ``reset`` lifecycle.

    ``reset`` drops in-memory state (cache, voice state, weights) and
    reloads persisted preferences; it does not delete them.
    """

    def __init__(
        self,
        fetch: FetchFn,
        preferences: Optional[PreferenceStore] = None,
        stale_time_ms: int = DEFAULT_STALE_TIME_MS,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        voice_history_limit: int = DEFAULT_HISTORY_LIMIT,
        recent_search_limit: int = DEFAULT_RECENT_LIMIT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch = fetch
        self._preferences = preferences or InMemoryPreferenceStore()
        self._stale_time_ms = stale_time_ms
        self._confidence_threshold = confidence_threshold
        self._voice_history_limit = voice_history_limit
        self._recent_search_limit = recent_search_limit
        self._clock = clock
        self.init()

    def init(self) -> None:
        """Create fresh session state."""
        self.cache = QueryCache(self._fetch, stale_time_ms=self._stale_time_ms, clock=self._clock)
        self.voice = VoiceSession(
            preferences=self._preferences,
            confidence_threshold=self._confidence_threshold,
            history_limit=self._voice_history_limit,
        )
        self.recent_searches = RecentSearches(self._preferences, limit=self._recent_search_limit)
        self.weight_presets = WeightPresetStore(self._preferences)
        self.saved_searches = SavedSearchStore(self._preferences)
        self.weights: SimilarityWeights = DEFAULT_WEIGHTS

    def reset(self) -> None:
        """Discard in-memory state and start over."""
        self.cache.clear_cache()
        self.init()

    @property
    def preferences(self) -> PreferenceStore:
        return self._preferences
