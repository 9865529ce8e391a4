"""
Query Cache

Maps a canonical filter-state key to a previously fetched result page.

- Entries are served without re-fetch while younger than the stale time (30s)
- Concurrent resolves for the same key share one remote fetch
- Failed fetches are never written and never evict a live entry
- Process-lifetime only; nothing is persisted
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .errors import FetchError
from .models import FilterState, Property, ResultPage


logger = logging.getLogger(__name__)


DEFAULT_STALE_TIME_MS = 30_000


@dataclass(frozen=True)
class CacheEntry:
    """A cached result page."""
    results: tuple[Property, ...]
    total_count: int
    page: int
    total_pages: int
    fetched_at: float  # clock seconds
    response_time_ms: float


@dataclass(frozen=True)
class CacheResolution:
    """Outcome of a resolve call."""
    data: CacheEntry
    cache_hit: bool
    response_time_ms: float


@dataclass(frozen=True)
class CacheStats:
    """Hit/miss counters."""
    hits: int
    misses: int
    deduplicated: int
    entries: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> dict:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "deduplicated": self.deduplicated,
            "entries": self.entries,
            "hit_rate": round(self.hit_rate, 3),
        }


FetchFn = Callable[[FilterState], Awaitable[ResultPage]]


class QueryCache:
    """
    Client-side cache of paginated query results keyed by filter state.

    The page number is part of the key, so each page is its own entry.
    """

    def __init__(
        self,
        fetch: FetchFn,
        stale_time_ms: int = DEFAULT_STALE_TIME_MS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialise cache.

        Args:
            fetch: Coroutine function performing the remote query
            stale_time_ms: Age after which an entry is refetched
            clock: Seconds clock used for entry age (injectable for tests)
        """
        self._fetch = fetch
        self._stale_time_ms = stale_time_ms
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, asyncio.Future] = {}
        # Bumped by clear_cache so fetches started before a clear are not stored
        self._epoch = 0
        self._hits = 0
        self._misses = 0
        self._deduplicated = 0

    @property
    def stale_time_ms(self) -> int:
        return self._stale_time_ms

    def is_fresh(self, entry: CacheEntry) -> bool:
        """Whether an entry may be served without re-fetch."""
        return (self._clock() - entry.fetched_at) * 1000 < self._stale_time_ms

    def peek(self, filters: FilterState) -> Optional[CacheEntry]:
        """Return the stored entry for ``filters`` (fresh or stale) without fetching."""
        return self._entries.get(filters.canonical_key())

    async def resolve(self, filters: FilterState) -> CacheResolution:
        """
        Resolve a filter state to a result page.

        Raises:
            FetchError: If the remote fetch fails. Nothing is written.
        """
        key = filters.canonical_key()
        entry = self._entries.get(key)
        if entry is not None and self.is_fresh(entry):
            self._hits += 1
            logger.debug("Cache hit for %s", key)
            return CacheResolution(data=entry, cache_hit=True, response_time_ms=0.0)

        self._misses += 1
        started = time.perf_counter()

        future = self._in_flight.get(key)
        if future is None:
            future = asyncio.ensure_future(self._fetch_and_store(key, filters, self._epoch))
            self._in_flight[key] = future
        else:
            self._deduplicated += 1
            logger.debug("Joining in-flight fetch for %s", key)

        # Shielded so a cancelled caller does not cancel the shared fetch
        entry = await asyncio.shield(future)
        elapsed_ms = (time.perf_counter() - started) * 1000
        return CacheResolution(data=entry, cache_hit=False, response_time_ms=elapsed_ms)

    async def _fetch_and_store(self, key: str, filters: FilterState, epoch: int) -> CacheEntry:
        started = time.perf_counter()
        try:
            page = await self._fetch(filters)
        except asyncio.TimeoutError as e:
            logger.warning("Query timed out for %s", key)
            raise FetchError("Search request timed out") from e
        except FetchError as e:
            logger.warning("Query failed for %s: %s", key, e)
            raise
        finally:
            self._in_flight.pop(key, None)

        response_time_ms = (time.perf_counter() - started) * 1000
        entry = CacheEntry(
            results=tuple(page.records),
            total_count=page.total_count,
            page=filters.page,
            total_pages=page.total_pages,
            fetched_at=self._clock(),
            response_time_ms=round(response_time_ms, 2),
        )
        if epoch == self._epoch:
            self._entries[key] = entry
        logger.info(
            "Fetched page %d (%d of %d results) in %.0fms",
            filters.page, len(entry.results), entry.total_count, response_time_ms,
        )
        return entry

    def invalidate(self, filters: FilterState) -> bool:
        """Drop the entry for one filter state. Returns True if one existed."""
        return self._entries.pop(filters.canonical_key(), None) is not None

    def clear_cache(self) -> None:
        """Drop all entries unconditionally."""
        self._entries.clear()
        self._epoch += 1
        logger.info("Query cache cleared")

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0
        self._deduplicated = 0

    def stats(self) -> CacheStats:
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            deduplicated=self._deduplicated,
            entries=len(self._entries),
        )

    def __len__(self) -> int:
        return len(self._entries)
