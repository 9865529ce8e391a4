"""
Tests for the Query Cache

Tests covering:
1. Key determinism (equal states hit one entry)
2. Staleness window
3. In-flight de-duplication
4. Failure handling (no writes, no eviction)
5. Clearing and invalidation
"""

import asyncio

import pytest

from backend import InMemoryBackend
from core.cache import QueryCache
from core.errors import FetchError
from core.models import FilterState, PropertyType


# =============================================================================
# Fixtures
# =============================================================================


class FakeClock:
    """Manually advanced seconds clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend():
    return InMemoryBackend(listing_count=45, delay_s=0.01)


@pytest.fixture
def cache(backend, clock):
    return QueryCache(backend.query, clock=clock)


# =============================================================================
# Key Determinism
# =============================================================================


class TestKeyDeterminism:
    """Equivalent states share an entry; different states never do."""

    def test_equivalent_states_hit_same_entry(self, cache, backend):
        a = FilterState(search_text="villa", amenities={"Pool", "Garden"})
        b = FilterState(amenities=["Garden", "Pool"], search_text="villa")

        first = asyncio.run(cache.resolve(a))
        second = asyncio.run(cache.resolve(b))

        assert first.cache_hit is False
        assert second.cache_hit is True
        assert second.data is first.data
        assert backend.query_calls == 1

    def test_different_states_do_not_share(self, cache, backend):
        asyncio.run(cache.resolve(FilterState(property_type=PropertyType.VILLA)))
        result = asyncio.run(cache.resolve(FilterState(property_type=PropertyType.HOUSE)))
        assert result.cache_hit is False
        assert backend.query_calls == 2

    def test_each_page_is_own_entry(self, cache, backend):
        asyncio.run(cache.resolve(FilterState()))
        asyncio.run(cache.resolve(FilterState(page=2)))
        assert backend.query_calls == 2
        assert len(cache) == 2

    def test_hit_reports_zero_response_time(self, cache):
        asyncio.run(cache.resolve(FilterState()))
        hit = asyncio.run(cache.resolve(FilterState()))
        assert hit.response_time_ms == 0.0

    def test_miss_reports_elapsed_time(self, cache):
        miss = asyncio.run(cache.resolve(FilterState()))
        assert miss.response_time_ms > 0


# =============================================================================
# Staleness
# =============================================================================


class TestStaleness:
    """Entries are served for 30 seconds."""

    def test_hit_at_29_seconds(self, cache, clock, backend):
        asyncio.run(cache.resolve(FilterState()))
        clock.advance(29)
        result = asyncio.run(cache.resolve(FilterState()))
        assert result.cache_hit is True
        assert backend.query_calls == 1

    def test_miss_at_31_seconds(self, cache, clock, backend):
        asyncio.run(cache.resolve(FilterState()))
        clock.advance(31)
        result = asyncio.run(cache.resolve(FilterState()))
        assert result.cache_hit is False
        assert backend.query_calls == 2

    def test_refetch_replaces_entry(self, cache, clock):
        first = asyncio.run(cache.resolve(FilterState()))
        clock.advance(31)
        second = asyncio.run(cache.resolve(FilterState()))
        assert cache.peek(FilterState()) is second.data
        assert second.data.fetched_at > first.data.fetched_at

    def test_custom_stale_time(self, backend, clock):
        cache = QueryCache(backend.query, stale_time_ms=5_000, clock=clock)
        asyncio.run(cache.resolve(FilterState()))
        clock.advance(6)
        assert asyncio.run(cache.resolve(FilterState())).cache_hit is False


# =============================================================================
# De-duplication
# =============================================================================


class TestDeduplication:
    """Concurrent resolves for one key share a fetch."""

    def test_concurrent_resolves_fetch_once(self, cache, backend):
        async def run():
            return await asyncio.gather(
                cache.resolve(FilterState(search_text="bali")),
                cache.resolve(FilterState(search_text="bali")),
            )

        first, second = asyncio.run(run())
        assert backend.query_calls == 1
        assert first.data is second.data
        assert cache.stats().deduplicated == 1

    def test_concurrent_different_keys_fetch_separately(self, cache, backend):
        async def run():
            return await asyncio.gather(
                cache.resolve(FilterState(search_text="bali")),
                cache.resolve(FilterState(search_text="jakarta")),
            )

        asyncio.run(run())
        assert backend.query_calls == 2

    def test_in_flight_slot_released_after_fetch(self, cache, clock, backend):
        asyncio.run(cache.resolve(FilterState()))
        clock.advance(31)
        asyncio.run(cache.resolve(FilterState()))
        assert backend.query_calls == 2

    def test_cancelled_joiner_does_not_cancel_shared_fetch(self, cache, backend):
        async def run():
            owner = asyncio.ensure_future(cache.resolve(FilterState()))
            joiner = asyncio.ensure_future(cache.resolve(FilterState()))
            await asyncio.sleep(0)
            joiner.cancel()
            return await owner

        result = asyncio.run(run())
        assert result.cache_hit is False
        assert cache.peek(FilterState()) is not None
        assert backend.query_calls == 1


# =============================================================================
# Failure Handling
# =============================================================================


class TestFailures:
    """Failed fetches never write and never evict."""

    def test_failure_propagates_and_writes_nothing(self, cache, backend):
        backend.fail_queries = FetchError("boom", status_code=500)
        with pytest.raises(FetchError):
            asyncio.run(cache.resolve(FilterState()))
        assert cache.peek(FilterState()) is None
        assert len(cache) == 0

    def test_failure_keeps_stale_entry(self, cache, clock, backend):
        first = asyncio.run(cache.resolve(FilterState()))
        clock.advance(31)
        backend.fail_queries = FetchError("boom")
        with pytest.raises(FetchError):
            asyncio.run(cache.resolve(FilterState()))
        assert cache.peek(FilterState()) is first.data

    def test_next_resolve_after_failure_retries(self, cache, backend):
        backend.fail_queries = FetchError("boom")
        with pytest.raises(FetchError):
            asyncio.run(cache.resolve(FilterState()))
        backend.fail_queries = None
        result = asyncio.run(cache.resolve(FilterState()))
        assert result.cache_hit is False
        assert backend.query_calls == 2

    def test_timeout_becomes_fetch_error(self, clock):
        async def slow_fetch(filters):
            raise asyncio.TimeoutError()

        cache = QueryCache(slow_fetch, clock=clock)
        with pytest.raises(FetchError, match="timed out"):
            asyncio.run(cache.resolve(FilterState()))

    def test_joiners_all_see_failure(self, cache, backend):
        backend.fail_queries = FetchError("boom")

        async def run():
            return await asyncio.gather(
                cache.resolve(FilterState()),
                cache.resolve(FilterState()),
                return_exceptions=True,
            )

        results = asyncio.run(run())
        assert all(isinstance(r, FetchError) for r in results)
        assert backend.query_calls == 1


# =============================================================================
# Clearing
# =============================================================================


class TestClearing:
    """clear_cache and invalidate."""

    def test_clear_cache_forces_refetch(self, cache, backend):
        asyncio.run(cache.resolve(FilterState()))
        cache.clear_cache()
        assert len(cache) == 0
        assert asyncio.run(cache.resolve(FilterState())).cache_hit is False
        assert backend.query_calls == 2

    def test_fetch_started_before_clear_is_not_stored(self, cache):
        async def run():
            pending = asyncio.ensure_future(cache.resolve(FilterState()))
            await asyncio.sleep(0)
            cache.clear_cache()
            return await pending

        result = asyncio.run(run())
        assert result.cache_hit is False
        assert cache.peek(FilterState()) is None

    def test_invalidate_single_entry(self, cache):
        asyncio.run(cache.resolve(FilterState()))
        asyncio.run(cache.resolve(FilterState(page=2)))
        assert cache.invalidate(FilterState()) is True
        assert cache.invalidate(FilterState()) is False
        assert cache.peek(FilterState(page=2)) is not None

    def test_stats_count_hits_and_misses(self, cache):
        asyncio.run(cache.resolve(FilterState()))
        asyncio.run(cache.resolve(FilterState()))
        stats = cache.stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == 0.5
        cache.reset_stats()
        assert cache.stats().hits == 0
