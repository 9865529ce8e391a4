"""
Tests for configuration, formatting and the session lifecycle.
"""

import asyncio

import pytest

from backend import InMemoryBackend
from core import FilterState, InMemoryPreferenceStore, QUICK_PRESETS, SearchSession
from utils.config import Config
from utils.formatting import format_percent, format_price, format_response_time


# =============================================================================
# Config
# =============================================================================


class TestConfig:
    def test_defaults(self, monkeypatch):
        for name in ("PAGE_SIZE", "CACHE_STALE_TIME_MS", "VOICE_CONFIDENCE_THRESHOLD"):
            monkeypatch.delenv(name, raising=False)
        config = Config.load()
        assert config.page_size == 20
        assert config.cache_stale_time_ms == 30_000
        assert config.voice_confidence_threshold == 0.70
        assert config.suggestion_min_length == 2

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CACHE_STALE_TIME_MS", "5000")
        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        config = Config.load()
        assert config.cache_stale_time_ms == 5000
        assert config.debug is True
        assert config.log_level == "DEBUG"

    def test_api_key_not_exposed(self, monkeypatch):
        monkeypatch.setenv("BACKEND_API_KEY", "secret")
        assert "secret" not in str(Config.load().to_dict().values())


# =============================================================================
# Formatting
# =============================================================================


class TestFormatting:
    @pytest.mark.parametrize("amount,expected", [
        (2_500_000_000, "Rp 2.5B"),
        (750_000_000, "Rp 750M"),
        (450_000, "Rp 450,000"),
        (None, "Price on request"),
    ])
    def test_format_price_idr(self, amount, expected):
        assert format_price(amount) == expected

    def test_format_price_other_currency(self):
        assert format_price(1200, "USD") == "$1,200"

    def test_format_percent(self):
        assert format_percent(66.666) == "67%"
        assert format_percent(50, decimals=1) == "50.0%"

    def test_format_response_time(self):
        assert format_response_time(0.0) == "cached"
        assert format_response_time(245.4) == "245ms"
        assert format_response_time(1500) == "1.5s"
        assert format_response_time(None) == ""


# =============================================================================
# Session Lifecycle
# =============================================================================


class TestSearchSession:
    def test_reset_drops_memory_state_keeps_preferences(self):
        backend = InMemoryBackend(listing_count=5)
        prefs = InMemoryPreferenceStore()
        session = SearchSession(fetch=backend.query, preferences=prefs)

        asyncio.run(session.cache.resolve(FilterState()))
        session.weights = QUICK_PRESETS["style"]
        session.recent_searches.add("bali")
        session.voice.start_listening()

        session.reset()
        assert len(session.cache) == 0
        assert session.weights != QUICK_PRESETS["style"]
        assert session.voice.state.value == "idle"
        assert session.recent_searches.list() == ["bali"]

    def test_sessions_do_not_share_cache(self):
        backend = InMemoryBackend(listing_count=5)
        first = SearchSession(fetch=backend.query)
        second = SearchSession(fetch=backend.query)
        asyncio.run(first.cache.resolve(FilterState()))
        assert len(second.cache) == 0
