"""
Tests for Voice Search

Tests covering:
1. Transcript parsing per category and in conjunction
2. Unit scaling of prices
3. Confidence gate and the retry / accept / dismiss protocol
4. Bounded, persisted command history
"""

import pytest

from core.errors import InvalidVoiceTransition
from core.models import ListingType, PropertyType
from core.preferences import InMemoryPreferenceStore
from core.voice import (
    VoiceOutcomeKind,
    VoiceSession,
    VoiceState,
    parse_voice_command,
)
from core.voice.parser import describe_filters


# =============================================================================
# Parser Tests
# =============================================================================


class TestParser:
    """Keyword grammar over transcripts."""

    def test_conjunction(self):
        parsed = parse_voice_command("3 bedroom apartment for rent under 500k with pool")
        assert parsed == {
            "property_type": PropertyType.APARTMENT,
            "listing_type": ListingType.RENT,
            "min_bedrooms": 3,
            "max_price": 500_000,
            "amenities": ["Pool"],
        }

    def test_non_filter_text_returns_empty(self):
        assert parse_voice_command("beautiful quiet neighborhood") == {}

    def test_empty_transcript_returns_empty(self):
        assert parse_voice_command("") == {}
        assert parse_voice_command("   ") == {}

    @pytest.mark.parametrize("transcript,expected", [
        ("under 2 million", 2_000_000),
        ("under 750k", 750_000),
        ("below Rp 900,000", 900_000),
        ("max $1.5m", 1_500_000),
        ("less than 300 thousand", 300_000),
        ("under 450", 450),
    ])
    def test_max_price_unit_scaling(self, transcript, expected):
        assert parse_voice_command(transcript)["max_price"] == expected

    def test_min_and_max_price_set_independently(self):
        parsed = parse_voice_command("over 1 million and under 3 million")
        assert parsed["min_price"] == 1_000_000
        assert parsed["max_price"] == 3_000_000

    def test_case_insensitive(self):
        assert parse_voice_command("VILLA With POOL") == {
            "property_type": PropertyType.VILLA,
            "amenities": ["Pool"],
        }

    def test_apartment_family_wins_over_house(self):
        parsed = parse_voice_command("apartment or house")
        assert parsed["property_type"] == PropertyType.APARTMENT

    def test_rent_wins_over_sale(self):
        parsed = parse_voice_command("buy or rental")
        assert parsed["listing_type"] == ListingType.RENT

    def test_sale_keywords(self):
        assert parse_voice_command("house for sale")["listing_type"] == ListingType.SALE

    def test_amenities_collect_every_match(self):
        parsed = parse_voice_command("gym, garage, backyard, terrace and aircon near a lift")
        assert parsed["amenities"] == [
            "Gym", "Parking", "Garden", "Balcony", "Air Conditioning", "Elevator",
        ]

    def test_word_numbers_and_bathrooms(self):
        parsed = parse_voice_command("two bedrooms and three bathrooms")
        assert parsed["min_bedrooms"] == 2
        assert parsed["min_bathrooms"] == 3

    def test_hyphenated_room_count(self):
        assert parse_voice_command("4-bedroom house")["min_bedrooms"] == 4

    def test_keywords_match_whole_words(self):
        # "landscape" is not "land", "backpack" is not "ac"
        assert parse_voice_command("landscape backpack") == {}

    def test_describe_filters(self):
        parts = describe_filters(parse_voice_command("villa for rent with pool"))
        assert parts == ["villa", "for rent", "Pool"]


# =============================================================================
# Confidence Gate Tests
# =============================================================================


@pytest.fixture
def voice():
    return VoiceSession(preferences=InMemoryPreferenceStore())


def _listen_and_submit(voice, transcript, confidence):
    voice.start_listening()
    return voice.submit(transcript, confidence)


class TestConfidenceGate:
    """Low-confidence results never auto-apply."""

    TRANSCRIPT = "3 bedroom villa with pool"

    def test_low_confidence_is_pending(self, voice):
        outcome = _listen_and_submit(voice, self.TRANSCRIPT, 0.65)
        assert outcome.kind == VoiceOutcomeKind.PENDING
        assert outcome.applies is False
        assert outcome.filters == {}
        assert voice.state == VoiceState.LOW_CONFIDENCE_PENDING_RETRY
        assert voice.pending.transcript == self.TRANSCRIPT
        assert voice.history == []

    def test_high_confidence_applies(self, voice):
        outcome = _listen_and_submit(voice, self.TRANSCRIPT, 0.95)
        assert outcome.kind == VoiceOutcomeKind.FILTERS
        assert outcome.applies is True
        assert voice.state == VoiceState.IDLE

    def test_threshold_is_inclusive(self, voice):
        outcome = _listen_and_submit(voice, self.TRANSCRIPT, 0.70)
        assert outcome.kind == VoiceOutcomeKind.FILTERS

    def test_accept_anyway_matches_high_confidence(self, voice):
        high = _listen_and_submit(voice, self.TRANSCRIPT, 0.95)
        _listen_and_submit(voice, self.TRANSCRIPT, 0.65)
        accepted = voice.accept_anyway()
        assert accepted.kind == high.kind
        assert accepted.filters == high.filters
        assert voice.state == VoiceState.IDLE

    def test_retry_returns_to_listening(self, voice):
        _listen_and_submit(voice, self.TRANSCRIPT, 0.4)
        voice.retry()
        assert voice.state == VoiceState.LISTENING
        assert voice.pending is None
        outcome = voice.submit(self.TRANSCRIPT, 0.9)
        assert outcome.kind == VoiceOutcomeKind.FILTERS

    def test_dismiss_applies_nothing(self, voice):
        _listen_and_submit(voice, self.TRANSCRIPT, 0.4)
        outcome = voice.dismiss()
        assert outcome.kind == VoiceOutcomeKind.DISMISSED
        assert outcome.applies is False
        assert voice.state == VoiceState.IDLE
        assert voice.history == []

    def test_unparsed_transcript_becomes_text_search(self, voice):
        outcome = _listen_and_submit(voice, "Sunset Residences", 0.9)
        assert outcome.kind == VoiceOutcomeKind.TEXT_SEARCH
        assert outcome.search_text == "Sunset Residences"
        assert voice.history == []

    def test_blank_transcript_is_dismissed(self, voice):
        outcome = _listen_and_submit(voice, "  ", 0.9)
        assert outcome.kind == VoiceOutcomeKind.DISMISSED

    def test_submit_requires_listening(self, voice):
        with pytest.raises(InvalidVoiceTransition):
            voice.submit("villa", 0.9)

    def test_accept_requires_pending(self, voice):
        with pytest.raises(InvalidVoiceTransition):
            voice.accept_anyway()

    def test_stop_listening_returns_to_idle(self, voice):
        voice.start_listening()
        voice.stop_listening()
        assert voice.state == VoiceState.IDLE

    def test_custom_threshold(self):
        strict = VoiceSession(confidence_threshold=0.9)
        strict.start_listening()
        assert strict.submit("villa", 0.85).kind == VoiceOutcomeKind.PENDING


# =============================================================================
# History Tests
# =============================================================================


class TestHistory:
    """Most-recent-first history bounded at 10."""

    def test_history_bounded_most_recent_first(self, voice):
        for bedrooms in range(1, 13):
            _listen_and_submit(voice, f"{bedrooms} bedroom house", 0.9)
        history = voice.history
        assert len(history) == 10
        assert history[0].transcript == "12 bedroom house"
        assert history[-1].transcript == "3 bedroom house"

    def test_history_persisted_and_reloaded(self):
        store = InMemoryPreferenceStore()
        first = VoiceSession(preferences=store)
        first.start_listening()
        first.submit("villa for rent", 0.9)

        second = VoiceSession(preferences=store)
        assert [e.transcript for e in second.history] == ["villa for rent"]
        assert second.history[0].parsed_filters["property_type"] == PropertyType.VILLA

    def test_clear_history(self, voice):
        _listen_and_submit(voice, "villa", 0.9)
        voice.clear_history()
        assert voice.history == []

    def test_language_persisted(self):
        store = InMemoryPreferenceStore()
        VoiceSession(preferences=store).set_language("id-ID")
        assert VoiceSession(preferences=store).language == "id-ID"
