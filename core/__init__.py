"""
Property Search - Core Search Logic

This module provides the search pipeline behind the property search surface:
1. Filter State (canonical, cache-keyable search parameters)
2. Query Cache (30s staleness, in-flight de-duplication)
3. Suggestions (debounced, last-write-wins)
4. Voice Commands (transcript parsing, confidence-gated acceptance)
5. Image Similarity (threshold filtering and ranking of the loaded page)
6. Pagination (clamped page transitions, one cache entry per page)
"""

from .models import FilterState, ListingType, Property, PropertyType, ResultPage, SortOrder
from .errors import (
    AnalysisError,
    AnalysisErrorKind,
    CanonicalKeyError,
    FetchError,
    InvalidVoiceTransition,
    PresetValidationError,
    SearchError,
)
from .generation import RequestGeneration
from .cache import CacheEntry, CacheResolution, CacheStats, QueryCache
from .pagination import Paginator
from .preferences import InMemoryPreferenceStore, JsonFilePreferenceStore, PreferenceStore
from .saved_searches import SavedSearch, SavedSearchStore
from .suggestions import RecentSearches, SuggestionFetcher

# Image Similarity
from .similarity import (
    AnalysisResponse,
    CandidateScore,
    DEFAULT_WEIGHTS,
    FeatureFilterThresholds,
    FeatureVector,
    QUICK_PRESETS,
    SimilarityBreakdown,
    SimilarityFeature,
    SimilarityWeights,
    WeightPreset,
    WeightPresetStore,
    filter_by_thresholds,
    rank,
    rank_by_feature,
    score,
)

# Voice Search
from .voice import (
    VoiceOutcome,
    VoiceOutcomeKind,
    VoiceSession,
    VoiceState,
    parse_voice_command,
)

# Session and Controller
from .session import SearchSession
from .controller import (
    ImageSearchOutcome,
    OutcomeStatus,
    SearchController,
    SearchOutcome,
)

__all__ = [
    # Models
    "FilterState",
    "ListingType",
    "Property",
    "PropertyType",
    "ResultPage",
    "SortOrder",
    # Errors
    "AnalysisError",
    "AnalysisErrorKind",
    "CanonicalKeyError",
    "FetchError",
    "InvalidVoiceTransition",
    "PresetValidationError",
    "SearchError",
    # Cache, pagination, suggestions
    "RequestGeneration",
    "CacheEntry",
    "CacheResolution",
    "CacheStats",
    "QueryCache",
    "Paginator",
    "RecentSearches",
    "SuggestionFetcher",
    # Preferences
    "InMemoryPreferenceStore",
    "JsonFilePreferenceStore",
    "PreferenceStore",
    "SavedSearch",
    "SavedSearchStore",
    # Image Similarity
    "AnalysisResponse",
    "CandidateScore",
    "DEFAULT_WEIGHTS",
    "FeatureFilterThresholds",
    "FeatureVector",
    "QUICK_PRESETS",
    "SimilarityBreakdown",
    "SimilarityFeature",
    "SimilarityWeights",
    "WeightPreset",
    "WeightPresetStore",
    "filter_by_thresholds",
    "rank",
    "rank_by_feature",
    "score",
    # Voice Search
    "VoiceOutcome",
    "VoiceOutcomeKind",
    "VoiceSession",
    "VoiceState",
    "parse_voice_command",
    # Session and Controller
    "SearchSession",
    "ImageSearchOutcome",
    "OutcomeStatus",
    "SearchController",
    "SearchOutcome",
]
