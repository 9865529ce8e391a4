"""
Search Controller

Drives one search surface:

    filter change -> cache resolve -> result page
                  -> (image mode) threshold filter + similarity rank
                  -> pagination

Responses are applied only while their request generation is current, so
an abandoned search, page change or image upload can never overwrite the
state of a newer one. Remote failures become typed outcomes and leave the
previous results visible.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .cache import CacheEntry
from .errors import AnalysisError, FetchError
from .generation import RequestGeneration
from .models import FilterState, Property
from .pagination import Paginator
from .session import SearchSession
from .similarity import (
    FeatureFilterThresholds,
    FeatureVector,
    SimilarityBreakdown,
    SimilarityFeature,
    SimilarityWeights,
    filter_by_thresholds,
    get_quick_preset,
    rank,
    rank_by_feature,
)
from .voice import VoiceOutcome, VoiceOutcomeKind


logger = logging.getLogger(__name__)


class OutcomeStatus(Enum):
    APPLIED = "applied"
    STALE = "stale"      # superseded by a newer request; discarded
    FAILED = "failed"    # previous results kept


@dataclass(frozen=True)
class SearchOutcome:
    status: OutcomeStatus
    filters: FilterState
    cache_hit: bool = False
    response_time_ms: float = 0.0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "filters": self.filters.to_dict(),
            "cache_hit": self.cache_hit,
            "response_time_ms": round(self.response_time_ms, 2),
            "error": self.error,
        }


@dataclass(frozen=True)
class ImageSearchOutcome:
    status: OutcomeStatus
    candidates_scored: int = 0
    error: Optional[str] = None
    error_kind: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "candidates_scored": self.candidates_scored,
            "error": self.error,
            "error_kind": self.error_kind,
        }


@dataclass(frozen=True)
class ImageSearchState:
    """Scores from the last applied image analysis."""
    image_url: str
    reference_features: FeatureVector
    scores: dict[str, int]
    breakdowns: dict[str, SimilarityBreakdown]
    weights: SimilarityWeights  # weights the breakdowns were computed with
    result_key: str = field(default="", compare=False)


class SearchController:
    """Search state machine for one user surface."""

    def __init__(self, session: SearchSession, query_api, analysis_api=None):
        """
        Initialise controller.

        Args:
            session: Session-scoped store (cache, voice, presets)
            query_api: PropertyQueryAPI, provides the fixed page size
            analysis_api: ImageAnalysisAPI; image search is unavailable without it
        """
        self.session = session
        self._query_api = query_api
        self._analysis_api = analysis_api

        self._search_generation = RequestGeneration()
        self._image_generation = RequestGeneration()

        self._filters = FilterState()
        self._applied_filters = FilterState()
        self._entry: Optional[CacheEntry] = None
        self._entry_key: Optional[str] = None
        self._paginator = Paginator(page_size=query_api.page_size)
        self._last_outcome: Optional[SearchOutcome] = None
        self._last_error: Optional[str] = None

        self._image: Optional[ImageSearchState] = None
        self._image_error: Optional[AnalysisError] = None
        self._thresholds = FeatureFilterThresholds()
        self._sort_feature: Optional[SimilarityFeature] = None

    # =========================================================================
    # Read-only State
    # =========================================================================

    @property
    def filters(self) -> FilterState:
        """The most recently requested filter state."""
        return self._filters

    @property
    def paginator(self) -> Paginator:
        return self._paginator

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def last_outcome(self) -> Optional[SearchOutcome]:
        return self._last_outcome

    @property
    def image_search(self) -> Optional[ImageSearchState]:
        return self._image

    @property
    def image_error(self) -> Optional[AnalysisError]:
        return self._image_error

    @property
    def thresholds(self) -> FeatureFilterThresholds:
        return self._thresholds

    @property
    def sort_feature(self) -> Optional[SimilarityFeature]:
        return self._sort_feature

    @property
    def weights_pending(self) -> bool:
        """Weights changed since the displayed scores were computed."""
        return self._image is not None and self._image.weights != self.session.weights

    @property
    def total_count(self) -> int:
        return self._entry.total_count if self._entry else 0

    def loaded_results(self) -> list[Property]:
        """The current page in fetch order."""
        return list(self._entry.results) if self._entry else []

    # =========================================================================
    # Searching
    # =========================================================================

    async def search(self, filters: FilterState) -> SearchOutcome:
        """
        Resolve ``filters`` and apply the page if still current.

        Never raises for remote failures; see ``SearchOutcome.status``.
        """
        token = self._search_generation.next()
        self._filters = filters

        try:
            resolution = await self.session.cache.resolve(filters)
        except FetchError as e:
            if not self._search_generation.is_current(token):
                return SearchOutcome(status=OutcomeStatus.STALE, filters=filters)
            logger.warning("Search failed: %s", e)
            self._last_error = str(e)
            outcome = SearchOutcome(status=OutcomeStatus.FAILED, filters=filters, error=str(e))
            self._last_outcome = outcome
            return outcome

        if not self._search_generation.is_current(token):
            logger.debug("Discarding stale results for %s", filters.canonical_key())
            return SearchOutcome(status=OutcomeStatus.STALE, filters=filters)

        self._apply_entry(filters, resolution.data)
        if filters.text:
            self.session.recent_searches.add(filters.text)

        outcome = SearchOutcome(
            status=OutcomeStatus.APPLIED,
            filters=filters,
            cache_hit=resolution.cache_hit,
            response_time_ms=resolution.response_time_ms,
        )
        self._last_outcome = outcome
        return outcome

    def _apply_entry(self, filters: FilterState, entry: CacheEntry) -> None:
        key = filters.canonical_key()
        if key != self._entry_key:
            # Scores belong to the previous page's candidates; an analysis
            # still in flight for that page is rejected by its result key
            self._image = None
            self._image_error = None
        self._entry = entry
        self._entry_key = key
        self._applied_filters = filters
        self._last_error = None
        self._paginator = Paginator(
            total_count=entry.total_count,
            page_size=self._query_api.page_size,
            page=filters.page,
        )

    async def refresh(self) -> SearchOutcome:
        """Re-run the current search (retry after a failure)."""
        return await self.search(self._filters)

    def clear_cache(self) -> None:
        self.session.cache.clear_cache()

    # =========================================================================
    # Pagination
    # =========================================================================

    async def go_to_page(self, page: int) -> SearchOutcome:
        """Load ``page`` clamped into [1, total_pages]."""
        target = self._paginator.clamp(page)
        return await self.search(self._applied_filters.with_page(target))

    async def next_page(self) -> Optional[SearchOutcome]:
        """Load the next page; None (no-op) on the last page."""
        if not self._paginator.has_next_page:
            return None
        return await self.search(self._applied_filters.with_page(self._paginator.page + 1))

    async def prev_page(self) -> Optional[SearchOutcome]:
        """Load the previous page; None (no-op) on the first page."""
        if not self._paginator.has_prev_page:
            return None
        return await self.search(self._applied_filters.with_page(self._paginator.page - 1))

    # =========================================================================
    # Voice
    # =========================================================================

    async def apply_voice(self, outcome: VoiceOutcome) -> Optional[SearchOutcome]:
        """Apply an accepted voice outcome; None when nothing applies."""
        if outcome.kind == VoiceOutcomeKind.FILTERS:
            return await self.search(self._filters.merge(outcome.filters))
        if outcome.kind == VoiceOutcomeKind.TEXT_SEARCH:
            return await self.search(self._filters.merge({"search_text": outcome.search_text}))
        return None

    # =========================================================================
    # Image Similarity
    # =========================================================================

    async def image_search(
        self,
        image_url: str,
        weights: Optional[SimilarityWeights] = None,
    ) -> ImageSearchOutcome:
        """
        Score the loaded page against an uploaded image.

        A newer upload discards this one's response.
        """
        if self._analysis_api is None:
            return ImageSearchOutcome(
                status=OutcomeStatus.FAILED,
                error="Image search is not available",
                error_kind="failed",
            )

        token = self._image_generation.next()
        if self._entry is None:
            await self.search(self._filters)
            if not self._image_generation.is_current(token):
                return ImageSearchOutcome(status=OutcomeStatus.STALE)
            if self._entry is None:
                return ImageSearchOutcome(
                    status=OutcomeStatus.FAILED,
                    error=self._last_error or "No results to compare against",
                    error_kind="failed",
                )

        weights = weights or self.session.weights
        result_key = self._entry_key or ""
        candidates = {p.id: p.image_url for p in self.loaded_results() if p.image_url}

        try:
            response = await self._analysis_api.analyze(image_url, candidates, weights)
        except AnalysisError as e:
            if not self._image_generation.is_current(token):
                return ImageSearchOutcome(status=OutcomeStatus.STALE)
            logger.warning("Image analysis failed (%s): %s", e.kind.value, e)
            self._image_error = e
            return ImageSearchOutcome(
                status=OutcomeStatus.FAILED, error=str(e), error_kind=e.kind.value,
            )

        if not self._image_generation.is_current(token) or result_key != (self._entry_key or ""):
            logger.debug("Discarding stale image analysis for %s", image_url)
            return ImageSearchOutcome(status=OutcomeStatus.STALE)

        self._image = ImageSearchState(
            image_url=image_url,
            reference_features=response.reference_features,
            scores=response.scores(),
            breakdowns=response.breakdowns(),
            weights=weights,
            result_key=result_key,
        )
        self._image_error = None
        logger.info("Scored %d candidates against %s", len(response.candidates), image_url)
        return ImageSearchOutcome(
            status=OutcomeStatus.APPLIED, candidates_scored=len(response.candidates),
        )

    def clear_image_search(self) -> None:
        """Leave image mode; any in-flight analysis is discarded."""
        self._image = None
        self._image_error = None
        self._image_generation.invalidate()

    def set_weights(self, weights: SimilarityWeights) -> None:
        """
        Change the active weights.

        Scores already displayed are not recomputed; the next image search
        uses the new weights.
        """
        self.session.weights = weights

    def apply_quick_preset(self, name: str) -> SimilarityWeights:
        """
        Substitute a quick preset wholesale.

        Raises:
            KeyError: If the preset does not exist.
        """
        weights = get_quick_preset(name)
        self.set_weights(weights)
        return weights

    def set_thresholds(self, thresholds: FeatureFilterThresholds) -> None:
        self._thresholds = thresholds

    def set_sort_feature(self, feature: Optional[SimilarityFeature]) -> None:
        """Rank by one feature's points, or by total score when None."""
        self._sort_feature = feature

    # =========================================================================
    # Presentation
    # =========================================================================

    def displayed_results(self) -> list[Property]:
        """
        The page as shown: in image mode, threshold-filtered and ranked.

        Synchronous; never touches the network.
        """
        results = self.loaded_results()
        if self._image is None:
            return results
        results = filter_by_thresholds(
            results, self._image.breakdowns, self._thresholds, self._image.weights,
        )
        if self._sort_feature is not None:
            return rank_by_feature(results, self._image.breakdowns, self._sort_feature)
        return rank(results, self._image.scores)

    def snapshot(self) -> dict:
        """Serialisable view of the current state."""
        image = self._image
        results = []
        for prop in self.displayed_results():
            item = prop.to_dict()
            if image is not None:
                breakdown = image.breakdowns.get(prop.id)
                item["similarity"] = None if breakdown is None else {
                    "total": image.scores.get(prop.id, breakdown.total),
                    "breakdown": breakdown.to_dict(),
                    "percentages": {
                        f.value: breakdown.percentage(f, image.weights)
                        for f in SimilarityFeature
                    },
                }
            results.append(item)

        outcome = self._last_outcome
        return {
            "filters": self._filters.to_dict(),
            "results": results,
            "pagination": self._paginator.to_dict(),
            "cache_hit": outcome.cache_hit if outcome else False,
            "response_time_ms": round(outcome.response_time_ms, 2) if outcome else None,
            "error": self._last_error,
            "image_search": None if image is None else {
                "image_url": image.image_url,
                "reference_features": image.reference_features.to_dict(),
                "weights": image.weights.to_dict(),
                "weights_pending": self.weights_pending,
                "thresholds": self._thresholds.to_dict(),
                "sort_feature": self._sort_feature.value if self._sort_feature else None,
            },
            "image_error": None if self._image_error is None else {
                "message": str(self._image_error),
                "kind": self._image_error.kind.value,
            },
        }
