"""
Remote collaborator interfaces.

The property store, suggestion lookup and image analysis service are
reached only through these boundaries. Implementations raise FetchError /
AnalysisError and return validated core types.
"""

from abc import ABC, abstractmethod
from typing import Mapping

from core.models import FilterState, ResultPage
from core.similarity import AnalysisResponse, SimilarityWeights


class PropertyQueryAPI(ABC):
    """Paginated property query with server-side filtering and sort."""

    @property
    @abstractmethod
    def page_size(self) -> int:
        """Fixed page size of the remote query."""
        ...

    @abstractmethod
    async def query(self, filters: FilterState) -> ResultPage:
        """
        Fetch one page of properties matching ``filters``.

        Raises:
            FetchError: On network or store failure.
        """
        ...


class SuggestionAPI(ABC):
    """Completion strings for partial search text."""

    @abstractmethod
    async def suggest(self, partial_text: str) -> list[str]:
        """
        Raises:
            FetchError: On network or store failure.
        """
        ...


class ImageAnalysisAPI(ABC):
    """Feature extraction and similarity scoring for an uploaded image."""

    @abstractmethod
    async def analyze(
        self,
        image_url: str,
        candidate_image_urls: Mapping[str, str],
        weights: SimilarityWeights,
    ) -> AnalysisResponse:
        """
        Extract reference features and score each candidate.

        Args:
            image_url: Uploaded reference image (URL or data URL)
            candidate_image_urls: Property id -> image URL
            weights: Weights active for this search

        Raises:
            AnalysisError: With kind rate_limited, payment_required or failed.
        """
        ...
