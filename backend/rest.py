"""
HTTP backend for the hosted property store.

Talks to a PostgREST-style table endpoint for queries and suggestions and
to a functions endpoint for image analysis. Blocking ``requests`` calls are
run in a worker thread so the event loop keeps serving other requests.
"""

import asyncio
import logging
import re
from typing import Mapping, Optional

import requests

from core.errors import AnalysisError, FetchError
from core.models import FilterState, Property, ResultPage, SortOrder
from core.pagination import DEFAULT_PAGE_SIZE
from core.similarity import AnalysisResponse, SimilarityWeights

from .base import ImageAnalysisAPI, PropertyQueryAPI, SuggestionAPI


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

PROPERTIES_PATH = "/rest/v1/properties"
ANALYSIS_PATH = "/functions/v1/image-similarity-search"
REQUEST_TIMEOUT_SECONDS = 30
ANALYSIS_TIMEOUT_SECONDS = 60
SUGGESTION_LIMIT = 5

SEARCHABLE_FIELDS = ("title", "description", "location", "city")

SORT_COLUMNS = {
    SortOrder.PRICE_ASC: "price.asc",
    SortOrder.PRICE_DESC: "price.desc",
    SortOrder.NEWEST: "created_at.desc",
    SortOrder.OLDEST: "created_at.asc",
    SortOrder.AREA_ASC: "area_sqm.asc",
    SortOrder.AREA_DESC: "area_sqm.desc",
    SortOrder.POPULAR: "views_count.desc.nullslast",
}

# Characters with meaning inside a PostgREST or=() expression
_RESERVED = re.compile(r"[,()*\\\"]")

CONTENT_RANGE_PATTERN = re.compile(r"^(?:\d+-\d+|\*)/(\d+|\*)$")


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def build_query_params(filters: FilterState) -> list[tuple[str, str]]:
    """
    Translate a filter state into PostgREST query parameters.

    Repeated keys are combined with AND by the store.
    """
    params: list[tuple[str, str]] = [
        ("select", "*"),
        ("status", "eq.active"),
        ("approval_status", "eq.approved"),
    ]

    text = _RESERVED.sub(" ", filters.text).strip()
    if text:
        clauses = ",".join(f"{name}.ilike.*{text}*" for name in SEARCHABLE_FIELDS)
        params.append(("or", f"({clauses})"))

    if filters.property_type:
        params.append(("property_type", f"eq.{filters.property_type.value}"))
    if filters.listing_type:
        params.append(("listing_type", f"eq.{filters.listing_type.value}"))

    min_price, max_price = filters.price_bounds()
    if min_price is not None:
        params.append(("price", f"gte.{_format_number(min_price)}"))
    if max_price is not None:
        params.append(("price", f"lte.{_format_number(max_price)}"))

    min_area, max_area = filters.area_bounds()
    if min_area is not None:
        params.append(("area_sqm", f"gte.{_format_number(min_area)}"))
    if max_area is not None:
        params.append(("area_sqm", f"lte.{_format_number(max_area)}"))

    if filters.min_bedrooms is not None:
        params.append(("bedrooms", f"gte.{filters.min_bedrooms}"))
    if filters.min_bathrooms is not None:
        params.append(("bathrooms", f"gte.{filters.min_bathrooms}"))

    if filters.amenities:
        quoted = ",".join(f'"{a}"' for a in sorted(filters.amenities))
        params.append(("amenities", f"ov.{{{quoted}}}"))

    params.append(("order", SORT_COLUMNS.get(filters.sort_by, SORT_COLUMNS[SortOrder.NEWEST])))
    return params


def parse_total_count(content_range: Optional[str]) -> Optional[int]:
    """'0-19/123' -> 123; None when the header is missing or has no total."""
    if not content_range:
        return None
    match = CONTENT_RANGE_PATTERN.match(content_range.strip())
    if not match or match.group(1) == "*":
        return None
    return int(match.group(1))


# =============================================================================
# Backend
# =============================================================================


class RestBackend(PropertyQueryAPI, SuggestionAPI, ImageAnalysisAPI):
    """requests-based client for the hosted database and functions service."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: int = REQUEST_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._page_size = page_size
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({
            "Accept": "application/json",
        })
        if api_key:
            self._session.headers.update({
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            })

    @property
    def page_size(self) -> int:
        return self._page_size

    # =========================================================================
    # PropertyQueryAPI
    # =========================================================================

    async def query(self, filters: FilterState) -> ResultPage:
        return await asyncio.to_thread(self.query_sync, filters)

    def query_sync(self, filters: FilterState) -> ResultPage:
        """
        Fetch one page.

        Raises:
            FetchError: On network errors, HTTP errors or malformed records.
        """
        offset = (filters.page - 1) * self._page_size
        headers = {
            "Range-Unit": "items",
            "Range": f"{offset}-{offset + self._page_size - 1}",
            "Prefer": "count=exact",
        }
        response = self._request(
            "GET", PROPERTIES_PATH, params=build_query_params(filters), headers=headers,
        )
        total = parse_total_count(response.headers.get("Content-Range"))

        # Page past the end of the result set
        if response.status_code == 416:
            return ResultPage(
                records=(), total_count=total or 0,
                total_pages=self._total_pages(total or 0), page=filters.page,
            )
        self._raise_for_status(response)

        try:
            records = tuple(Property.from_dict(r) for r in response.json())
        except ValueError as e:
            raise FetchError(f"Malformed property data: {e}") from e

        if total is None:
            total = offset + len(records)
        return ResultPage(
            records=records,
            total_count=total,
            total_pages=self._total_pages(total),
            page=filters.page,
        )

    def _total_pages(self, total: int) -> int:
        return -(-total // self._page_size)

    # =========================================================================
    # SuggestionAPI
    # =========================================================================

    async def suggest(self, partial_text: str) -> list[str]:
        return await asyncio.to_thread(self.suggest_sync, partial_text)

    def suggest_sync(self, partial_text: str) -> list[str]:
        text = _RESERVED.sub(" ", partial_text).strip()
        if not text:
            return []
        params = [
            ("select", "title,city"),
            ("status", "eq.active"),
            ("or", f"(title.ilike.*{text}*,city.ilike.*{text}*,location.ilike.*{text}*)"),
            ("limit", str(SUGGESTION_LIMIT)),
        ]
        response = self._request("GET", PROPERTIES_PATH, params=params)
        self._raise_for_status(response)
        try:
            rows = response.json()
        except ValueError as e:
            raise FetchError("Malformed suggestion response") from e

        needle = text.lower()
        titles = [row["title"] for row in rows if row.get("title")]
        cities = [row["city"] for row in rows if row.get("city") and needle in row["city"].lower()]
        return titles + cities

    # =========================================================================
    # ImageAnalysisAPI
    # =========================================================================

    async def analyze(
        self,
        image_url: str,
        candidate_image_urls: Mapping[str, str],
        weights: SimilarityWeights,
    ) -> AnalysisResponse:
        return await asyncio.to_thread(self.analyze_sync, image_url, candidate_image_urls, weights)

    def analyze_sync(
        self,
        image_url: str,
        candidate_image_urls: Mapping[str, str],
        weights: SimilarityWeights,
    ) -> AnalysisResponse:
        payload = {
            "imageUrl": image_url,
            "candidates": [
                {"id": pid, "imageUrl": url} for pid, url in candidate_image_urls.items()
            ],
            "weights": weights.to_dict(),
        }
        try:
            response = self._session.post(
                f"{self._base_url}{ANALYSIS_PATH}",
                json=payload,
                timeout=max(self._timeout, ANALYSIS_TIMEOUT_SECONDS),
            )
        except requests.RequestException as e:
            logger.warning("Image analysis request failed: %s", e)
            raise AnalysisError(f"Image analysis request failed: {e}") from e

        if response.status_code >= 400:
            logger.warning("Image analysis returned HTTP %d", response.status_code)
            raise AnalysisError.from_status(response.status_code, _error_message(response))

        try:
            return AnalysisResponse.from_dict(response.json())
        except ValueError as e:
            raise AnalysisError(f"Malformed analysis response: {e}") from e

    # =========================================================================
    # Helpers
    # =========================================================================

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        try:
            return self._session.request(
                method, f"{self._base_url}{path}", timeout=self._timeout, **kwargs,
            )
        except requests.Timeout as e:
            logger.warning("Request to %s timed out", path)
            raise FetchError("Search request timed out") from e
        except requests.RequestException as e:
            logger.warning("Request to %s failed: %s", path, e)
            raise FetchError(f"Search request failed: {e}") from e

    @staticmethod
    def _raise_for_status(response: requests.Response) -> None:
        if response.status_code >= 400:
            raise FetchError(
                f"Search failed: {_error_message(response)}",
                status_code=response.status_code,
            )


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or f"HTTP {response.status_code}")
    return f"HTTP {response.status_code}"
