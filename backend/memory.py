"""
In-memory backend for development and testing.

Generates deterministic listings and applies the same filter semantics
as the remote store without external requests. Image analysis uses the
local similarity scorer against per-image feature vectors.
"""

import asyncio
import math
import random
from datetime import datetime, timedelta
from typing import Iterable, Mapping, Optional

from core.errors import AnalysisError, FetchError
from core.models import FilterState, Property, ResultPage, SortOrder
from core.pagination import DEFAULT_PAGE_SIZE
from core.similarity import (
    AnalysisResponse,
    CandidateScore,
    FeatureVector,
    SimilarityWeights,
    score,
)

from .base import ImageAnalysisAPI, PropertyQueryAPI, SuggestionAPI


# =============================================================================
# Filter Semantics
# =============================================================================


def matches(filters: FilterState, prop: Property) -> bool:
    """Whether a property satisfies every filter (remote store semantics)."""
    text = filters.text.lower()
    if text:
        haystack = (prop.title, prop.description, prop.location, prop.city)
        if not any(text in field.lower() for field in haystack):
            return False
    if filters.property_type and prop.property_type != filters.property_type.value:
        return False
    if filters.listing_type and prop.listing_type != filters.listing_type.value:
        return False

    min_price, max_price = filters.price_bounds()
    if min_price is not None and (prop.price is None or prop.price < min_price):
        return False
    if max_price is not None and (prop.price is None or prop.price > max_price):
        return False

    min_area, max_area = filters.area_bounds()
    if min_area is not None and (prop.area_sqm is None or prop.area_sqm < min_area):
        return False
    if max_area is not None and (prop.area_sqm is None or prop.area_sqm > max_area):
        return False

    if filters.min_bedrooms is not None and (prop.bedrooms or 0) < filters.min_bedrooms:
        return False
    if filters.min_bathrooms is not None and (prop.bathrooms or 0) < filters.min_bathrooms:
        return False

    # Contains any of the requested amenities
    if filters.amenities and not filters.amenities.intersection(prop.amenities):
        return False
    return True


def sort_records(records: Iterable[Property], sort_by: Optional[SortOrder]) -> list[Property]:
    """Server-side sort; newest first by default."""
    records = list(records)
    if sort_by == SortOrder.PRICE_ASC:
        return sorted(records, key=lambda p: (p.price is None, p.price or 0))
    if sort_by == SortOrder.PRICE_DESC:
        return sorted(records, key=lambda p: (p.price is None, -(p.price or 0)))
    if sort_by == SortOrder.AREA_ASC:
        return sorted(records, key=lambda p: (p.area_sqm is None, p.area_sqm or 0))
    if sort_by == SortOrder.AREA_DESC:
        return sorted(records, key=lambda p: (p.area_sqm is None, -(p.area_sqm or 0)))
    if sort_by == SortOrder.OLDEST:
        return sorted(records, key=lambda p: p.created_at)
    if sort_by == SortOrder.POPULAR:
        return sorted(records, key=lambda p: -p.views_count)
    return sorted(records, key=lambda p: p.created_at, reverse=True)


# =============================================================================
# Backend
# =============================================================================


class InMemoryBackend(PropertyQueryAPI, SuggestionAPI, ImageAnalysisAPI):
    """Property store, suggestions and image analysis over a local list."""

    CITIES = {
        "Jakarta": ["Kemang", "Menteng", "Pondok Indah", "Kelapa Gading", "Cilandak"],
        "Bali": ["Canggu", "Seminyak", "Ubud", "Uluwatu", "Sanur"],
        "Bandung": ["Dago", "Setiabudi", "Lembang", "Buah Batu"],
        "Surabaya": ["Darmo", "Citraland", "Pakuwon", "Gubeng"],
        "Yogyakarta": ["Sleman", "Kaliurang", "Prawirotaman"],
    }

    PROPERTY_TYPES = ["apartment", "house", "villa", "commercial", "land"]
    LISTING_TYPES = ["sale", "rent", "lease"]
    AMENITIES = [
        "Pool", "Gym", "Parking", "Security", "Garden",
        "Balcony", "Air Conditioning", "Elevator",
    ]
    STYLES = ["modern", "minimalist", "tropical", "balinese", "colonial", "mediterranean"]
    ARCHITECTURE = ["contemporary", "traditional", "joglo", "industrial", "tuscan"]

    def __init__(
        self,
        properties: Optional[list[Property]] = None,
        features: Optional[Mapping[str, FeatureVector]] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        seed: int = 7,
        listing_count: int = 60,
        delay_s: float = 0.0,
    ):
        """
        Initialize in-memory backend.

        Args:
            properties: Listings to serve; generated from ``seed`` when omitted
            features: Image URL -> feature vector for analysis
            page_size: Fixed page size of query results
            seed: Random seed for generated listings
            listing_count: Number of generated listings
            delay_s: Simulated network latency per call
        """
        self._page_size = page_size
        self._delay_s = delay_s
        self._features: dict[str, FeatureVector] = dict(features or {})
        if properties is None:
            properties = self._generate_listings(random.Random(seed), listing_count)
        self._properties = list(properties)

        # Call counters and failure injection for tests
        self.query_calls = 0
        self.suggest_calls = 0
        self.analyze_calls = 0
        self.fail_queries: Optional[FetchError] = None
        self.fail_analysis: Optional[AnalysisError] = None

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def properties(self) -> list[Property]:
        return list(self._properties)

    def set_features(self, image_url: str, features: FeatureVector) -> None:
        self._features[image_url] = features

    async def _simulate_latency(self) -> None:
        # Always yield so concurrent callers interleave as they would over the network
        await asyncio.sleep(self._delay_s)

    # =========================================================================
    # PropertyQueryAPI
    # =========================================================================

    async def query(self, filters: FilterState) -> ResultPage:
        self.query_calls += 1
        await self._simulate_latency()
        if self.fail_queries is not None:
            raise self.fail_queries

        matching = sort_records(
            (p for p in self._properties if matches(filters, p)), filters.sort_by,
        )
        offset = (filters.page - 1) * self._page_size
        return ResultPage(
            records=tuple(matching[offset:offset + self._page_size]),
            total_count=len(matching),
            total_pages=math.ceil(len(matching) / self._page_size),
            page=filters.page,
        )

    # =========================================================================
    # SuggestionAPI
    # =========================================================================

    async def suggest(self, partial_text: str) -> list[str]:
        self.suggest_calls += 1
        await self._simulate_latency()
        if self.fail_queries is not None:
            raise self.fail_queries

        needle = partial_text.lower()
        titles = [p.title for p in self._properties if needle in p.title.lower()][:5]
        cities = sorted({p.city for p in self._properties if needle in p.city.lower()})[:5]
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
        self.analyze_calls += 1
        await self._simulate_latency()
        if self.fail_analysis is not None:
            raise self.fail_analysis

        reference = self.features_for(image_url)
        candidates = []
        for property_id, url in candidate_image_urls.items():
            result = score(reference, self.features_for(url), weights)
            candidates.append(CandidateScore(
                property_id=property_id,
                total_score=result.total,
                breakdown=result.breakdown,
            ))
        return AnalysisResponse(reference_features=reference, candidates=tuple(candidates))

    def features_for(self, image_url: str) -> FeatureVector:
        """Known features for an image, else deterministic ones derived from its URL."""
        if image_url in self._features:
            return self._features[image_url]
        rng = random.Random(image_url)
        return FeatureVector(
            property_type=rng.choice(self.PROPERTY_TYPES[:3]),
            style=rng.choice(self.STYLES),
            architecture=rng.choice(self.ARCHITECTURE),
            bedrooms=rng.randint(1, 5),
            has_pool=rng.random() < 0.4,
            has_garden=rng.random() < 0.5,
            has_balcony=rng.random() < 0.5,
        )

    # =========================================================================
    # Listing Generation
    # =========================================================================

    def _generate_listings(self, rng: random.Random, count: int) -> list[Property]:
        base_date = datetime(2025, 1, 1)
        listings = []
        for index in range(count):
            city = rng.choice(list(self.CITIES))
            area = rng.choice(self.CITIES[city])
            property_type = rng.choice(self.PROPERTY_TYPES)
            listing_type = rng.choice(self.LISTING_TYPES)
            bedrooms = 0 if property_type in ("land", "commercial") else rng.randint(1, 6)

            # Prices in IDR; rentals priced per year
            base_price = 500_000_000 + bedrooms * 400_000_000 + rng.randint(0, 2_000_000_000)
            if listing_type != "sale":
                base_price = base_price // 20
            price = round(base_price / 1_000_000) * 1_000_000

            image = f"https://images.example.com/properties/{index + 1}.jpg"
            listings.append(Property(
                id=f"prop-{index + 1:03d}",
                title=f"{rng.choice(self.STYLES).title()} {property_type.title()} in {area}",
                price=float(price),
                property_type=property_type,
                listing_type=listing_type,
                city=city,
                location=f"{area}, {city}",
                description=f"{property_type.title()} for {listing_type} in {area}.",
                bedrooms=bedrooms,
                bathrooms=max(1, bedrooms - rng.randint(0, 1)) if bedrooms else 0,
                area_sqm=float(rng.randint(40, 600)),
                amenities=tuple(sorted(rng.sample(self.AMENITIES, rng.randint(0, 4)))),
                thumbnail_url=image,
                images=(image,),
                created_at=(base_date + timedelta(days=index)).isoformat(),
                views_count=rng.randint(0, 5000),
            ))
        return listings
