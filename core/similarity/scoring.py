"""
Local similarity scoring.

The analysis service scores candidates itself; this module re-derives the
same aggregation client-side (used by the in-memory backend and for
documentation of the scoring model). Each sub-scorer returns points in
[0, weight] for its feature and the total is clamped to 100.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from .models import FeatureVector, SimilarityBreakdown, SimilarityFeature, SimilarityWeights


# =============================================================================
# Style Families
# =============================================================================

# Related styles earn half credit
STYLE_FAMILIES: dict[str, str] = {
    # Modern
    "modern": "modern",
    "contemporary": "modern",
    "minimalist": "modern",
    "mid_century_modern": "modern",
    "scandinavian_modern": "modern",
    "industrial": "modern",
    "international_style": "modern",
    # Traditional
    "traditional": "traditional",
    "colonial": "traditional",
    "victorian": "traditional",
    "georgian": "traditional",
    "tudor": "traditional",
    "craftsman": "traditional",
    "neoclassical": "traditional",
    # Tropical
    "tropical": "tropical",
    "balinese": "tropical",
    "javanese": "tropical",
    "joglo": "tropical",
    "resort": "tropical",
    # Mediterranean
    "mediterranean": "mediterranean",
    "spanish": "mediterranean",
    "tuscan": "mediterranean",
    "spanish_colonial_revival": "mediterranean",
    # Rustic
    "rustic": "rustic",
    "farmhouse": "rustic",
    "cottage": "rustic",
    "log_cabin": "rustic",
    "bungalow": "rustic",
}


def normalise_style(value: str) -> str:
    """'Mid-Century Modern' -> 'mid_century_modern'."""
    return "_".join(value.lower().replace("-", " ").split())


def style_family(value: str) -> Optional[str]:
    return STYLE_FAMILIES.get(normalise_style(value))


# =============================================================================
# Sub-scorers
# =============================================================================


def _type_points(ref: FeatureVector, cand: FeatureVector, weight: int) -> int:
    if ref.property_type and ref.property_type == cand.property_type:
        return weight
    return 0


def _descriptor_points(ref_value: str, cand_value: str, weight: int) -> int:
    if not ref_value or not cand_value:
        return 0
    if normalise_style(ref_value) == normalise_style(cand_value):
        return weight
    family = style_family(ref_value)
    if family is not None and family == style_family(cand_value):
        return weight // 2
    return 0


def _style_points(ref: FeatureVector, cand: FeatureVector, weight: int) -> int:
    return _descriptor_points(ref.style, cand.style, weight)


def _architecture_points(ref: FeatureVector, cand: FeatureVector, weight: int) -> int:
    return _descriptor_points(ref.architecture, cand.architecture, weight)


def _bedroom_points(ref: FeatureVector, cand: FeatureVector, weight: int) -> int:
    if ref.bedrooms is None or cand.bedrooms is None:
        return 0
    difference = abs(ref.bedrooms - cand.bedrooms)
    if difference == 0:
        return weight
    if difference == 1:
        return weight // 2
    return 0


def _amenity_points(ref: FeatureVector, cand: FeatureVector, weight: int) -> int:
    flags = list(zip(ref.amenity_flags, cand.amenity_flags))
    agreeing = sum(1 for a, b in flags if a == b)
    return weight * agreeing // len(flags)


SubScorer = Callable[[FeatureVector, FeatureVector, int], int]

SUB_SCORERS: dict[SimilarityFeature, SubScorer] = {
    SimilarityFeature.PROPERTY_TYPE: _type_points,
    SimilarityFeature.STYLE: _style_points,
    SimilarityFeature.ARCHITECTURE: _architecture_points,
    SimilarityFeature.BEDROOMS: _bedroom_points,
    SimilarityFeature.AMENITIES: _amenity_points,
}


@dataclass(frozen=True)
class ScoreResult:
    total: int
    breakdown: SimilarityBreakdown


def score(
    reference: FeatureVector,
    candidate: FeatureVector,
    weights: SimilarityWeights,
) -> ScoreResult:
    """
    Score one candidate against the reference image's features.

    Returns:
        ScoreResult with total in [0, 100] and per-feature points.
    """
    points = {}
    for feature, scorer in SUB_SCORERS.items():
        weight = weights.for_feature(feature)
        points[feature.attr] = max(0, min(weight, scorer(reference, candidate, weight)))
    breakdown = SimilarityBreakdown(**points)
    return ScoreResult(total=breakdown.total, breakdown=breakdown)
