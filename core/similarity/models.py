"""
Data models for image similarity search.

Feature vectors, weights and breakdowns arrive from the image analysis
service as loosely shaped JSON; ``from_dict`` validates them at that
boundary so ranking code only sees these closed types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional


class SimilarityFeature(Enum):
    """Feature categories contributing to the similarity score."""
    PROPERTY_TYPE = "propertyType"
    STYLE = "style"
    ARCHITECTURE = "architecture"
    BEDROOMS = "bedrooms"
    AMENITIES = "amenities"

    @property
    def attr(self) -> str:
        """Dataclass attribute name for this feature."""
        return _FEATURE_ATTRS[self]

    @classmethod
    def from_string(cls, value: str) -> Optional["SimilarityFeature"]:
        """Accept either the wire name ("propertyType") or attribute name."""
        for member in cls:
            if value in (member.value, member.attr):
                return member
        return None


_FEATURE_ATTRS = {
    SimilarityFeature.PROPERTY_TYPE: "property_type",
    SimilarityFeature.STYLE: "style",
    SimilarityFeature.ARCHITECTURE: "architecture",
    SimilarityFeature.BEDROOMS: "bedrooms",
    SimilarityFeature.AMENITIES: "amenities",
}


def _feature_value(data: dict, feature: SimilarityFeature, default=0):
    if feature.value in data:
        return data[feature.value]
    return data.get(feature.attr, default)


def _as_points(value, name: str) -> int:
    try:
        points = int(round(float(value)))
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if points < 0:
        raise ValueError(f"{name} must be non-negative")
    return points


# =============================================================================
# Feature Vector
# =============================================================================


@dataclass(frozen=True)
class FeatureVector:
    """
    Visual and physical descriptors extracted from a property image.

    Unknown descriptors returned by the extractor are kept in ``extra``.
    """
    property_type: str = ""
    style: str = ""
    architecture: str = ""
    bedrooms: Optional[int] = None
    has_pool: bool = False
    has_garden: bool = False
    has_balcony: bool = False
    extra: dict = field(default_factory=dict, compare=False, hash=False)

    @property
    def amenity_flags(self) -> tuple[bool, bool, bool]:
        return (self.has_pool, self.has_garden, self.has_balcony)

    @classmethod
    def from_dict(cls, data: dict) -> "FeatureVector":
        """Validate an extractor response (camelCase or snake_case keys)."""
        if not isinstance(data, dict):
            raise ValueError("Feature vector must be an object")

        def pick(*keys, default=None):
            for key in keys:
                if key in data and data[key] is not None:
                    return data[key]
            return default

        bedrooms = pick("bedrooms")
        if bedrooms is not None:
            try:
                bedrooms = int(bedrooms)
            except (TypeError, ValueError):
                bedrooms = None

        known = {
            "propertyType", "property_type", "style", "architecture", "bedrooms",
            "hasPool", "has_pool", "hasGarden", "has_garden", "hasBalcony", "has_balcony",
        }
        return cls(
            property_type=str(pick("propertyType", "property_type", default="")).lower(),
            style=str(pick("style", default="")).lower(),
            architecture=str(pick("architecture", default="")).lower(),
            bedrooms=bedrooms,
            has_pool=bool(pick("hasPool", "has_pool", default=False)),
            has_garden=bool(pick("hasGarden", "has_garden", default=False)),
            has_balcony=bool(pick("hasBalcony", "has_balcony", default=False)),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> dict:
        result = {
            "propertyType": self.property_type,
            "style": self.style,
            "architecture": self.architecture,
            "bedrooms": self.bedrooms,
            "hasPool": self.has_pool,
            "hasGarden": self.has_garden,
            "hasBalcony": self.has_balcony,
        }
        result.update(self.extra)
        return result


# =============================================================================
# Weights, Breakdown, Thresholds
# =============================================================================


@dataclass(frozen=True)
class SimilarityWeights:
    """
    User-configured importance of each feature.

    By convention the five values sum to 100; that is enforced only when a
    named preset is saved.
    """
    property_type: int = 30
    style: int = 20
    architecture: int = 20
    bedrooms: int = 15
    amenities: int = 15

    def __post_init__(self):
        for feature in SimilarityFeature:
            value = getattr(self, feature.attr)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValueError(f"{feature.value} weight must be an integer")
            if value < 0:
                raise ValueError(f"{feature.value} weight must be non-negative")

    def for_feature(self, feature: SimilarityFeature) -> int:
        return getattr(self, feature.attr)

    @property
    def total(self) -> int:
        return sum(self.for_feature(f) for f in SimilarityFeature)

    def to_dict(self) -> dict:
        return {f.value: self.for_feature(f) for f in SimilarityFeature}

    @classmethod
    def from_dict(cls, data: dict) -> "SimilarityWeights":
        return cls(**{
            f.attr: _as_points(_feature_value(data, f), f"{f.value} weight")
            for f in SimilarityFeature
        })


@dataclass(frozen=True)
class SimilarityBreakdown:
    """Points each feature contributed to one candidate's score."""
    property_type: int = 0
    style: int = 0
    architecture: int = 0
    bedrooms: int = 0
    amenities: int = 0

    def points(self, feature: SimilarityFeature) -> int:
        return getattr(self, feature.attr)

    @property
    def total(self) -> int:
        return min(100, sum(self.points(f) for f in SimilarityFeature))

    def percentage(self, feature: SimilarityFeature, weights: SimilarityWeights) -> Optional[float]:
        """
        Points as a share of the feature's weight, 0-100.

        None when the feature carries no weight.
        """
        weight = weights.for_feature(feature)
        if weight <= 0:
            return None
        return self.points(feature) / weight * 100

    def items(self) -> Iterator[tuple[SimilarityFeature, int]]:
        for feature in SimilarityFeature:
            yield feature, self.points(feature)

    def to_dict(self) -> dict:
        return {f.value: self.points(f) for f in SimilarityFeature}

    @classmethod
    def from_dict(cls, data: dict) -> "SimilarityBreakdown":
        if not isinstance(data, dict):
            raise ValueError("Breakdown must be an object")
        return cls(**{
            f.attr: _as_points(_feature_value(data, f), f"{f.value} points")
            for f in SimilarityFeature
        })


THRESHOLD_STEP = 10


@dataclass(frozen=True)
class FeatureFilterThresholds:
    """
    Minimum per-feature percentage a candidate must reach to be displayed.

    0 disables the filter for that feature; otherwise 10-100 in steps of 10.
    """
    property_type: int = 0
    style: int = 0
    architecture: int = 0
    bedrooms: int = 0
    amenities: int = 0

    def __post_init__(self):
        for feature in SimilarityFeature:
            value = getattr(self, feature.attr)
            if not isinstance(value, int) or value < 0 or value > 100 or value % THRESHOLD_STEP:
                raise ValueError(
                    f"{feature.value} threshold must be 0 or 10-100 in steps of 10, got {value!r}"
                )

    def for_feature(self, feature: SimilarityFeature) -> int:
        return getattr(self, feature.attr)

    def active(self) -> list[tuple[SimilarityFeature, int]]:
        """Features with a non-zero threshold."""
        return [(f, self.for_feature(f)) for f in SimilarityFeature if self.for_feature(f)]

    def to_dict(self) -> dict:
        return {f.value: self.for_feature(f) for f in SimilarityFeature}

    @classmethod
    def from_dict(cls, data: dict) -> "FeatureFilterThresholds":
        return cls(**{f.attr: int(_feature_value(data, f)) for f in SimilarityFeature})


# =============================================================================
# Analysis Response
# =============================================================================


@dataclass(frozen=True)
class CandidateScore:
    """Score of one candidate property against the reference image."""
    property_id: str
    total_score: int
    breakdown: SimilarityBreakdown

    @classmethod
    def from_dict(cls, data: dict) -> "CandidateScore":
        if not isinstance(data, dict):
            raise ValueError("Candidate score must be an object")
        property_id = data.get("id") or data.get("property_id")
        if not property_id:
            raise ValueError("Candidate score is missing an id")
        breakdown = SimilarityBreakdown.from_dict(data.get("breakdown") or {})
        raw_total = data.get("totalScore", data.get("total_score"))
        total = breakdown.total if raw_total is None else _as_points(raw_total, "totalScore")
        return cls(
            property_id=str(property_id),
            total_score=min(100, total),
            breakdown=breakdown,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.property_id,
            "totalScore": self.total_score,
            "breakdown": self.breakdown.to_dict(),
        }


@dataclass(frozen=True)
class AnalysisResponse:
    """Reference features plus per-candidate scores from the analysis service."""
    reference_features: FeatureVector
    candidates: tuple[CandidateScore, ...] = ()

    def scores(self) -> dict[str, int]:
        return {c.property_id: c.total_score for c in self.candidates}

    def breakdowns(self) -> dict[str, SimilarityBreakdown]:
        return {c.property_id: c.breakdown for c in self.candidates}

    @classmethod
    def from_dict(cls, data: dict) -> "AnalysisResponse":
        """
        Validate an analysis payload.

        Raises:
            ValueError: If the payload does not have the expected shape.
        """
        if not isinstance(data, dict):
            raise ValueError("Analysis response must be an object")
        reference = data.get("referenceFeatures") or data.get("reference_features") or {}
        candidates = data.get("perCandidate") or data.get("per_candidate") or []
        if not isinstance(candidates, list):
            raise ValueError("perCandidate must be a list")
        return cls(
            reference_features=FeatureVector.from_dict(reference),
            candidates=tuple(CandidateScore.from_dict(c) for c in candidates),
        )
