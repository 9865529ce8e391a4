"""
Ranking and threshold filtering over the currently loaded page.

All operations are synchronous, stable (ties keep fetch order) and never
touch the network.
"""

from __future__ import annotations

from typing import Mapping, Sequence

from ..models import Property
from .models import (
    FeatureFilterThresholds,
    SimilarityBreakdown,
    SimilarityFeature,
    SimilarityWeights,
)


# Candidates without a score sort after every scored candidate
_UNSCORED = -1


def rank(results: Sequence[Property], scores: Mapping[str, int]) -> list[Property]:
    """Sort by total score descending."""
    return sorted(results, key=lambda p: -scores.get(p.id, _UNSCORED))


def rank_by_feature(
    results: Sequence[Property],
    breakdowns: Mapping[str, SimilarityBreakdown],
    feature: SimilarityFeature,
) -> list[Property]:
    """Sort by one feature's points descending."""
    def points(prop: Property) -> int:
        breakdown = breakdowns.get(prop.id)
        return breakdown.points(feature) if breakdown is not None else _UNSCORED

    return sorted(results, key=lambda p: -points(p))


def passes_thresholds(
    breakdown: SimilarityBreakdown,
    thresholds: FeatureFilterThresholds,
    weights: SimilarityWeights,
) -> bool:
    """
    Whether a breakdown meets every active threshold.

    A feature with zero weight cannot be measured and is not filtered on.
    """
    for feature, minimum in thresholds.active():
        percentage = breakdown.percentage(feature, weights)
        if percentage is not None and percentage < minimum:
            return False
    return True


def filter_by_thresholds(
    results: Sequence[Property],
    breakdowns: Mapping[str, SimilarityBreakdown],
    thresholds: FeatureFilterThresholds,
    weights: SimilarityWeights,
) -> list[Property]:
    """
    Keep candidates meeting every active threshold.

    Candidates with no breakdown are kept unconditionally. The total
    result count is not affected.
    """
    if not thresholds.active():
        return list(results)
    kept = []
    for prop in results:
        breakdown = breakdowns.get(prop.id)
        if breakdown is None or passes_thresholds(breakdown, thresholds, weights):
            kept.append(prop)
    return kept
