"""
Image Similarity Search

Aggregation and presentation of per-feature similarity scores between an
uploaded reference image and the properties on the current result page.
"""

from .models import (
    AnalysisResponse,
    CandidateScore,
    FeatureFilterThresholds,
    FeatureVector,
    SimilarityBreakdown,
    SimilarityFeature,
    SimilarityWeights,
)
from .scoring import ScoreResult, score
from .ranking import filter_by_thresholds, rank, rank_by_feature
from .presets import (
    DEFAULT_WEIGHTS,
    QUICK_PRESETS,
    WeightPreset,
    WeightPresetStore,
    get_quick_preset,
)

__all__ = [
    # Models
    "AnalysisResponse",
    "CandidateScore",
    "FeatureFilterThresholds",
    "FeatureVector",
    "SimilarityBreakdown",
    "SimilarityFeature",
    "SimilarityWeights",
    # Scoring and ranking
    "ScoreResult",
    "score",
    "rank",
    "rank_by_feature",
    "filter_by_thresholds",
    # Presets
    "DEFAULT_WEIGHTS",
    "QUICK_PRESETS",
    "WeightPreset",
    "WeightPresetStore",
    "get_quick_preset",
]
