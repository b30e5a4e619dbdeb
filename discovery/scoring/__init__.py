"""Pairwise scoring module: interest similarity, proximity and group fit."""

from .similarity import SimilarityScore, score_interests, score_tags
from .proximity import (
    ProximityScore,
    score_proximity,
    haversine_km,
    haversine_km_batch,
)
from .group_fit import GroupFitScorer, GroupFitConfig

__all__ = [
    "SimilarityScore",
    "score_interests",
    "score_tags",
    "ProximityScore",
    "score_proximity",
    "haversine_km",
    "haversine_km_batch",
    "GroupFitScorer",
    "GroupFitConfig",
]
