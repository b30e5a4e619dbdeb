"""
Distance-decayed proximity scoring.

    distance = haversine(a, b)            (km, Earth radius 6371 km)
    score    = exp(-distance / scale_km)

A pair where either side has no location gets the neutral score 0 and is
flagged as unlocated, so the aggregator can drop the proximity signal from
the weighted sum instead of penalising it. Located pairs are clamped to
[tiny, 1]: they never score exactly 0, so two far-apart members are never
confused with two unlocated ones.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from sklearn.metrics.pairwise import haversine_distances

from ..schema import GeoPoint

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
DEFAULT_SCALE_KM = 50.0

# Smallest positive score a located pair can receive.
MIN_LOCATED_SCORE = float(np.finfo(float).tiny)


@dataclass(frozen=True)
class ProximityScore:
    """
    Attributes:
        score: Proximity in [0, 1]; 0 when unlocated
        distance_km: Great-circle distance, None when unlocated
        located: False when either point was absent
    """
    score: float
    distance_km: Optional[float] = None
    located: bool = True


UNLOCATED = ProximityScore(0.0, None, False)


def _to_radians(points: Sequence[GeoPoint]) -> np.ndarray:
    return np.radians(np.array([[p.latitude, p.longitude] for p in points], dtype=float))


def haversine_km_batch(origin: GeoPoint, points: Sequence[GeoPoint]) -> np.ndarray:
    """
    Great-circle distances from one origin to many points.

    Args:
        origin: Reference point
        points: Points to measure to

    Returns:
        Array of distances in kilometers, one per point
    """
    if len(points) == 0:
        return np.zeros(0, dtype=float)
    distances = haversine_distances(_to_radians([origin]), _to_radians(points))
    return distances[0] * EARTH_RADIUS_KM


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points in kilometers."""
    return float(haversine_km_batch(a, [b])[0])


def decay(distance_km: float, scale_km: float = DEFAULT_SCALE_KM) -> float:
    """Exponential distance decay clamped to [tiny, 1]."""
    if scale_km <= 0:
        raise ValueError(f"scale_km must be positive, got {scale_km}")
    score = float(np.exp(-max(distance_km, 0.0) / scale_km))
    return min(1.0, max(MIN_LOCATED_SCORE, score))


def score_proximity(
    a: Optional[GeoPoint],
    b: Optional[GeoPoint],
    scale_km: float = DEFAULT_SCALE_KM,
) -> ProximityScore:
    """
    Score how close two optional points are.

    Args:
        a: First point, or None
        b: Second point, or None
        scale_km: Decay scale; a pair scale_km apart scores 1/e

    Returns:
        ProximityScore; UNLOCATED when either point is None
    """
    if a is None or b is None:
        return UNLOCATED
    distance = haversine_km(a, b)
    return ProximityScore(decay(distance, scale_km), distance, True)
