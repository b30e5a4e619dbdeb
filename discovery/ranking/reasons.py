"""
Match-reason generation.

Reasons are presentation metadata derived from whichever sub-scores
crossed a "notable" threshold. They never feed back into scoring and are
rebuilt every time the sub-scores are computed.
"""

import math
from dataclasses import dataclass, asdict
from typing import Dict, Any, List, Tuple

from ..schema import Member, Group
from ..scoring.similarity import SimilarityScore
from ..scoring.proximity import ProximityScore
from ..profiling.trait_profiler import trait_affinity


@dataclass
class NotableThresholds:
    """
    Thresholds above which a sub-score earns a match reason.

    Attributes:
        max_distance_km: Pairs closer than this get a "within N km" reason
        trait_affinity: Minimum trait affinity for a personality reason
        size_match: Minimum size_match for an "open spot" reason
        max_reasons: Upper bound on reasons per result
        max_named_interests: How many shared interests to name
    """
    max_distance_km: float = 10.0
    trait_affinity: float = 0.8
    size_match: float = 0.9
    max_reasons: int = 5
    max_named_interests: int = 3

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "NotableThresholds":
        return cls(**d)


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


def format_distance(distance_km: float) -> str:
    """Round up to whole kilometers, never below 1 ("within 4km")."""
    return f"within {max(1, math.ceil(distance_km))}km"


def _interest_reasons(similarity: SimilarityScore, thresholds: NotableThresholds) -> List[str]:
    if similarity.shared_count == 0:
        return []
    reasons = [_plural(similarity.shared_count, "shared interest")]
    for name in similarity.shared_names[: thresholds.max_named_interests]:
        reasons.append(f"Both into {name}")
    return reasons


def _distance_reason(proximity: ProximityScore, thresholds: NotableThresholds) -> List[str]:
    if proximity.located and proximity.distance_km <= thresholds.max_distance_km:
        return [format_distance(proximity.distance_km)]
    return []


def member_reasons(
    requester: Member,
    candidate: Member,
    similarity: SimilarityScore,
    proximity: ProximityScore,
    thresholds: NotableThresholds,
) -> Tuple[str, ...]:
    """Build the ordered reasons for a member-to-member match."""
    reasons = _interest_reasons(similarity, thresholds)
    reasons.extend(_distance_reason(proximity, thresholds))

    if requester.traits is not None and candidate.traits is not None:
        if trait_affinity(requester.traits, candidate.traits) >= thresholds.trait_affinity:
            reasons.append("Similar personality traits")

    if requester.archetype is not None and requester.archetype == candidate.archetype:
        reasons.append(f"Fellow {requester.archetype.title}")

    return tuple(reasons[: thresholds.max_reasons])


def group_reasons(
    group: Group,
    similarity: SimilarityScore,
    proximity: ProximityScore,
    size_match: float,
    type_match: float,
    thresholds: NotableThresholds,
) -> Tuple[str, ...]:
    """Build the ordered reasons for a member-to-group match."""
    reasons = []
    if similarity.shared_count:
        named = ", ".join(similarity.shared_names[: thresholds.max_named_interests])
        reasons.append(f"{_plural(similarity.shared_count, 'shared interest')}: {named}")

    reasons.extend(_distance_reason(proximity, thresholds))
    if group.is_virtual:
        reasons.append("Meets online")

    if group.current_size < group.min_size:
        reasons.append("New circle looking for members")
    elif size_match >= thresholds.size_match:
        reasons.append("open spot in a growing circle")

    if type_match >= 1.0:
        reasons.append(f"Matches your interest in {group.type.lower()} groups")

    return tuple(reasons[: thresholds.max_reasons])
