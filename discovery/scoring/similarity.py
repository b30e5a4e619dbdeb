"""
Interest similarity between two members, and between a member and a group.

Member-to-member similarity is a weighted Jaccard measure over interest ids:

    score = sum(min(p_a, p_b) for shared) / sum(max(p_a, p_b) for union)

This rewards both breadth and depth of overlap: two mentors sharing a
craft (5 and 5) score higher than two novices (1 and 1) sharing it,
because the novices' shared minimum is small relative to the union.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Sequence, Tuple

import numpy as np

from ..schema import Interest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimilarityScore:
    """
    Attributes:
        score: Similarity in [0, 1]
        shared_names: Shared interest (or tag) names, strongest first
    """
    score: float
    shared_names: Tuple[str, ...] = ()

    @property
    def shared_count(self) -> int:
        return len(self.shared_names)


EMPTY = SimilarityScore(0.0, ())


def score_interests(
    levels_a: Mapping[str, int],
    levels_b: Mapping[str, int],
    catalog: Mapping[str, Interest],
) -> SimilarityScore:
    """
    Compute weighted interest overlap between two members.

    Args:
        levels_a: Interest id -> proficiency for member A
        levels_b: Interest id -> proficiency for member B
        catalog: Interest id -> Interest, used to name shared interests

    Returns:
        SimilarityScore with shared names sorted by combined proficiency
        descending (ties by name)
    """
    if not levels_a or not levels_b:
        return EMPTY

    shared = [i for i in levels_a if i in levels_b]
    if not shared:
        return EMPTY

    union = sorted(levels_a.keys() | levels_b.keys())
    a = np.array([levels_a.get(i, 0) for i in union], dtype=float)
    b = np.array([levels_b.get(i, 0) for i in union], dtype=float)

    denominator = np.maximum(a, b).sum()
    if denominator <= 0:
        return EMPTY
    score = float(np.clip(np.minimum(a, b).sum() / denominator, 0.0, 1.0))

    def _name(interest_id: str) -> str:
        interest = catalog.get(interest_id)
        return interest.name if interest is not None else interest_id

    ordered = sorted(
        shared,
        key=lambda i: (-(levels_a[i] + levels_b[i]), _name(i)),
    )
    return SimilarityScore(score, tuple(_name(i) for i in ordered))


def score_tags(
    levels: Mapping[str, int],
    tags: Sequence[str],
    catalog: Mapping[str, Interest],
) -> SimilarityScore:
    """
    Compute overlap between a member's interests and a group's tags.

    Interest names and tags are compared case-insensitively. The score is
    the share of the member's interests that the group is tagged with.

    Args:
        levels: Interest id -> proficiency for the member
        tags: The group's tags
        catalog: Interest id -> Interest

    Returns:
        SimilarityScore whose shared names are the matching tags, strongest
        member proficiency first
    """
    if not levels or not tags:
        return EMPTY

    tag_lookup: Dict[str, str] = {t.strip().lower(): t for t in tags if t and t.strip()}
    by_name: Dict[str, int] = {}
    for interest_id, proficiency in levels.items():
        interest = catalog.get(interest_id)
        if interest is None:
            continue
        key = interest.name.strip().lower()
        by_name[key] = max(proficiency, by_name.get(key, 0))

    if not by_name:
        return EMPTY

    shared = [name for name in by_name if name in tag_lookup]
    if not shared:
        return EMPTY

    score = min(1.0, len(shared) / len(by_name))
    ordered = sorted(shared, key=lambda name: (-by_name[name], name))
    return SimilarityScore(score, tuple(tag_lookup[name] for name in ordered))
