"""
Ranking aggregation for compatibility results.

This module combines the pairwise sub-scores into a single ordered,
thresholded and explained result set.

Combination Formula (person-to-person):
    overall = 0.6 * similarity + 0.4 * proximity

Combination Formula (person-to-group):
    overall = 0.5 * similarity + 0.3 * proximity + 0.1 * size_match + 0.1 * type_match

Weights are renormalised over the signals that are actually available, so
an unlocated candidate's overall score is exactly its similarity rather
than being penalised for the missing proximity signal.

Ordering:
    overall desc, then similarity desc, then target id asc
"""

import functools
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Sequence, Callable, Iterable, Mapping, Tuple

from joblib import Parallel, delayed, cpu_count

from ..errors import MalformedCandidate
from ..schema import (
    Member,
    Group,
    Interest,
    CompatibilityResult,
    KIND_MEMBER,
    KIND_GROUP,
    FLAG_NO_LOCATION,
    PROFICIENCY_MIN,
    PROFICIENCY_MAX,
)
from ..scoring.similarity import score_interests, score_tags
from ..scoring.proximity import score_proximity, DEFAULT_SCALE_KM
from ..scoring.group_fit import GroupFitScorer, GroupFitConfig
from .cancellation import Cancellation, check
from .reasons import NotableThresholds, member_reasons, group_reasons

logger = logging.getLogger(__name__)

PERSON_WEIGHTS = {"similarity": 0.6, "proximity": 0.4}
GROUP_WEIGHTS = {"similarity": 0.5, "proximity": 0.3, "size_match": 0.1, "type_match": 0.1}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AggregationConfig:
    """
    Configuration for ranking aggregation.

    Attributes:
        person_weights: Sub-score weights for member candidates
        group_weights: Sub-score weights for group candidates
        min_score: Default minimum overall score
        default_limit: Default number of results
        max_limit: Hard cap on results per request
        proximity_scale_km: Distance decay scale
        notable: Thresholds for match-reason generation
        workers: Thread pool size (None -> number of cores)
        parallel_threshold: Batches at or below this size are scored inline
        chunk_size: Candidates per pooled task
    """
    person_weights: Dict[str, float] = field(default_factory=lambda: dict(PERSON_WEIGHTS))
    group_weights: Dict[str, float] = field(default_factory=lambda: dict(GROUP_WEIGHTS))
    min_score: float = 0.3
    default_limit: int = 20
    max_limit: int = 100
    proximity_scale_km: float = DEFAULT_SCALE_KM
    notable: NotableThresholds = field(default_factory=NotableThresholds)
    workers: Optional[int] = None
    parallel_threshold: int = 64
    chunk_size: int = 32

    def validate(self) -> None:
        """Validate configuration values."""
        for name, weights in (("person_weights", self.person_weights),
                              ("group_weights", self.group_weights)):
            if not weights:
                raise ValueError(f"{name} must not be empty")
            if any(w < 0 for w in weights.values()):
                raise ValueError(f"{name} must be non-negative, got {weights}")
            if sum(weights.values()) <= 0:
                raise ValueError(f"{name} must have a positive total, got {weights}")
        if not 0 <= self.min_score <= 1:
            raise ValueError(f"min_score must be in [0, 1], got {self.min_score}")
        if self.max_limit < 1:
            raise ValueError(f"max_limit must be positive, got {self.max_limit}")
        if self.proximity_scale_km <= 0:
            raise ValueError(f"proximity_scale_km must be positive, got {self.proximity_scale_km}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "AggregationConfig":
        """Create from main config dictionary."""
        ranking = config.get("ranking", {})
        proximity = config.get("proximity", {})
        return cls(
            person_weights=dict(ranking.get("person_weights", PERSON_WEIGHTS)),
            group_weights=dict(ranking.get("group_weights", GROUP_WEIGHTS)),
            min_score=ranking.get("min_score", 0.3),
            default_limit=ranking.get("default_limit", 20),
            max_limit=ranking.get("max_limit", 100),
            proximity_scale_km=proximity.get("scale_km", DEFAULT_SCALE_KM),
            notable=NotableThresholds.from_dict(ranking.get("notable", {})),
            workers=ranking.get("workers"),
            parallel_threshold=ranking.get("parallel_threshold", 64),
            chunk_size=ranking.get("chunk_size", 32),
        )


@dataclass
class RankingOutcome:
    """
    Result of one ranking pass.

    Attributes:
        results: Ordered, thresholded and truncated results
        skipped: Ids of malformed candidates that were skipped
        considered: Number of candidates offered to the aggregator
    """
    results: List[CompatibilityResult]
    skipped: Tuple[str, ...] = ()
    considered: int = 0

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


def combine(scores: Mapping[str, float], weights: Mapping[str, float]) -> float:
    """
    Weighted sum renormalised over the available sub-scores.

    Weights are normalised before multiplying, so a single available
    signal contributes its score unchanged (weight / weight == 1.0).
    """
    available = [(name, w) for name, w in weights.items() if name in scores]
    total = sum(w for _, w in available)
    if total <= 0:
        return 0.0
    overall = sum(scores[name] * (w / total) for name, w in available)
    return min(1.0, max(0.0, overall))


def sort_key(result: CompatibilityResult):
    return (-result.overall, -result.similarity, result.target_id)


class RankingAggregator:
    """
    Combines scorer outputs into ranked compatibility results.

    Scorers are pure functions, so candidates are evaluated independently
    (on a bounded thread pool for large batches); the merge, sort and
    truncation that follow are single-threaded to keep ordering stable.
    """

    def __init__(
        self,
        config: Optional[AggregationConfig] = None,
        group_fit: Optional[GroupFitScorer] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.config = config or AggregationConfig()
        self.config.validate()
        self.group_fit = group_fit or GroupFitScorer(GroupFitConfig())
        self.clock = clock
        self.workers = self.config.workers or cpu_count()
        logger.debug(f"Initialized RankingAggregator with {self.workers} workers")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def rank_members(
        self,
        requester: Member,
        candidates: Sequence[Member],
        catalog: Mapping[str, Interest],
        limit: Optional[int] = None,
        min_score: Optional[float] = None,
        cancellation: Optional[Cancellation] = None,
    ) -> RankingOutcome:
        """
        Rank candidate members for a requester.

        Args:
            requester: The member asking for matches
            candidates: Members to rank (the requester and blocked members
                must already be excluded)
            catalog: Interest id -> Interest for every referenced interest
            limit: Maximum number of results (capped at max_limit)
            min_score: Drop candidates whose overall score is below this
            cancellation: Checked between candidates

        Returns:
            RankingOutcome with ordered results and skipped candidate ids
        """
        limit, min_score = self.resolve_request(limit, min_score)
        requester_levels = self._requester_levels(requester, catalog)
        score_fn = functools.partial(
            self._score_member, requester, requester_levels, catalog, self.clock()
        )
        return self._rank(score_fn, candidates, limit, min_score, cancellation, KIND_MEMBER)

    def rank_groups(
        self,
        requester: Member,
        groups: Sequence[Group],
        catalog: Mapping[str, Interest],
        preferred_types: Optional[Iterable[str]] = None,
        limit: Optional[int] = None,
        min_score: Optional[float] = None,
        cancellation: Optional[Cancellation] = None,
    ) -> RankingOutcome:
        """
        Rank candidate groups for a requester.

        Args:
            requester: The member asking for matches
            groups: Groups to rank
            catalog: Interest id -> Interest for the requester's interests
            preferred_types: Group types the member prefers; defaults to the
                member's stated preferences
            limit: Maximum number of results (capped at max_limit)
            min_score: Drop groups whose overall score is below this
            cancellation: Checked between candidates

        Returns:
            RankingOutcome with ordered results and skipped group ids
        """
        limit, min_score = self.resolve_request(limit, min_score)
        if preferred_types is None:
            preferred_types = requester.preferences.types
        requester_levels = self._requester_levels(requester, catalog)
        score_fn = functools.partial(
            self._score_group,
            requester,
            requester_levels,
            catalog,
            frozenset(t.upper() for t in preferred_types if t),
            self.clock(),
        )
        return self._rank(score_fn, groups, limit, min_score, cancellation, KIND_GROUP)

    # ------------------------------------------------------------------
    # Batch evaluation
    # ------------------------------------------------------------------

    def resolve_request(self, limit: Optional[int], min_score: Optional[float]) -> Tuple[int, float]:
        """Apply defaults, clamp limit to [0, max_limit] and check min_score."""
        if limit is None:
            limit = self.config.default_limit
        limit = max(0, min(int(limit), self.config.max_limit))

        if min_score is None:
            min_score = self.config.min_score
        if not 0 <= min_score <= 1:
            raise ValueError(f"min_score must be in [0, 1], got {min_score}")
        return limit, float(min_score)

    def _rank(
        self,
        score_fn: Callable,
        candidates: Sequence,
        limit: int,
        min_score: float,
        cancellation: Optional[Cancellation],
        kind: str,
    ) -> RankingOutcome:
        candidates = list(candidates)
        if not candidates:
            return RankingOutcome(results=[], skipped=(), considered=0)

        scored, skipped = self._evaluate(score_fn, candidates, cancellation)

        kept = [r for r in scored if r.overall >= min_score]
        kept.sort(key=sort_key)
        results = kept[:limit]

        if skipped:
            logger.warning(
                f"Skipped {len(skipped)} malformed {kind} candidate(s) out of {len(candidates)}"
            )
        logger.debug(
            f"Ranked {len(candidates)} {kind} candidates: {len(kept)} above "
            f"{min_score}, returning {len(results)}"
        )
        return RankingOutcome(results=results, skipped=tuple(skipped), considered=len(candidates))

    def _evaluate(
        self,
        score_fn: Callable,
        candidates: List,
        cancellation: Optional[Cancellation],
    ) -> Tuple[List[CompatibilityResult], List[str]]:
        if self.workers <= 1 or len(candidates) <= self.config.parallel_threshold:
            return _score_chunk(score_fn, candidates, cancellation)

        size = self.config.chunk_size
        chunks = [candidates[i:i + size] for i in range(0, len(candidates), size)]
        n_jobs = min(self.workers, len(chunks))
        outputs = Parallel(n_jobs=n_jobs, prefer="threads")(
            delayed(_score_chunk)(score_fn, chunk, cancellation) for chunk in chunks
        )

        scored: List[CompatibilityResult] = []
        skipped: List[str] = []
        for chunk_scored, chunk_skipped in outputs:
            scored.extend(chunk_scored)
            skipped.extend(chunk_skipped)
        return scored, skipped

    # ------------------------------------------------------------------
    # Per-candidate scoring
    # ------------------------------------------------------------------

    def _requester_levels(self, requester: Member, catalog: Mapping[str, Interest]) -> Dict[str, int]:
        levels = requester.interest_levels()
        unknown = [i for i in levels if i not in catalog]
        if unknown:
            logger.warning(
                f"Requester {requester.id} references {len(unknown)} unknown interest(s); ignoring them"
            )
            levels = {i: p for i, p in levels.items() if i in catalog}
        return levels

    def _score_member(
        self,
        requester: Member,
        requester_levels: Dict[str, int],
        catalog: Mapping[str, Interest],
        now: datetime,
        candidate: Member,
    ) -> CompatibilityResult:
        validate_member(candidate, catalog)

        similarity = score_interests(requester_levels, candidate.interest_levels(), catalog)
        proximity = score_proximity(
            _located(requester), candidate.location, self.config.proximity_scale_km
        )

        scores = {"similarity": similarity.score}
        flags: Tuple[str, ...] = ()
        if proximity.located:
            scores["proximity"] = proximity.score
        else:
            flags = (FLAG_NO_LOCATION,)

        return CompatibilityResult(
            target_id=candidate.id,
            kind=KIND_MEMBER,
            scores=scores,
            overall=combine(scores, self.config.person_weights),
            reasons=member_reasons(requester, candidate, similarity, proximity, self.config.notable),
            computed_at=now,
            distance_km=proximity.distance_km,
            flags=flags,
        )

    def _score_group(
        self,
        requester: Member,
        requester_levels: Dict[str, int],
        catalog: Mapping[str, Interest],
        preferred_types: frozenset,
        now: datetime,
        group: Group,
    ) -> CompatibilityResult:
        validate_group(group)

        similarity = score_tags(requester_levels, group.tags, catalog)
        proximity = score_proximity(
            _located(requester), group.location, self.config.proximity_scale_km
        )
        size_match = self.group_fit.size_match(group, requester.preferences)
        type_match = self.group_fit.type_match(group, preferred_types)

        scores = {"similarity": similarity.score}
        flags: Tuple[str, ...] = ()
        if proximity.located:
            scores["proximity"] = proximity.score
        else:
            flags = (FLAG_NO_LOCATION,)
        scores["size_match"] = size_match
        scores["type_match"] = type_match

        return CompatibilityResult(
            target_id=group.id,
            kind=KIND_GROUP,
            scores=scores,
            overall=combine(scores, self.config.group_weights),
            reasons=group_reasons(
                group, similarity, proximity, size_match, type_match, self.config.notable
            ),
            computed_at=now,
            distance_km=proximity.distance_km,
            flags=flags,
        )


def _score_chunk(
    score_fn: Callable,
    chunk: Sequence,
    cancellation: Optional[Cancellation],
) -> Tuple[List[CompatibilityResult], List[str]]:
    scored: List[CompatibilityResult] = []
    skipped: List[str] = []
    for candidate in chunk:
        check(cancellation)
        try:
            scored.append(score_fn(candidate))
        except MalformedCandidate as e:
            logger.debug(str(e))
            skipped.append(e.candidate_id)
    return scored, skipped


def _located(member: Member):
    if member.location is not None and not member.location.is_valid:
        logger.warning(f"Requester {member.id} has an invalid location; ignoring it")
        return None
    return member.location


def validate_member(candidate: Member, catalog: Mapping[str, Interest]) -> None:
    """Raise MalformedCandidate if a member record cannot be scored."""
    for level in candidate.interests:
        if level.interest_id not in catalog:
            raise MalformedCandidate(candidate.id, f"unknown interest {level.interest_id!r}")
        proficiency = level.proficiency
        if not isinstance(proficiency, int) or not PROFICIENCY_MIN <= proficiency <= PROFICIENCY_MAX:
            raise MalformedCandidate(
                candidate.id, f"proficiency {proficiency!r} for {level.interest_id!r}"
            )
    if candidate.location is not None and not candidate.location.is_valid:
        raise MalformedCandidate(candidate.id, "location out of range")


def validate_group(group: Group) -> None:
    """Raise MalformedCandidate if a group record cannot be scored."""
    if group.current_size < 0 or group.min_size < 0:
        raise MalformedCandidate(group.id, "negative size")
    if group.max_size is not None and group.max_size < group.min_size:
        raise MalformedCandidate(group.id, "max_size below min_size")
    if group.location is not None and not group.location.is_valid:
        raise MalformedCandidate(group.id, "location out of range")
