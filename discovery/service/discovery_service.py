"""
Discovery service facade.

Orchestrates one discovery request: resolve the requester, fetch
candidates and interest reference data, rank through the aggregator and
cache the ranked list under a key derived from the request.

Key Design Decisions:
- Independent upstream fetches (candidates, interest catalog, the
  requester's groups) are issued concurrently and merged by key
- Repository failures surface as UpstreamUnavailable; a missing requester
  is MemberNotFound; cache misses are never errors
- Privacy filtering happens after ranking, on the final result list only
- The nearby-count aggregate is bounded by a timeout and falls back to 0
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..caching import CacheCategory, ResultCache, make_cache_key, member_prefix
from ..errors import Blocked, DiscoveryError, MemberNotFound, UpstreamUnavailable
from ..ranking import AggregationConfig, Cancellation, RankingAggregator
from ..ranking.cancellation import check
from ..schema import CompatibilityResult, Group, Interest, KIND_MEMBER, Member
from ..scoring.group_fit import GroupFitConfig, GroupFitScorer
from .interfaces import PrivacyFilter, Repository, collect_interest_ids
from .privacy import ApproximateLocationFilter

logger = logging.getLogger(__name__)


@dataclass
class ServiceConfig:
    """
    Configuration for the discovery service.

    Attributes:
        candidate_limit: Candidates requested from the repository per call
        precompute_limit: Matches stored by refresh_compatibility_scores
        nearby_timeout_seconds: Bound on the nearby-count aggregate
        default_radius_km: Radius for get_nearby_count when none is given
        fetch_workers: Threads for concurrent upstream fetches
    """
    candidate_limit: int = 200
    precompute_limit: int = 50
    nearby_timeout_seconds: float = 5.0
    default_radius_km: float = 5.0
    fetch_workers: int = 4

    def validate(self) -> None:
        """Validate configuration values."""
        if self.candidate_limit < 1:
            raise ValueError(f"candidate_limit must be positive, got {self.candidate_limit}")
        if self.precompute_limit < 1:
            raise ValueError(f"precompute_limit must be positive, got {self.precompute_limit}")
        if self.nearby_timeout_seconds <= 0:
            raise ValueError(
                f"nearby_timeout_seconds must be positive, got {self.nearby_timeout_seconds}"
            )
        if self.default_radius_km <= 0:
            raise ValueError(f"default_radius_km must be positive, got {self.default_radius_km}")
        if self.fetch_workers < 1:
            raise ValueError(f"fetch_workers must be positive, got {self.fetch_workers}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ServiceConfig":
        """Create from main config dictionary."""
        service = config.get("service", {})
        return cls(
            candidate_limit=service.get("candidate_limit", 200),
            precompute_limit=service.get("precompute_limit", 50),
            nearby_timeout_seconds=service.get("nearby_timeout_seconds", 5.0),
            default_radius_km=service.get("default_radius_km", 5.0),
            fetch_workers=service.get("fetch_workers", 4),
        )


class DiscoveryService:
    """
    Entry point for ranked member and group discovery.

    Example:
        >>> service = DiscoveryService(repository)
        >>> matches = service.find_compatible_persons("member-1", limit=10)
        >>> [m.target_id for m in matches]
    """

    def __init__(
        self,
        repository: Repository,
        cache: Optional[ResultCache] = None,
        privacy_filter: Optional[PrivacyFilter] = None,
        aggregator: Optional[RankingAggregator] = None,
        config: Optional[ServiceConfig] = None,
    ):
        """
        Initialize the service.

        Args:
            repository: Source of members, groups and interests
            cache: Result cache; a fresh in-memory cache when omitted
            privacy_filter: Redaction applied by visible_matches
            aggregator: Ranking aggregator; default weights when omitted
            config: Service configuration
        """
        self.repository = repository
        self.cache = cache if cache is not None else ResultCache()
        self.privacy_filter = privacy_filter or ApproximateLocationFilter()
        self.aggregator = aggregator or RankingAggregator()
        self.config = config or ServiceConfig()
        self.config.validate()
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.fetch_workers, thread_name_prefix="discovery-fetch"
        )

    @classmethod
    def from_config(
        cls,
        repository: Repository,
        config: Dict[str, Any],
        cache: Optional[ResultCache] = None,
        privacy_filter: Optional[PrivacyFilter] = None,
        **aggregator_kwargs,
    ) -> "DiscoveryService":
        """
        Build a service with every component configured from one config dict.

        Args:
            repository: Source of members, groups and interests
            config: Main configuration (see configs/default.yaml)
            cache: Optional pre-built cache
            privacy_filter: Optional privacy filter
            **aggregator_kwargs: Extra RankingAggregator arguments (e.g. clock)
        """
        aggregator = RankingAggregator(
            AggregationConfig.from_config(config),
            group_fit=GroupFitScorer(GroupFitConfig.from_config(config)),
            **aggregator_kwargs,
        )
        return cls(
            repository,
            cache=cache if cache is not None else ResultCache.from_config(config),
            privacy_filter=privacy_filter,
            aggregator=aggregator,
            config=ServiceConfig.from_config(config),
        )

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    def __enter__(self) -> "DiscoveryService":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Upstream access
    # ------------------------------------------------------------------

    def _call(self, operation: str, fn: Callable, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except DiscoveryError:
            raise
        except Exception as e:
            logger.error(f"Repository call {operation} failed: {e}")
            raise UpstreamUnavailable(f"Repository call {operation} failed") from e

    def _submit(self, operation: str, fn: Callable, *args, **kwargs):
        return self._executor.submit(self._call, operation, fn, *args, **kwargs)

    def _get_requester(self, requester_id: str) -> Member:
        members = self._call("get_members", self.repository.get_members, [requester_id])
        for member in members:
            if member.id == requester_id:
                return member
        raise MemberNotFound(requester_id)

    def _complete_catalog(
        self, catalog: Dict[str, Interest], members: Iterable[Member]
    ) -> Dict[str, Interest]:
        missing = [i for i in collect_interest_ids(list(members)) if i not in catalog]
        if missing:
            extra = self._call(
                "get_interests_by_ids", self.repository.get_interests_by_ids, missing
            )
            catalog = {**catalog, **extra}
        return catalog

    # ------------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------------

    def _rank_persons(
        self,
        requester: Member,
        limit: int,
        min_score: float,
        cancellation: Optional[Cancellation],
    ) -> List[CompatibilityResult]:
        excluding = {requester.id, *requester.blocked_ids}
        filters = {"limit": self.config.candidate_limit}

        candidates_future = self._submit(
            "list_candidate_members",
            self.repository.list_candidate_members,
            sorted(excluding),
            filters,
        )
        catalog_future = self._submit(
            "get_interests_by_ids",
            self.repository.get_interests_by_ids,
            collect_interest_ids([requester]),
        )
        candidates = candidates_future.result()
        catalog = catalog_future.result()
        check(cancellation)

        candidates = [
            c for c in candidates
            if c.id not in excluding and not c.has_blocked(requester.id)
        ]
        catalog = self._complete_catalog(catalog, candidates)

        outcome = self.aggregator.rank_members(
            requester, candidates, catalog,
            limit=limit, min_score=min_score, cancellation=cancellation,
        )
        logger.info(
            f"Ranked {outcome.considered} members for {requester.id}: "
            f"{len(outcome.results)} matches, {outcome.skipped_count} skipped"
        )
        return outcome.results

    def _rank_groups(
        self,
        requester: Member,
        limit: int,
        min_score: float,
        cancellation: Optional[Cancellation],
    ) -> List[CompatibilityResult]:
        excluding = set(requester.group_ids)
        filters = {"limit": self.config.candidate_limit, "exclude_full": True}

        groups_future = self._submit(
            "list_candidate_groups",
            self.repository.list_candidate_groups,
            sorted(excluding),
            filters,
        )
        catalog_future = self._submit(
            "get_interests_by_ids",
            self.repository.get_interests_by_ids,
            collect_interest_ids([requester]),
        )
        joined_future = self._submit(
            "get_groups", self.repository.get_groups, list(requester.group_ids)
        )
        groups = groups_future.result()
        catalog = catalog_future.result()
        joined = joined_future.result()
        check(cancellation)

        groups = [g for g in groups if g.id not in excluding and not g.is_full]
        preferred_types = preferred_group_types(requester, joined)

        outcome = self.aggregator.rank_groups(
            requester, groups, catalog,
            preferred_types=preferred_types,
            limit=limit, min_score=min_score, cancellation=cancellation,
        )
        logger.info(
            f"Ranked {outcome.considered} groups for {requester.id}: "
            f"{len(outcome.results)} matches, {outcome.skipped_count} skipped"
        )
        return outcome.results

    def _cached_ranking(
        self,
        category: CacheCategory,
        rank: Callable,
        requester_id: str,
        limit: Optional[int],
        min_score: Optional[float],
        use_cache: bool,
        cancellation: Optional[Cancellation],
    ) -> List[CompatibilityResult]:
        limit, min_score = self.aggregator.resolve_request(limit, min_score)
        key = make_cache_key(category.value, requester_id, limit=limit, min_score=min_score)

        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                return list(cached)

        check(cancellation)
        requester = self._get_requester(requester_id)
        results = rank(requester, limit, min_score, cancellation)
        self.cache.set(key, tuple(results), category)
        return results

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def find_compatible_persons(
        self,
        requester_id: str,
        limit: Optional[int] = None,
        min_score: Optional[float] = None,
        use_cache: bool = True,
        cancellation: Optional[Cancellation] = None,
    ) -> List[CompatibilityResult]:
        """
        Rank other members for a requester.

        Args:
            requester_id: Requesting member
            limit: Maximum number of results (default 20, capped at 100)
            min_score: Minimum overall score (default 0.3)
            use_cache: When False the cache is not read, but the fresh
                result still replaces the cached one
            cancellation: Caller deadline / cancellation signal

        Returns:
            Ordered list of CompatibilityResult

        Raises:
            MemberNotFound: If the requester does not exist
            UpstreamUnavailable: If the repository or cache fails
            OperationCancelled: If the caller cancelled
            ValueError: If min_score is outside [0, 1]
        """
        return self._cached_ranking(
            CacheCategory.PERSON_MATCHES, self._rank_persons,
            requester_id, limit, min_score, use_cache, cancellation,
        )

    def find_compatible_groups(
        self,
        requester_id: str,
        limit: Optional[int] = None,
        min_score: Optional[float] = None,
        use_cache: bool = True,
        cancellation: Optional[Cancellation] = None,
    ) -> List[CompatibilityResult]:
        """
        Rank groups for a requester.

        Groups the requester already belongs to and full groups are never
        returned. Arguments and errors as for find_compatible_persons.
        """
        return self._cached_ranking(
            CacheCategory.GROUP_MATCHES, self._rank_groups,
            requester_id, limit, min_score, use_cache, cancellation,
        )

    def refresh_compatibility_scores(
        self,
        requester_id: str,
        cancellation: Optional[Cancellation] = None,
    ) -> List[CompatibilityResult]:
        """Precompute the requester's top matches for cache-only reads."""
        limit, min_score = self.aggregator.resolve_request(self.config.precompute_limit, None)
        requester = self._get_requester(requester_id)
        results = self._rank_persons(requester, limit, min_score, cancellation)
        key = make_cache_key(CacheCategory.COMPATIBILITY_SCORES.value, requester_id)
        self.cache.set(key, tuple(results), CacheCategory.COMPATIBILITY_SCORES)
        logger.info(f"Cached {len(results)} compatibility scores for {requester_id}")
        return results

    def get_cached_compatibility_scores(
        self, requester_id: str, limit: int = 20
    ) -> List[CompatibilityResult]:
        """Precomputed matches from the cache; empty when nothing is cached."""
        key = make_cache_key(CacheCategory.COMPATIBILITY_SCORES.value, requester_id)
        cached = self.cache.get(key)
        if cached is None:
            return []
        return list(cached[: max(0, limit)])

    def get_nearby_count(self, requester_id: str, radius_km: Optional[float] = None) -> int:
        """
        Number of members within radius_km of the requester.

        The repository aggregate is bounded by nearby_timeout_seconds; on
        timeout a warning is logged and 0 is returned (and not cached).
        """
        radius_km = self.config.default_radius_km if radius_km is None else radius_km
        if radius_km <= 0:
            raise ValueError(f"radius_km must be positive, got {radius_km}")

        key = make_cache_key(CacheCategory.NEARBY_COUNT.value, requester_id, radius_km=radius_km)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        requester = self._get_requester(requester_id)
        if requester.location is None or not requester.location.is_valid:
            return 0

        future = self._submit(
            "count_members_nearby",
            self.repository.count_members_nearby,
            requester.location,
            radius_km,
            (requester.id, *requester.blocked_ids),
        )
        try:
            count = int(future.result(timeout=self.config.nearby_timeout_seconds))
        except FutureTimeout:
            logger.warning(
                f"Nearby count for {requester_id} timed out after "
                f"{self.config.nearby_timeout_seconds}s; returning 0"
            )
            return 0

        self.cache.set(key, count, CacheCategory.NEARBY_COUNT)
        return count

    def visible_matches(
        self, results: Iterable[CompatibilityResult], viewer_id: str
    ) -> List[Tuple[CompatibilityResult, Any]]:
        """
        Pair member results with what the viewer may see of each member.

        Matched members are fetched in one batch. Members hidden from the
        viewer (Blocked) or no longer present are dropped; group results
        pass through with no profile.
        """
        results = list(results)
        member_ids = [r.target_id for r in results if r.kind == KIND_MEMBER]
        members = {}
        if member_ids:
            fetched = self._call("get_members", self.repository.get_members, member_ids)
            members = {m.id: m for m in fetched}

        visible = []
        for result in results:
            if result.kind != KIND_MEMBER:
                visible.append((result, None))
                continue
            member = members.get(result.target_id)
            if member is None:
                continue
            try:
                visible.append((result, self.privacy_filter.redact(member, viewer_id)))
            except Blocked:
                logger.debug(f"Dropping {result.target_id}: hidden from {viewer_id}")
        return visible

    def forget_member(self, member_id: str) -> int:
        """Drop every cached entry derived for a member. Returns the count."""
        removed = self.cache.invalidate_prefix(member_prefix(member_id))
        logger.info(f"Invalidated {removed} cached entries for {member_id}")
        return removed


def preferred_group_types(requester: Member, joined: Iterable[Group]) -> Tuple[str, ...]:
    """Stated preferred types plus types of groups the member already joined."""
    types: Dict[str, None] = {}
    for group_type in requester.preferences.types:
        if group_type:
            types.setdefault(group_type.upper(), None)
    for group in joined:
        if group.type:
            types.setdefault(group.type.upper(), None)
    return tuple(types)
