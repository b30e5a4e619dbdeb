"""
Tests for the discovery service facade.
"""

import logging

import pytest

from discovery.caching import ResultCache
from discovery.configs import load_config
from discovery.errors import Blocked, MemberNotFound, OperationCancelled, UpstreamUnavailable
from discovery.ranking import Cancellation
from discovery.schema import GeoPoint, GroupPreferences, KIND_GROUP
from discovery.service import (
    ApproximateLocationFilter,
    DiscoveryService,
    ServiceConfig,
    approximate_distance,
    preferred_group_types,
)

from conftest import StubRepository, make_member


def count(repository, name):
    return repository.calls.count(name)


class TestFindCompatiblePersons:
    """Test member discovery end to end."""

    def test_reference_scenario(self, service):
        """B above C; C scores its similarity alone with no proximity penalty."""
        results = service.find_compatible_persons("A", min_score=0.0)
        assert [r.target_id for r in results] == ["B", "C"]
        assert results[1].overall == 0.0 == results[1].similarity
        assert "proximity" not in results[1].scores

    def test_default_threshold(self, service):
        assert [r.target_id for r in service.find_compatible_persons("A")] == ["B"]

    def test_requester_never_matched(self, service):
        results = service.find_compatible_persons("B", min_score=0.0)
        assert "B" not in [r.target_id for r in results]

    def test_blocks_honoured_both_ways(self, catalog, aggregator, fake_clock):
        requester = make_member("A", {"wood": 3}, blocked_ids=("B",))
        repository = StubRepository(
            members=[
                requester,
                make_member("B", {"wood": 3}),
                make_member("C", {"wood": 3}, blocked_ids=("A",)),
                make_member("D", {"wood": 3}),
            ],
            interests=catalog.values(),
        )
        with DiscoveryService(repository, ResultCache(clock=fake_clock), aggregator=aggregator) as svc:
            assert [r.target_id for r in svc.find_compatible_persons("A")] == ["D"]

    def test_results_cached(self, service, repository):
        first = service.find_compatible_persons("A")
        second = service.find_compatible_persons("A")
        assert first == second
        assert count(repository, "list_candidate_members") == 1

    def test_cached_scores_read_only(self, service):
        first = service.find_compatible_persons("A", min_score=0.0)
        with pytest.raises(TypeError):
            first[0].scores["similarity"] = 1.0
        second = service.find_compatible_persons("A", min_score=0.0)
        assert second[0].similarity == pytest.approx(0.375)

    def test_cache_expires(self, service, repository, fake_clock):
        service.find_compatible_persons("A")
        fake_clock.advance(181)
        service.find_compatible_persons("A")
        assert count(repository, "list_candidate_members") == 2

    def test_cache_bypass(self, service, repository):
        service.find_compatible_persons("A")
        service.find_compatible_persons("A", use_cache=False)
        assert count(repository, "list_candidate_members") == 2

    def test_request_params_keyed_separately(self, service, repository):
        service.find_compatible_persons("A", limit=5)
        service.find_compatible_persons("A", limit=10)
        assert count(repository, "list_candidate_members") == 2

    def test_forget_member(self, service, repository):
        service.find_compatible_persons("A")
        assert service.forget_member("A") == 1
        service.find_compatible_persons("A")
        assert count(repository, "list_candidate_members") == 2

    def test_unknown_requester(self, service):
        with pytest.raises(MemberNotFound) as exc_info:
            service.find_compatible_persons("ghost")
        assert exc_info.value.member_id == "ghost"

    @pytest.mark.parametrize("failing", ["get_members", "list_candidate_members", "get_interests_by_ids"])
    def test_upstream_failure(self, service, repository, failing):
        repository.failing.add(failing)
        with pytest.raises(UpstreamUnavailable):
            service.find_compatible_persons("A")

    def test_cancelled(self, service):
        cancellation = Cancellation()
        cancellation.cancel()
        with pytest.raises(OperationCancelled):
            service.find_compatible_persons("A", cancellation=cancellation)

    def test_invalid_min_score(self, service):
        with pytest.raises(ValueError):
            service.find_compatible_persons("A", min_score=2)


class TestFindCompatibleGroups:
    """Test group discovery end to end."""

    @pytest.fixture
    def group_service(self, catalog, groups, aggregator, fake_clock):
        requester = make_member(
            "A", {"wood": 3, "hike": 2}, (51.05, -114.07), group_ids=("g-mine",)
        )
        repository = StubRepository(members=[requester], groups=groups, interests=catalog.values())
        svc = DiscoveryService(repository, ResultCache(clock=fake_clock), aggregator=aggregator)
        yield svc
        svc.close()

    def test_full_group_never_returned(self, group_service):
        """A group at capacity is excluded even when it would score well."""
        results = group_service.find_compatible_groups("A", min_score=0.0)
        assert "g-full" not in [r.target_id for r in results]

    def test_member_groups_excluded(self, group_service):
        results = group_service.find_compatible_groups("A", min_score=0.0)
        ids = [r.target_id for r in results]
        assert "g-mine" not in ids
        assert ids == ["g-wood", "g-online"]
        assert all(r.kind == KIND_GROUP for r in results)

    def test_type_inferred_from_joined_groups(self, group_service):
        results = group_service.find_compatible_groups("A", min_score=0.0)
        by_id = {r.target_id: r for r in results}
        assert by_id["g-wood"].scores["type_match"] == 1.0
        assert by_id["g-online"].scores["type_match"] == 0.5

    def test_preferred_group_types(self, groups):
        requester = make_member("A", preferences=GroupPreferences(types=("support", "HOBBY")))
        assert preferred_group_types(requester, groups[:1]) == ("SUPPORT", "HOBBY")


class TestPrecomputedScores:
    """Test cache-only compatibility score reads."""

    def test_miss_is_empty(self, service):
        assert service.get_cached_compatibility_scores("A") == []

    def test_refresh_then_read(self, service, repository):
        computed = service.refresh_compatibility_scores("A")
        cached = service.get_cached_compatibility_scores("A")
        assert cached == computed
        assert service.get_cached_compatibility_scores("A", limit=0) == []
        assert count(repository, "list_candidate_members") == 1


class TestNearbyCount:
    """Test the bounded nearby-member aggregate."""

    def test_counts_within_radius(self, service):
        assert service.get_nearby_count("A", radius_km=5.0) == 1

    def test_cached(self, service, repository):
        service.get_nearby_count("A")
        service.get_nearby_count("A")
        assert count(repository, "count_members_nearby") == 1

    def test_unlocated_requester(self, service, repository):
        assert service.get_nearby_count("C") == 0
        assert count(repository, "count_members_nearby") == 0

    def test_timeout_falls_back_to_zero(self, repository, aggregator, fake_clock, caplog):
        repository.nearby_delay = 0.5
        svc = DiscoveryService(
            repository,
            ResultCache(clock=fake_clock),
            aggregator=aggregator,
            config=ServiceConfig(nearby_timeout_seconds=0.05),
        )
        with caplog.at_level(logging.WARNING):
            assert svc.get_nearby_count("A") == 0
        assert "timed out" in caplog.text
        svc.close()

    def test_invalid_radius(self, service):
        with pytest.raises(ValueError):
            service.get_nearby_count("A", radius_km=0)


class TestVisibleMatches:
    """Test privacy filtering after ranking."""

    def test_locations_rounded(self, service):
        results = service.find_compatible_persons("A")
        visible = service.visible_matches(results, "A")
        result, profile = visible[0]
        assert result.target_id == "B"
        assert profile.location == GeoPoint(51.06, -114.08)
        assert "blocked_ids" not in profile.to_dict()

    def test_blocked_viewer_dropped(self, catalog, aggregator, fake_clock):
        repository = StubRepository(
            members=[
                make_member("A", {"wood": 3}),
                make_member("B", {"wood": 3}, blocked_ids=("V",)),
                make_member("C", {"wood": 2}),
            ],
            interests=catalog.values(),
        )
        with DiscoveryService(repository, ResultCache(clock=fake_clock), aggregator=aggregator) as svc:
            results = svc.find_compatible_persons("A")
            assert [r.target_id for r, _ in svc.visible_matches(results, "V")] == ["C"]


class TestPrivacyFilter:
    """Test the reference privacy filter."""

    def test_rounds_to_grid(self):
        member = make_member("B", location=(51.0634, -114.0871))
        profile = ApproximateLocationFilter().redact(member, "viewer")
        assert profile.location == GeoPoint(51.06, -114.09)

    def test_blocked(self):
        member = make_member("B", blocked_ids=("viewer",))
        with pytest.raises(Blocked):
            ApproximateLocationFilter().redact(member, "viewer")

    @pytest.mark.parametrize("km,label", [
        (0.4, "< 1km away"),
        (3.4, "~3km away"),
        (8.0, "~10km away"),
        (23.0, "~20km away"),
        (75.0, "50+ km away"),
    ])
    def test_approximate_distance(self, km, label):
        assert approximate_distance(km) == label


class TestFromConfig:
    """Test building a service from configuration."""

    def test_from_default_config(self, repository, fixed_clock):
        config = load_config()
        with DiscoveryService.from_config(repository, config, clock=fixed_clock) as svc:
            assert svc.config.precompute_limit == 50
            assert svc.aggregator.config.max_limit == 100
            assert [r.target_id for r in svc.find_compatible_persons("A")] == ["B"]
