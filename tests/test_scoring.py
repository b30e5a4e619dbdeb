"""
Tests for interest similarity, proximity and group fit scoring.
"""

import math

import pytest

from discovery.schema import GeoPoint, Group, GroupPreferences
from discovery.scoring import (
    GroupFitConfig,
    GroupFitScorer,
    haversine_km,
    haversine_km_batch,
    score_interests,
    score_proximity,
    score_tags,
)
from discovery.scoring.proximity import MIN_LOCATED_SCORE, decay


class TestInterestSimilarity:
    """Test weighted Jaccard similarity between members."""

    def test_reference_pair(self, catalog):
        """{Woodworking:3, Hiking:2} vs {Woodworking:4, Fishing:2} = 3/8."""
        result = score_interests({"wood": 3, "hike": 2}, {"wood": 4, "fish": 2}, catalog)
        assert result.score == pytest.approx(0.375)
        assert result.shared_names == ("Woodworking",)
        assert result.shared_count == 1

    def test_identical_is_one(self, catalog):
        levels = {"wood": 3, "hike": 2}
        assert score_interests(levels, dict(levels), catalog).score == 1.0

    def test_same_ids_different_depth_below_one(self, catalog):
        result = score_interests({"wood": 3, "hike": 2}, {"wood": 3, "hike": 5}, catalog)
        assert 0.0 < result.score < 1.0

    def test_disjoint_is_zero(self, catalog):
        result = score_interests({"wood": 3}, {"fish": 3}, catalog)
        assert result.score == 0.0
        assert result.shared_names == ()

    def test_empty_side_is_zero(self, catalog):
        assert score_interests({}, {"fish": 3}, catalog).score == 0.0
        assert score_interests({"fish": 3}, {}, catalog).score == 0.0

    def test_shared_names_strongest_first(self, catalog):
        """Ordered by combined proficiency, ties broken by name."""
        a = {"wood": 5, "hike": 2, "bake": 2}
        b = {"wood": 1, "hike": 2, "bake": 2}
        assert score_interests(a, b, catalog).shared_names == ("Woodworking", "Baking", "Hiking")

    def test_unknown_interest_named_by_id(self):
        result = score_interests({"x9": 2}, {"x9": 2}, {})
        assert result.shared_names == ("x9",)

    def test_symmetric(self, catalog):
        a, b = {"wood": 3, "hike": 2}, {"wood": 1, "chess": 4}
        assert score_interests(a, b, catalog).score == score_interests(b, a, catalog).score


class TestTagSimilarity:
    """Test member-to-group tag overlap."""

    def test_case_insensitive_share(self, catalog):
        result = score_tags({"wood": 3, "hike": 2}, ("woodworking", "Tools"), catalog)
        assert result.score == 0.5
        assert result.shared_names == ("woodworking",)

    def test_no_tags(self, catalog):
        assert score_tags({"wood": 3}, (), catalog).score == 0.0

    def test_all_interests_tagged(self, catalog):
        result = score_tags({"wood": 3, "hike": 5}, ("Hiking", "Woodworking", "Camping"), catalog)
        assert result.score == 1.0
        assert result.shared_names == ("Hiking", "Woodworking")


class TestProximity:
    """Test haversine distance and decay."""

    def test_one_degree_of_longitude_at_equator(self):
        assert haversine_km(GeoPoint(0, 0), GeoPoint(0, 1)) == pytest.approx(111.195, abs=0.01)

    def test_batch_matches_pairwise(self):
        origin = GeoPoint(51.05, -114.07)
        points = [GeoPoint(51.06, -114.08), GeoPoint(49.28, -123.12)]
        batch = haversine_km_batch(origin, points)
        assert batch[0] == pytest.approx(haversine_km(origin, points[0]))
        assert batch[1] == pytest.approx(haversine_km(origin, points[1]))
        assert len(haversine_km_batch(origin, [])) == 0

    def test_zero_distance_scores_one(self):
        p = GeoPoint(51.05, -114.07)
        result = score_proximity(p, p)
        assert result.score == 1.0
        assert result.distance_km == 0.0
        assert result.located

    def test_strictly_decreasing(self):
        origin = GeoPoint(0, 0)
        scores = [
            score_proximity(origin, GeoPoint(0, lon)).score
            for lon in (0.01, 0.1, 1, 10, 100, 179)
        ]
        assert all(a > b for a, b in zip(scores, scores[1:]))
        assert all(0.0 < s <= 1.0 for s in scores)

    def test_antipodes_never_zero(self):
        result = score_proximity(GeoPoint(0, 0), GeoPoint(0, 180))
        assert result.score >= MIN_LOCATED_SCORE > 0.0

    def test_scale_gives_one_over_e(self):
        assert decay(50.0, 50.0) == pytest.approx(1 / math.e)

    def test_invalid_scale(self):
        with pytest.raises(ValueError):
            decay(1.0, 0)

    @pytest.mark.parametrize("a,b", [
        (None, GeoPoint(1, 1)),
        (GeoPoint(1, 1), None),
        (None, None),
    ])
    def test_absent_point_is_neutral(self, a, b):
        result = score_proximity(a, b)
        assert result.score == 0.0
        assert result.distance_km is None
        assert not result.located


class TestGroupFit:
    """Test size and type matching."""

    @pytest.fixture
    def scorer(self):
        return GroupFitScorer()

    def test_full_group_scores_zero(self, scorer):
        assert scorer.size_match(Group("g", "HOBBY", min_size=2, max_size=8, current_size=8)) == 0.0

    def test_under_minimum(self, scorer):
        assert scorer.size_match(Group("g", "HOBBY", min_size=4, max_size=10, current_size=2)) == 0.5

    def test_room_to_grow(self, scorer):
        assert scorer.size_match(Group("g", "HOBBY", min_size=2, max_size=10, current_size=4)) == 1.0

    def test_decays_near_capacity(self, scorer):
        group = Group("g", "HOBBY", min_size=2, max_size=10, current_size=9)
        assert scorer.size_match(group) == pytest.approx(0.5)

    def test_unbounded_group(self, scorer):
        assert scorer.size_match(Group("g", "HOBBY", min_size=2, current_size=40)) == 1.0

    def test_outside_preferred_range_halved(self, scorer):
        group = Group("g", "HOBBY", min_size=2, max_size=10, current_size=5)
        assert scorer.size_match(group, GroupPreferences(size_max=3)) == 0.5
        assert scorer.size_match(group, GroupPreferences(size_min=3, size_max=6)) == 1.0

    def test_type_match(self, scorer):
        group = Group("g", "HOBBY")
        assert scorer.type_match(group, ["hobby"]) == 1.0
        assert scorer.type_match(group, ["SUPPORT"]) == 0.5
        assert scorer.type_match(group, []) == 0.5

    def test_config_validation(self):
        with pytest.raises(ValueError, match="target_fill"):
            GroupFitScorer(GroupFitConfig(target_fill=1.5))

    def test_config_from_dict(self):
        config = GroupFitConfig.from_config({"group_fit": {"type_baseline": 0.25}})
        assert config.type_baseline == 0.25
        assert config.target_fill == 0.75
