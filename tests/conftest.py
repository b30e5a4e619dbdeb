"""
Pytest configuration and shared fixtures.
"""

import time
from datetime import datetime, timezone
from typing import Dict, Iterable, List

import pandas as pd
import pytest

from discovery.caching import ResultCache
from discovery.ranking import AggregationConfig, RankingAggregator
from discovery.schema import GeoPoint, Group, GroupPreferences, Interest, InterestLevel, Member
from discovery.scoring import haversine_km
from discovery.service import DiscoveryService, ServiceConfig


FIXED_NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubRepository:
    """In-memory repository with failure and latency injection."""

    def __init__(self, members=(), groups=(), interests=()):
        self.members: Dict[str, Member] = {m.id: m for m in members}
        self.groups: Dict[str, Group] = {g.id: g for g in groups}
        self.interests: Dict[str, Interest] = {i.id: i for i in interests}
        self.failing = set()
        self.nearby_delay = 0.0
        self.calls: List[str] = []

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failing:
            raise ConnectionError(f"{name} unavailable")

    def get_members(self, ids: Iterable[str]) -> List[Member]:
        self._record("get_members")
        return [self.members[i] for i in ids if i in self.members]

    def get_groups(self, ids: Iterable[str]) -> List[Group]:
        self._record("get_groups")
        return [self.groups[i] for i in ids if i in self.groups]

    def list_candidate_members(self, excluding, filters=None) -> List[Member]:
        self._record("list_candidate_members")
        excluded = set(excluding)
        return [m for m in self.members.values() if m.id not in excluded]

    def list_candidate_groups(self, excluding, filters=None) -> List[Group]:
        self._record("list_candidate_groups")
        excluded = set(excluding)
        # Full groups are returned so the service has to filter them
        return [g for g in self.groups.values() if g.id not in excluded]

    def get_interests_by_ids(self, ids: Iterable[str]) -> Dict[str, Interest]:
        self._record("get_interests_by_ids")
        return {i: self.interests[i] for i in ids if i in self.interests}

    def count_members_nearby(self, point, radius_km, excluding=()) -> int:
        self._record("count_members_nearby")
        if self.nearby_delay:
            time.sleep(self.nearby_delay)
        excluded = set(excluding)
        return sum(
            1 for m in self.members.values()
            if m.id not in excluded and m.location is not None
            and haversine_km(point, m.location) <= radius_km
        )


def make_member(member_id: str, interests: Dict[str, int] = None, location=None, **kwargs) -> Member:
    """Build a Member from an {interest_id: proficiency} dict."""
    levels = tuple(InterestLevel(i, p) for i, p in (interests or {}).items())
    if location is not None and not isinstance(location, GeoPoint):
        location = GeoPoint(*location)
    return Member(id=member_id, location=location, interests=levels, **kwargs)


@pytest.fixture
def catalog() -> Dict[str, Interest]:
    """Interest reference data keyed by id."""
    interests = [
        Interest("wood", "Crafts", "Woodworking"),
        Interest("hike", "Outdoors", "Hiking"),
        Interest("fish", "Outdoors", "Fishing"),
        Interest("bake", "Cooking", "Baking"),
        Interest("chess", "Games", "Chess"),
    ]
    return {i.id: i for i in interests}


@pytest.fixture
def member_a() -> Member:
    return make_member("A", {"wood": 3, "hike": 2}, (51.05, -114.07))


@pytest.fixture
def member_b() -> Member:
    return make_member("B", {"wood": 4, "fish": 2}, (51.06, -114.08))


@pytest.fixture
def member_c() -> Member:
    """A member with no interests and no location."""
    return make_member("C")


@pytest.fixture
def groups() -> List[Group]:
    return [
        Group("g-wood", "HOBBY", min_size=3, max_size=12, current_size=5,
              location=GeoPoint(51.05, -114.06), tags=("Woodworking", "Tools")),
        Group("g-full", "HOBBY", min_size=3, max_size=8, current_size=8,
              location=GeoPoint(51.05, -114.07), tags=("Woodworking",)),
        Group("g-online", "SUPPORT", min_size=2, max_size=None, current_size=4,
              tags=("hiking",), is_virtual=True),
        Group("g-mine", "HOBBY", min_size=2, max_size=10, current_size=4,
              tags=("Woodworking",)),
    ]


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def aggregator(fixed_clock) -> RankingAggregator:
    return RankingAggregator(AggregationConfig(workers=1), clock=fixed_clock)


@pytest.fixture
def repository(catalog, member_a, member_b, member_c, groups) -> StubRepository:
    return StubRepository(
        members=[member_a, member_b, member_c],
        groups=groups,
        interests=catalog.values(),
    )


@pytest.fixture
def service(repository, aggregator, fake_clock):
    svc = DiscoveryService(
        repository,
        cache=ResultCache(clock=fake_clock),
        aggregator=aggregator,
        config=ServiceConfig(nearby_timeout_seconds=1.0),
    )
    yield svc
    svc.close()


@pytest.fixture
def data_dir(tmp_path):
    """A small dataset written as CSV files."""
    pd.DataFrame([
        {"id": "wood", "category": "Crafts", "name": "Woodworking"},
        {"id": "hike", "category": "Outdoors", "name": "Hiking"},
        {"id": "fish", "category": "Outdoors", "name": "Fishing"},
    ]).to_csv(tmp_path / "interests.csv", index=False)

    pd.DataFrame([
        {"id": "A", "latitude": 51.05, "longitude": -114.07, "group_ids": "g2",
         "blocked_ids": "", "archetype": "THE WARM ADVOCATE", "preferred_types": "hobby;support",
         "size_min": 3, "size_max": None},
        {"id": "B", "latitude": 51.06, "longitude": -114.08, "group_ids": "",
         "blocked_ids": "", "archetype": "", "preferred_types": "", "size_min": None, "size_max": None},
        {"id": "C", "latitude": None, "longitude": None, "group_ids": "",
         "blocked_ids": "A;D", "archetype": None, "preferred_types": "", "size_min": None, "size_max": None},
    ]).to_csv(tmp_path / "members.csv", index=False)

    pd.DataFrame([
        {"member_id": "A", "interest_id": "wood", "proficiency": 3},
        {"member_id": "A", "interest_id": "hike", "proficiency": 2},
        {"member_id": "B", "interest_id": "wood", "proficiency": 4},
        {"member_id": "B", "interest_id": "fish", "proficiency": 2},
    ]).to_csv(tmp_path / "member_interests.csv", index=False)

    pd.DataFrame([
        {"id": "g1", "type": "HOBBY", "min_size": 3, "max_size": 10, "current_size": 4,
         "latitude": 51.05, "longitude": -114.06, "tags": "Woodworking;Tools", "is_virtual": False},
        {"id": "g2", "type": "SUPPORT", "min_size": 2, "max_size": None, "current_size": 5,
         "latitude": None, "longitude": None, "tags": "Hiking", "is_virtual": True},
        {"id": "g3", "type": "HOBBY", "min_size": 2, "max_size": 6, "current_size": 6,
         "latitude": 51.05, "longitude": -114.07, "tags": "Woodworking", "is_virtual": False},
    ]).to_csv(tmp_path / "groups.csv", index=False)
    return tmp_path
