"""
Collaborator interfaces for the discovery service.

The engine never talks to a database or a presentation layer directly. A
Repository supplies typed, already-joined records and a PrivacyFilter
decides what a viewer may see of a matched member.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from ..schema import GeoPoint, Group, Interest, Member


class Repository(Protocol):
    """Read-only access to members, groups and interest reference data."""

    def get_members(self, ids: Iterable[str]) -> List[Member]:
        """Members for the given ids; unknown ids are left out."""
        ...

    def get_groups(self, ids: Iterable[str]) -> List[Group]:
        """Groups for the given ids; unknown ids are left out."""
        ...

    def list_candidate_members(
        self, excluding: Iterable[str], filters: Optional[Mapping[str, Any]] = None
    ) -> List[Member]:
        """Members eligible for ranking, minus the excluded ids."""
        ...

    def list_candidate_groups(
        self, excluding: Iterable[str], filters: Optional[Mapping[str, Any]] = None
    ) -> List[Group]:
        """Groups eligible for ranking, minus the excluded ids."""
        ...

    def get_interests_by_ids(self, ids: Iterable[str]) -> Dict[str, Interest]:
        """Interest id -> Interest; unknown ids are left out."""
        ...

    def count_members_nearby(
        self, point: GeoPoint, radius_km: float, excluding: Iterable[str] = ()
    ) -> int:
        """Number of located members within radius_km of point."""
        ...


class PrivacyFilter(Protocol):
    """Redacts a matched member for a viewer, raising Blocked when hidden."""

    def redact(self, member: Member, viewer_id: str) -> Any:
        ...


def collect_interest_ids(members: Sequence[Member]) -> List[str]:
    """Distinct interest ids referenced by members, in first-seen order."""
    seen: Dict[str, None] = {}
    for member in members:
        for level in member.interests:
            seen.setdefault(level.interest_id, None)
    return list(seen)
