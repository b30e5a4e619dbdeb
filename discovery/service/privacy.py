"""
Reference privacy filter.

Applied after ranking, never inside scoring: exact coordinates are rounded
to a ~1 km grid, block lists are never exposed, and a member who blocked
the viewer cannot be seen at all.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from ..errors import Blocked
from ..schema import GeoPoint, InterestLevel, Member

GRID_DEGREES = 0.01


def round_to_grid(value: float, grid: float = GRID_DEGREES) -> float:
    return round(math.floor(value / grid + 0.5) * grid, 6)


def approximate_location(location: Optional[GeoPoint], grid: float = GRID_DEGREES) -> Optional[GeoPoint]:
    if location is None or not location.is_valid:
        return None
    return GeoPoint(round_to_grid(location.latitude, grid), round_to_grid(location.longitude, grid))


def approximate_distance(distance_km: float) -> str:
    """Coarse distance label that does not reveal an exact position."""
    if distance_km < 1:
        return "< 1km away"
    if distance_km < 5:
        return f"~{math.floor(distance_km + 0.5)}km away"
    if distance_km < 10:
        return f"~{math.floor(distance_km / 5 + 0.5) * 5}km away"
    if distance_km < 50:
        return f"~{math.floor(distance_km / 10 + 0.5) * 10}km away"
    return "50+ km away"


@dataclass(frozen=True)
class VisibleProfile:
    """What a viewer may see of a matched member."""
    id: str
    location: Optional[GeoPoint] = None
    interests: Tuple[InterestLevel, ...] = ()
    archetype: Optional[str] = None
    group_ids: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "location": self.location.to_dict() if self.location else None,
            "interests": [
                {"interest_id": i.interest_id, "proficiency": i.proficiency}
                for i in self.interests
            ],
            "archetype": self.archetype,
            "group_ids": list(self.group_ids),
        }


class ApproximateLocationFilter:
    """PrivacyFilter that rounds locations and hides block lists."""

    def __init__(self, grid_degrees: float = GRID_DEGREES):
        if grid_degrees <= 0:
            raise ValueError(f"grid_degrees must be positive, got {grid_degrees}")
        self.grid_degrees = grid_degrees

    def redact(self, member: Member, viewer_id: str) -> VisibleProfile:
        if member.has_blocked(viewer_id):
            raise Blocked(f"Profile {member.id} is not accessible")
        return VisibleProfile(
            id=member.id,
            location=approximate_location(member.location, self.grid_degrees),
            interests=member.interests,
            archetype=member.archetype.label if member.archetype is not None else None,
            group_ids=member.group_ids,
        )
