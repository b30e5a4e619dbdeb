"""
Data model for the discovery engine.

Defines the typed join structures the Repository layer builds once
(a Member already carries its interest levels, a Group its size and tags)
so that scorers never re-assemble profiles from parallel queries.

Entities:
- Interest: immutable reference data (id, category, name)
- Member: a person with location, interest levels, traits and block list
- Group: a circle with type, size bounds, location and tags
- CompatibilityResult: transient output unit, never persisted beyond the cache
"""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Optional, Dict, Any, List, Tuple, Mapping, TYPE_CHECKING

if TYPE_CHECKING:
    from .profiling.archetypes import Archetype


# Fixed declaration order of the six HEXACO dimensions. Tie-breaks in
# archetype classification follow this order.
TRAIT_DIMENSIONS: Tuple[str, ...] = ("H", "E", "X", "A", "C", "O")

PROFICIENCY_MIN = 1
PROFICIENCY_MAX = 5

KIND_MEMBER = "member"
KIND_GROUP = "group"

FLAG_NO_LOCATION = "no-location"


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 coordinate in decimal degrees."""
    latitude: float
    longitude: float

    @property
    def is_valid(self) -> bool:
        """True when both coordinates are finite and within range."""
        lat, lon = self.latitude, self.longitude
        return (
            isinstance(lat, (int, float)) and isinstance(lon, (int, float))
            and -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0
        )

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class Interest:
    """Interest reference data."""
    id: str
    category: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "category": self.category, "name": self.name}


@dataclass(frozen=True)
class InterestLevel:
    """A member's interest with a 1-5 proficiency level."""
    interest_id: str
    proficiency: int


@dataclass(frozen=True)
class TraitVector:
    """
    Six HEXACO trait scores, each in [1.0, 5.0].

    Only produced by TraitProfiler.score() once all questionnaire items
    have been answered; partial vectors never exist.
    """
    H: float
    E: float
    X: float
    A: float
    C: float
    O: float

    def as_dict(self) -> Dict[str, float]:
        """Scores keyed by dimension code, in declaration order."""
        return {code: getattr(self, code) for code in TRAIT_DIMENSIONS}

    def as_list(self) -> List[float]:
        return [getattr(self, code) for code in TRAIT_DIMENSIONS]

    @classmethod
    def from_dict(cls, d: Mapping[str, float]) -> "TraitVector":
        return cls(**{code: float(d[code]) for code in TRAIT_DIMENSIONS})


@dataclass(frozen=True)
class GroupPreferences:
    """
    A member's stated group preferences.

    Attributes:
        types: Preferred group type tags (e.g. "HOBBY", "SUPPORT")
        size_min: Smallest group size the member is comfortable with
        size_max: Largest group size the member is comfortable with
    """
    types: Tuple[str, ...] = ()
    size_min: Optional[int] = None
    size_max: Optional[int] = None


@dataclass(frozen=True)
class Member:
    """
    A member profile joined with its interest levels.

    Attributes:
        id: Identity handle
        location: Optional point; absent means "no proximity signal"
        interests: Ordered (interest id, proficiency) pairs
        traits: Optional trait vector from the personality questionnaire
        archetype: Optional archetype assigned from the trait vector
        group_ids: Groups the member already belongs to
        blocked_ids: Members this member has blocked
        preferences: Stated group preferences
    """
    id: str
    location: Optional[GeoPoint] = None
    interests: Tuple[InterestLevel, ...] = ()
    traits: Optional[TraitVector] = None
    archetype: Optional["Archetype"] = None
    group_ids: Tuple[str, ...] = ()
    blocked_ids: Tuple[str, ...] = ()
    preferences: GroupPreferences = field(default_factory=GroupPreferences)

    def interest_levels(self) -> Dict[str, int]:
        """Interest id -> proficiency. Later duplicates win."""
        return {level.interest_id: level.proficiency for level in self.interests}

    def has_blocked(self, other_id: str) -> bool:
        return other_id in self.blocked_ids


@dataclass(frozen=True)
class Group:
    """
    A group (circle) that members can join.

    Attributes:
        id: Group id
        type: Type tag (e.g. "HOBBY", "SUPPORT", "SPIRITUAL")
        min_size: Minimum healthy member count
        max_size: Capacity, or None for unbounded groups
        current_size: Current member count
        location: Optional point; virtual groups have none
        tags: Free-form topic tags
        is_virtual: True for online-only groups
    """
    id: str
    type: str
    min_size: int = 1
    max_size: Optional[int] = None
    current_size: int = 0
    location: Optional[GeoPoint] = None
    tags: Tuple[str, ...] = ()
    is_virtual: bool = False

    @property
    def is_full(self) -> bool:
        return self.max_size is not None and self.current_size >= self.max_size


@dataclass(frozen=True)
class CompatibilityResult:
    """
    Result of ranking one candidate for a requester.

    Attributes:
        target_id: Id of the ranked member or group
        kind: "member" or "group"
        scores: Read-only named sub-scores in [0, 1]; "proximity" is
            omitted when either side has no location
        overall: Weighted aggregate in [0, 1]
        reasons: Ordered human-readable match reasons
        computed_at: When the result was computed
        distance_km: Great-circle distance, when both sides are located
        flags: Extra markers such as "no-location"
    """
    target_id: str
    kind: str
    scores: Mapping[str, float]
    overall: float
    reasons: Tuple[str, ...] = ()
    computed_at: Optional[datetime] = None
    distance_km: Optional[float] = None
    flags: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "scores", MappingProxyType(dict(self.scores)))

    @property
    def similarity(self) -> float:
        return self.scores.get("similarity", 0.0)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        result = {
            "target_id": self.target_id,
            "kind": self.kind,
            "scores": dict(self.scores),
            "overall": self.overall,
            "reasons": list(self.reasons),
            "computed_at": self.computed_at.isoformat() if self.computed_at else None,
            "flags": list(self.flags),
        }
        if self.distance_km is not None:
            result["distance_km"] = self.distance_km
        return result
