"""
Size and type fit between a member and a group.

size_match:
- 0 when the group is full
- current / min_size when under its minimum (far under -> towards 0)
- 1 while the fill of the [min_size, max_size] band is at or below the
  target fill, then linear decay to 0 at capacity
- unbounded groups score 1 once they reach their minimum
- multiplied by out_of_range_factor when outside the member's preferred
  size range

type_match:
- 1 when the member's preferred types include the group's type
- otherwise a baseline, so unclassified members still see groups
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, Any, Iterable, Set

from ..schema import Group, GroupPreferences

logger = logging.getLogger(__name__)


@dataclass
class GroupFitConfig:
    """
    Configuration for group fit scoring.

    Attributes:
        target_fill: Fraction of the [min, max] band a group can fill
            before its size score starts to decay
        type_baseline: type_match for groups outside the preferred types
        out_of_range_factor: Multiplier when a group lies outside the
            member's preferred size range
    """
    target_fill: float = 0.75
    type_baseline: float = 0.5
    out_of_range_factor: float = 0.5

    def validate(self) -> None:
        """Validate configuration values."""
        for name in ("target_fill", "type_baseline", "out_of_range_factor"):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise ValueError(f"{name} must be in [0, 1], got {value}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "GroupFitConfig":
        """Create from main config dictionary."""
        group_fit = config.get("group_fit", {})
        return cls(
            target_fill=group_fit.get("target_fill", 0.75),
            type_baseline=group_fit.get("type_baseline", 0.5),
            out_of_range_factor=group_fit.get("out_of_range_factor", 0.5),
        )


class GroupFitScorer:
    """Scores how well a group's size and type suit a member."""

    def __init__(self, config: GroupFitConfig = None):
        self.config = config or GroupFitConfig()
        self.config.validate()

    def size_match(self, group: Group, preferences: GroupPreferences = None) -> float:
        if group.is_full:
            return 0.0

        current = max(group.current_size, 0)
        minimum = max(group.min_size, 0)

        if current < minimum:
            score = current / minimum
        elif group.max_size is None or group.max_size <= minimum:
            score = 1.0
        else:
            fill = (current - minimum) / (group.max_size - minimum)
            target = self.config.target_fill
            if fill <= target:
                score = 1.0
            else:
                score = (1.0 - fill) / (1.0 - target) if target < 1.0 else 0.0

        if preferences is not None and not _in_preferred_range(current, preferences):
            score *= self.config.out_of_range_factor

        return min(1.0, max(0.0, score))

    def type_match(self, group: Group, preferred_types: Iterable[str]) -> float:
        preferred: Set[str] = {t.upper() for t in preferred_types if t}
        if group.type and group.type.upper() in preferred:
            return 1.0
        return self.config.type_baseline


def _in_preferred_range(size: int, preferences: GroupPreferences) -> bool:
    if preferences.size_min is not None and size < preferences.size_min:
        return False
    if preferences.size_max is not None and size > preferences.size_max:
        return False
    return True
