"""Ranking module: weighted aggregation, ordering and match reasons."""

from .aggregator import (
    AggregationConfig,
    RankingAggregator,
    RankingOutcome,
    combine,
    validate_member,
    validate_group,
)
from .cancellation import Cancellation
from .reasons import NotableThresholds, member_reasons, group_reasons, format_distance

__all__ = [
    "AggregationConfig",
    "RankingAggregator",
    "RankingOutcome",
    "combine",
    "validate_member",
    "validate_group",
    "Cancellation",
    "NotableThresholds",
    "member_reasons",
    "group_reasons",
    "format_distance",
]
