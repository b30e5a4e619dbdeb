"""Service module: discovery facade, collaborator protocols and privacy filtering."""

from .discovery_service import DiscoveryService, ServiceConfig, preferred_group_types
from .interfaces import Repository, PrivacyFilter, collect_interest_ids
from .privacy import (
    ApproximateLocationFilter,
    VisibleProfile,
    approximate_distance,
    approximate_location,
)

__all__ = [
    "DiscoveryService",
    "ServiceConfig",
    "preferred_group_types",
    "Repository",
    "PrivacyFilter",
    "collect_interest_ids",
    "ApproximateLocationFilter",
    "VisibleProfile",
    "approximate_distance",
    "approximate_location",
]
