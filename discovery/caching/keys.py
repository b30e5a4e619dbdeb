"""
Cache categories and key construction.

Keys are built from the operation name, the requesting member and the
request parameters sorted by name, so identical requests always map to the
same key regardless of keyword order:

    <requester>:<operation>:limit=20:min_score=0.3

The requester comes first so every entry derived for one member can be
dropped with a single prefix invalidation.
"""

from enum import Enum
from typing import Any, Dict
from urllib.parse import quote


class CacheCategory(Enum):
    """Named families of cache entries, each with its own TTL."""
    PERSON_MATCHES = "person_matches"
    GROUP_MATCHES = "group_matches"
    COMPATIBILITY_SCORES = "compatibility_scores"
    NEARBY_COUNT = "nearby_count"
    NEARBY_PERSONS = "nearby_persons"
    UNREAD_COUNT = "unread_count"
    PROFILE = "profile"


DEFAULT_TTL_SECONDS: Dict[CacheCategory, float] = {
    CacheCategory.PERSON_MATCHES: 180,
    CacheCategory.GROUP_MATCHES: 180,
    CacheCategory.COMPATIBILITY_SCORES: 600,
    CacheCategory.NEARBY_COUNT: 300,
    CacheCategory.NEARBY_PERSONS: 180,
    CacheCategory.UNREAD_COUNT: 120,
    CacheCategory.PROFILE: 600,
}


def _part(value: Any) -> str:
    # Escape the separator so ids containing ":" cannot collide.
    return quote(str(value), safe="=.-_")


def member_prefix(requester_id: str) -> str:
    """Prefix shared by every key derived for one member."""
    return f"{_part(requester_id)}:"


def make_cache_key(operation: str, requester_id: str, **params: Any) -> str:
    """
    Build a deterministic cache key.

    Args:
        operation: Operation name (e.g. "person_matches")
        requester_id: Requesting member id
        **params: Request parameters; order does not matter

    Returns:
        Cache key string
    """
    parts = [_part(requester_id), _part(operation)]
    parts.extend(f"{_part(name)}={_part(params[name])}" for name in sorted(params))
    return ":".join(parts)


def ttls_from_config(config: Dict[str, Any]) -> Dict[CacheCategory, float]:
    """Read per-category TTLs from the main config, falling back to defaults."""
    configured = config.get("cache", {}).get("ttl_seconds", {})
    ttls = dict(DEFAULT_TTL_SECONDS)
    for category in CacheCategory:
        if category.value in configured:
            ttls[category] = float(configured[category.value])
    return ttls
