"""Caching module: TTL result cache and key construction."""

from .keys import (
    CacheCategory,
    DEFAULT_TTL_SECONDS,
    make_cache_key,
    member_prefix,
    ttls_from_config,
)
from .result_cache import ResultCache, CacheEntry

__all__ = [
    "CacheCategory",
    "DEFAULT_TTL_SECONDS",
    "make_cache_key",
    "member_prefix",
    "ttls_from_config",
    "ResultCache",
    "CacheEntry",
]
