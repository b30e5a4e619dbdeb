"""
Time-bounded result cache.

Key Design Decisions:
- Explicit instance with injectable clock and backing store; there is no
  module-level cache, so tests and multiple services never share state
- Each entry carries its own expiry, derived from its category's TTL
- An expired entry reads as a miss but stays in the store until it is
  overwritten or purged
- Concurrent writers for the same key: last write wins. Misses are not
  coalesced, so two concurrent misses both compute
- Failures of a custom backing store surface as UpstreamUnavailable;
  a plain miss is never an error
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, MutableMapping, Optional, Tuple

from ..errors import UpstreamUnavailable
from .keys import CacheCategory, DEFAULT_TTL_SECONDS, ttls_from_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A cached value and the clock reading after which it is stale."""
    value: Any
    expires_at: float
    category: CacheCategory


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    expired: int = 0
    writes: int = 0
    entries: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expired": self.expired,
            "writes": self.writes,
            "entries": self.entries,
        }


class ResultCache:
    """
    TTL cache for ranking results and bounded aggregates.

    Example:
        >>> cache = ResultCache()
        >>> cache.set("u1:person_matches", [], CacheCategory.PERSON_MATCHES)
        >>> cache.get("u1:person_matches")
        []
    """

    def __init__(
        self,
        ttls: Optional[Dict[CacheCategory, float]] = None,
        clock: Callable[[], float] = time.monotonic,
        store: Optional[MutableMapping[str, CacheEntry]] = None,
    ):
        """
        Initialize the cache.

        Args:
            ttls: Seconds to live per category; missing categories use the
                defaults
            clock: Monotonic clock returning seconds
            store: Backing mapping; a plain dict when omitted
        """
        self.ttls = dict(DEFAULT_TTL_SECONDS)
        if ttls:
            self.ttls.update(ttls)
        for category, ttl in self.ttls.items():
            if ttl <= 0:
                raise ValueError(f"TTL for {category.value} must be positive, got {ttl}")

        self.clock = clock
        self._store: MutableMapping[str, CacheEntry] = store if store is not None else {}
        self._lock = threading.Lock()
        self._stats = CacheStats()

    @classmethod
    def from_config(
        cls,
        config: Dict[str, Any],
        clock: Callable[[], float] = time.monotonic,
        store: Optional[MutableMapping[str, CacheEntry]] = None,
    ) -> "ResultCache":
        """Create from main config dictionary."""
        return cls(ttls=ttls_from_config(config), clock=clock, store=store)

    # ------------------------------------------------------------------
    # Store access
    # ------------------------------------------------------------------

    def _backend(self, action: str, fn: Callable, *args):
        try:
            return fn(*args)
        except Exception as e:
            logger.error(f"Cache backend failed to {action}: {e}")
            raise UpstreamUnavailable(f"Cache backend failed to {action}") from e

    def _lookup(self, key: str) -> Tuple[bool, Any]:
        with self._lock:
            entry = self._backend("read", self._store.get, key)
            if entry is None:
                self._stats.misses += 1
                logger.debug(f"Cache miss: {key}")
                return False, None
            if self.clock() >= entry.expires_at:
                self._stats.misses += 1
                self._stats.expired += 1
                logger.debug(f"Cache expired: {key}")
                return False, None
            self._stats.hits += 1
            logger.debug(f"Cache hit: {key}")
            return True, entry.value

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for key, or default on a miss."""
        found, value = self._lookup(key)
        return value if found else default

    def contains(self, key: str) -> bool:
        found, _ = self._lookup(key)
        return found

    def set(self, key: str, value: Any, category: CacheCategory) -> None:
        """Store value under key with the TTL of its category."""
        entry = CacheEntry(value, self.clock() + self.ttls[category], category)
        with self._lock:
            self._backend("write", self._store.__setitem__, key, entry)
            self._stats.writes += 1

    def get_or_compute(self, key: str, category: CacheCategory, compute: Callable[[], Any]) -> Any:
        """
        Return the cached value, computing and storing it on a miss.

        Exceptions raised by compute propagate and nothing is cached.
        """
        found, value = self._lookup(key)
        if found:
            return value
        value = compute()
        self.set(key, value, category)
        return value

    def invalidate(self, key: str) -> bool:
        """Drop one key. Returns True if it was present."""
        with self._lock:
            if self._backend("read", self._store.__contains__, key):
                self._backend("delete", self._store.__delitem__, key)
                return True
            return False

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every key starting with prefix. Returns the number removed."""
        with self._lock:
            keys = [k for k in self._backend("list", list, self._store) if k.startswith(prefix)]
            for key in keys:
                self._backend("delete", self._store.__delitem__, key)
        if keys:
            logger.debug(f"Invalidated {len(keys)} cache entries with prefix {prefix!r}")
        return len(keys)

    def purge_expired(self) -> int:
        """Evict every expired entry. Returns the number removed."""
        now = self.clock()
        with self._lock:
            items = self._backend("list", list, self._store.items())
            stale = [k for k, entry in items if now >= entry.expires_at]
            for key in stale:
                self._backend("delete", self._store.__delitem__, key)
        if stale:
            logger.debug(f"Purged {len(stale)} expired cache entries")
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._backend("clear", self._store.clear)

    def stats(self) -> Dict[str, int]:
        """Hit/miss counters plus the current number of stored entries."""
        with self._lock:
            self._stats.entries = self._backend("count", len, self._store)
            return self._stats.to_dict()

    def __len__(self) -> int:
        with self._lock:
            return self._backend("count", len, self._store)
