# relief/store/cache.py
"""
Expiring key/value cache.

A small TTL cache over an injectable storage mapping. Entries are stored as
`{"value": ..., "stored_at": <clock seconds>}` under a namespaced key, so the
same storage can back several caches (or be swapped for a shared mapping).

Eviction contract:
- `get` treats an entry older than `ttl_seconds` as a miss and removes it.
- `clear_expired` sweeps expired and malformed entries in this namespace.
- Nothing is evicted for capacity; callers bound the key space.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Hashable, MutableMapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


class ExpiringCache:
    """TTL cache with namespaced keys and an injectable clock."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        *,
        storage: Optional[MutableMapping[str, Any]] = None,
        prefix: str = "cache:",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = float(ttl_seconds)
        self.prefix = prefix
        self._storage: MutableMapping[str, Any] = storage if storage is not None else {}
        self._clock = clock
        self._lock = threading.RLock()

    def _key(self, key: Hashable) -> str:
        return f"{self.prefix}{key}"

    def _expired(self, entry: Any, now: float) -> bool:
        if not isinstance(entry, dict) or "stored_at" not in entry:
            return True
        return now - float(entry["stored_at"]) >= self.ttl_seconds

    def get(self, key: Hashable) -> Any:
        """Return the cached value, or None on miss/expiry."""
        full_key = self._key(key)
        with self._lock:
            entry = self._storage.get(full_key)
            if entry is None:
                return None
            if self._expired(entry, self._clock()):
                self._storage.pop(full_key, None)
                logger.debug("Cache expired for %s", full_key)
                return None
            return entry["value"]

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._storage[self._key(key)] = {"value": value, "stored_at": self._clock()}

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._storage.pop(self._key(key), None)

    def invalidate_matching(self, predicate: Callable[[str], bool]) -> int:
        """Drop entries whose (un-prefixed) key satisfies `predicate`."""
        with self._lock:
            doomed = [
                k for k in list(self._storage)
                if k.startswith(self.prefix) and predicate(k[len(self.prefix):])
            ]
            for k in doomed:
                self._storage.pop(k, None)
            return len(doomed)

    def clear_expired(self) -> int:
        """Remove expired or malformed entries in this namespace; returns count removed."""
        now = self._clock()
        with self._lock:
            doomed = [
                k for k, entry in list(self._storage.items())
                if k.startswith(self.prefix) and self._expired(entry, now)
            ]
            for k in doomed:
                self._storage.pop(k, None)
        if doomed:
            logger.info("Cleared %d expired cache entries", len(doomed))
        return len(doomed)

    def clear(self) -> int:
        return self.invalidate_matching(lambda _k: True)

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for k in self._storage if k.startswith(self.prefix))
