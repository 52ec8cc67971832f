"""Short-lived response cache shared by the operations of one client."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 60.0


def cache_key(operation: str, argument: str | None = None) -> str:
    """
    Build the cache key for an operation and its discriminating argument.

    cache_key("about") -> "about"
    cache_key("schema", "app-logs") -> "schema:app-logs"
    """
    if argument is None:
        return operation
    return f"{operation}:{argument}"


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    stored_at: float


class ResponseCache:
    """
    Thread-safe key/value store with a fixed time-to-live.

    Entries are only bounded by TTL expiry; the client caches a handful of
    slowly-changing resources (about, schema, stats, info) so there is no
    size limit.
    """

    def __init__(
        self,
        ttl: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None on a miss. Expired entries are purged."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.stored_at >= self.ttl:
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(value=value, stored_at=self._clock())

    def invalidate_all(self) -> None:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.debug(f"Invalidated {count} cached responses")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries
