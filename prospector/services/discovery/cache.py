"""In-memory TTL cache for discovery results and query reformulations."""

from __future__ import annotations

import hashlib
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Any, Protocol

from prospector.models.search import FilterState

logger = logging.getLogger(__name__)


class SearchCache(Protocol):
    """Async key/value cache contract used by the orchestrator and engine clients."""

    async def get(self, key: str) -> Any | None:
        ...

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def clear(self) -> None:
        ...


@dataclass
class _CacheEntry:
    expires_at: float
    value: Any


class InMemorySearchCache:
    """Process-local cache with per-entry TTL and hit/miss counters."""

    def __init__(
        self,
        *,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be a positive integer.")
        self._entries: dict[str, _CacheEntry] = {}
        self._max_entries = max_entries
        self._clock = clock
        self._lock = Lock()
        self._hits = 0
        self._misses = 0

    async def get(self, key: str) -> Any | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.expires_at <= now:
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            return
        now = self._clock()
        with self._lock:
            if key not in self._entries and len(self._entries) >= self._max_entries:
                self._evict(now)
            self._entries[key] = _CacheEntry(expires_at=now + ttl_seconds, value=value)

    async def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"hits": self._hits, "misses": self._misses, "size": len(self._entries)}

    def _evict(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        if len(self._entries) >= self._max_entries:
            oldest = min(self._entries, key=lambda key: self._entries[key].expires_at)
            del self._entries[oldest]
            logger.debug("discovery.cache.evicted", extra={"key": oldest})


def search_cache_key(
    query: str,
    filters: FilterState | None = None,
    *,
    kind: str = "search",
    **params: Any,
) -> str:
    """Build an engine-agnostic cache key from normalised query text and filters."""
    normalized_query = " ".join((query or "").lower().split())
    payload: dict[str, Any] = {"q": normalized_query}
    if filters is not None:
        payload["filters"] = {
            "verticals": sorted(value.lower() for value in filters.verticals),
            "regions": sorted(value.lower() for value in filters.regions),
            "sizes": sorted(filters.sizes),
            "signals": sorted(value.lower() for value in filters.signals),
            "sources": sorted(filters.sources),
            "statuses": sorted(filters.statuses),
        }
    if params:
        payload["params"] = params
    digest = hashlib.sha256(
        json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    ).hexdigest()
    return f"{kind}:{digest[:32]}"
