"""
TTL response cache.

Holds the last successful payload of GET requests so the dispatcher can keep
serving data while an endpoint is unavailable. Staleness up to the TTL is
acceptable; served hits carry their age so callers can show it.
"""

import asyncio
import copy
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from expense_gateway.observability.metrics import cache_hits_total, cache_misses_total

DEFAULT_RESPONSE_TTL = 300.0


@dataclass
class CacheEntry:
    payload: Any
    stored_at: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        return now - self.stored_at < self.ttl


@dataclass(frozen=True)
class CachedPayload:
    """A cache hit: the stored payload and its age in seconds."""
    payload: Any
    age: float


class ResponseCache:
    """In-process response cache with lazy expiry on read."""

    def __init__(
        self,
        ttl: float = DEFAULT_RESPONSE_TTL,
        clock: Callable[[], float] = time.monotonic
    ):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

    async def get(self, cache_key: str) -> Optional[CachedPayload]:
        """Return the payload stored under ``cache_key`` unless absent or expired."""
        async with self._lock:
            now = self._clock()
            entry = self._entries.get(cache_key)

            if entry is not None and not entry.is_valid(now):
                del self._entries[cache_key]
                entry = None

            if entry is None:
                cache_misses_total.labels(cache_type="response").inc()
                return None

            cache_hits_total.labels(cache_type="response").inc()
            return CachedPayload(
                payload=copy.deepcopy(entry.payload),
                age=now - entry.stored_at
            )

    async def put(self, cache_key: str, payload: Any) -> None:
        """Store ``payload``, overwriting any previous entry."""
        async with self._lock:
            self._entries[cache_key] = CacheEntry(
                payload=copy.deepcopy(payload),
                stored_at=self._clock(),
                ttl=self.ttl
            )

    async def clear(self) -> int:
        """Drop every entry; returns how many were dropped."""
        async with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
            return dropped

    def __len__(self) -> int:
        return len(self._entries)

    async def snapshot(self) -> Dict[str, Any]:
        async with self._lock:
            now = self._clock()
            return {
                "ttl": self.ttl,
                "entries": len(self._entries),
                "valid_entries": sum(1 for e in self._entries.values() if e.is_valid(now)),
            }
