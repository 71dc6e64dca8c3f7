"""
Search Cache

Process-local, content-addressed cache in front of the search and answer
pipelines. Uses cachetools.TLRUCache so every entry carries its own
expiry time.

Features:
- Per-entry TTL (search 24h, answer 12h, article metadata 7 days)
- Lazy expiry on read plus a periodic background sweep
- No size bound: eviction is TTL-only
- Single compute per key for concurrent misses
- Hit/miss/set statistics
"""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import json
import logging
import math
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, TypeVar

from cachetools import TLRUCache
from typing_extensions import Self

logger = logging.getLogger(__name__)

T = TypeVar("T")

SEARCH_TTL = 86400  # 24 hours
ANSWER_TTL = 43200  # 12 hours
ARTICLE_TTL = 604800  # 7 days
SWEEP_INTERVAL = 300.0  # 5 minutes


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """Stored value with its absolute timestamps (None = never expires)."""
    value: Any
    created_at: float
    expires_at: float | None


def _entry_expiry(_key: str, entry: CacheEntry, _now: float) -> float:
    return math.inf if entry.expires_at is None else entry.expires_at


def make_key(kind: str, payload: Any) -> str:
    """
    Content-addressed cache key: ``kind:md5(json(payload))``.

    Keys are serialized with sorted keys so mapping order never matters.
    """
    encoded = json.dumps(payload, sort_keys=True, default=str, ensure_ascii=False)
    digest = hashlib.md5(encoded.encode("utf-8")).hexdigest()
    return f"{kind}:{digest}"


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    sets: int = 0

    @property
    def total_requests(self) -> int:
        """Total cache requests."""
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Cache hit rate as a percentage (0-100, one decimal)."""
        total = self.total_requests
        return round(self.hits / total * 100, 1) if total > 0 else 0.0

    def reset(self) -> None:
        """Reset statistics."""
        self.hits = 0
        self.misses = 0
        self.sets = 0


class SearchCache:
    """
    In-memory TTL cache for search results and generated answers.

    Example:
        cache = SearchCache()

        # Get or compute pattern
        response = await cache.get_or_compute(
            "search",
            {"query": query, "filters": filters.to_dict()},
            lambda: searcher.run(query, filters),
            ttl_seconds=SEARCH_TTL,
        )

        # Lifecycle of the background sweep
        await cache.start()
        ...
        await cache.stop()
    """

    def __init__(
        self,
        enabled: bool = True,
        sweep_interval: float = SWEEP_INTERVAL,
        timer: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize cache.

        Args:
            enabled: When False every call computes and nothing is stored
            sweep_interval: Seconds between background sweeps
            timer: Clock used for expiry (injectable for tests)
        """
        self.enabled = enabled
        self._sweep_interval = sweep_interval
        self._timer = timer
        self._cache: TLRUCache[str, CacheEntry] = TLRUCache(maxsize=math.inf, ttu=_entry_expiry, timer=timer)
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._stats = CacheStats()
        self._sweep_task: asyncio.Task[None] | None = None
        logger.info(f"Search cache initialized ({'ENABLED' if enabled else 'DISABLED'})")

    @property
    def stats(self) -> CacheStats:
        return self._stats

    # ------------------------------------------------------------------
    # Key-value interface
    # ------------------------------------------------------------------

    def get(self, key: str) -> Any | None:
        """
        Get value from cache.

        Returns:
            Cached value or None if missing, expired or disabled
        """
        entry = self._lookup(key)
        return entry.value if entry is not None else None

    def _lookup(self, key: str) -> CacheEntry | None:
        if not self.enabled:
            return None
        entry = self._cache.get(key)
        if entry is None:
            self._stats.misses += 1
            return None
        self._stats.hits += 1
        logger.debug(f"Cache HIT: {key} (hit rate: {self._stats.hit_rate}%)")
        return entry

    def set(self, key: str, value: Any, ttl_seconds: float = 3600) -> None:
        """
        Store a value.

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: Time to live; <= 0 stores without expiry
        """
        if not self.enabled:
            return
        now = self._timer()
        expires_at = now + ttl_seconds if ttl_seconds > 0 else None
        self._cache[key] = CacheEntry(value=value, created_at=now, expires_at=expires_at)
        self._stats.sets += 1
        logger.debug(f"Cache SET: {key} (TTL: {ttl_seconds}s, size: {len(self._cache)})")

    def delete(self, key: str) -> bool:
        """Remove an entry. Returns True if it existed."""
        return self._cache.pop(key, None) is not None

    def clear(self) -> int:
        """
        Clear all cache entries.

        Returns:
            Number of entries cleared
        """
        count = len(self._cache)
        self._cache.clear()
        logger.info("Cache cleared")
        return count

    def clear_expired(self) -> int:
        """
        Remove all expired entries.

        Returns:
            Number of entries removed
        """
        removed = len(self._cache.expire())
        if removed:
            logger.info(f"Cache: cleared {removed} expired entries")
        return removed

    def __len__(self) -> int:
        """Get number of cached entries."""
        return len(self._cache)

    # ------------------------------------------------------------------
    # Get-or-compute
    # ------------------------------------------------------------------

    async def get_or_compute(
        self,
        kind: str,
        key_payload: Any,
        compute: Callable[[], Awaitable[T]],
        ttl_seconds: float,
    ) -> T:
        """
        Return the cached value for (kind, key_payload) or compute and store it.

        Concurrent misses on the same key share one compute call. A failing
        compute propagates and nothing is stored.

        Args:
            kind: Operation kind, used as key prefix ("search", "answer", ...)
            key_payload: JSON-serialisable payload identifying the request
            compute: Async function producing the value on a miss
            ttl_seconds: Time to live; <= 0 stores without expiry
        """
        if not self.enabled:
            return await compute()

        key = make_key(kind, key_payload)
        entry = self._lookup(key)
        if entry is not None:
            return entry.value

        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                # Another task may have filled the slot while we waited
                entry = self._cache.get(key)
                if entry is not None:
                    return entry.value

                logger.debug(f"Cache MISS: computing {kind} entry {key}")
                value = await compute()
                self.set(key, value, ttl_seconds)
                return value
        finally:
            # Drop the lock only once no task holds or awaits it
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    async def cache_search(
        self,
        query: str,
        filters: dict[str, Any],
        compute: Callable[[], Awaitable[T]],
        ttl_seconds: float = SEARCH_TTL,
    ) -> T:
        return await self.get_or_compute("search", {"query": query, "filters": filters}, compute, ttl_seconds)

    async def cache_answer(
        self,
        query: str,
        article_ids: Iterable[str],
        compute: Callable[[], Awaitable[T]],
        ttl_seconds: float = ANSWER_TTL,
    ) -> T:
        """Answers are keyed by query plus the sorted ids of the evidence used."""
        payload = {"query": query, "article_ids": sorted(str(i) for i in article_ids)}
        return await self.get_or_compute("answer", payload, compute, ttl_seconds)

    def cache_article(self, article_id: str, metadata: Any, ttl_seconds: float = ARTICLE_TTL) -> None:
        self.set(f"article:{article_id}", metadata, ttl_seconds)

    def get_cached_article(self, article_id: str) -> Any | None:
        return self.get(f"article:{article_id}")

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_stats(self) -> dict[str, Any]:
        """Snapshot of hits, misses, sets, size, hit rate and enabled flag."""
        return {
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "sets": self._stats.sets,
            "size": len(self._cache),
            "hit_rate": self._stats.hit_rate,
            "enabled": self.enabled,
        }

    # ------------------------------------------------------------------
    # Background sweep
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the periodic sweep task (idempotent)."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            self.clear_expired()

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.stop()
