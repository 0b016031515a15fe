"""
Analytics Bundle Cache

One entry per time-range bucket holding the most recently computed bundle
and the moment it was cached. Freshness is checked lazily on read: an entry
whose age has reached the TTL is dropped and reported as a miss. There is
no background sweep and no negative caching.
"""

import abc
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

import structlog

from shop_analytics.analytics.models import (
    AnalyticsBundle,
    CacheEntry,
    TimeRangeBucket,
    utcnow,
)

logger = structlog.get_logger(__name__)

DEFAULT_TTL = timedelta(minutes=5)


class BundleCache(abc.ABC):
    """Contract shared by the in-process and Redis bundle caches"""

    def __init__(self, ttl: timedelta = DEFAULT_TTL, clock: Callable[[], datetime] = utcnow):
        if ttl <= timedelta(0):
            raise ValueError("Cache TTL must be positive")
        self.ttl = ttl
        self._clock = clock
        self.hits = 0
        self.misses = 0

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.cached_at < self.ttl

    async def get(self, bucket: TimeRangeBucket) -> Optional[AnalyticsBundle]:
        """Cached bundle for ``bucket``, or None on a miss (absent or stale)"""
        entry = await self.entry(bucket)
        if entry is None:
            self.misses += 1
            logger.debug("Analytics cache miss", time_range=bucket.value)
            return None
        self.hits += 1
        logger.debug("Analytics cache hit", time_range=bucket.value, cached_at=entry.cached_at.isoformat())
        return entry.bundle

    @abc.abstractmethod
    async def entry(self, bucket: TimeRangeBucket) -> Optional[CacheEntry]:
        """Fresh entry for ``bucket`` or None; stale entries are evicted"""

    @abc.abstractmethod
    async def put(self, bucket: TimeRangeBucket, bundle: AnalyticsBundle) -> CacheEntry:
        """Store ``bundle`` for ``bucket``, replacing any previous entry"""

    @abc.abstractmethod
    async def invalidate(self, bucket: Optional[TimeRangeBucket] = None) -> int:
        """Drop one bucket (or every bucket) and return how many entries went"""

    @abc.abstractmethod
    async def size(self) -> int:
        """Number of stored entries, fresh or not"""

    async def stats(self) -> Dict[str, Any]:
        lookups = self.hits + self.misses
        return {
            "backend": self.backend_name,
            "entries": await self.size(),
            "ttl_seconds": self.ttl.total_seconds(),
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / lookups, 4) if lookups else 0.0,
        }

    @property
    @abc.abstractmethod
    def backend_name(self) -> str:
        """Short backend identifier"""


class AnalyticsCache(BundleCache):
    """
    In-process bundle cache.

    ``max_entries`` optionally bounds the cache with LRU eviction; reads
    refresh recency. Writes are plain dict assignments, so concurrent writers
    for one bucket resolve last-write-wins.

    Example:
        cache = AnalyticsCache(ttl=timedelta(minutes=5))
        await cache.put(TimeRangeBucket.MONTH, bundle)
        bundle = await cache.get(TimeRangeBucket.MONTH)
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utcnow,
        max_entries: Optional[int] = None,
    ):
        super().__init__(ttl=ttl, clock=clock)
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: "OrderedDict[TimeRangeBucket, CacheEntry]" = OrderedDict()

    @property
    def backend_name(self) -> str:
        return "memory"

    async def entry(self, bucket: TimeRangeBucket) -> Optional[CacheEntry]:
        entry = self._entries.get(bucket)
        if entry is None:
            return None
        if not self.is_fresh(entry):
            # Only drop the entry we inspected; a concurrent put may have replaced it
            if self._entries.get(bucket) is entry:
                del self._entries[bucket]
            logger.debug("Analytics cache entry expired", time_range=bucket.value)
            return None
        self._entries.move_to_end(bucket)
        return entry

    async def put(self, bucket: TimeRangeBucket, bundle: AnalyticsBundle) -> CacheEntry:
        entry = CacheEntry(bundle=bundle, cached_at=self._clock())
        self._entries[bucket] = entry
        self._entries.move_to_end(bucket)

        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.info("Analytics cache evicted LRU entry", time_range=evicted.value)

        return entry

    async def invalidate(self, bucket: Optional[TimeRangeBucket] = None) -> int:
        if bucket is None:
            count = len(self._entries)
            self._entries.clear()
        else:
            count = 1 if self._entries.pop(bucket, None) is not None else 0
        logger.info("Analytics cache invalidated", time_range=bucket.value if bucket else "*", entries=count)
        return count

    async def size(self) -> int:
        return len(self._entries)
