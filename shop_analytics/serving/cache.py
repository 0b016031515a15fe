"""
Redis Cache Module

Shared bundle cache for multi-worker deployments:
- Connection pooling
- JSON serialization of cache entries
- TTL management (Redis expiry mirrors the bundle TTL)
- Per-bucket and namespace-wide invalidation
"""

import json
import math
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog
from redis.asyncio import ConnectionPool, Redis

from shop_analytics.analytics.cache import DEFAULT_TTL, BundleCache
from shop_analytics.analytics.models import AnalyticsBundle, CacheEntry, TimeRangeBucket, utcnow
from shop_analytics.config.settings import RedisSettings, get_settings

logger = structlog.get_logger(__name__)

# Delete KEYS[1] only while it still holds ARGV[1]
COMPARE_AND_DELETE = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""

# Global Redis connection
_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None


async def init_redis(settings: Optional[RedisSettings] = None) -> Redis:
    """Initialize Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client is not None:
        return _redis_client

    settings = settings or get_settings().redis
    _redis_pool = ConnectionPool.from_url(
        settings.get_url(),
        max_connections=settings.max_connections,
        socket_timeout=settings.socket_timeout,
        decode_responses=True,
    )
    _redis_client = Redis(connection_pool=_redis_pool)

    try:
        await _redis_client.ping()
        logger.info("Redis connection established", host=settings.host, db=settings.db)
    except Exception as e:
        logger.error("Redis connection failed", error=str(e))
        await close_redis()
        raise

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool is not None:
        await _redis_pool.disconnect()
        _redis_pool = None

    logger.info("Redis connection closed")


def get_redis() -> Redis:
    """Get Redis client instance"""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


class RedisAnalyticsCache(BundleCache):
    """
    Bundle cache stored in Redis so every worker shares one entry per bucket.

    Entries are JSON documents ``{"cachedAt": ..., "bundle": {...}}`` under
    ``<namespace>:<bucket>``. The Redis key expires with the TTL, and
    freshness is still checked against ``cachedAt`` on read so the injected
    clock stays authoritative.

    Example:
        cache = RedisAnalyticsCache(get_redis(), ttl=timedelta(minutes=5))
        await cache.put(TimeRangeBucket.WEEK, bundle)
    """

    def __init__(
        self,
        client: Redis,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utcnow,
        namespace: str = "analytics:bundle",
    ):
        super().__init__(ttl=ttl, clock=clock)
        self.client = client
        self.namespace = namespace

    @property
    def backend_name(self) -> str:
        return "redis"

    def _key(self, bucket: TimeRangeBucket) -> str:
        """Generate namespaced key"""
        return f"{self.namespace}:{bucket.value}"

    async def entry(self, bucket: TimeRangeBucket) -> Optional[CacheEntry]:
        raw = await self.client.get(self._key(bucket))
        if raw is None:
            return None

        try:
            document = json.loads(raw)
            entry = CacheEntry(
                bundle=AnalyticsBundle.model_validate(document["bundle"]),
                cached_at=datetime.fromisoformat(document["cachedAt"]),
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable cache entry", time_range=bucket.value, error=str(e))
            await self._discard(bucket, raw)
            return None

        if not self.is_fresh(entry):
            await self._discard(bucket, raw)
            logger.debug("Analytics cache entry expired", time_range=bucket.value)
            return None
        return entry

    async def _discard(self, bucket: TimeRangeBucket, raw: str) -> None:
        """Drop the value we read, unless another worker has replaced it since"""
        await self.client.eval(COMPARE_AND_DELETE, 1, self._key(bucket), raw)

    async def put(self, bucket: TimeRangeBucket, bundle: AnalyticsBundle) -> CacheEntry:
        entry = CacheEntry(bundle=bundle, cached_at=self._clock())
        document = {
            "cachedAt": entry.cached_at.isoformat(),
            "bundle": bundle.model_dump(mode="json", by_alias=True),
        }
        # Redis expiry has whole-second granularity; never shorter than the TTL
        seconds = max(1, math.ceil(self.ttl.total_seconds()))
        await self.client.setex(self._key(bucket), seconds, json.dumps(document))
        return entry

    async def invalidate(self, bucket: Optional[TimeRangeBucket] = None) -> int:
        if bucket is None:
            keys = await self.client.keys(f"{self.namespace}:*")
            count = await self.client.delete(*keys) if keys else 0
        else:
            count = await self.client.delete(self._key(bucket))
        logger.info("Analytics cache invalidated", time_range=bucket.value if bucket else "*", entries=count)
        return count

    async def size(self) -> int:
        keys = await self.client.keys(f"{self.namespace}:*")
        return len(keys)
