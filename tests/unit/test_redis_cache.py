"""
Unit Tests - Redis Bundle Cache
"""
import fnmatch
import json
from datetime import timedelta

import pytest

from shop_analytics.analytics.models import TimeRangeBucket
from shop_analytics.serving.cache import COMPARE_AND_DELETE, RedisAnalyticsCache


class FakeRedis:
    """The subset of redis.asyncio.Redis the cache uses"""

    def __init__(self):
        self.store = {}
        self.expiry = {}

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, seconds, value):
        self.store[key] = value
        self.expiry[key] = seconds
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    async def keys(self, pattern):
        return [key for key in self.store if fnmatch.fnmatch(key, pattern)]

    async def eval(self, script, numkeys, key, expected):
        assert script == COMPARE_AND_DELETE and numkeys == 1
        if self.store.get(key) == expected:
            return await self.delete(key)
        return 0


class RacingRedis(FakeRedis):
    """Another worker writes ``replacement`` right after every GET"""

    def __init__(self):
        super().__init__()
        self.replacement = None

    async def get(self, key):
        value = await super().get(key)
        if self.replacement is not None:
            self.store[key] = self.replacement
        return value


@pytest.fixture
def redis_client():
    return FakeRedis()


@pytest.fixture
def cache(redis_client, clock):
    return RedisAnalyticsCache(redis_client, ttl=timedelta(minutes=5), clock=clock)


class TestRedisAnalyticsCache:
    """Tests for the shared Redis-backed cache"""

    async def test_put_stores_json_with_expiry(self, cache, redis_client, sample_bundle):
        await cache.put(TimeRangeBucket.MONTH, sample_bundle)

        document = json.loads(redis_client.store["analytics:bundle:month"])
        assert document["bundle"]["timeRange"] == "month"
        assert document["bundle"]["revenue"]["totalRevenue"] == 1000.0
        assert redis_client.expiry["analytics:bundle:month"] == 300

    async def test_round_trip_within_ttl(self, cache, clock, sample_bundle):
        await cache.put(TimeRangeBucket.MONTH, sample_bundle)
        clock.advance(minutes=2)

        cached = await cache.get(TimeRangeBucket.MONTH)

        assert cached == sample_bundle
        assert cache.hits == 1

    async def test_stale_entry_is_deleted(self, cache, redis_client, clock, sample_bundle):
        await cache.put(TimeRangeBucket.MONTH, sample_bundle)
        clock.advance(minutes=5)

        assert await cache.get(TimeRangeBucket.MONTH) is None
        assert redis_client.store == {}

    async def test_unreadable_entry_is_a_miss(self, cache, redis_client):
        redis_client.store["analytics:bundle:day"] = "{not json"

        assert await cache.get(TimeRangeBucket.DAY) is None
        assert "analytics:bundle:day" not in redis_client.store

    async def test_invalidate(self, cache, redis_client, bundle_factory):
        for bucket in (TimeRangeBucket.DAY, TimeRangeBucket.WEEK):
            await cache.put(bucket, bundle_factory(bucket))
        redis_client.store["other:key"] = "x"

        assert await cache.invalidate(TimeRangeBucket.DAY) == 1
        assert await cache.size() == 1
        assert await cache.invalidate() == 1
        assert redis_client.store == {"other:key": "x"}

    async def test_expiry_rounds_sub_second_ttl_up(self, redis_client, clock, sample_bundle):
        cache = RedisAnalyticsCache(redis_client, ttl=timedelta(milliseconds=1500), clock=clock)
        await cache.put(TimeRangeBucket.DAY, sample_bundle)
        assert redis_client.expiry["analytics:bundle:day"] == 2

    async def test_stats_backend(self, cache):
        assert (await cache.stats())["backend"] == "redis"

    async def test_stale_read_keeps_concurrent_put(self, clock, bundle_factory):
        """A bundle written by another worker after our read is not deleted"""
        client = RacingRedis()
        cache = RedisAnalyticsCache(client, ttl=timedelta(minutes=5), clock=clock)
        await cache.put(TimeRangeBucket.MONTH, bundle_factory(total_revenue=1.0))
        clock.advance(minutes=6)

        fresh = RedisAnalyticsCache(FakeRedis(), ttl=timedelta(minutes=5), clock=clock)
        await fresh.put(TimeRangeBucket.MONTH, bundle_factory(total_revenue=2.0))
        client.replacement = fresh.client.store["analytics:bundle:month"]

        assert await cache.get(TimeRangeBucket.MONTH) is None
        assert client.store["analytics:bundle:month"] == client.replacement
