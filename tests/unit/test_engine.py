"""
Unit Tests - Aggregation Engine
"""
import asyncio
from datetime import timedelta

import pytest

from shop_analytics.analytics.cache import AnalyticsCache
from shop_analytics.analytics.engine import AggregationEngine
from shop_analytics.analytics.exceptions import DataUnavailable, ValidationError
from shop_analytics.analytics.models import Facet, TimeRangeBucket


@pytest.fixture
def cache(clock):
    return AnalyticsCache(ttl=timedelta(minutes=5), clock=clock)


@pytest.fixture
def engine(provider, cache, clock):
    return AggregationEngine(provider, cache, clock=clock)


class TestAggregationEngine:
    """Tests for bundle assembly and caching"""

    async def test_computes_all_facets_on_miss(self, engine, provider, clock):
        """A miss fetches every facet once and stamps generated_at"""
        bundle = await engine.get_analytics_data(TimeRangeBucket.WEEK)

        assert bundle.time_range == TimeRangeBucket.WEEK
        assert bundle.generated_at == clock()
        assert bundle.revenue.total_revenue == 1000.0
        assert bundle.customers.total_customers == 42
        assert all(count == 1 for count in provider.calls.values())

    async def test_defaults_to_month(self, engine):
        bundle = await engine.get_analytics_data()
        assert bundle.time_range == TimeRangeBucket.MONTH

    async def test_accepts_bucket_names(self, engine):
        """String bucket names are parsed"""
        bundle = await engine.get_analytics_data("Quarter")
        assert bundle.time_range == TimeRangeBucket.QUARTER

    async def test_rejects_unknown_bucket(self, engine, provider):
        """Unknown buckets raise before any fetch"""
        with pytest.raises(ValidationError):
            await engine.get_analytics_data("fortnight")
        assert sum(provider.calls.values()) == 0

    async def test_second_call_within_ttl_is_cached(self, engine, provider, clock):
        """Two calls inside the TTL return the identical bundle"""
        first = await engine.get_analytics_data(TimeRangeBucket.MONTH)
        clock.advance(seconds=10)
        second = await engine.get_analytics_data(TimeRangeBucket.MONTH)

        assert second is first
        assert provider.calls[Facet.REVENUE.value] == 1
        assert engine.computations == 1

    async def test_recomputes_after_ttl(self, engine, provider, clock):
        """A call past the TTL rebuilds the bundle with a newer timestamp"""
        first = await engine.get_analytics_data(TimeRangeBucket.MONTH)
        clock.advance(minutes=5, seconds=1)
        second = await engine.get_analytics_data(TimeRangeBucket.MONTH)

        assert second is not first
        assert second.generated_at > first.generated_at
        assert provider.calls[Facet.REVENUE.value] == 2

    async def test_facet_failure_raises_and_skips_cache(self, engine, provider, cache):
        """A failing facet surfaces DataUnavailable and nothing is cached"""
        provider.fail_on = {Facet.INVENTORY.value}

        with pytest.raises(DataUnavailable) as exc_info:
            await engine.get_analytics_data(TimeRangeBucket.DAY)

        assert exc_info.value.facet == "inventory"
        assert exc_info.value.time_range == "day"
        assert await cache.size() == 0

    async def test_failure_leaves_previous_entry_alone(self, engine, provider, cache, clock):
        """A failed recompute does not overwrite or extend the old entry"""
        first = await engine.get_analytics_data(TimeRangeBucket.DAY)
        clock.advance(minutes=6)
        provider.fail_on = {Facet.TRENDS.value}

        with pytest.raises(DataUnavailable):
            await engine.get_analytics_data(TimeRangeBucket.DAY)

        provider.fail_on = set()
        recovered = await engine.get_analytics_data(TimeRangeBucket.DAY)
        assert recovered is not first

    async def test_concurrent_misses_share_one_computation(self, engine, provider):
        """Single-flight: concurrent callers for a bucket join one computation"""
        provider.gate = asyncio.Event()

        callers = [asyncio.create_task(engine.get_analytics_data(TimeRangeBucket.WEEK)) for _ in range(5)]
        await asyncio.sleep(0)
        provider.gate.set()
        bundles = await asyncio.gather(*callers)

        assert all(bundle is bundles[0] for bundle in bundles)
        assert engine.computations == 1
        assert provider.calls[Facet.REVENUE.value] == 1

    async def test_concurrent_failure_reaches_every_caller(self, engine, provider):
        provider.gate = asyncio.Event()
        provider.fail_on = {Facet.REVENUE.value}

        callers = [asyncio.create_task(engine.get_analytics_data(TimeRangeBucket.WEEK)) for _ in range(3)]
        await asyncio.sleep(0)
        provider.gate.set()
        results = await asyncio.gather(*callers, return_exceptions=True)

        assert all(isinstance(result, DataUnavailable) for result in results)
        assert engine.computations == 1

    async def test_without_single_flight_each_caller_computes(self, provider, cache, clock):
        engine = AggregationEngine(provider, cache, single_flight=False, clock=clock)
        provider.gate = asyncio.Event()

        callers = [asyncio.create_task(engine.get_analytics_data(TimeRangeBucket.WEEK)) for _ in range(3)]
        await asyncio.sleep(0)
        provider.gate.set()
        await asyncio.gather(*callers)

        assert engine.computations == 3

    async def test_refresh_forces_recompute(self, engine, provider):
        first = await engine.get_analytics_data(TimeRangeBucket.YEAR)
        refreshed = await engine.refresh(TimeRangeBucket.YEAR)

        assert refreshed is not first
        assert provider.calls[Facet.TRENDS.value] == 2
