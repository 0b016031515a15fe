"""
Aggregation Engine

Serves analytics bundles per time-range bucket:
- Cache hit: return the cached bundle without touching the DataProvider
- Cache miss: fetch all six facets concurrently, assemble, cache, return
- Any facet failure aborts the whole miss with DataUnavailable
- Optional single-flight: concurrent misses for one bucket share a computation
"""

import asyncio
import time
from datetime import datetime
from typing import Callable, Dict, Optional

import structlog

from shop_analytics.analytics.cache import BundleCache
from shop_analytics.analytics.exceptions import DataUnavailable
from shop_analytics.analytics.models import (
    AnalyticsBundle,
    Facet,
    TimeRangeBucket,
    utcnow,
)
from shop_analytics.analytics.provider import DataProvider

logger = structlog.get_logger(__name__)


class AggregationEngine:
    """
    Cache-fronted assembler of analytics bundles.

    Example:
        engine = AggregationEngine(provider, AnalyticsCache())
        bundle = await engine.get_analytics_data(TimeRangeBucket.MONTH)
    """

    def __init__(
        self,
        provider: DataProvider,
        cache: BundleCache,
        single_flight: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.provider = provider
        self.cache = cache
        self.single_flight = single_flight
        self._clock = clock
        self._inflight: Dict[TimeRangeBucket, asyncio.Task] = {}
        self.computations = 0

    async def get_analytics_data(self, bucket: TimeRangeBucket = TimeRangeBucket.MONTH) -> AnalyticsBundle:
        """
        Get the analytics bundle for a bucket.

        Args:
            bucket: Time range bucket

        Returns:
            Cached or freshly computed bundle

        Raises:
            DataUnavailable: A facet fetch failed; the cache was not written
        """
        bucket = TimeRangeBucket.parse(bucket)

        cached = await self.cache.get(bucket)
        if cached is not None:
            return cached

        if not self.single_flight:
            return await self._compute(bucket)

        task = self._inflight.get(bucket)
        if task is None:
            task = asyncio.create_task(self._compute(bucket))
            self._inflight[bucket] = task
            task.add_done_callback(lambda t, b=bucket: self._clear_inflight(b, t))
        else:
            logger.debug("Joining in-flight analytics computation", time_range=bucket.value)

        # A cancelled caller must not cancel the computation other callers share
        return await asyncio.shield(task)

    async def refresh(self, bucket: TimeRangeBucket) -> AnalyticsBundle:
        """Drop the cached bundle for ``bucket`` and recompute it"""
        await self.cache.invalidate(bucket)
        return await self.get_analytics_data(bucket)

    def _clear_inflight(self, bucket: TimeRangeBucket, task: asyncio.Task) -> None:
        if self._inflight.get(bucket) is task:
            del self._inflight[bucket]
        # Mark the exception retrieved; joined callers already received it
        if not task.cancelled():
            task.exception()

    async def _compute(self, bucket: TimeRangeBucket) -> AnalyticsBundle:
        self.computations += 1
        start = time.perf_counter()
        logger.info("Computing analytics bundle", time_range=bucket.value)

        tasks = {
            facet: asyncio.create_task(self._fetch_facet(facet, bucket))
            for facet in Facet
        }
        try:
            await asyncio.gather(*tasks.values())
        except BaseException:
            for task in tasks.values():
                task.cancel()
            await asyncio.gather(*tasks.values(), return_exceptions=True)
            raise

        bundle = AnalyticsBundle(
            time_range=bucket,
            generated_at=self._clock(),
            **{facet.value: task.result() for facet, task in tasks.items()},
        )
        await self.cache.put(bucket, bundle)

        logger.info(
            "Analytics bundle computed",
            time_range=bucket.value,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return bundle

    async def _fetch_facet(self, facet: Facet, bucket: TimeRangeBucket):
        try:
            return await self.provider.fetch_facet(facet, bucket)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "Analytics facet fetch failed",
                time_range=bucket.value,
                facet=facet.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise DataUnavailable(bucket.value, facet.value, e) from e
