"""
Analytics API Endpoints

Cached analytics bundles, alerts, the real-time snapshot and cache control.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
import structlog

from shop_analytics.analytics.models import Alert, AnalyticsBundle, RealtimeMetrics, TimeRangeBucket
from shop_analytics.analytics.service import AnalyticsService
from shop_analytics.serving.api.dependencies import get_analytics_service

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.get("/data", response_model=AnalyticsBundle)
async def get_analytics_data(
    time_range: str = Query(default="month", alias="range", description="day, week, month, quarter or year"),
    service: AnalyticsService = Depends(get_analytics_service),
) -> AnalyticsBundle:
    """
    Analytics bundle for a time range.

    Served from cache while fresh; otherwise all six facets are recomputed
    together. An unknown range is a 400, a failed facet a 503.
    """
    # Parsed here rather than as an enum query param so bad input is a 400
    bucket = TimeRangeBucket.parse(time_range)
    return await service.engine.get_analytics_data(bucket)


@router.get("/alerts", response_model=List[Alert])
async def get_alerts(service: AnalyticsService = Depends(get_analytics_service)) -> List[Alert]:
    """Current operational alerts (computed on demand, never stored)"""
    return await service.current_alerts()


@router.get("/realtime", response_model=RealtimeMetrics)
async def get_realtime_metrics(service: AnalyticsService = Depends(get_analytics_service)) -> RealtimeMetrics:
    """The snapshot the WebSocket feed pushes, on demand"""
    return await service.realtime_metrics()


@router.get("/cache")
async def get_cache_stats(service: AnalyticsService = Depends(get_analytics_service)) -> Dict[str, Any]:
    """Cache backend, entry count and hit/miss counters"""
    return await service.cache.stats()


@router.delete("/cache")
async def invalidate_cache(
    time_range: Optional[str] = Query(default=None, alias="range"),
    service: AnalyticsService = Depends(get_analytics_service),
) -> Dict[str, int]:
    """Drop one cached bucket, or all of them when no range is given"""
    bucket = TimeRangeBucket.parse(time_range) if time_range is not None else None
    count = await service.cache.invalidate(bucket)
    return {"invalidated": count}
