"""
Analytics Service

Composition root for the analytics core. One instance is built at process
start (FastAPI lifespan), handed to request handlers through a dependency,
and closed at shutdown.
"""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

import structlog

from shop_analytics.analytics.alerts import AlertEvaluator
from shop_analytics.analytics.cache import AnalyticsCache, BundleCache
from shop_analytics.analytics.dashboards import DashboardStore, seed_sample_dashboard
from shop_analytics.analytics.engine import AggregationEngine
from shop_analytics.analytics.exporters import FileReportExporter, ReportExporter
from shop_analytics.analytics.models import Alert, RealtimeMetrics, TimeRangeBucket, utcnow
from shop_analytics.analytics.provider import DataProvider
from shop_analytics.analytics.realtime import Publisher, RealtimeBroadcaster
from shop_analytics.analytics.reports import ReportStore
from shop_analytics.config.settings import AnalyticsSettings

logger = structlog.get_logger(__name__)


class AnalyticsService:
    """Owns the cache, engine, stores, evaluator and broadcaster"""

    def __init__(
        self,
        provider: DataProvider,
        cache: BundleCache,
        engine: AggregationEngine,
        reports: ReportStore,
        dashboards: DashboardStore,
        alerts: AlertEvaluator,
        broadcaster: Optional[RealtimeBroadcaster] = None,
        alert_time_range: TimeRangeBucket = TimeRangeBucket.DAY,
    ):
        self.provider = provider
        self.cache = cache
        self.engine = engine
        self.reports = reports
        self.dashboards = dashboards
        self.alerts = alerts
        self.broadcaster = broadcaster
        self.alert_time_range = alert_time_range

    @classmethod
    def from_settings(
        cls,
        settings: AnalyticsSettings,
        provider: DataProvider,
        publisher: Optional[Publisher] = None,
        cache: Optional[BundleCache] = None,
        exporter: Optional[ReportExporter] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> "AnalyticsService":
        """
        Wire every component from analytics settings.

        Args:
            settings: Analytics configuration section
            provider: Business data source
            publisher: Push transport; no broadcaster is built without one
            cache: Bundle cache; an in-process cache is built when omitted
            exporter: Report exporter; a file exporter is built when
                ``export_dir`` is configured
            clock: Time source shared by every component
        """
        if cache is None:
            cache = AnalyticsCache(
                ttl=settings.cache_ttl,
                clock=clock,
                max_entries=settings.cache_max_entries,
            )
        if exporter is None and settings.export_dir:
            exporter = FileReportExporter(Path(settings.export_dir))

        engine = AggregationEngine(provider, cache, single_flight=settings.single_flight, clock=clock)
        dashboards = DashboardStore(clock=clock)
        if settings.seed_sample_dashboard:
            seed_sample_dashboard(dashboards)

        broadcaster = None
        if publisher is not None:
            broadcaster = RealtimeBroadcaster(provider, publisher, interval=settings.broadcast_interval)

        return cls(
            provider=provider,
            cache=cache,
            engine=engine,
            reports=ReportStore(engine, exporter=exporter, retention_limit=settings.report_retention_limit, clock=clock),
            dashboards=dashboards,
            alerts=AlertEvaluator(
                low_stock_threshold=settings.low_stock_threshold,
                pending_jobs_threshold=settings.pending_jobs_alert_threshold,
                clock=clock,
            ),
            broadcaster=broadcaster,
            alert_time_range=TimeRangeBucket.parse(settings.alert_time_range),
        )

    async def current_alerts(self) -> List[Alert]:
        """Evaluate alerts against the latest bundle and live shop state"""
        bundle = await self.engine.get_analytics_data(self.alert_time_range)
        inventory, equipment = await asyncio.gather(
            self.provider.get_inventory_snapshot(),
            self.provider.get_equipment_snapshot(),
        )
        return self.alerts.evaluate(bundle, inventory, equipment)

    async def realtime_metrics(self) -> RealtimeMetrics:
        return await self.provider.get_realtime_metrics()

    async def start(self) -> None:
        if self.broadcaster is not None:
            await self.broadcaster.start()
        logger.info(
            "Analytics service started",
            cache_backend=self.cache.backend_name,
            cache_ttl_seconds=self.cache.ttl.total_seconds(),
            dashboards=len(self.dashboards),
        )

    async def close(self) -> None:
        if self.broadcaster is not None:
            await self.broadcaster.stop()
        logger.info("Analytics service stopped", reports=len(self.reports))
