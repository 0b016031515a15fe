"""Abstract DataProvider interface consumed by the analytics core."""

import abc

from shop_analytics.analytics.models import (
    CustomerAnalytics,
    EquipmentSnapshot,
    Facet,
    InventoryAnalytics,
    InventorySnapshot,
    OperationsAnalytics,
    PerformanceAnalytics,
    RealtimeMetrics,
    RevenueAnalytics,
    TimeRangeBucket,
    TrendAnalytics,
)


class DataProvider(abc.ABC):
    """
    Source of business figures for the analytics engine.

    Each facet method is treated as a pure, possibly I/O-bound function of
    the bucket. Retries, if any, belong to the implementation.
    """

    @abc.abstractmethod
    async def get_revenue(self, bucket: TimeRangeBucket) -> RevenueAnalytics:
        """Revenue facet for the bucket window."""

    @abc.abstractmethod
    async def get_operations(self, bucket: TimeRangeBucket) -> OperationsAnalytics:
        """Job and utilization facet for the bucket window."""

    @abc.abstractmethod
    async def get_customers(self, bucket: TimeRangeBucket) -> CustomerAnalytics:
        """Customer facet for the bucket window."""

    @abc.abstractmethod
    async def get_inventory(self, bucket: TimeRangeBucket) -> InventoryAnalytics:
        """Inventory facet for the bucket window."""

    @abc.abstractmethod
    async def get_performance(self, bucket: TimeRangeBucket) -> PerformanceAnalytics:
        """Technician, bay and equipment performance for the bucket window."""

    @abc.abstractmethod
    async def get_trends(self, bucket: TimeRangeBucket) -> TrendAnalytics:
        """Per-period trends across the bucket window."""

    @abc.abstractmethod
    async def get_inventory_snapshot(self) -> InventorySnapshot:
        """Current stock levels."""

    @abc.abstractmethod
    async def get_equipment_snapshot(self) -> EquipmentSnapshot:
        """Current equipment health."""

    @abc.abstractmethod
    async def get_realtime_metrics(self) -> RealtimeMetrics:
        """Live shop-floor counters for the push feed."""

    async def fetch_facet(self, facet: Facet, bucket: TimeRangeBucket):
        """Dispatch to the facet method named by ``facet``"""
        return await getattr(self, f"get_{facet.value}")(bucket)
