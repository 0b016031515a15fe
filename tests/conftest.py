"""
Test Suite Configuration
"""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Set

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from shop_analytics.analytics.models import (
    AnalyticsBundle,
    CustomerAnalytics,
    EquipmentSnapshot,
    EquipmentState,
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
from shop_analytics.analytics.provider import DataProvider
from shop_analytics.config import AnalyticsSettings, Settings
from shop_analytics.database.models import Base


START = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock"""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeProvider(DataProvider):
    """
    In-memory DataProvider.

    Counts facet calls, fails the facets named in ``fail_on`` and, when
    ``gate`` is set, blocks every facet fetch until the event fires.
    """

    def __init__(self):
        self.calls: Dict[str, int] = {facet.value: 0 for facet in Facet}
        self.fail_on: Set[str] = set()
        self.gate: Optional[asyncio.Event] = None
        self.revenue_total = 1000.0
        self.pending_jobs = 3
        self.inventory: Optional[InventorySnapshot] = InventorySnapshot()
        self.equipment: Optional[EquipmentSnapshot] = EquipmentSnapshot()
        self.realtime_calls = 0
        self.realtime_error: Optional[Exception] = None

    async def _enter(self, facet: Facet) -> None:
        self.calls[facet.value] += 1
        if self.gate is not None:
            await self.gate.wait()
        if facet.value in self.fail_on:
            raise ConnectionError(f"{facet.value} backend down")

    async def get_revenue(self, bucket):
        await self._enter(Facet.REVENUE)
        return RevenueAnalytics(total_revenue=self.revenue_total)

    async def get_operations(self, bucket):
        await self._enter(Facet.OPERATIONS)
        return OperationsAnalytics(total_jobs=10, completed_jobs=7, pending_jobs=self.pending_jobs)

    async def get_customers(self, bucket):
        await self._enter(Facet.CUSTOMERS)
        return CustomerAnalytics(total_customers=42)

    async def get_inventory(self, bucket):
        await self._enter(Facet.INVENTORY)
        return InventoryAnalytics(total_items=12, low_stock_items=2)

    async def get_performance(self, bucket):
        await self._enter(Facet.PERFORMANCE)
        return PerformanceAnalytics()

    async def get_trends(self, bucket):
        await self._enter(Facet.TRENDS)
        return TrendAnalytics()

    async def get_inventory_snapshot(self):
        return self.inventory

    async def get_equipment_snapshot(self):
        return self.equipment

    async def get_realtime_metrics(self):
        self.realtime_calls += 1
        if self.realtime_error is not None:
            raise self.realtime_error
        return RealtimeMetrics(current_jobs=4, available_bays=2, today_revenue=880.5, timestamp=START)


def make_bundle(
    bucket: TimeRangeBucket = TimeRangeBucket.MONTH,
    generated_at: datetime = START,
    total_revenue: float = 1000.0,
    pending_jobs: int = 0,
) -> AnalyticsBundle:
    return AnalyticsBundle(
        time_range=bucket,
        revenue=RevenueAnalytics(total_revenue=total_revenue),
        operations=OperationsAnalytics(pending_jobs=pending_jobs),
        customers=CustomerAnalytics(),
        inventory=InventoryAnalytics(),
        performance=PerformanceAnalytics(),
        trends=TrendAnalytics(),
        generated_at=generated_at,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def sample_bundle() -> AnalyticsBundle:
    return make_bundle()


@pytest.fixture
def equipment_in_maintenance() -> EquipmentSnapshot:
    return EquipmentSnapshot(
        units=[
            EquipmentState(name="Lift 1", status="operational"),
            EquipmentState(name="Lift 2", status="maintenance"),
        ]
    )


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
        analytics=AnalyticsSettings(
            broadcast_interval_ms=3_600_000,
            export_dir=str(tmp_path / "exports"),
        ),
    )


@pytest.fixture
async def test_engine(tmp_path):
    """File-backed SQLite engine; each session gets its own connection"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    """Create test session factory"""
    return async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def bundle_factory():
    """Build bundles with chosen bucket, timestamp and totals"""
    return make_bundle
