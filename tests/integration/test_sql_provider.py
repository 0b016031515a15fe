"""
Integration Tests - SQL Data Provider

Runs the provider against a small hand-built shop on SQLite so every
aggregate can be checked by hand. "Now" is 2025-03-14 12:00 UTC.
"""
from datetime import datetime, timedelta

import pytest

from shop_analytics.analytics.engine import AggregationEngine
from shop_analytics.analytics.cache import AnalyticsCache
from shop_analytics.analytics.models import TimeRangeBucket, TrendDirection
from shop_analytics.analytics.service import AnalyticsService
from shop_analytics.config import AnalyticsSettings
from shop_analytics.data.loader import load_dataset
from shop_analytics.database.provider import SqlDataProvider

NOW = datetime(2025, 3, 14, 12, 0)


def shop_dataset():
    j1_created = NOW - timedelta(days=2)
    j2_created = NOW - timedelta(hours=10)
    return {
        "customers": [
            {"id": "c1", "name": "Dana Fleet", "segment": "gold", "created_at": NOW - timedelta(days=100)},
            {"id": "c2", "name": "Sam Driver", "segment": "bronze", "created_at": NOW - timedelta(days=3)},
        ],
        "technicians": [
            {"id": "t1", "name": "Ana", "is_active": True, "on_shift": True},
            {"id": "t2", "name": "Ben", "is_active": True, "on_shift": False},
        ],
        "service_bays": [
            {"id": "b1", "name": "Bay 1", "status": "available"},
            {"id": "b2", "name": "Bay 2", "status": "occupied"},
        ],
        "equipment": [
            {"id": "e1", "name": "Lift 1", "kind": "lift", "status": "operational",
             "usage_hours": 100.0, "maintenance_cost": 250.0, "efficiency": 92.0},
            {"id": "e2", "name": "Lift 2", "kind": "lift", "status": "maintenance",
             "usage_hours": 200.0, "maintenance_cost": 900.0, "efficiency": 71.5},
        ],
        "inventory_items": [
            {"id": "i1", "sku": "SKU-1", "name": "Brake Pads", "category": "part", "supplier": "AutoParts Direct",
             "supplier_rating": 4.0, "quantity": 2, "min_quantity": 5, "unit_price": 80.0, "unit_cost": 50.0,
             "last_restocked": NOW - timedelta(days=10), "is_active": True},
            {"id": "i2", "sku": "SKU-2", "name": "Oil Filter", "category": "part", "supplier": "AutoParts Direct",
             "supplier_rating": 5.0, "quantity": 0, "min_quantity": 3, "unit_price": 20.0, "unit_cost": 10.0,
             "last_restocked": NOW - timedelta(days=20), "is_active": True},
            {"id": "i3", "sku": "SKU-3", "name": "Coolant", "category": "consumable", "supplier": "Midwest Supply Co",
             "supplier_rating": 3.0, "quantity": 40, "min_quantity": 10, "unit_price": 9.0, "unit_cost": 5.0,
             "last_restocked": NOW - timedelta(days=45), "is_active": True},
        ],
        "service_jobs": [
            {"id": "j1", "customer_id": "c1", "technician_id": "t1", "bay_id": "b1", "service_type": "Brake Service",
             "status": "completed", "priority": "medium", "total_amount": 400.0, "parts_cost": 100.0,
             "created_at": j1_created, "started_at": j1_created + timedelta(hours=1),
             "completed_at": j1_created + timedelta(hours=3), "due_at": j1_created + timedelta(hours=6),
             "rating": 5, "is_rework": False, "warranty_claim": False, "complaint": False},
            {"id": "j2", "customer_id": "c2", "technician_id": "t1", "bay_id": "b2", "service_type": "Oil Change",
             "status": "completed", "priority": "low", "total_amount": 100.0, "parts_cost": 20.0,
             "created_at": j2_created, "started_at": j2_created + timedelta(hours=1),
             "completed_at": j2_created + timedelta(hours=2), "due_at": j2_created + timedelta(minutes=30),
             "rating": 4, "is_rework": False, "warranty_claim": False, "complaint": True},
            {"id": "j3", "customer_id": "c1", "technician_id": None, "bay_id": None, "service_type": "AC Service",
             "status": "pending", "priority": "high", "total_amount": 0.0, "parts_cost": 0.0,
             "created_at": NOW - timedelta(hours=1), "started_at": None, "completed_at": None, "due_at": None,
             "rating": None, "is_rework": False, "warranty_claim": False, "complaint": False},
            {"id": "j4", "customer_id": "c1", "technician_id": "t2", "bay_id": "b1", "service_type": "Brake Service",
             "status": "completed", "priority": "medium", "total_amount": 300.0, "parts_cost": 50.0,
             "created_at": NOW - timedelta(days=200), "started_at": NOW - timedelta(days=200),
             "completed_at": NOW - timedelta(days=200) + timedelta(hours=2), "due_at": None,
             "rating": None, "is_rework": False, "warranty_claim": False, "complaint": False},
            {"id": "j5", "customer_id": "c2", "technician_id": "t2", "bay_id": "b1", "service_type": "Wheel Alignment",
             "status": "in-progress", "priority": "medium", "total_amount": 0.0, "parts_cost": 0.0,
             "created_at": NOW - timedelta(hours=2), "started_at": NOW - timedelta(hours=1), "completed_at": None,
             "due_at": None, "rating": None, "is_rework": False, "warranty_claim": False, "complaint": False},
        ],
        "job_parts": [
            {"job_id": "j1", "item_id": "i1", "quantity": 2, "unit_price": 80.0},
            {"job_id": "j2", "item_id": "i2", "quantity": 1, "unit_price": 20.0},
        ],
    }


@pytest.fixture
async def sql_provider(session_factory, clock):
    await load_dataset(shop_dataset(), session_factory=session_factory)
    return SqlDataProvider(session_factory=session_factory, clock=clock)


class TestRevenueAndOperations:
    """Revenue and operations facets over the week window"""

    async def test_revenue(self, sql_provider):
        revenue = await sql_provider.get_revenue(TimeRangeBucket.WEEK)

        assert revenue.total_revenue == 500.0
        assert revenue.average_ticket_value == 250.0
        assert revenue.profit_margin == 0.76
        assert [(s.service, s.revenue, s.percentage) for s in revenue.revenue_by_service] == [
            ("Brake Service", 400.0, 80.0),
            ("Oil Change", 100.0, 20.0),
        ]
        assert [(t.technician, t.revenue, t.jobs) for t in revenue.revenue_by_technician] == [("Ana", 500.0, 2)]
        assert [(d.date, d.revenue) for d in revenue.top_revenue_days] == [
            ("2025-03-12", 400.0),
            ("2025-03-14", 100.0),
        ]
        assert len(revenue.revenue_by_period) == 7
        assert sum(p.revenue for p in revenue.revenue_by_period) == 500.0

    async def test_day_window_is_trailing_24_hours(self, sql_provider):
        revenue = await sql_provider.get_revenue(TimeRangeBucket.DAY)

        assert revenue.total_revenue == 100.0
        assert len(revenue.revenue_by_period) == 24

    async def test_operations(self, sql_provider):
        operations = await sql_provider.get_operations(TimeRangeBucket.WEEK)

        assert operations.total_jobs == 4
        assert operations.completed_jobs == 2
        assert operations.pending_jobs == 2
        assert operations.average_job_duration == 1.5
        assert operations.efficiency_metrics.on_time_completion == 50.0
        assert operations.efficiency_metrics.customer_satisfaction == 4.5
        assert {b.key: b.count for b in operations.jobs_by_status} == {
            "completed": 2, "pending": 1, "in-progress": 1,
        }
        assert [(b.bay, b.jobs) for b in operations.bay_utilization] == [("Bay 1", 1), ("Bay 2", 1)]
        assert {e.equipment: e.utilization for e in operations.equipment_utilization} == {
            "Lift 1": 50.0, "Lift 2": 100.0,
        }


class TestCustomersAndInventory:
    """Customer and inventory facets"""

    async def test_customers(self, sql_provider):
        customers = await sql_provider.get_customers(TimeRangeBucket.WEEK)

        assert customers.total_customers == 2
        assert customers.active_customers == 2
        assert customers.new_customers == 1
        assert customers.customer_retention == 50.0
        assert customers.average_customer_value == 250.0
        assert customers.customer_lifetime_value == 400.0
        assert [(c.customer, c.value, c.visits) for c in customers.top_customers] == [
            ("Dana Fleet", 400.0, 1),
            ("Sam Driver", 100.0, 1),
        ]
        assert customers.customer_satisfaction.average_rating == 4.5
        assert customers.customer_satisfaction.total_reviews == 2

    async def test_inventory(self, sql_provider):
        inventory = await sql_provider.get_inventory(TimeRangeBucket.WEEK)

        assert inventory.total_items == 3
        assert inventory.total_value == 300.0
        assert inventory.low_stock_items == 2
        assert inventory.out_of_stock_items == 1
        assert inventory.turnover_rate == 0.37
        assert [(i.item, i.quantity, i.revenue) for i in inventory.top_selling_items] == [
            ("Brake Pads", 2, 160.0),
            ("Oil Filter", 1, 20.0),
        ]
        assert [(s.item, s.days_in_stock) for s in inventory.slow_moving_items] == [("Coolant", 45)]
        assert {s.supplier: s.items for s in inventory.supplier_performance} == {
            "AutoParts Direct": 2, "Midwest Supply Co": 1,
        }


class TestPerformanceAndTrends:
    """Performance and trend facets"""

    async def test_performance(self, sql_provider):
        performance = await sql_provider.get_performance(TimeRangeBucket.WEEK)

        [ana] = performance.technician_performance
        assert (ana.technician, ana.jobs_completed, ana.average_rating, ana.efficiency, ana.revenue) == (
            "Ana", 2, 4.5, 50.0, 500.0,
        )
        assert performance.quality_metrics.customer_complaints == 50.0
        assert performance.quality_metrics.first_time_fix_rate == 100.0
        assert [e.equipment for e in performance.equipment_performance] == ["Lift 1", "Lift 2"]

    async def test_trends(self, sql_provider):
        trends = await sql_provider.get_trends(TimeRangeBucket.WEEK)

        assert sum(p.value for p in trends.revenue_trend) == 500.0
        assert sum(p.value for p in trends.job_trend) == 4
        assert len(trends.seasonal_patterns) == 12
        peaks = {p.month for p in trends.seasonal_patterns if p.peak}
        assert peaks == {"Mar"}
        assert {t.service: t.trend for t in trends.service_trends} == {
            "Brake Service": TrendDirection.INCREASING,
            "Oil Change": TrendDirection.INCREASING,
        }


class TestLiveState:
    """Snapshots used by alerts and the real-time feed"""

    async def test_inventory_snapshot(self, sql_provider):
        snapshot = await sql_provider.get_inventory_snapshot()

        assert snapshot.low_stock_count == 2
        assert snapshot.out_of_stock_count == 1
        assert snapshot.low_stock_items == ["Oil Filter", "Brake Pads"]

    async def test_equipment_snapshot(self, sql_provider):
        snapshot = await sql_provider.get_equipment_snapshot()
        assert [(u.name, u.status) for u in snapshot.units] == [("Lift 1", "operational"), ("Lift 2", "maintenance")]

    async def test_realtime_metrics(self, sql_provider, clock):
        metrics = await sql_provider.get_realtime_metrics()

        assert metrics.current_jobs == 1
        assert metrics.available_bays == 1
        assert metrics.today_revenue == 100.0
        assert metrics.today_jobs == 3
        assert metrics.active_technicians == 1
        assert metrics.queue_length == 1
        assert metrics.timestamp == clock()


class TestEndToEnd:
    """Engine, cache and alerts on top of the SQL provider"""

    async def test_bundle_is_computed_and_cached(self, sql_provider, clock):
        engine = AggregationEngine(sql_provider, AnalyticsCache(clock=clock), clock=clock)

        bundle = await engine.get_analytics_data(TimeRangeBucket.MONTH)

        assert bundle.revenue.total_revenue == 500.0
        assert bundle.customers.total_customers == 2
        assert await engine.get_analytics_data(TimeRangeBucket.MONTH) is bundle

    async def test_alerts_flag_equipment_only(self, sql_provider, clock):
        service = AnalyticsService.from_settings(AnalyticsSettings(), provider=sql_provider, clock=clock)

        alerts = await service.current_alerts()

        assert [a.message for a in alerts] == ["Lift 2 requires maintenance"]
