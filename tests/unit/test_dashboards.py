"""
Unit Tests - Dashboards
"""
import pytest

from shop_analytics.analytics.dashboards import DashboardStore, sample_dashboard_definition, seed_sample_dashboard
from shop_analytics.analytics.models import DashboardCreate, DashboardUpdate, Widget, WidgetKind


@pytest.fixture
def store(clock):
    return DashboardStore(clock=clock)


class TestDashboardStore:
    """Tests for dashboard create, read and update"""

    def test_create_assigns_id_and_timestamps(self, store, clock):
        dashboard = store.create(DashboardCreate(name="Front Desk", created_by="alice"))

        assert dashboard.id.startswith("dashboard-")
        assert dashboard.created_at == dashboard.updated_at == clock()
        assert dashboard.layout.columns == 4
        assert store.get(dashboard.id) is dashboard

    def test_create_accepts_camel_case_mapping(self, store):
        dashboard = store.create({
            "name": "Bays",
            "isPublic": True,
            "widgets": [{"type": "gauge", "title": "Bay load", "dataSource": "operations.bayUtilization"}],
        })

        assert dashboard.is_public is True
        assert dashboard.widgets[0].kind == WidgetKind.GAUGE
        assert dashboard.widgets[0].id.startswith("widget-")

    def test_get_unknown_returns_none(self, store):
        assert store.get("dashboard-missing") is None

    def test_list_in_creation_order(self, store):
        first = store.create(DashboardCreate(name="A"))
        second = store.create(DashboardCreate(name="B"))

        assert [d.id for d in store.list()] == [first.id, second.id]

    def test_update_changes_only_given_fields(self, store, clock):
        """Renaming leaves every other field untouched and bumps updated_at"""
        widget = Widget(kind=WidgetKind.METRIC, title="Revenue", data_source="revenue.total")
        original = store.create(DashboardCreate(name="Old", description="desc", widgets=[widget], is_public=True))
        clock.advance(minutes=1)

        updated = store.update(original.id, DashboardUpdate(name="New"))

        assert updated.name == "New"
        assert updated.updated_at == clock()
        assert updated.description == original.description
        assert updated.widgets == original.widgets
        assert updated.layout == original.layout
        assert updated.is_public is original.is_public
        assert updated.created_by == original.created_by
        assert updated.created_at == original.created_at
        assert store.get(original.id) is updated

    def test_update_with_stopped_clock_still_advances(self, store):
        """updated_at strictly increases even when the clock has not moved"""
        dashboard = store.create(DashboardCreate(name="A"))

        first = store.update(dashboard.id, {"description": "one"})
        second = store.update(dashboard.id, {"description": "two"})

        assert dashboard.updated_at < first.updated_at < second.updated_at

    def test_update_ignores_null_fields(self, store):
        dashboard = store.create(DashboardCreate(name="Keep", description="kept"))

        updated = store.update(dashboard.id, {"name": None, "description": "changed"})

        assert updated.name == "Keep"
        assert updated.description == "changed"

    def test_update_unknown_is_noop(self, store):
        assert store.update("dashboard-missing", DashboardUpdate(name="x")) is None
        assert len(store) == 0


class TestSampleDashboard:
    """Tests for the seeded Operations Overview dashboard"""

    def test_seeded_definition(self, store):
        dashboard = seed_sample_dashboard(store)

        assert dashboard.id == "dashboard-001"
        assert dashboard.name == "Operations Overview"
        assert dashboard.is_public is True
        assert dashboard.created_by == "system"
        assert [w.title for w in dashboard.widgets] == ["Today's Revenue", "Active Jobs", "Revenue Trend"]
        assert (dashboard.layout.columns, dashboard.layout.rows) == (4, 3)

    def test_seeding_twice_keeps_one(self, store):
        seed_sample_dashboard(store)
        seed_sample_dashboard(store)
        assert len(store) == 1

    def test_definition_serializes_camel_case(self):
        payload = sample_dashboard_definition().model_dump(by_alias=True)

        assert payload["isPublic"] is True
        assert payload["widgets"][0]["dataSource"] == "revenue.today"
        assert payload["widgets"][0]["type"] == WidgetKind.METRIC
