"""
Dashboard Store

Create / read / partially update dashboard definitions. Records are frozen
models replaced wholesale on update, so fields a patch does not mention stay
the very same objects.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Union
import uuid

import structlog

from shop_analytics.analytics.models import (
    Dashboard,
    DashboardCreate,
    DashboardLayout,
    DashboardUpdate,
    Widget,
    WidgetKind,
    WidgetPosition,
    utcnow,
)

logger = structlog.get_logger(__name__)

_TICK = timedelta(microseconds=1)


class DashboardStore:
    """In-memory dashboard registry keyed by id, in creation order"""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._dashboards: Dict[str, Dashboard] = {}

    def get(self, dashboard_id: str) -> Optional[Dashboard]:
        return self._dashboards.get(dashboard_id)

    def list(self) -> List[Dashboard]:
        return list(self._dashboards.values())

    def __len__(self) -> int:
        return len(self._dashboards)

    def create(
        self,
        definition: Union[DashboardCreate, Mapping[str, Any]],
        dashboard_id: Optional[str] = None,
    ) -> Dashboard:
        """
        Store a new dashboard.

        Args:
            definition: Dashboard fields without id and timestamps
            dashboard_id: Fixed id (seeding); generated when omitted

        Returns:
            The stored dashboard with created_at == updated_at
        """
        if not isinstance(definition, DashboardCreate):
            definition = DashboardCreate.model_validate(definition)

        now = self._clock()
        dashboard = Dashboard(
            id=dashboard_id or f"dashboard-{uuid.uuid4().hex}",
            name=definition.name,
            description=definition.description,
            widgets=list(definition.widgets),
            layout=definition.layout,
            is_public=definition.is_public,
            created_by=definition.created_by,
            created_at=now,
            updated_at=now,
        )
        self._dashboards[dashboard.id] = dashboard

        logger.info("Dashboard created", dashboard_id=dashboard.id, name=dashboard.name)
        return dashboard

    def update(
        self,
        dashboard_id: str,
        changes: Union[DashboardUpdate, Mapping[str, Any]],
    ) -> Optional[Dashboard]:
        """
        Merge provided fields into a dashboard and bump updated_at.

        Unknown ids are a silent no-op returning None; callers check
        existence with get() first.
        """
        current = self._dashboards.get(dashboard_id)
        if current is None:
            logger.debug("Dashboard update skipped, id not found", dashboard_id=dashboard_id)
            return None

        if not isinstance(changes, DashboardUpdate):
            changes = DashboardUpdate.model_validate(changes)
        fields = changes.changes()

        # updated_at strictly increases even if the clock has not moved
        now = self._clock()
        if now <= current.updated_at:
            now = current.updated_at + _TICK
        fields["updated_at"] = now

        updated = current.model_copy(update=fields)
        self._dashboards[dashboard_id] = updated

        logger.info(
            "Dashboard updated",
            dashboard_id=dashboard_id,
            fields=sorted(k for k in fields if k != "updated_at"),
        )
        return updated


def sample_dashboard_definition() -> DashboardCreate:
    """The Operations Overview dashboard seeded on startup"""
    return DashboardCreate(
        name="Operations Overview",
        description="Real-time overview of shop operations and key metrics",
        widgets=[
            Widget(
                id="widget-001",
                kind=WidgetKind.METRIC,
                title="Today's Revenue",
                data_source="revenue.today",
                configuration={"format": "currency", "color": "green"},
                position=WidgetPosition(x=0, y=0, width=2, height=1),
            ),
            Widget(
                id="widget-002",
                kind=WidgetKind.METRIC,
                title="Active Jobs",
                data_source="operations.activeJobs",
                configuration={"format": "number", "color": "blue"},
                position=WidgetPosition(x=2, y=0, width=2, height=1),
            ),
            Widget(
                id="widget-003",
                kind=WidgetKind.CHART,
                title="Revenue Trend",
                data_source="revenue.monthly",
                configuration={"chartType": "line", "timeRange": "30d"},
                position=WidgetPosition(x=0, y=1, width=4, height=2),
            ),
        ],
        layout=DashboardLayout(columns=4, rows=3),
        is_public=True,
        created_by="system",
    )


def seed_sample_dashboard(store: DashboardStore) -> Dashboard:
    """Create the sample dashboard unless it is already present"""
    existing = store.get("dashboard-001")
    if existing is not None:
        return existing
    return store.create(sample_dashboard_definition(), dashboard_id="dashboard-001")
