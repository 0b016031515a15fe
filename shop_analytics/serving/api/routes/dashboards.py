"""
Dashboard Endpoints
"""

from typing import List

from fastapi import APIRouter, Depends, status

from shop_analytics.analytics.exceptions import NotFound
from shop_analytics.analytics.models import Dashboard, DashboardCreate, DashboardUpdate
from shop_analytics.analytics.service import AnalyticsService
from shop_analytics.serving.api.dependencies import get_analytics_service

router = APIRouter()


@router.get("", response_model=List[Dashboard])
async def list_dashboards(service: AnalyticsService = Depends(get_analytics_service)) -> List[Dashboard]:
    return service.dashboards.list()


@router.get("/{dashboard_id}", response_model=Dashboard)
async def get_dashboard(dashboard_id: str, service: AnalyticsService = Depends(get_analytics_service)) -> Dashboard:
    dashboard = service.dashboards.get(dashboard_id)
    if dashboard is None:
        raise NotFound("dashboard", dashboard_id)
    return dashboard


@router.post("", response_model=Dashboard, status_code=status.HTTP_201_CREATED)
async def create_dashboard(
    definition: DashboardCreate,
    service: AnalyticsService = Depends(get_analytics_service),
) -> Dashboard:
    return service.dashboards.create(definition)


@router.patch("/{dashboard_id}", response_model=Dashboard)
async def update_dashboard(
    dashboard_id: str,
    changes: DashboardUpdate,
    service: AnalyticsService = Depends(get_analytics_service),
) -> Dashboard:
    """Apply the provided fields; everything else is left as it was"""
    dashboard = service.dashboards.update(dashboard_id, changes)
    if dashboard is None:
        raise NotFound("dashboard", dashboard_id)
    return dashboard
