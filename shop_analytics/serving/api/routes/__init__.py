"""
API Routes Module
"""
from .health import router as health_router
from .analytics import router as analytics_router
from .reports import router as reports_router
from .dashboards import router as dashboards_router
from .realtime import router as realtime_router, ConnectionManager

__all__ = [
    "health_router",
    "analytics_router",
    "reports_router",
    "dashboards_router",
    "realtime_router",
    "ConnectionManager",
]
