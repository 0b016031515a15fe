"""
FastAPI Dependencies
"""

from fastapi import Request

from shop_analytics.analytics.service import AnalyticsService


def get_analytics_service(request: Request) -> AnalyticsService:
    """Analytics service built by the application lifespan"""
    service = getattr(request.app.state, "analytics", None)
    if service is None:
        raise RuntimeError("Analytics service not initialized")
    return service
