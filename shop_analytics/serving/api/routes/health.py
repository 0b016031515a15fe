"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel

from shop_analytics.analytics.models import utcnow
from shop_analytics.database.connection import check_database_health
from shop_analytics.serving.cache import get_redis

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


async def _database_check(request: Request) -> Dict[str, Any]:
    if not getattr(request.app.state, "database_enabled", False):
        return {"status": "skipped"}
    return await check_database_health()


async def _redis_check(request: Request) -> Dict[str, Any]:
    if not getattr(request.app.state, "redis_enabled", False):
        return {"status": "skipped"}
    try:
        await get_redis().ping()
        return {"status": "healthy"}
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Comprehensive health check endpoint.

    Checks:
    - Database connectivity (when the SQL provider is in use)
    - Redis connectivity (when the Redis cache backend is selected)
    - Analytics cache and broadcaster state
    """
    settings = request.app.state.settings
    service = getattr(request.app.state, "analytics", None)

    checks: Dict[str, Any] = {
        "database": await _database_check(request),
        "redis": await _redis_check(request),
    }
    if service is not None:
        checks["cache"] = await service.cache.stats()
        checks["broadcaster"] = {
            "running": service.broadcaster is not None and service.broadcaster.running,
            "ticks": service.broadcaster.ticks if service.broadcaster else 0,
            "failures": service.broadcaster.failures if service.broadcaster else 0,
        }

    statuses = [check.get("status") for check in (checks["database"], checks["redis"])]
    overall_status = "degraded" if "unhealthy" in statuses else "healthy"

    return HealthResponse(
        status=overall_status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=utcnow(),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes liveness probe endpoint.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(request: Request, response: Response) -> Dict[str, str]:
    """
    Kubernetes readiness probe endpoint.

    Returns 200 once the analytics service is built and the database answers.
    """
    if getattr(request.app.state, "analytics", None) is None:
        response.status_code = 503
        return {"status": "not_ready", "reason": "analytics_not_initialized"}

    db_health = await _database_check(request)
    if db_health.get("status") == "unhealthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "database_unavailable"}

    return {"status": "ready"}
