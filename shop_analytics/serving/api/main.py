"""
FastAPI Application Factory

Creates and configures the analytics API application. The lifespan owns
every long-lived resource: database engine, Redis pool, the
AnalyticsService (stored on ``app.state.analytics``) and its broadcaster.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import structlog

from shop_analytics.analytics.cache import BundleCache
from shop_analytics.analytics.provider import DataProvider
from shop_analytics.analytics.service import AnalyticsService
from shop_analytics.config.logging import configure_logging
from shop_analytics.config.settings import Settings, get_settings
from shop_analytics.database.connection import close_database, init_database
from shop_analytics.database.provider import SqlDataProvider
from shop_analytics.serving.api.errors import register_exception_handlers
from shop_analytics.serving.api.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from shop_analytics.serving.api.routes import (
    ConnectionManager,
    analytics_router,
    dashboards_router,
    health_router,
    realtime_router,
    reports_router,
)
from shop_analytics.serving.cache import RedisAnalyticsCache, close_redis, init_redis

logger = structlog.get_logger(__name__)


def create_api_app(
    settings: Optional[Settings] = None,
    provider: Optional[DataProvider] = None,
    cache: Optional[BundleCache] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Application settings (defaults to get_settings())
        provider: Business data source; the SQL provider over the
            configured database is used when omitted
        cache: Bundle cache; built from ``settings.analytics`` when omitted

    Returns:
        Configured FastAPI app instance
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings=settings)
        logger.info("Starting shop analytics API", environment=settings.app_env, version=settings.version)

        data_provider = provider
        if data_provider is None:
            await init_database(settings.database)
            app.state.database_enabled = True
            data_provider = SqlDataProvider()

        bundle_cache = cache
        if bundle_cache is None and settings.analytics.cache_backend == "redis":
            client = await init_redis(settings.redis)
            app.state.redis_enabled = True
            bundle_cache = RedisAnalyticsCache(client, ttl=settings.analytics.cache_ttl)

        service = AnalyticsService.from_settings(
            settings.analytics,
            provider=data_provider,
            publisher=app.state.connections,
            cache=bundle_cache,
        )
        app.state.analytics = service
        await service.start()

        try:
            yield
        finally:
            logger.info("Shutting down shop analytics API")
            await service.close()
            app.state.analytics = None
            if app.state.redis_enabled:
                await close_redis()
            if app.state.database_enabled:
                await close_database()

    app = FastAPI(
        title="Shop Analytics API",
        description="Cached business analytics, reports, dashboards and alerts for a repair shop",
        version=settings.version,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.connections = ConnectionManager()
    app.state.analytics = None
    app.state.database_enabled = False
    app.state.redis_enabled = False

    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.security.rate_limit_requests,
        window_seconds=settings.security.rate_limit_window_seconds,
    )

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(analytics_router, prefix="/api/analytics", tags=["Analytics"])
    app.include_router(reports_router, prefix="/api/analytics/reports", tags=["Reports"])
    app.include_router(dashboards_router, prefix="/api/analytics/dashboards", tags=["Dashboards"])
    app.include_router(realtime_router, tags=["Realtime"])

    @app.get("/api/v1/info", tags=["Health"])
    async def api_info():
        """API information endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "environment": settings.app_env,
            "cacheBackend": settings.analytics.cache_backend,
            "documentation": "/docs",
        }

    return app
