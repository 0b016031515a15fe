"""
Shop Analytics Engine
Centralized Configuration Management

This module provides configuration management using Pydantic settings with
environment variable support, validation, and type safety.
"""

from datetime import timedelta
from functools import lru_cache
from typing import Optional, List
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Shop Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_", populate_by_name=True)

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="shop_analytics", description="Database name")
    user: str = Field(default="shop", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, alias="DATABASE_URL", description="Async database URL (overrides host/port)")
    create_tables: bool = Field(default=False, description="Create missing tables on startup")

    @property
    def async_url(self) -> str:
        """Async database URL - uses DATABASE_URL if set, otherwise asyncpg from host/port"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class RedisSettings(BaseSettings):
    """Redis Cache Configuration"""

    model_config = SettingsConfigDict(env_prefix="REDIS_", populate_by_name=True)

    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: Optional[SecretStr] = Field(default=None, description="Redis password")
    db: int = Field(default=0, description="Redis database number")
    max_connections: int = Field(default=100, description="Max connections")
    socket_timeout: int = Field(default=5, description="Socket timeout in seconds")
    url: Optional[str] = Field(default=None, alias="REDIS_URL", description="Redis URL (overrides host/port)")

    def get_url(self) -> str:
        """Redis connection URL - uses REDIS_URL if set, otherwise builds from host/port"""
        if self.url:
            return self.url
        if self.password:
            return f"redis://:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


class AnalyticsSettings(BaseSettings):
    """Analytics engine configuration (cache, broadcast feed, reports, alerts)"""

    model_config = SettingsConfigDict(env_prefix="ANALYTICS_")

    cache_ttl_ms: int = Field(default=5 * 60 * 1000, gt=0, description="Bundle cache TTL in milliseconds")
    broadcast_interval_ms: int = Field(default=5000, gt=0, description="Real-time feed period in milliseconds")
    cache_backend: str = Field(default="memory", description="Bundle cache backend: memory or redis")
    cache_max_entries: Optional[int] = Field(default=None, gt=0, description="LRU bound for the in-process cache")
    single_flight: bool = Field(default=True, description="Share one computation between concurrent misses")
    report_retention_limit: Optional[int] = Field(default=None, gt=0, description="Keep at most this many reports")
    export_dir: Optional[str] = Field(default=None, description="Directory for exported report artifacts")
    low_stock_threshold: int = Field(default=5, ge=1, description="Low-stock item count that raises an alert")
    pending_jobs_alert_threshold: Optional[int] = Field(default=None, ge=1, description="Pending job backlog that raises an info alert")
    alert_time_range: str = Field(default="day", description="Bucket whose bundle feeds alert evaluation")
    seed_sample_dashboard: bool = Field(default=True, description="Seed the Operations Overview dashboard")

    @field_validator("cache_backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate cache backend value"""
        allowed = ["memory", "redis"]
        if v.lower() not in allowed:
            raise ValueError(f"Cache backend must be one of: {allowed}")
        return v.lower()

    @field_validator("alert_time_range")
    @classmethod
    def validate_alert_range(cls, v: str) -> str:
        """Validate alert bucket value"""
        allowed = ["day", "week", "month", "quarter", "year"]
        if v.lower() not in allowed:
            raise ValueError(f"Alert time range must be one of: {allowed}")
        return v.lower()

    @property
    def cache_ttl(self) -> timedelta:
        """Cache TTL as a timedelta"""
        return timedelta(milliseconds=self.cache_ttl_ms)

    @property
    def broadcast_interval(self) -> float:
        """Broadcast period in seconds"""
        return self.broadcast_interval_ms / 1000


class SecuritySettings(BaseSettings):
    """HTTP boundary protection configuration"""

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    # Rate limiting
    rate_limit_requests: int = Field(default=100, alias="RATE_LIMIT_REQUESTS", description="Rate limit requests")
    rate_limit_window_seconds: int = Field(default=60, alias="RATE_LIMIT_WINDOW_SECONDS", description="Rate limit window")

    # CORS
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="shop-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")
    api_workers: int = Field(default=4, alias="API_WORKERS", description="API workers")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
