"""
Serving Module
"""
from .cache import init_redis, close_redis, get_redis, RedisAnalyticsCache

__all__ = [
    "init_redis",
    "close_redis",
    "get_redis",
    "RedisAnalyticsCache",
]
