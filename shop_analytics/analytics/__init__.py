"""
Analytics Module

Bundle aggregation and caching, reports, dashboards, alerts and the
real-time feed.
"""
from .alerts import AlertEvaluator
from .cache import AnalyticsCache, BundleCache
from .dashboards import DashboardStore
from .engine import AggregationEngine
from .exceptions import AnalyticsError, DataUnavailable, ExportFailure, NotFound, ValidationError
from .models import AnalyticsBundle, Report, TimeRangeBucket
from .provider import DataProvider
from .realtime import Publisher, RealtimeBroadcaster
from .reports import ReportStore
from .service import AnalyticsService

__all__ = [
    "AlertEvaluator",
    "AnalyticsCache",
    "BundleCache",
    "DashboardStore",
    "AggregationEngine",
    "AnalyticsError",
    "DataUnavailable",
    "ExportFailure",
    "NotFound",
    "ValidationError",
    "AnalyticsBundle",
    "Report",
    "TimeRangeBucket",
    "DataProvider",
    "Publisher",
    "RealtimeBroadcaster",
    "ReportStore",
    "AnalyticsService",
]
