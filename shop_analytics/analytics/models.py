"""
Analytics Data Models

Pydantic models for the analytics bundle and its six facets, reports,
dashboards, alerts and the real-time feed. JSON field names are camelCase
aliases; snake_case is accepted on input as well.

Bundles, facets and reports are frozen: once a bundle is assembled it is
shared by the cache, every report built from it and every response.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import uuid

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shop_analytics.analytics.exceptions import ValidationError


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMERATIONS
# =============================================================================

class TimeRangeBucket(str, Enum):
    """Coarse time range used as the aggregation and cache key"""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"

    @classmethod
    def parse(cls, value: Any) -> "TimeRangeBucket":
        """Parse a bucket name, raising ValidationError for anything else"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError("range", value, [b.value for b in cls]) from None

    @property
    def span(self) -> timedelta:
        """Length of the trailing window"""
        return timedelta(days=_WINDOW_DAYS[self])

    @property
    def trend_periods(self) -> int:
        """Number of equal periods the window is split into for trends"""
        return _TREND_PERIODS[self]

    def window(self, now: datetime) -> Tuple[datetime, datetime]:
        """Trailing (start, end) window ending at ``now``"""
        return now - self.span, now

    def periods(self, now: datetime) -> List[Tuple[datetime, datetime]]:
        """Consecutive periods covering the window exactly, oldest first"""
        start, _ = self.window(now)
        n = self.trend_periods
        return [(start + self.span * i / n, start + self.span * (i + 1) / n) for i in range(n)]


_WINDOW_DAYS = {
    TimeRangeBucket.DAY: 1,
    TimeRangeBucket.WEEK: 7,
    TimeRangeBucket.MONTH: 30,
    TimeRangeBucket.QUARTER: 90,
    TimeRangeBucket.YEAR: 365,
}

_TREND_PERIODS = {
    TimeRangeBucket.DAY: 24,
    TimeRangeBucket.WEEK: 7,
    TimeRangeBucket.MONTH: 30,
    TimeRangeBucket.QUARTER: 13,
    TimeRangeBucket.YEAR: 12,
}


class Facet(str, Enum):
    """The six analytics categories of a bundle"""
    REVENUE = "revenue"
    OPERATIONS = "operations"
    CUSTOMERS = "customers"
    INVENTORY = "inventory"
    PERFORMANCE = "performance"
    TRENDS = "trends"


class ReportType(str, Enum):
    """Report cadence"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"
    CUSTOM = "custom"


class ExportFormat(str, Enum):
    """Export intents: structured data, tabular, document"""
    JSON = "json"
    CSV = "csv"
    PDF = "pdf"

    @classmethod
    def parse(cls, value: Any) -> "ExportFormat":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError("format", value, [f.value for f in cls]) from None


class WidgetKind(str, Enum):
    """Dashboard widget kinds"""
    CHART = "chart"
    METRIC = "metric"
    TABLE = "table"
    GAUGE = "gauge"
    LIST = "list"


class AlertKind(str, Enum):
    WARNING = "warning"
    ERROR = "error"
    INFO = "info"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class EquipmentStatus(str, Enum):
    OPERATIONAL = "operational"
    MAINTENANCE = "maintenance"
    OFFLINE = "offline"


# =============================================================================
# BASE MODELS
# =============================================================================

class AnalyticsModel(BaseModel):
    """camelCase on the wire, snake_case in Python"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenModel(AnalyticsModel):
    """Immutable analytics value"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# =============================================================================
# FACET ROWS
# =============================================================================

class PeriodRevenue(FrozenModel):
    period: str
    revenue: float
    growth: float


class ServiceRevenue(FrozenModel):
    service: str
    revenue: float
    percentage: float


class TechnicianRevenue(FrozenModel):
    technician: str
    revenue: float
    jobs: int


class DailyRevenue(FrozenModel):
    date: str
    revenue: float


class Breakdown(FrozenModel):
    """Count and share of one category value (priority, status, segment)"""
    key: str
    count: int
    percentage: float


class BayUtilization(FrozenModel):
    bay: str
    utilization: float
    jobs: int


class EquipmentUtilization(FrozenModel):
    equipment: str
    utilization: float
    hours: float


class EfficiencyMetrics(FrozenModel):
    jobs_per_day: float = 0.0
    average_completion_time: float = 0.0
    on_time_completion: float = 0.0
    customer_satisfaction: float = 0.0


class TopCustomer(FrozenModel):
    customer: str
    value: float
    visits: int


class RatingCount(FrozenModel):
    rating: int
    count: int


class CustomerSatisfaction(FrozenModel):
    average_rating: float = 0.0
    total_reviews: int = 0
    rating_distribution: List[RatingCount] = Field(default_factory=list)


class ItemSales(FrozenModel):
    item: str
    quantity: int
    revenue: float


class SlowMovingItem(FrozenModel):
    item: str
    days_in_stock: int
    quantity: int


class CategoryPerformance(FrozenModel):
    category: str
    revenue: float
    items: int


class SupplierPerformance(FrozenModel):
    supplier: str
    items: int
    value: float
    rating: Optional[float] = None


class TechnicianPerformance(FrozenModel):
    technician: str
    jobs_completed: int
    average_rating: float
    efficiency: float
    revenue: float


class BayPerformance(FrozenModel):
    bay: str
    jobs_completed: int
    utilization: float
    revenue: float
    average_job_time: float


class EquipmentPerformance(FrozenModel):
    equipment: str
    usage_hours: float
    maintenance_cost: float
    efficiency: float


class QualityMetrics(FrozenModel):
    rework_rate: float = 0.0
    warranty_claims: float = 0.0
    customer_complaints: float = 0.0
    first_time_fix_rate: float = 0.0


class TrendPoint(FrozenModel):
    period: str
    value: float
    growth: float


class SeasonalPattern(FrozenModel):
    month: str
    average_revenue: float
    peak: bool


class ServiceTrend(FrozenModel):
    service: str
    trend: TrendDirection
    growth: float


# =============================================================================
# FACETS
# =============================================================================

class RevenueAnalytics(FrozenModel):
    total_revenue: float = 0.0
    revenue_by_period: List[PeriodRevenue] = Field(default_factory=list)
    revenue_by_service: List[ServiceRevenue] = Field(default_factory=list)
    revenue_by_technician: List[TechnicianRevenue] = Field(default_factory=list)
    average_ticket_value: float = 0.0
    profit_margin: float = 0.0
    top_revenue_days: List[DailyRevenue] = Field(default_factory=list)


class OperationsAnalytics(FrozenModel):
    total_jobs: int = 0
    completed_jobs: int = 0
    pending_jobs: int = 0
    average_job_duration: float = 0.0
    jobs_by_priority: List[Breakdown] = Field(default_factory=list)
    jobs_by_status: List[Breakdown] = Field(default_factory=list)
    bay_utilization: List[BayUtilization] = Field(default_factory=list)
    equipment_utilization: List[EquipmentUtilization] = Field(default_factory=list)
    efficiency_metrics: EfficiencyMetrics = Field(default_factory=EfficiencyMetrics)


class CustomerAnalytics(FrozenModel):
    total_customers: int = 0
    active_customers: int = 0
    new_customers: int = 0
    customer_retention: float = 0.0
    average_customer_value: float = 0.0
    customer_lifetime_value: float = 0.0
    top_customers: List[TopCustomer] = Field(default_factory=list)
    customer_segments: List[Breakdown] = Field(default_factory=list)
    customer_satisfaction: CustomerSatisfaction = Field(default_factory=CustomerSatisfaction)


class InventoryAnalytics(FrozenModel):
    total_items: int = 0
    total_value: float = 0.0
    low_stock_items: int = 0
    out_of_stock_items: int = 0
    turnover_rate: float = 0.0
    top_selling_items: List[ItemSales] = Field(default_factory=list)
    slow_moving_items: List[SlowMovingItem] = Field(default_factory=list)
    category_performance: List[CategoryPerformance] = Field(default_factory=list)
    supplier_performance: List[SupplierPerformance] = Field(default_factory=list)


class PerformanceAnalytics(FrozenModel):
    technician_performance: List[TechnicianPerformance] = Field(default_factory=list)
    bay_performance: List[BayPerformance] = Field(default_factory=list)
    equipment_performance: List[EquipmentPerformance] = Field(default_factory=list)
    quality_metrics: QualityMetrics = Field(default_factory=QualityMetrics)


class TrendAnalytics(FrozenModel):
    revenue_trend: List[TrendPoint] = Field(default_factory=list)
    customer_trend: List[TrendPoint] = Field(default_factory=list)
    job_trend: List[TrendPoint] = Field(default_factory=list)
    seasonal_patterns: List[SeasonalPattern] = Field(default_factory=list)
    service_trends: List[ServiceTrend] = Field(default_factory=list)


class AnalyticsBundle(FrozenModel):
    """All six facets for one bucket, generated and cached together"""
    time_range: TimeRangeBucket
    revenue: RevenueAnalytics
    operations: OperationsAnalytics
    customers: CustomerAnalytics
    inventory: InventoryAnalytics
    performance: PerformanceAnalytics
    trends: TrendAnalytics
    generated_at: datetime


@dataclass(frozen=True)
class CacheEntry:
    """Cached bundle plus the moment it was stored"""
    bundle: AnalyticsBundle
    cached_at: datetime


# =============================================================================
# REPORTS
# =============================================================================

class Report(FrozenModel):
    """Immutable point-in-time snapshot of a bundle"""
    id: str
    name: str
    report_type: ReportType = Field(alias="type")
    time_range: TimeRangeBucket
    bundle: AnalyticsBundle
    generated_by: str
    generated_at: datetime
    parameters: Optional[Dict[str, Any]] = None


class ReportCreate(AnalyticsModel):
    """Report generation request"""
    name: str = Field(min_length=1, max_length=200)
    report_type: ReportType = Field(alias="type")
    time_range: str = Field(default="month", alias="range")
    generated_by: str = Field(min_length=1)
    parameters: Optional[Dict[str, Any]] = None


class ExportRequest(AnalyticsModel):
    format: str = "json"


class ExportResponse(AnalyticsModel):
    report_id: str
    format: ExportFormat
    filename: str


# =============================================================================
# DASHBOARDS
# =============================================================================

def new_widget_id() -> str:
    return f"widget-{uuid.uuid4().hex[:12]}"


class WidgetPosition(FrozenModel):
    x: int = Field(default=0, ge=0)
    y: int = Field(default=0, ge=0)
    width: int = Field(default=1, ge=1)
    height: int = Field(default=1, ge=1)


class Widget(FrozenModel):
    """One tile of a dashboard; data_source is resolved lazily by the client"""
    id: str = Field(default_factory=new_widget_id)
    kind: WidgetKind = Field(alias="type")
    title: str
    data_source: str
    configuration: Dict[str, Any] = Field(default_factory=dict)
    position: WidgetPosition = Field(default_factory=WidgetPosition)


class DashboardLayout(FrozenModel):
    columns: int = Field(default=4, ge=1)
    rows: int = Field(default=3, ge=1)


class Dashboard(FrozenModel):
    """Dashboard record; replaced wholesale on every update"""
    id: str
    name: str
    description: str = ""
    widgets: List[Widget] = Field(default_factory=list)
    layout: DashboardLayout = Field(default_factory=DashboardLayout)
    is_public: bool = False
    created_by: str
    created_at: datetime
    updated_at: datetime


class DashboardCreate(AnalyticsModel):
    """Dashboard definition without server-assigned fields"""
    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    widgets: List[Widget] = Field(default_factory=list)
    layout: DashboardLayout = Field(default_factory=DashboardLayout)
    is_public: bool = False
    created_by: str = "system"


class DashboardUpdate(AnalyticsModel):
    """Partial dashboard update; only explicitly provided fields are applied"""
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    widgets: Optional[List[Widget]] = None
    layout: Optional[DashboardLayout] = None
    is_public: Optional[bool] = None

    def changes(self) -> Dict[str, Any]:
        """Provided, non-null fields keyed by attribute name"""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if getattr(self, name) is not None
        }


# =============================================================================
# ALERTS & SHOP STATE
# =============================================================================

class Alert(FrozenModel):
    """Transient alert; computed on demand, never stored"""
    kind: AlertKind = Field(alias="type")
    message: str
    severity: AlertSeverity
    timestamp: datetime


class InventorySnapshot(AnalyticsModel):
    """Current stock state; every field may be missing"""
    low_stock_count: Optional[int] = None
    out_of_stock_count: Optional[int] = None
    low_stock_items: List[str] = Field(default_factory=list)


class EquipmentState(AnalyticsModel):
    name: Optional[str] = None
    status: Optional[str] = None


class EquipmentSnapshot(AnalyticsModel):
    units: List[EquipmentState] = Field(default_factory=list)


class RealtimeMetrics(FrozenModel):
    """Lightweight snapshot pushed on the real-time channel"""
    current_jobs: int = 0
    available_bays: int = 0
    today_revenue: float = 0.0
    today_jobs: int = 0
    active_technicians: int = 0
    queue_length: int = 0
    timestamp: datetime = Field(default_factory=utcnow)
