"""
SQL Data Provider

DataProvider implementation over the shop database. Totals and category
breakdowns are aggregated in SQL; per-period series, durations and
utilization are derived in Python from the window's job rows so the same
code runs on PostgreSQL and SQLite.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, AsyncContextManager, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog
from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shop_analytics.analytics.models import (
    BayPerformance,
    BayUtilization,
    Breakdown,
    CategoryPerformance,
    CustomerAnalytics,
    CustomerSatisfaction,
    DailyRevenue,
    EfficiencyMetrics,
    EquipmentPerformance,
    EquipmentSnapshot,
    EquipmentState,
    EquipmentUtilization,
    InventoryAnalytics,
    InventorySnapshot,
    ItemSales,
    OperationsAnalytics,
    PerformanceAnalytics,
    PeriodRevenue,
    QualityMetrics,
    RatingCount,
    RealtimeMetrics,
    RevenueAnalytics,
    SeasonalPattern,
    ServiceRevenue,
    ServiceTrend,
    SlowMovingItem,
    SupplierPerformance,
    TechnicianPerformance,
    TechnicianRevenue,
    TimeRangeBucket,
    TopCustomer,
    TrendAnalytics,
    TrendDirection,
    TrendPoint,
    utcnow,
)
from shop_analytics.analytics.provider import DataProvider
from shop_analytics.database.connection import get_db
from shop_analytics.database.models import (
    BayStatus,
    Customer,
    Equipment,
    InventoryItem,
    JobPart,
    JobStatus,
    ServiceBay,
    ServiceJob,
    Technician,
)

logger = structlog.get_logger(__name__)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]

TOP_N = 5
# Growth inside this band (percent) counts as a stable service trend
STABLE_BAND = 5.0
MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def _pct(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def _growth(current: float, previous: float) -> float:
    return round((current - previous) / previous * 100, 2) if previous else 0.0


def _hours(start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
    if start is None or end is None or end < start:
        return None
    return (end - start).total_seconds() / 3600


def _mean(values: Sequence[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def _breakdown(counts: Iterable[Tuple[Any, int]]) -> List[Breakdown]:
    counts = [(str(key), int(count)) for key, count in counts if key is not None]
    total = sum(count for _, count in counts)
    return [
        Breakdown(key=key, count=count, percentage=_pct(count, total))
        for key, count in sorted(counts, key=lambda kv: kv[1], reverse=True)
    ]


def _period_label(start: datetime, step: timedelta) -> str:
    if step < timedelta(days=1):
        return start.strftime("%Y-%m-%d %H:%M")
    return start.date().isoformat()


class SqlDataProvider(DataProvider):
    """
    Shop database backed DataProvider.

    Args:
        session_factory: Returns an async context manager yielding a session
            (defaults to the application's get_db)
        clock: Time source; window boundaries are computed from it
    """

    def __init__(
        self,
        session_factory: SessionFactory = get_db,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._clock = clock

    def _now(self) -> datetime:
        now = self._clock()
        return now.replace(tzinfo=None) if now.tzinfo else now

    def _window(self, bucket: TimeRangeBucket) -> Tuple[datetime, datetime]:
        return bucket.window(self._now())

    # -------------------------------------------------------------------------
    # Shared row loaders
    # -------------------------------------------------------------------------

    async def _completed_jobs(self, session: AsyncSession, start: datetime, end: datetime) -> List[Any]:
        """Jobs completed inside the window with technician, bay and customer names"""
        result = await session.execute(
            select(
                ServiceJob.id,
                ServiceJob.service_type,
                ServiceJob.total_amount,
                ServiceJob.parts_cost,
                ServiceJob.started_at,
                ServiceJob.completed_at,
                ServiceJob.due_at,
                ServiceJob.rating,
                ServiceJob.is_rework,
                ServiceJob.warranty_claim,
                ServiceJob.complaint,
                ServiceJob.customer_id,
                Technician.name.label("technician"),
                ServiceBay.name.label("bay"),
            )
            .outerjoin(Technician, ServiceJob.technician_id == Technician.id)
            .outerjoin(ServiceBay, ServiceJob.bay_id == ServiceBay.id)
            .where(
                and_(
                    ServiceJob.status == JobStatus.COMPLETED.value,
                    ServiceJob.completed_at >= start,
                    ServiceJob.completed_at <= end,
                )
            )
        )
        return list(result.all())

    async def _created_jobs(self, session: AsyncSession, start: datetime, end: datetime) -> List[Any]:
        result = await session.execute(
            select(
                ServiceJob.id,
                ServiceJob.customer_id,
                ServiceJob.status,
                ServiceJob.priority,
                ServiceJob.created_at,
            ).where(and_(ServiceJob.created_at >= start, ServiceJob.created_at <= end))
        )
        return list(result.all())

    @staticmethod
    def _series(
        bucket: TimeRangeBucket,
        now: datetime,
        points: Iterable[Tuple[datetime, Any]],
        reducer: Callable[[List[Any]], float],
    ) -> List[Tuple[str, float, float]]:
        """Reduce timestamped values per trend period into (label, value, growth)"""
        periods = bucket.periods(now)
        step = periods[0][1] - periods[0][0]
        origin = periods[0][0]
        grouped: Dict[int, List[Any]] = defaultdict(list)
        for ts, value in points:
            if ts is None or ts < origin:
                continue
            index = min(int((ts - origin) / step), len(periods) - 1)
            grouped[index].append(value)

        series = []
        previous = 0.0
        for index, (start, _) in enumerate(periods):
            value = round(reducer(grouped.get(index, [])), 2)
            series.append((_period_label(start, step), value, _growth(value, previous)))
            previous = value
        return series

    # -------------------------------------------------------------------------
    # Facets
    # -------------------------------------------------------------------------

    async def get_revenue(self, bucket: TimeRangeBucket) -> RevenueAnalytics:
        now = self._now()
        start, end = bucket.window(now)
        async with self._session_factory() as session:
            jobs = await self._completed_jobs(session, start, end)
            days = await session.execute(
                select(
                    func.date(ServiceJob.completed_at).label("day"),
                    func.sum(ServiceJob.total_amount).label("revenue"),
                )
                .where(
                    and_(
                        ServiceJob.status == JobStatus.COMPLETED.value,
                        ServiceJob.completed_at >= start,
                        ServiceJob.completed_at <= end,
                    )
                )
                .group_by(func.date(ServiceJob.completed_at))
                .order_by(func.sum(ServiceJob.total_amount).desc())
                .limit(3)
            )
            top_days = days.all()

        total = sum(job.total_amount for job in jobs)
        parts_cost = sum(job.parts_cost for job in jobs)

        by_service: Dict[str, float] = defaultdict(float)
        by_technician: Dict[str, List[float]] = defaultdict(list)
        for job in jobs:
            by_service[job.service_type] += job.total_amount
            if job.technician:
                by_technician[job.technician].append(job.total_amount)

        return RevenueAnalytics(
            total_revenue=round(total, 2),
            revenue_by_period=[
                PeriodRevenue(period=label, revenue=value, growth=growth)
                for label, value, growth in self._series(
                    bucket, now, ((job.completed_at, job.total_amount) for job in jobs), sum
                )
            ],
            revenue_by_service=[
                ServiceRevenue(service=service, revenue=round(revenue, 2), percentage=_pct(revenue, total))
                for service, revenue in sorted(by_service.items(), key=lambda kv: kv[1], reverse=True)
            ],
            revenue_by_technician=[
                TechnicianRevenue(technician=name, revenue=round(sum(amounts), 2), jobs=len(amounts))
                for name, amounts in sorted(by_technician.items(), key=lambda kv: sum(kv[1]), reverse=True)
            ],
            average_ticket_value=round(total / len(jobs), 2) if jobs else 0.0,
            profit_margin=round((total - parts_cost) / total, 4) if total else 0.0,
            top_revenue_days=[
                DailyRevenue(date=str(row.day), revenue=round(float(row.revenue or 0), 2))
                for row in top_days
            ],
        )

    async def get_operations(self, bucket: TimeRangeBucket) -> OperationsAnalytics:
        start, end = self._window(bucket)
        async with self._session_factory() as session:
            created = await self._created_jobs(session, start, end)
            completed = await self._completed_jobs(session, start, end)
            equipment = (await session.execute(select(Equipment.name, Equipment.usage_hours))).all()

        durations = [h for h in (_hours(job.started_at, job.completed_at) for job in completed) if h is not None]
        with_due = [job for job in completed if job.due_at is not None]
        on_time = sum(1 for job in with_due if job.completed_at <= job.due_at)
        ratings = [job.rating for job in completed if job.rating is not None]

        priority_counts: Dict[str, int] = defaultdict(int)
        status_counts: Dict[str, int] = defaultdict(int)
        for job in created:
            priority_counts[job.priority] += 1
            status_counts[job.status] += 1

        pending = status_counts[JobStatus.PENDING.value] + status_counts[JobStatus.IN_PROGRESS.value]
        busiest = max((row.usage_hours or 0.0 for row in equipment), default=0.0)
        span_days = bucket.span.total_seconds() / 86400

        return OperationsAnalytics(
            total_jobs=len(created),
            completed_jobs=status_counts[JobStatus.COMPLETED.value],
            pending_jobs=pending,
            average_job_duration=_mean(durations),
            jobs_by_priority=_breakdown(priority_counts.items()),
            jobs_by_status=_breakdown(status_counts.items()),
            bay_utilization=[
                BayUtilization(bay=bay, utilization=stats["utilization"], jobs=stats["jobs"])
                for bay, stats in self._bay_stats(completed, bucket).items()
            ],
            equipment_utilization=[
                EquipmentUtilization(
                    equipment=row.name,
                    utilization=_pct(row.usage_hours or 0.0, busiest),
                    hours=round(row.usage_hours or 0.0, 2),
                )
                for row in equipment
            ],
            efficiency_metrics=EfficiencyMetrics(
                jobs_per_day=round(len(created) / span_days, 2),
                average_completion_time=_mean(durations),
                on_time_completion=_pct(on_time, len(with_due)),
                customer_satisfaction=_mean(ratings),
            ),
        )

    @staticmethod
    def _bay_stats(completed: Sequence[Any], bucket: TimeRangeBucket) -> Dict[str, Dict[str, float]]:
        window_hours = bucket.span.total_seconds() / 3600
        stats: Dict[str, Dict[str, Any]] = {}
        for job in completed:
            if not job.bay:
                continue
            entry = stats.setdefault(job.bay, {"jobs": 0, "hours": 0.0, "revenue": 0.0, "durations": []})
            entry["jobs"] += 1
            entry["revenue"] += job.total_amount
            duration = _hours(job.started_at, job.completed_at)
            if duration is not None:
                entry["hours"] += duration
                entry["durations"].append(duration)
        for entry in stats.values():
            entry["utilization"] = min(100.0, _pct(entry["hours"], window_hours))
        return dict(sorted(stats.items()))

    async def get_customers(self, bucket: TimeRangeBucket) -> CustomerAnalytics:
        start, end = self._window(bucket)
        async with self._session_factory() as session:
            total_customers = (await session.execute(select(func.count(Customer.id)))).scalar_one()
            new_customers = (
                await session.execute(
                    select(func.count(Customer.id)).where(
                        and_(Customer.created_at >= start, Customer.created_at <= end)
                    )
                )
            ).scalar_one()
            created = await self._created_jobs(session, start, end)
            completed = await self._completed_jobs(session, start, end)
            returning = (
                await session.execute(
                    select(ServiceJob.customer_id).distinct().where(ServiceJob.created_at < start)
                )
            ).scalars().all()
            lifetime_revenue = (
                await session.execute(
                    select(func.coalesce(func.sum(ServiceJob.total_amount), 0.0)).where(
                        ServiceJob.status == JobStatus.COMPLETED.value
                    )
                )
            ).scalar_one()
            segments = (
                await session.execute(select(Customer.segment, func.count(Customer.id)).group_by(Customer.segment))
            ).all()
            names = dict((await session.execute(select(Customer.id, Customer.name))).all())

        active = {job.customer_id for job in created}
        retained = active & set(returning)

        spend: Dict[str, List[float]] = defaultdict(list)
        for job in completed:
            spend[job.customer_id].append(job.total_amount)
        window_revenue = sum(job.total_amount for job in completed)

        ratings = [job.rating for job in completed if job.rating is not None]
        distribution = defaultdict(int)
        for rating in ratings:
            distribution[rating] += 1

        top = sorted(spend.items(), key=lambda kv: sum(kv[1]), reverse=True)[:TOP_N]

        return CustomerAnalytics(
            total_customers=total_customers,
            active_customers=len(active),
            new_customers=new_customers,
            customer_retention=_pct(len(retained), len(active)),
            average_customer_value=round(window_revenue / len(spend), 2) if spend else 0.0,
            customer_lifetime_value=round(float(lifetime_revenue) / total_customers, 2) if total_customers else 0.0,
            top_customers=[
                TopCustomer(customer=names.get(customer_id, customer_id), value=round(sum(amounts), 2), visits=len(amounts))
                for customer_id, amounts in top
            ],
            customer_segments=_breakdown(segments),
            customer_satisfaction=CustomerSatisfaction(
                average_rating=_mean(ratings),
                total_reviews=len(ratings),
                rating_distribution=[RatingCount(rating=r, count=distribution[r]) for r in range(5, 0, -1)],
            ),
        )

    async def get_inventory(self, bucket: TimeRangeBucket) -> InventoryAnalytics:
        now = self._now()
        start, end = bucket.window(now)
        async with self._session_factory() as session:
            items = (
                await session.execute(select(InventoryItem).where(InventoryItem.is_active.is_(True)))
            ).scalars().all()
            usage = (
                await session.execute(
                    select(
                        JobPart.item_id,
                        func.sum(JobPart.quantity).label("quantity"),
                        func.sum(JobPart.quantity * JobPart.unit_price).label("revenue"),
                    )
                    .join(ServiceJob, JobPart.job_id == ServiceJob.id)
                    .where(and_(ServiceJob.created_at >= start, ServiceJob.created_at <= end))
                    .group_by(JobPart.item_id)
                )
            ).all()

        used = {row.item_id: row for row in usage}
        total_value = sum(item.quantity * item.unit_cost for item in items)
        used_cost = sum(
            int(used[item.id].quantity or 0) * item.unit_cost for item in items if item.id in used
        )

        top_selling = sorted(
            (
                ItemSales(item=item.name, quantity=int(used[item.id].quantity or 0), revenue=round(float(used[item.id].revenue or 0), 2))
                for item in items if item.id in used
            ),
            key=lambda sale: sale.revenue,
            reverse=True,
        )[:TOP_N]

        slow_moving = sorted(
            (
                SlowMovingItem(
                    item=item.name,
                    days_in_stock=(now - item.last_restocked).days if item.last_restocked else 0,
                    quantity=item.quantity,
                )
                for item in items if item.id not in used and item.quantity > 0
            ),
            key=lambda slow: slow.days_in_stock,
            reverse=True,
        )[:TOP_N]

        categories: Dict[str, Dict[str, float]] = defaultdict(lambda: {"revenue": 0.0, "items": 0})
        suppliers: Dict[str, Dict[str, Any]] = defaultdict(lambda: {"items": 0, "value": 0.0, "ratings": []})
        for item in items:
            categories[item.category]["items"] += 1
            if item.id in used:
                categories[item.category]["revenue"] += float(used[item.id].revenue or 0)
            if item.supplier:
                supplier = suppliers[item.supplier]
                supplier["items"] += 1
                supplier["value"] += item.quantity * item.unit_cost
                if item.supplier_rating is not None:
                    supplier["ratings"].append(item.supplier_rating)

        return InventoryAnalytics(
            total_items=len(items),
            total_value=round(total_value, 2),
            low_stock_items=sum(1 for item in items if item.quantity <= item.min_quantity),
            out_of_stock_items=sum(1 for item in items if item.quantity == 0),
            turnover_rate=round(used_cost / total_value, 2) if total_value else 0.0,
            top_selling_items=top_selling,
            slow_moving_items=slow_moving,
            category_performance=[
                CategoryPerformance(category=name, revenue=round(stats["revenue"], 2), items=int(stats["items"]))
                for name, stats in sorted(categories.items())
            ],
            supplier_performance=[
                SupplierPerformance(
                    supplier=name,
                    items=stats["items"],
                    value=round(stats["value"], 2),
                    rating=_mean(stats["ratings"]) if stats["ratings"] else None,
                )
                for name, stats in sorted(suppliers.items())
            ],
        )

    async def get_performance(self, bucket: TimeRangeBucket) -> PerformanceAnalytics:
        start, end = self._window(bucket)
        async with self._session_factory() as session:
            completed = await self._completed_jobs(session, start, end)
            equipment = (await session.execute(select(Equipment).order_by(Equipment.name))).scalars().all()

        technicians: Dict[str, List[Any]] = defaultdict(list)
        for job in completed:
            if job.technician:
                technicians[job.technician].append(job)

        technician_rows = []
        for name, jobs in sorted(technicians.items()):
            ratings = [job.rating for job in jobs if job.rating is not None]
            with_due = [job for job in jobs if job.due_at is not None]
            technician_rows.append(
                TechnicianPerformance(
                    technician=name,
                    jobs_completed=len(jobs),
                    average_rating=_mean(ratings),
                    efficiency=_pct(sum(1 for job in with_due if job.completed_at <= job.due_at), len(with_due)),
                    revenue=round(sum(job.total_amount for job in jobs), 2),
                )
            )

        count = len(completed)
        rework = sum(1 for job in completed if job.is_rework)

        return PerformanceAnalytics(
            technician_performance=technician_rows,
            bay_performance=[
                BayPerformance(
                    bay=bay,
                    jobs_completed=int(stats["jobs"]),
                    utilization=stats["utilization"],
                    revenue=round(stats["revenue"], 2),
                    average_job_time=_mean(stats["durations"]),
                )
                for bay, stats in self._bay_stats(completed, bucket).items()
            ],
            equipment_performance=[
                EquipmentPerformance(
                    equipment=unit.name,
                    usage_hours=round(unit.usage_hours or 0.0, 2),
                    maintenance_cost=round(unit.maintenance_cost or 0.0, 2),
                    efficiency=round(unit.efficiency or 0.0, 2),
                )
                for unit in equipment
            ],
            quality_metrics=QualityMetrics(
                rework_rate=_pct(rework, count),
                warranty_claims=_pct(sum(1 for job in completed if job.warranty_claim), count),
                customer_complaints=_pct(sum(1 for job in completed if job.complaint), count),
                first_time_fix_rate=round(100 - _pct(rework, count), 2) if count else 0.0,
            ),
        )

    async def get_trends(self, bucket: TimeRangeBucket) -> TrendAnalytics:
        now = self._now()
        start, end = bucket.window(now)
        async with self._session_factory() as session:
            completed = await self._completed_jobs(session, start, end)
            created = await self._created_jobs(session, start, end)
            history = (
                await session.execute(
                    select(ServiceJob.completed_at, ServiceJob.total_amount).where(
                        and_(
                            ServiceJob.status == JobStatus.COMPLETED.value,
                            ServiceJob.completed_at >= now - timedelta(days=3 * 365),
                        )
                    )
                )
            ).all()

        def trend(points, reducer) -> List[TrendPoint]:
            return [
                TrendPoint(period=label, value=value, growth=growth)
                for label, value, growth in self._series(bucket, now, points, reducer)
            ]

        return TrendAnalytics(
            revenue_trend=trend(((job.completed_at, job.total_amount) for job in completed), sum),
            customer_trend=trend(((job.created_at, job.customer_id) for job in created), lambda ids: len(set(ids))),
            job_trend=trend(((job.created_at, 1) for job in created), len),
            seasonal_patterns=self._seasonal(history),
            service_trends=self._service_trends(completed, start + (end - start) / 2),
        )

    @staticmethod
    def _seasonal(history: Sequence[Any]) -> List[SeasonalPattern]:
        """Average monthly revenue by calendar month; peak = above the mean month"""
        monthly: Dict[Tuple[int, int], float] = defaultdict(float)
        for completed_at, amount in history:
            monthly[(completed_at.year, completed_at.month)] += amount

        by_month: Dict[int, List[float]] = defaultdict(list)
        for (_, month), revenue in monthly.items():
            by_month[month].append(revenue)

        averages = {month: _mean(by_month[month]) for month in range(1, 13)}
        observed = [value for month, value in averages.items() if by_month[month]]
        baseline = sum(observed) / len(observed) if observed else 0.0
        return [
            SeasonalPattern(month=MONTHS[month - 1], average_revenue=averages[month], peak=bool(observed) and averages[month] > baseline)
            for month in range(1, 13)
        ]

    @staticmethod
    def _service_trends(completed: Sequence[Any], midpoint: datetime) -> List[ServiceTrend]:
        """Second half vs first half of the window, per service"""
        halves: Dict[str, List[float]] = defaultdict(lambda: [0.0, 0.0])
        for job in completed:
            halves[job.service_type][1 if job.completed_at >= midpoint else 0] += job.total_amount

        trends = []
        for service, (first, second) in sorted(halves.items()):
            growth = _growth(second, first) if first else (100.0 if second else 0.0)
            if growth > STABLE_BAND:
                direction = TrendDirection.INCREASING
            elif growth < -STABLE_BAND:
                direction = TrendDirection.DECREASING
            else:
                direction = TrendDirection.STABLE
            trends.append(ServiceTrend(service=service, trend=direction, growth=growth))
        return trends

    # -------------------------------------------------------------------------
    # Live shop state
    # -------------------------------------------------------------------------

    async def get_inventory_snapshot(self) -> InventorySnapshot:
        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(InventoryItem.name, InventoryItem.quantity)
                    .where(
                        and_(
                            InventoryItem.is_active.is_(True),
                            InventoryItem.quantity <= InventoryItem.min_quantity,
                        )
                    )
                    .order_by(InventoryItem.quantity, InventoryItem.name)
                )
            ).all()

        return InventorySnapshot(
            low_stock_count=len(rows),
            out_of_stock_count=sum(1 for row in rows if row.quantity == 0),
            low_stock_items=[row.name for row in rows],
        )

    async def get_equipment_snapshot(self) -> EquipmentSnapshot:
        async with self._session_factory() as session:
            rows = (await session.execute(select(Equipment.name, Equipment.status).order_by(Equipment.name))).all()
        return EquipmentSnapshot(units=[EquipmentState(name=row.name, status=row.status) for row in rows])

    async def get_realtime_metrics(self) -> RealtimeMetrics:
        now = self._now()
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        async with self._session_factory() as session:
            statuses = dict(
                (
                    await session.execute(
                        select(ServiceJob.status, func.count(ServiceJob.id)).group_by(ServiceJob.status)
                    )
                ).all()
            )
            available_bays = (
                await session.execute(
                    select(func.count(ServiceBay.id)).where(ServiceBay.status == BayStatus.AVAILABLE.value)
                )
            ).scalar_one()
            today_revenue = (
                await session.execute(
                    select(func.coalesce(func.sum(ServiceJob.total_amount), 0.0)).where(
                        and_(
                            ServiceJob.status == JobStatus.COMPLETED.value,
                            ServiceJob.completed_at >= midnight,
                        )
                    )
                )
            ).scalar_one()
            today_jobs = (
                await session.execute(select(func.count(ServiceJob.id)).where(ServiceJob.created_at >= midnight))
            ).scalar_one()
            active_technicians = (
                await session.execute(
                    select(func.count(Technician.id)).where(
                        and_(Technician.is_active.is_(True), Technician.on_shift.is_(True))
                    )
                )
            ).scalar_one()

        return RealtimeMetrics(
            current_jobs=statuses.get(JobStatus.IN_PROGRESS.value, 0),
            available_bays=available_bays,
            today_revenue=round(float(today_revenue), 2),
            today_jobs=today_jobs,
            active_technicians=active_technicians,
            queue_length=statuses.get(JobStatus.PENDING.value, 0),
            timestamp=self._clock(),
        )
