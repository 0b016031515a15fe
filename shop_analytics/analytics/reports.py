"""
Report Store

Creates, retrieves and lists immutable report snapshots and resolves export
requests into deterministic artifact filenames.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
import uuid

import structlog

from shop_analytics.analytics.engine import AggregationEngine
from shop_analytics.analytics.exceptions import AnalyticsError, ExportFailure, NotFound
from shop_analytics.analytics.exporters import ReportExporter
from shop_analytics.analytics.models import (
    ExportFormat,
    Report,
    ReportType,
    TimeRangeBucket,
    utcnow,
)

logger = structlog.get_logger(__name__)


def export_filename(report: Report, export_format: ExportFormat) -> str:
    """``{name}_{YYYY-MM-DD}.{format}`` using the UTC generation date"""
    generated_on = report.generated_at
    if generated_on.tzinfo is not None:
        generated_on = generated_on.astimezone(timezone.utc)
    return f"{report.name}_{generated_on.date().isoformat()}.{export_format.value}"


class ReportStore:
    """
    In-memory report registry.

    Reports are never mutated. Without ``retention_limit`` they are kept
    until the store is torn down; with it, the oldest reports are evicted
    once the limit is exceeded.
    """

    def __init__(
        self,
        engine: AggregationEngine,
        exporter: Optional[ReportExporter] = None,
        retention_limit: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.engine = engine
        self.exporter = exporter
        self.retention_limit = retention_limit
        self._clock = clock
        self._reports: Dict[str, Report] = {}

    async def generate(
        self,
        name: str,
        report_type: ReportType,
        bucket: TimeRangeBucket,
        generated_by: str,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> Report:
        """
        Generate and store a report for a bucket.

        Args:
            name: Report name (also the export filename stem)
            report_type: Report cadence
            bucket: Time range whose bundle the report wraps
            generated_by: Requesting user or system
            parameters: Optional free-form generation parameters

        Returns:
            The stored report
        """
        bucket = TimeRangeBucket.parse(bucket)
        bundle = await self.engine.get_analytics_data(bucket)

        report = Report(
            id=f"report-{uuid.uuid4().hex}",
            name=name,
            report_type=ReportType(report_type),
            time_range=bucket,
            bundle=bundle,
            generated_by=generated_by,
            generated_at=self._clock(),
            parameters=dict(parameters) if parameters else None,
        )
        self.add(report)

        logger.info(
            "Report generated",
            report_id=report.id,
            name=name,
            report_type=report.report_type.value,
            time_range=bucket.value,
            generated_by=generated_by,
        )
        return report

    def add(self, report: Report) -> None:
        """Store an already built report, applying the retention limit"""
        self._reports[report.id] = report
        if self.retention_limit is not None and len(self._reports) > self.retention_limit:
            for expired in self.list()[self.retention_limit:]:
                self._reports.pop(expired.id, None)
                logger.info("Report evicted by retention limit", report_id=expired.id)

    def get(self, report_id: str) -> Report:
        """Stored report; raises NotFound when absent"""
        report = self._reports.get(report_id)
        if report is None:
            raise NotFound("report", report_id)
        return report

    def list(self) -> List[Report]:
        """All reports, newest first; equal timestamps keep insertion order"""
        # sorted() is stable under reverse=True
        return sorted(self._reports.values(), key=lambda r: r.generated_at, reverse=True)

    def __len__(self) -> int:
        return len(self._reports)

    async def export(self, report_id: str, export_format: Any) -> str:
        """
        Export a report and return the artifact filename.

        Raises:
            NotFound: Unknown report id
            ValidationError: Unknown export format
            ExportFailure: The exporter could not produce the artifact
        """
        report = self.get(report_id)
        fmt = ExportFormat.parse(export_format)
        filename = export_filename(report, fmt)

        if self.exporter is not None:
            try:
                await self.exporter.export(report, fmt, filename)
            except AnalyticsError:
                raise
            except Exception as e:
                logger.error(
                    "Report export failed",
                    report_id=report_id,
                    format=fmt.value,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise ExportFailure(report_id, fmt.value, str(e)) from e

        logger.info("Report exported", report_id=report_id, filename=filename)
        return filename
