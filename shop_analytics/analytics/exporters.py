"""
Report Exporters

Artifact writers behind ReportStore.export. The file exporter writes the full
report as JSON and a flattened ``facet,metric,value`` table as CSV.
"""

import abc
import asyncio
from pathlib import Path
from typing import Any, Dict, List, Union

import polars as pl
import structlog

from shop_analytics.analytics.exceptions import ExportFailure
from shop_analytics.analytics.models import ExportFormat, Facet, Report

logger = structlog.get_logger(__name__)


class ReportExporter(abc.ABC):
    """Produces the artifact for an export request"""

    @abc.abstractmethod
    async def export(self, report: Report, export_format: ExportFormat, filename: str) -> None:
        """Write ``report`` as ``export_format`` under ``filename``"""


def flatten_report(report: Report) -> List[Dict[str, Any]]:
    """
    Flatten the bundle into scalar metric rows.

    Nested lists are indexed (``revenue_by_service.0.revenue``) so every
    row holds one scalar.
    """
    rows: List[Dict[str, Any]] = []

    def walk(facet: str, prefix: str, value: Any) -> None:
        if isinstance(value, dict):
            for key, item in value.items():
                walk(facet, f"{prefix}.{key}" if prefix else key, item)
        elif isinstance(value, list):
            for index, item in enumerate(value):
                walk(facet, f"{prefix}.{index}", item)
        else:
            rows.append({"facet": facet, "metric": prefix, "value": "" if value is None else str(value)})

    bundle = report.bundle.model_dump(mode="json")
    for facet in Facet:
        walk(facet.value, "", bundle[facet.value])
    return rows


class FileReportExporter(ReportExporter):
    """
    Writes JSON and CSV artifacts into an export directory.

    Document (PDF) output needs a renderer this exporter does not carry;
    such requests fail with ExportFailure.
    """

    def __init__(self, export_dir: Union[str, Path]):
        self.export_dir = Path(export_dir)

    async def export(self, report: Report, export_format: ExportFormat, filename: str) -> None:
        if export_format == ExportFormat.PDF:
            raise ExportFailure(report.id, export_format.value, "no document renderer configured")

        path = (self.export_dir / filename).resolve()
        # Report names are user input; artifacts must land directly in export_dir
        if path.parent != self.export_dir.resolve():
            raise ExportFailure(report.id, export_format.value, f"filename escapes the export directory: {filename}")

        await asyncio.to_thread(self._write, report, export_format, path)
        logger.info("Report artifact written", report_id=report.id, path=str(path))

    def _write(self, report: Report, export_format: ExportFormat, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        if export_format == ExportFormat.JSON:
            path.write_text(report.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        elif export_format == ExportFormat.CSV:
            df = pl.DataFrame(
                flatten_report(report),
                schema={"facet": pl.Utf8, "metric": pl.Utf8, "value": pl.Utf8},
            )
            df.write_csv(path)
