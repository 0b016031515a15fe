"""
Report Endpoints
"""

from typing import List

from fastapi import APIRouter, Depends, status

from shop_analytics.analytics.models import ExportFormat, ExportRequest, ExportResponse, Report, ReportCreate
from shop_analytics.analytics.service import AnalyticsService
from shop_analytics.serving.api.dependencies import get_analytics_service

router = APIRouter()


@router.post("", response_model=Report, status_code=status.HTTP_201_CREATED)
async def generate_report(
    request: ReportCreate,
    service: AnalyticsService = Depends(get_analytics_service),
) -> Report:
    return await service.reports.generate(
        name=request.name,
        report_type=request.report_type,
        bucket=request.time_range,
        generated_by=request.generated_by,
        parameters=request.parameters,
    )


@router.get("", response_model=List[Report])
async def list_reports(service: AnalyticsService = Depends(get_analytics_service)) -> List[Report]:
    """All reports, newest first"""
    return service.reports.list()


@router.get("/{report_id}", response_model=Report)
async def get_report(report_id: str, service: AnalyticsService = Depends(get_analytics_service)) -> Report:
    return service.reports.get(report_id)


@router.post("/{report_id}/export", response_model=ExportResponse)
async def export_report(
    report_id: str,
    request: ExportRequest,
    service: AnalyticsService = Depends(get_analytics_service),
) -> ExportResponse:
    """
    Export a report as json, csv or pdf.

    Returns the artifact filename ``<name>_<YYYY-MM-DD>.<format>``.
    """
    filename = await service.reports.export(report_id, request.format)
    return ExportResponse(report_id=report_id, format=ExportFormat.parse(request.format), filename=filename)
