"""
Report endpoints
================

GET /api/v1/reports/daily?date=&operator=   -- per-operator daily counters
GET /api/v1/reports/archive/{date}/export   -- archived orders for a date as CSV
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from taxidispatch.api.dependencies import (
    checked_archive_date,
    get_db,
    get_operator_session,
)
from taxidispatch.api.middleware import limiter
from taxidispatch.api.schemas import DailyReportResponse
from taxidispatch.config import settings
from taxidispatch.infrastructure.sessions import OperatorSession
from taxidispatch.services.reports import ReportService

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get(
    "/daily",
    response_model=list[DailyReportResponse],
    summary="Daily counters (today by default)",
)
@limiter.limit(settings.rate_limit)
async def daily_report(
    request: Request,
    date: Optional[str] = Query(None, description="DD-MM-YYYY"),
    operator: Optional[str] = Query(None, max_length=120),
    db: AsyncSession = Depends(get_db),
    session: OperatorSession = Depends(get_operator_session),
):
    reports = ReportService(db)
    report_date = checked_archive_date(date) if date else None
    if operator:
        row = await reports.daily(operator, report_date)
        return [row] if row else []
    return await reports.daily_for_date(report_date)


@router.get("/archive/{archive_date}/export", summary="Export an archive day as CSV")
@limiter.limit(settings.rate_limit)
async def export_archive(
    request: Request,
    archive_date: str,
    db: AsyncSession = Depends(get_db),
    session: OperatorSession = Depends(get_operator_session),
):
    content = await ReportService(db).export_archive_csv(
        checked_archive_date(archive_date)
    )
    return Response(
        content=content,
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="archive-{archive_date}.csv"'
        },
    )
