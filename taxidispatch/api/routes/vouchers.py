"""
Voucher ledger endpoints
========================

GET /api/v1/vouchers              -- list vouchers (optionally by empresa)
GET /api/v1/vouchers/next-number  -- voucher number the next finalization would get
GET /api/v1/vouchers/export       -- ledger as CSV
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from taxidispatch.api.dependencies import get_db, get_operator_session
from taxidispatch.api.middleware import limiter
from taxidispatch.api.schemas import NextNumberResponse, VoucherResponse
from taxidispatch.config import settings
from taxidispatch.infrastructure.repositories import VoucherRepository
from taxidispatch.infrastructure.sessions import OperatorSession
from taxidispatch.services.reports import ReportService
from taxidispatch.services.sequence import VoucherNumberAllocator

router = APIRouter(prefix="/vouchers", tags=["vouchers"])


@router.get("", response_model=list[VoucherResponse], summary="List vouchers")
@limiter.limit(settings.rate_limit)
async def list_vouchers(
    request: Request,
    empresa: Optional[str] = Query(None, max_length=120),
    db: AsyncSession = Depends(get_db),
    session: OperatorSession = Depends(get_operator_session),
):
    return await VoucherRepository(db).list_all(empresa)


@router.get(
    "/next-number",
    response_model=NextNumberResponse,
    summary="Preview the next voucher number",
    description="Informational only; the number is fixed when the voucher is saved.",
)
@limiter.limit(settings.rate_limit)
async def next_voucher_number(
    request: Request,
    db: AsyncSession = Depends(get_db),
    session: OperatorSession = Depends(get_operator_session),
):
    return NextNumberResponse(next_number=await VoucherNumberAllocator(db).allocate())


@router.get("/export", summary="Export the voucher ledger as CSV")
@limiter.limit(settings.rate_limit)
async def export_vouchers(
    request: Request,
    empresa: Optional[str] = Query(None, max_length=120),
    db: AsyncSession = Depends(get_db),
    session: OperatorSession = Depends(get_operator_session),
):
    content = await ReportService(db).export_vouchers_csv(empresa)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="vouchers.csv"'},
    )
