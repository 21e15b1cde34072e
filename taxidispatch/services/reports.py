"""
Daily operator counters and CSV export.

Counters are keyed ``{operator}_{DD-MM-YYYY}`` and bumped in place with
``col = col + 1`` so two requests from the same operator do not overwrite
each other's increments.
"""

from __future__ import annotations

import csv
import io
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from taxidispatch.domain.entities import archive_date
from taxidispatch.infrastructure.models import (
    ArchivedOrderModel,
    DailyReportModel,
    VoucherModel,
)
from taxidispatch.infrastructure.repositories import (
    ArchiveRepository,
    DailyReportRepository,
    VoucherRepository,
)
from taxidispatch.services.clock import Clock, local_now

ARCHIVE_COLUMNS = (
    "archive_date",
    "order_id",
    "status",
    "closed_at",
    "client_phone",
    "client_name",
    "address",
    "destination",
    "unit",
    "empresa",
    "authorization_number",
    "reason",
    "closed_by",
)

VOUCHER_COLUMNS = (
    "voucher_number",
    "authorization_number",
    "order_id",
    "empresa",
    "client_name",
    "client_phone",
    "destination",
    "voucher_type",
    "physical_number",
    "unit",
    "operator",
    "created_at",
)


class ReportService:
    def __init__(self, session: AsyncSession, clock: Clock = local_now):
        self.reports = DailyReportRepository(session)
        self.archive = ArchiveRepository(session)
        self.vouchers = VoucherRepository(session)
        self.clock = clock

    def today(self) -> str:
        return archive_date(self.clock())

    async def increment(self, operator: str, counter: str) -> None:
        await self.reports.increment(operator or "unknown", self.today(), counter)

    async def daily(
        self, operator: str, report_date: Optional[str] = None
    ) -> Optional[DailyReportModel]:
        return await self.reports.get(operator, report_date or self.today())

    async def daily_for_date(self, report_date: Optional[str] = None) -> list[DailyReportModel]:
        return await self.reports.list_for_date(report_date or self.today())

    async def export_archive_csv(self, report_date: str) -> str:
        rows = await self.archive.list_for_date(report_date)
        return _to_csv(ARCHIVE_COLUMNS, (_archive_row(r) for r in rows))

    async def export_vouchers_csv(self, empresa: Optional[str] = None) -> str:
        rows = await self.vouchers.list_all(empresa)
        return _to_csv(VOUCHER_COLUMNS, (_voucher_row(v) for v in rows))


def _archive_row(row: ArchivedOrderModel) -> dict:
    payload = row.payload or {}
    return {
        "archive_date": row.archive_date,
        "order_id": row.order_id,
        "status": row.status.value,
        "closed_at": row.closed_at.isoformat() if row.closed_at else "",
        "client_phone": payload.get("client_phone", ""),
        "client_name": payload.get("client_name", ""),
        "address": payload.get("address", ""),
        "destination": payload.get("destination", ""),
        "unit": row.unit or "",
        "empresa": row.empresa,
        "authorization_number": row.authorization_number or "",
        "reason": row.reason,
        "closed_by": row.closed_by,
    }


def _voucher_row(voucher: VoucherModel) -> dict:
    return {
        "voucher_number": voucher.voucher_number,
        "authorization_number": voucher.authorization_number,
        "order_id": voucher.order_id,
        "empresa": voucher.empresa,
        "client_name": voucher.client_name,
        "client_phone": voucher.client_phone,
        "destination": voucher.destination,
        "voucher_type": voucher.voucher_type.value,
        "physical_number": voucher.physical_number or "",
        "unit": voucher.unit or "",
        "operator": voucher.operator,
        "created_at": voucher.created_at.isoformat() if voucher.created_at else "",
    }


def _to_csv(columns: tuple[str, ...], rows: Iterable[dict]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=columns)
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return buffer.getvalue()
