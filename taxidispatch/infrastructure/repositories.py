"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Order repositories translate between ORM rows
and the order entities so services never see a half-populated row.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    ArchivedOrderModel,
    ClientModel,
    DailyReportModel,
    DriverModel,
    DriverStatusLogModel,
    InProgressOrderModel,
    NotificationModel,
    OperatorModel,
    PendingOrderModel,
    ReservationModel,
    VoucherModel,
)
from taxidispatch.domain.entities import (
    DriverSnapshot,
    InProgressOrder,
    OrderBase,
    PendingOrder,
    TerminalOrder,
)
from taxidispatch.domain.enums import ClientKind, ReservationStatus

_ORDER_FIELDS = (
    "id",
    "client_phone",
    "client_full_phone",
    "client_name",
    "address",
    "sector",
    "coordinates",
    "base",
    "destination",
    "empresa",
    "authorization_number",
    "mode",
    "operator",
    "created_at",
)


def _order_values(order: OrderBase) -> dict:
    return {name: getattr(order, name) for name in _ORDER_FIELDS}


def _assignment_values(order: InProgressOrder) -> dict:
    driver = order.driver
    return {
        "unit": driver.unit,
        "driver_name": driver.name,
        "plate": driver.plate,
        "driver_color": driver.color,
        "driver_phone": driver.phone,
        "driver_photo": driver.photo,
        "push_token": driver.push_token,
        "eta_minutes": order.eta_minutes,
        "assigned_at": order.assigned_at,
    }


def pending_from_row(row: PendingOrderModel) -> PendingOrder:
    return PendingOrder(**{name: getattr(row, name) for name in _ORDER_FIELDS})


def in_progress_from_row(row: InProgressOrderModel) -> InProgressOrder:
    return InProgressOrder(
        **{name: getattr(row, name) for name in _ORDER_FIELDS},
        driver=DriverSnapshot(
            unit=row.unit,
            name=row.driver_name,
            plate=row.plate,
            color=row.driver_color,
            phone=row.driver_phone,
            photo=row.driver_photo,
            push_token=row.push_token,
        ),
        eta_minutes=row.eta_minutes,
        assigned_at=row.assigned_at,
    )


class PendingOrderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(
        self, order: PendingOrder, idempotency_key: str | None = None
    ) -> PendingOrderModel:
        row = PendingOrderModel(**_order_values(order), idempotency_key=idempotency_key)
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_by_id(self, order_id: str) -> Optional[PendingOrderModel]:
        return await self.session.get(PendingOrderModel, order_id)

    async def reload(self, order_id: str) -> Optional[PendingOrderModel]:
        """Read the row from the database, bypassing the identity map."""
        return await self.session.get(
            PendingOrderModel, order_id, populate_existing=True
        )

    async def get_by_idempotency_key(self, key: str) -> Optional[PendingOrderModel]:
        result = await self.session.execute(
            select(PendingOrderModel).where(PendingOrderModel.idempotency_key == key)
        )
        return result.scalar_one_or_none()

    async def list_newest_first(self) -> list[PendingOrderModel]:
        result = await self.session.execute(
            select(PendingOrderModel).order_by(PendingOrderModel.created_at.desc())
        )
        return list(result.scalars().all())

    async def delete(self, order_id: str) -> None:
        await self.session.execute(
            delete(PendingOrderModel).where(PendingOrderModel.id == order_id)
        )


class InProgressOrderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def put(
        self, order: InProgressOrder, idempotency_key: str | None = None
    ) -> InProgressOrderModel:
        """Upsert by order id so a retried assignment overwrites, never duplicates."""
        row = InProgressOrderModel(
            **_order_values(order),
            **_assignment_values(order),
            idempotency_key=idempotency_key,
        )
        row = await self.session.merge(row)
        await self.session.flush()
        return row

    async def get_by_id(self, order_id: str) -> Optional[InProgressOrderModel]:
        return await self.session.get(InProgressOrderModel, order_id)

    async def reload(self, order_id: str) -> Optional[InProgressOrderModel]:
        return await self.session.get(
            InProgressOrderModel, order_id, populate_existing=True
        )

    async def get_by_idempotency_key(self, key: str) -> Optional[InProgressOrderModel]:
        result = await self.session.execute(
            select(InProgressOrderModel).where(
                InProgressOrderModel.idempotency_key == key
            )
        )
        return result.scalar_one_or_none()

    async def list_newest_first(self) -> list[InProgressOrderModel]:
        result = await self.session.execute(
            select(InProgressOrderModel).order_by(
                InProgressOrderModel.created_at.desc()
            )
        )
        return list(result.scalars().all())

    async def delete(self, order_id: str) -> None:
        await self.session.execute(
            delete(InProgressOrderModel).where(InProgressOrderModel.id == order_id)
        )


class NotificationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def stage(self, order: InProgressOrder) -> NotificationModel:
        row = NotificationModel(**_order_values(order), **_assignment_values(order))
        row = await self.session.merge(row)
        await self.session.flush()
        return row

    async def get_by_id(self, order_id: str) -> Optional[NotificationModel]:
        return await self.session.get(NotificationModel, order_id)

    async def get_staged_for_update(self, limit: int = 100) -> list[NotificationModel]:
        """SELECT ... FOR UPDATE so two workers never deliver the same row."""
        result = await self.session.execute(
            select(NotificationModel)
            .order_by(NotificationModel.staged_at)
            .limit(limit)
            .with_for_update()
        )
        return list(result.scalars().all())

    async def delete(self, order_id: str) -> None:
        await self.session.execute(
            delete(NotificationModel).where(NotificationModel.id == order_id)
        )


class ArchiveRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def put(
        self, order: TerminalOrder, payload: dict
    ) -> ArchivedOrderModel:
        """Idempotent: the (date, id) key makes a repeated archive a no-op overwrite."""
        row = ArchivedOrderModel(
            archive_date=order.archive_date,
            order_id=order.id,
            status=order.kind,
            payload=payload,
            reason=order.reason,
            closed_by=order.closed_by,
            color=order.color,
            empresa=order.empresa,
            authorization_number=order.authorization_number,
            unit=order.driver.unit if order.driver else None,
            closed_at=order.closed_at,
        )
        row = await self.session.merge(row)
        await self.session.flush()
        return row

    async def get(self, archive_date: str, order_id: str) -> Optional[ArchivedOrderModel]:
        return await self.session.get(ArchivedOrderModel, (archive_date, order_id))

    async def find_by_order_id(self, order_id: str) -> Optional[ArchivedOrderModel]:
        result = await self.session.execute(
            select(ArchivedOrderModel).where(ArchivedOrderModel.order_id == order_id)
        )
        return result.scalars().first()

    async def list_for_date(self, archive_date: str) -> list[ArchivedOrderModel]:
        result = await self.session.execute(
            select(ArchivedOrderModel)
            .where(ArchivedOrderModel.archive_date == archive_date)
            .order_by(ArchivedOrderModel.closed_at)
        )
        return list(result.scalars().all())


class ClientRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, client: ClientModel) -> ClientModel:
        self.session.add(client)
        await self.session.flush()
        return client

    async def get_by_doc_id(
        self, kind: ClientKind, doc_id: str
    ) -> Optional[ClientModel]:
        result = await self.session.execute(
            select(ClientModel).where(
                ClientModel.kind == kind, ClientModel.doc_id == doc_id
            )
        )
        return result.scalar_one_or_none()

    async def find_by_telefono(
        self, kind: ClientKind, telefono: str
    ) -> Optional[ClientModel]:
        result = await self.session.execute(
            select(ClientModel)
            .where(ClientModel.kind == kind, ClientModel.telefono == telefono)
            .order_by(ClientModel.pk)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_by_id_cliente(
        self, kind: ClientKind, id_cliente: int
    ) -> Optional[ClientModel]:
        result = await self.session.execute(
            select(ClientModel)
            .where(ClientModel.kind == kind, ClientModel.id_cliente == id_cliente)
            .order_by(ClientModel.pk)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def save_addresses(self, client: ClientModel, addresses: list[dict]) -> None:
        # reassign rather than mutate so the JSON column is flagged dirty
        client.addresses = addresses
        await self.session.flush()


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, driver: DriverModel) -> DriverModel:
        self.session.add(driver)
        await self.session.flush()
        return driver

    async def get_by_unit(self, unit: str) -> Optional[DriverModel]:
        result = await self.session.execute(
            select(DriverModel).where(DriverModel.unit == unit)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[DriverModel]:
        result = await self.session.execute(select(DriverModel).order_by(DriverModel.unit))
        return list(result.scalars().all())

    async def log_status_change(
        self, unit: str, previous: bool, current: bool, operator: str
    ) -> DriverStatusLogModel:
        entry = DriverStatusLogModel(
            unit=unit, previous=previous, current=current, operator=operator
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def status_history(self, unit: str) -> list[DriverStatusLogModel]:
        result = await self.session.execute(
            select(DriverStatusLogModel)
            .where(DriverStatusLogModel.unit == unit)
            .order_by(DriverStatusLogModel.id)
        )
        return list(result.scalars().all())


class VoucherRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, voucher: VoucherModel) -> VoucherModel:
        self.session.add(voucher)
        await self.session.flush()
        await self.session.refresh(voucher)
        return voucher

    async def get_by_order_id(self, order_id: str) -> Optional[VoucherModel]:
        result = await self.session.execute(
            select(VoucherModel).where(VoucherModel.order_id == order_id)
        )
        return result.scalar_one_or_none()

    async def last_voucher_number(self) -> Optional[int]:
        result = await self.session.execute(
            select(VoucherModel.voucher_number)
            .order_by(VoucherModel.voucher_number.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_all(self, empresa: str | None = None) -> list[VoucherModel]:
        query = select(VoucherModel).order_by(VoucherModel.voucher_number)
        if empresa:
            query = query.where(VoucherModel.empresa == empresa)
        result = await self.session.execute(query)
        return list(result.scalars().all())


class ReservationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, reservation: ReservationModel) -> ReservationModel:
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def get_by_id(self, reservation_id: int) -> Optional[ReservationModel]:
        return await self.session.get(ReservationModel, reservation_id)

    async def list(
        self, status: ReservationStatus | None = None
    ) -> list[ReservationModel]:
        query = select(ReservationModel).order_by(ReservationModel.scheduled_at)
        if status:
            query = query.where(ReservationModel.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())


class DailyReportRepository:
    COUNTERS = ("registered", "assigned", "cancelled", "finalized", "vouchers")

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def key_for(operator: str, report_date: str) -> str:
        return f"{operator}_{report_date}"

    async def increment(self, operator: str, report_date: str, counter: str) -> None:
        if counter not in self.COUNTERS:
            raise ValueError(f"Unknown report counter: {counter}")
        key = self.key_for(operator, report_date)
        column = getattr(DailyReportModel, counter)
        result = await self.session.execute(
            update(DailyReportModel)
            .where(DailyReportModel.key == key)
            .values({column: column + 1})
        )
        if result.rowcount == 0:
            self.session.add(
                DailyReportModel(
                    key=key,
                    operator=operator,
                    report_date=report_date,
                    **{name: 1 if name == counter else 0 for name in self.COUNTERS},
                )
            )
        await self.session.flush()

    async def get(self, operator: str, report_date: str) -> Optional[DailyReportModel]:
        return await self.session.get(
            DailyReportModel, self.key_for(operator, report_date)
        )

    async def list_for_date(self, report_date: str) -> list[DailyReportModel]:
        result = await self.session.execute(
            select(DailyReportModel)
            .where(DailyReportModel.report_date == report_date)
            .order_by(DailyReportModel.operator)
        )
        return list(result.scalars().all())


class OperatorRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, operator: OperatorModel) -> OperatorModel:
        self.session.add(operator)
        await self.session.flush()
        return operator

    async def get_by_username(self, username: str) -> Optional[OperatorModel]:
        result = await self.session.execute(
            select(OperatorModel).where(OperatorModel.username == username)
        )
        return result.scalar_one_or_none()

    async def count_active(self) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(OperatorModel)
            .where(OperatorModel.is_active.is_(True))
        )
        return result.scalar() or 0
