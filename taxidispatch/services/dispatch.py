"""
Order Dispatch
==============

Moves ride requests through their lifecycle::

    PENDING ──assign──▶ IN_PROGRESS ──▶ FINALIZED_PLAIN | FINALIZED_VOUCHER
       │                     └────────▶ CANCELLED_BY_CLIENT | CANCELLED_BY_UNIT
       └──────────────▶ CANCELLED_UNASSIGNED | NO_UNIT_AVAILABLE

Write ordering
--------------
* **Assignment**: in-progress copy and notification copy are written under
  the *same* order id before the pending row is deleted.  Both writes are
  upserts, so a retry after a partial failure converges instead of
  duplicating.
* **Terminal transitions**: the archive copy (keyed by local date + id) is
  written first, then the live row is deleted.  A crash between the two
  leaves the record in both places; repeating the transition is safe.

Every precondition (order exists, unit exists, unit active, voucher fields
present) is checked before the first write, so a rejected action leaves the
order untouched.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from dataclasses import dataclass
from typing import NoReturn, Optional, Union

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession

from taxidispatch.config import settings
from taxidispatch.domain.entities import (
    DriverSnapshot,
    InProgressOrder,
    OrderBase,
    PendingOrder,
    TerminalOrder,
    pick_push_token,
    unit_is_active,
)
from taxidispatch.domain.enums import (
    CASH_PAYMENT,
    AddressMode,
    OrderStatus,
    VoucherType,
)
from taxidispatch.domain.exceptions import (
    InvalidStateTransition,
    OrderNotFound,
    UnitInactive,
    UnitNotFound,
    ValidationFailed,
)
from taxidispatch.infrastructure.locks import DistributedLock
from taxidispatch.infrastructure.models import (
    ArchivedOrderModel,
    DriverModel,
    VoucherModel,
)
from taxidispatch.infrastructure.repositories import (
    ArchiveRepository,
    DriverRepository,
    InProgressOrderRepository,
    NotificationRepository,
    PendingOrderRepository,
    VoucherRepository,
    in_progress_from_row,
    pending_from_row,
)
from taxidispatch.services.clients import AddressHistory, ClientResolver
from taxidispatch.services.clock import Clock, local_now
from taxidispatch.services.reports import ReportService
from taxidispatch.services.sequence import (
    AuthorizationAllocator,
    VoucherNumberAllocator,
)

logger = logging.getLogger(__name__)

PENDING_TERMINALS = {OrderStatus.CANCELLED_UNASSIGNED, OrderStatus.NO_UNIT_AVAILABLE}
IN_PROGRESS_TERMINALS = {
    OrderStatus.CANCELLED_BY_CLIENT,
    OrderStatus.CANCELLED_BY_UNIT,
    OrderStatus.FINALIZED_PLAIN,
}


def new_order_id() -> str:
    return uuid.uuid4().hex[:20]


@dataclass
class OrderDraft:
    phone: str
    client_name: str = ""
    address: str = ""
    sector: str = ""
    coordinates: str = ""
    base: str = ""
    destination: str = ""
    empresa: str = CASH_PAYMENT
    mode: AddressMode = AddressMode.MANUAL
    unit: Optional[str] = None
    eta_minutes: int = 0
    idempotency_key: Optional[str] = None


@dataclass
class VoucherDraft:
    client_name: str
    destination: str
    empresa: str
    voucher_type: VoucherType = VoucherType.ELECTRONIC
    physical_number: Optional[str] = None

    def validate(self) -> None:
        missing = [
            label
            for label, value in (
                ("client name", self.client_name),
                ("destination", self.destination),
                ("empresa", self.empresa),
            )
            if not (value or "").strip()
        ]
        if self.voucher_type == VoucherType.PHYSICAL and not (
            self.physical_number or ""
        ).strip():
            missing.append("physical voucher number")
        if missing:
            raise ValidationFailed(
                "Voucher requires: " + ", ".join(missing)
            )


LiveOrder = Union[PendingOrder, InProgressOrder]


class DispatchService:
    def __init__(
        self,
        session: AsyncSession,
        redis: aioredis.Redis,
        clock: Clock = local_now,
        allocator: Optional[AuthorizationAllocator] = None,
    ):
        self.session = session
        self.redis = redis
        self.clock = clock
        self.allocator = allocator or AuthorizationAllocator(redis)
        self.pending = PendingOrderRepository(session)
        self.in_progress = InProgressOrderRepository(session)
        self.notifications = NotificationRepository(session)
        self.archive = ArchiveRepository(session)
        self.drivers = DriverRepository(session)
        self.vouchers = VoucherRepository(session)
        self.resolver = ClientResolver(session)
        self.history = AddressHistory(session, clock)
        self.reports = ReportService(session, clock)

    # ── Registration ──────────────────────────────────────────────

    async def register_order(self, draft: OrderDraft, operator: str) -> LiveOrder:
        if draft.idempotency_key:
            existing = await self._by_idempotency_key(draft.idempotency_key)
            if existing:
                return existing

        if not (draft.phone or "").strip():
            raise ValidationFailed("Phone number is required")
        if draft.eta_minutes < 0:
            raise ValidationFailed("Arrival time cannot be negative")

        lookup = await self.resolver.resolve(draft.phone)
        address = (draft.address or lookup.address).strip()
        coordinates = (draft.coordinates or lookup.coordinates).strip()
        if not address and not coordinates:
            raise ValidationFailed("Address or coordinates are required")

        driver = await self._active_driver(draft.unit) if draft.unit else None

        order = PendingOrder(
            id=new_order_id(),
            client_phone=lookup.display_phone,
            client_full_phone=lookup.full_phone,
            client_name=(draft.client_name or (lookup.client.name if lookup.client else "")).strip(),
            address=address,
            sector=(draft.sector or lookup.sector).strip(),
            coordinates=coordinates,
            base=draft.base,
            destination=draft.destination,
            empresa=(draft.empresa or CASH_PAYMENT).strip(),
            mode=draft.mode,
            operator=operator,
            created_at=self.clock(),
        )
        if order.is_corporate:
            order.authorization_number = await self.allocator.allocate()

        await self.pending.add(order, idempotency_key=draft.idempotency_key)
        if lookup.found:
            await self.history.merge(lookup.client, address, coordinates, draft.mode)
        await self.reports.increment(operator, "registered")
        logger.info("Order %s registered by %s", order.id, operator)

        if driver is None:
            return order
        return await self._assign(
            order, driver, draft.eta_minutes, operator, draft.idempotency_key, persisted=True
        )

    # ── PENDING -> IN_PROGRESS ────────────────────────────────────

    async def assign_unit(
        self, order_id: str, unit: str, eta_minutes: int, operator: str
    ) -> InProgressOrder:
        if eta_minutes < 0:
            raise ValidationFailed("Arrival time cannot be negative")
        row = await self.pending.get_by_id(order_id)
        if row is None:
            await self._raise_not_live(order_id, expected=OrderStatus.PENDING)
        driver = await self._active_driver(unit)

        async with DistributedLock(
            self.redis, f"assign:{order_id}", settings.lock_ttl_seconds
        ):
            # checked again under the lock: another operator may have assigned
            # or cancelled the order while this one waited
            if await self.in_progress.reload(order_id):
                raise InvalidStateTransition(f"Order {order_id} is already assigned")
            row = await self.pending.reload(order_id)
            if row is None:
                await self._raise_not_live(order_id, expected=OrderStatus.PENDING)
            assigned = await self._assign(
                pending_from_row(row),
                driver,
                eta_minutes,
                operator,
                row.idempotency_key,
                persisted=True,
            )
            await self.session.commit()
        return assigned

    async def assign_detached(
        self, order: PendingOrder, unit: str, eta_minutes: int, operator: str
    ) -> InProgressOrder:
        """Assign an order that was never written to the pending set (reservations)."""
        driver = await self._active_driver(unit)
        return await self._assign(order, driver, eta_minutes, operator, None, persisted=False)

    async def _assign(
        self,
        order: PendingOrder,
        driver: DriverModel,
        eta_minutes: int,
        operator: str,
        idempotency_key: Optional[str],
        persisted: bool,
    ) -> InProgressOrder:
        if order.is_corporate and order.authorization_number is None:
            order = dataclasses.replace(
                order, authorization_number=await self.allocator.allocate()
            )
        assigned = order.assign(self._snapshot(driver), eta_minutes, self.clock())

        await self.in_progress.put(assigned, idempotency_key=idempotency_key)
        await self.notifications.stage(assigned)
        if persisted:
            await self.pending.delete(order.id)
        await self.reports.increment(operator, "assigned")
        logger.info(
            "Order %s assigned to unit %s by %s", order.id, driver.unit, operator
        )
        return assigned

    # ── Terminal transitions ──────────────────────────────────────

    async def cancel_pending(
        self, order_id: str, kind: OrderStatus, reason: str, operator: str
    ) -> TerminalOrder:
        if kind not in PENDING_TERMINALS:
            raise InvalidStateTransition(
                f"A pending order cannot be closed as {kind.value}"
            )
        async with DistributedLock(
            self.redis, f"assign:{order_id}", settings.lock_ttl_seconds
        ):
            row = await self.pending.reload(order_id)
            if row is None:
                await self._raise_not_live(order_id, expected=OrderStatus.PENDING)
            terminal = pending_from_row(row).terminate(
                kind, reason=reason, closed_by=operator, at=self.clock()
            )
            await self._archive(terminal)
            await self.session.commit()
        return terminal

    async def close_in_progress(
        self, order_id: str, kind: OrderStatus, reason: str, operator: str
    ) -> TerminalOrder:
        if kind not in IN_PROGRESS_TERMINALS:
            raise InvalidStateTransition(
                f"An in-progress order cannot be closed as {kind.value}"
            )
        row = await self.in_progress.get_by_id(order_id)
        if row is None:
            await self._raise_not_live(order_id, expected=OrderStatus.IN_PROGRESS)
        terminal = in_progress_from_row(row).terminate(
            kind, reason=reason, closed_by=operator, at=self.clock()
        )
        await self._archive(terminal)
        return terminal

    async def finalize_voucher(
        self, order_id: str, draft: VoucherDraft, operator: str
    ) -> tuple[TerminalOrder, VoucherModel]:
        draft.validate()
        row = await self.in_progress.get_by_id(order_id)
        if row is None:
            await self._raise_not_live(order_id, expected=OrderStatus.IN_PROGRESS)

        order = dataclasses.replace(
            in_progress_from_row(row),
            client_name=draft.client_name.strip(),
            destination=draft.destination.strip(),
            empresa=draft.empresa.strip(),
        )
        if order.authorization_number is None:
            order.authorization_number = await self.allocator.allocate()

        async with DistributedLock(
            self.redis, "voucher_number", settings.lock_ttl_seconds
        ):
            voucher = await self.vouchers.get_by_order_id(order_id)
            if voucher is None:
                voucher = await self.vouchers.create(
                    VoucherModel(
                        order_id=order_id,
                        voucher_number=await VoucherNumberAllocator(self.session).allocate(),
                        authorization_number=order.authorization_number,
                        empresa=order.empresa,
                        client_name=order.client_name,
                        client_phone=order.client_phone,
                        destination=order.destination,
                        voucher_type=draft.voucher_type,
                        physical_number=draft.physical_number,
                        unit=order.driver.unit,
                        operator=operator,
                    )
                )
            terminal = order.terminate(
                OrderStatus.FINALIZED_VOUCHER,
                reason="voucher",
                closed_by=operator,
                at=self.clock(),
            )
            terminal.extra = {
                "voucher_number": voucher.voucher_number,
                "voucher_type": draft.voucher_type.value,
                "physical_number": draft.physical_number,
            }
            await self._archive(terminal)
            await self.reports.increment(operator, "vouchers")
            # voucher numbers come from max+1: make the row visible before unlocking
            await self.session.commit()
        return terminal, voucher

    async def _archive(self, terminal: TerminalOrder) -> ArchivedOrderModel:
        row = await self.archive.put(terminal, terminal.to_record())
        if terminal.driver is None:
            await self.pending.delete(terminal.id)
        else:
            await self.in_progress.delete(terminal.id)
            await self.notifications.delete(terminal.id)
        counter = (
            "finalized"
            if terminal.kind
            in (OrderStatus.FINALIZED_PLAIN, OrderStatus.FINALIZED_VOUCHER)
            else "cancelled"
        )
        await self.reports.increment(terminal.closed_by, counter)
        logger.info(
            "Order %s closed as %s, archived at %s",
            terminal.id,
            terminal.kind.value,
            terminal.archive_path,
        )
        return row

    # ── Queries ───────────────────────────────────────────────────

    async def list_pending(self) -> list[PendingOrder]:
        return [pending_from_row(r) for r in await self.pending.list_newest_first()]

    async def list_in_progress(self) -> list[InProgressOrder]:
        return [
            in_progress_from_row(r) for r in await self.in_progress.list_newest_first()
        ]

    async def get_archived(self, archive_date: str, order_id: str) -> ArchivedOrderModel:
        row = await self.archive.get(archive_date, order_id)
        if row is None:
            raise OrderNotFound(f"No archived order {order_id} on {archive_date}")
        return row

    async def list_archived(self, archive_date: str) -> list[ArchivedOrderModel]:
        return await self.archive.list_for_date(archive_date)

    # ── Helpers ───────────────────────────────────────────────────

    async def _active_driver(self, unit: Optional[str]) -> DriverModel:
        unit = (unit or "").strip()
        if not unit:
            raise ValidationFailed("Unit number is required")
        driver = await self.drivers.get_by_unit(unit)
        if driver is None:
            raise UnitNotFound(unit)
        if not unit_is_active(driver.estatus):
            raise UnitInactive(unit)
        return driver

    @staticmethod
    def _snapshot(driver: DriverModel) -> DriverSnapshot:
        tokens = [driver.token, driver.fcm_token, driver.device_token]
        push_token = pick_push_token(tokens, settings.min_push_token_length)
        if push_token is None:
            logger.warning(
                "Unit %s has no valid push token; notification will be degraded",
                driver.unit,
            )
        return DriverSnapshot(
            unit=driver.unit,
            name=driver.name or "",
            plate=driver.plate or "",
            color=driver.color or "",
            phone=driver.phone or "",
            photo=driver.photo or "",
            push_token=push_token,
        )

    async def _by_idempotency_key(self, key: str) -> Optional[OrderBase]:
        row = await self.pending.get_by_idempotency_key(key)
        if row:
            return pending_from_row(row)
        row = await self.in_progress.get_by_idempotency_key(key)
        if row:
            return in_progress_from_row(row)
        return None

    async def _raise_not_live(self, order_id: str, expected: OrderStatus) -> NoReturn:
        """Explain why ``order_id`` is not in the ``expected`` set, then raise."""
        if expected == OrderStatus.PENDING and await self.in_progress.get_by_id(order_id):
            raise InvalidStateTransition(f"Order {order_id} is already assigned")
        if expected == OrderStatus.IN_PROGRESS and await self.pending.get_by_id(order_id):
            raise InvalidStateTransition(f"Order {order_id} has no unit assigned yet")
        archived = await self.archive.find_by_order_id(order_id)
        if archived:
            raise InvalidStateTransition(
                f"Order {order_id} is closed ({archived.status.value}) and cannot change"
            )
        raise OrderNotFound(f"Order {order_id} not found")
