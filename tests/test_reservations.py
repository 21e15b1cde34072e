"""Reservation booking and promotion into live orders."""

from __future__ import annotations

from datetime import datetime

import pytest

from taxidispatch.domain.enums import ClientKind, OrderStatus, ReservationStatus
from taxidispatch.domain.exceptions import (
    InvalidStateTransition,
    ReservationNotFound,
    UnitInactive,
    ValidationFailed,
)
from taxidispatch.infrastructure.models import InProgressOrderModel, NotificationModel
from taxidispatch.services.reservations import ReservationDraft, ReservationService
from tests.conftest import LOCAL_TZ, add_client, add_driver

SCHEDULED = datetime(2026, 10, 20, 6, 0, tzinfo=LOCAL_TZ)


def _draft(**overrides) -> ReservationDraft:
    data = dict(
        phone="0991234567",
        scheduled_at=SCHEDULED,
        client_name="Ana",
        address="Av. Quito 100",
        destination="Aeropuerto",
        motive="Vuelo 7:30",
    )
    data.update(overrides)
    return ReservationDraft(**data)


@pytest.fixture
def service(db_session, fake_redis, clock) -> ReservationService:
    return ReservationService(db_session, fake_redis, clock)


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_is_pending(self, service):
        reservation = await service.create(_draft(), "maria")
        assert reservation.id is not None
        assert reservation.status == ReservationStatus.PENDIENTE
        assert reservation.client_phone == "593991234567"
        assert reservation.operator == "maria"

    @pytest.mark.asyncio
    async def test_known_client_fills_name(self, service, db_session):
        await add_client(db_session, ClientKind.MOBILE, "593991234567", name="Rosa")
        reservation = await service.create(_draft(client_name=""), "maria")
        assert reservation.client_name == "Rosa"

    @pytest.mark.asyncio
    async def test_bad_phone_rejected(self, service):
        with pytest.raises(ValidationFailed):
            await service.create(_draft(phone="12"), "maria")

    @pytest.mark.asyncio
    async def test_address_required(self, service):
        with pytest.raises(ValidationFailed):
            await service.create(_draft(address="", coordinates=""), "maria")

    @pytest.mark.asyncio
    async def test_list_by_status(self, service, db_session):
        await add_driver(db_session, unit="12")
        first = await service.create(_draft(), "maria")
        await service.create(_draft(), "maria")
        await service.promote(first.id, "12", 10, "maria")

        pending = await service.list(ReservationStatus.PENDIENTE)
        assigned = await service.list(ReservationStatus.ASIGNADA)
        assert len(pending) == 1
        assert [r.id for r in assigned] == [first.id]
        assert len(await service.list()) == 2


class TestPromote:
    @pytest.mark.asyncio
    async def test_promote_creates_in_progress_order(self, service, db_session):
        await add_driver(db_session, unit="12")
        reservation = await service.create(_draft(), "maria")

        updated, order = await service.promote(reservation.id, "12", 10, "luis")

        assert order.status == OrderStatus.IN_PROGRESS
        assert order.destination == "Aeropuerto"
        assert updated.status == ReservationStatus.ASIGNADA
        assert updated.unit == "12"
        assert updated.order_id == order.id
        assert await db_session.get(InProgressOrderModel, order.id) is not None
        assert await db_session.get(NotificationModel, order.id) is not None

    @pytest.mark.asyncio
    async def test_corporate_reservation_gets_authorization(self, service, db_session):
        await add_driver(db_session, unit="12")
        reservation = await service.create(_draft(empresa="Clínica Kennedy"), "maria")
        updated, order = await service.promote(reservation.id, "12", 10, "maria")
        assert order.authorization_number == 200
        assert updated.authorization_number == 200

    @pytest.mark.asyncio
    async def test_second_promote_rejected(self, service, db_session):
        await add_driver(db_session, unit="12")
        reservation = await service.create(_draft(), "maria")
        await service.promote(reservation.id, "12", 10, "maria")

        with pytest.raises(InvalidStateTransition, match="already assigned"):
            await service.promote(reservation.id, "12", 10, "maria")

    @pytest.mark.asyncio
    async def test_inactive_unit_keeps_reservation_pending(self, service, db_session):
        await add_driver(db_session, unit="40", estatus=False)
        reservation = await service.create(_draft(), "maria")

        with pytest.raises(UnitInactive):
            await service.promote(reservation.id, "40", 10, "maria")
        assert reservation.status == ReservationStatus.PENDIENTE

    @pytest.mark.asyncio
    async def test_unknown_reservation(self, service):
        with pytest.raises(ReservationNotFound):
            await service.promote(999, "12", 10, "maria")
