"""
Reservations: trips booked ahead of time.

A reservation is promoted straight into an in-progress order once a unit is
assigned.  The reservation row stays behind, marked ``asignada`` with the
unit and the order id, as the audit trail.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession

from taxidispatch.domain.entities import InProgressOrder, PendingOrder
from taxidispatch.domain.enums import CASH_PAYMENT, PhoneFormat, ReservationStatus
from taxidispatch.domain.exceptions import (
    InvalidStateTransition,
    ReservationNotFound,
    ValidationFailed,
)
from taxidispatch.domain.phone import classify_phone
from taxidispatch.infrastructure.models import ReservationModel
from taxidispatch.infrastructure.repositories import ReservationRepository
from taxidispatch.services.clock import Clock, local_now
from taxidispatch.services.dispatch import DispatchService, new_order_id

logger = logging.getLogger(__name__)


@dataclass
class ReservationDraft:
    phone: str
    scheduled_at: datetime
    client_name: str = ""
    address: str = ""
    coordinates: str = ""
    sector: str = ""
    motive: str = ""
    destination: str = ""
    empresa: str = CASH_PAYMENT
    authorization_number: Optional[int] = None


class ReservationService:
    def __init__(
        self,
        session: AsyncSession,
        redis: aioredis.Redis,
        clock: Clock = local_now,
        dispatch: Optional[DispatchService] = None,
    ):
        self.reservations = ReservationRepository(session)
        self.dispatch = dispatch or DispatchService(session, redis, clock)
        self.clock = clock

    async def create(self, draft: ReservationDraft, operator: str) -> ReservationModel:
        if classify_phone(draft.phone) == PhoneFormat.INVALID:
            raise ValidationFailed(f"Malformed phone number: {draft.phone!r}")
        if not (draft.address or draft.coordinates).strip():
            raise ValidationFailed("Address or coordinates are required")

        lookup = await self.dispatch.resolver.resolve(draft.phone)
        reservation = await self.reservations.create(
            ReservationModel(
                client_phone=lookup.display_phone,
                client_name=(draft.client_name or (lookup.client.name if lookup.client else "")).strip(),
                address=draft.address.strip(),
                coordinates=draft.coordinates.strip(),
                sector=draft.sector or lookup.sector,
                scheduled_at=draft.scheduled_at,
                motive=draft.motive,
                destination=draft.destination,
                empresa=(draft.empresa or CASH_PAYMENT).strip(),
                authorization_number=draft.authorization_number,
                status=ReservationStatus.PENDIENTE,
                operator=operator,
            )
        )
        logger.info(
            "Reservation %d for %s scheduled at %s",
            reservation.id,
            reservation.client_phone,
            reservation.scheduled_at,
        )
        return reservation

    async def list(self, status: Optional[ReservationStatus] = None) -> list[ReservationModel]:
        return await self.reservations.list(status)

    async def promote(
        self, reservation_id: int, unit: str, eta_minutes: int, operator: str
    ) -> tuple[ReservationModel, InProgressOrder]:
        reservation = await self.reservations.get_by_id(reservation_id)
        if reservation is None:
            raise ReservationNotFound(f"Reservation {reservation_id} not found")
        if reservation.status != ReservationStatus.PENDIENTE:
            raise InvalidStateTransition(
                f"Reservation {reservation_id} was already assigned to unit {reservation.unit}"
            )

        lookup = await self.dispatch.resolver.resolve(reservation.client_phone)
        order = PendingOrder(
            id=new_order_id(),
            client_phone=reservation.client_phone,
            client_full_phone=lookup.full_phone,
            client_name=reservation.client_name,
            address=reservation.address,
            sector=reservation.sector,
            coordinates=reservation.coordinates,
            destination=reservation.destination,
            empresa=reservation.empresa,
            authorization_number=reservation.authorization_number,
            operator=operator,
            created_at=self.clock(),
        )
        assigned = await self.dispatch.assign_detached(order, unit, eta_minutes, operator)

        reservation.status = ReservationStatus.ASIGNADA
        reservation.unit = assigned.driver.unit
        reservation.order_id = assigned.id
        reservation.authorization_number = assigned.authorization_number
        if lookup.found:
            await self.dispatch.history.merge(
                lookup.client, reservation.address, reservation.coordinates
            )
        logger.info(
            "Reservation %d promoted to order %s (unit %s)",
            reservation.id,
            assigned.id,
            reservation.unit,
        )
        return reservation, assigned
