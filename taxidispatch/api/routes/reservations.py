"""
Reservation endpoints
=====================

POST /api/v1/reservations                  -- book a trip ahead of time
GET  /api/v1/reservations?status=          -- list reservations
POST /api/v1/reservations/{id}/promote     -- assign a unit, creating an in-progress order
"""

from __future__ import annotations

from typing import Optional

import redis.asyncio as aioredis
from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from taxidispatch.api.dependencies import get_db, get_operator_session, get_webhook
from taxidispatch.api.middleware import limiter
from taxidispatch.api.schemas import (
    AssignRequest,
    OrderResponse,
    ReservationCreateRequest,
    ReservationPromoteResponse,
    ReservationResponse,
)
from taxidispatch.config import settings
from taxidispatch.domain.enums import ReservationStatus
from taxidispatch.infrastructure.redis_client import get_redis
from taxidispatch.infrastructure.sessions import OperatorSession
from taxidispatch.infrastructure.webhook import WebhookClient, reservation_confirmation
from taxidispatch.services.reservations import ReservationDraft, ReservationService

router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.post(
    "",
    status_code=201,
    response_model=ReservationResponse,
    summary="Book a reservation",
    description="A confirmation message is sent to the client in the background.",
)
@limiter.limit(settings.rate_limit)
async def create_reservation(
    request: Request,
    body: ReservationCreateRequest,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    webhook: WebhookClient = Depends(get_webhook),
    session: OperatorSession = Depends(get_operator_session),
):
    reservation = await ReservationService(db, redis).create(
        ReservationDraft(**body.model_dump()), session.operator_name
    )
    await db.commit()
    background.add_task(
        webhook.send,
        reservation.client_phone,
        reservation_confirmation(
            reservation.client_name,
            reservation.scheduled_at.strftime("%d-%m-%Y %H:%M"),
            reservation.destination,
        ),
    )
    return reservation


@router.get(
    "",
    response_model=list[ReservationResponse],
    summary="List reservations, soonest first",
)
@limiter.limit(settings.rate_limit)
async def list_reservations(
    request: Request,
    status: Optional[ReservationStatus] = None,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    session: OperatorSession = Depends(get_operator_session),
):
    return await ReservationService(db, redis).list(status)


@router.post(
    "/{reservation_id}/promote",
    response_model=ReservationPromoteResponse,
    summary="Assign a unit to a reservation",
)
@limiter.limit(settings.rate_limit)
async def promote_reservation(
    request: Request,
    reservation_id: int,
    body: AssignRequest,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    session: OperatorSession = Depends(get_operator_session),
):
    reservation, order = await ReservationService(db, redis).promote(
        reservation_id, body.unit, body.eta_minutes, session.operator_name
    )
    await db.flush()
    return ReservationPromoteResponse(
        reservation=ReservationResponse.model_validate(reservation),
        order=OrderResponse.from_entity(order),
    )
