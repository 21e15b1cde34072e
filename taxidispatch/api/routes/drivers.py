"""
Driver registry endpoints
=========================

POST  /api/v1/drivers                  -- register a unit
GET   /api/v1/drivers                  -- list units
PATCH /api/v1/drivers/{unit}           -- edit driver details
POST  /api/v1/drivers/{unit}/status    -- activate / deactivate, broadcast the change
GET   /api/v1/drivers/{unit}/history   -- status change audit trail
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from taxidispatch.api.dependencies import get_db, get_operator_session, get_webhook
from taxidispatch.api.middleware import limiter
from taxidispatch.api.schemas import (
    DriverCreateRequest,
    DriverResponse,
    DriverStatusLogResponse,
    DriverStatusRequest,
    DriverUpdateRequest,
)
from taxidispatch.config import settings
from taxidispatch.infrastructure.sessions import OperatorSession
from taxidispatch.infrastructure.webhook import WebhookClient, driver_status_broadcast
from taxidispatch.services.drivers import DriverDraft, DriverService

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.post(
    "",
    status_code=201,
    response_model=DriverResponse,
    summary="Register a unit and its driver",
)
@limiter.limit(settings.rate_limit)
async def create_driver(
    request: Request,
    body: DriverCreateRequest,
    db: AsyncSession = Depends(get_db),
    session: OperatorSession = Depends(get_operator_session),
):
    return await DriverService(db).create(DriverDraft(**body.model_dump()))


@router.get("", response_model=list[DriverResponse], summary="List units")
@limiter.limit(settings.rate_limit)
async def list_drivers(
    request: Request,
    db: AsyncSession = Depends(get_db),
    session: OperatorSession = Depends(get_operator_session),
):
    return await DriverService(db).list()


@router.patch(
    "/{unit}",
    response_model=DriverResponse,
    summary="Edit driver details",
    description="Only the fields present in the body are changed.",
)
@limiter.limit(settings.rate_limit)
async def update_driver(
    request: Request,
    unit: str,
    body: DriverUpdateRequest,
    db: AsyncSession = Depends(get_db),
    session: OperatorSession = Depends(get_operator_session),
):
    return await DriverService(db).update(unit, body.model_dump(exclude_unset=True))


@router.post(
    "/{unit}/status",
    response_model=DriverResponse,
    summary="Activate or deactivate a unit",
    description="A change is logged and broadcast to the driver in the background.",
)
@limiter.limit(settings.rate_limit)
async def set_driver_status(
    request: Request,
    unit: str,
    body: DriverStatusRequest,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    webhook: WebhookClient = Depends(get_webhook),
    session: OperatorSession = Depends(get_operator_session),
):
    driver, changed = await DriverService(db).set_status(
        unit, body.estatus, session.operator_name
    )
    if changed and driver.phone:
        background.add_task(
            webhook.send,
            driver.phone,
            driver_status_broadcast(driver.unit, driver.name, driver.estatus),
        )
    return driver


@router.get(
    "/{unit}/history",
    response_model=list[DriverStatusLogResponse],
    summary="Status change history for a unit",
)
@limiter.limit(settings.rate_limit)
async def driver_history(
    request: Request,
    unit: str,
    db: AsyncSession = Depends(get_db),
    session: OperatorSession = Depends(get_operator_session),
):
    return await DriverService(db).history(unit)
