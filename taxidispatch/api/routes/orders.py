"""
Order endpoints
===============

POST /api/v1/orders                        -- register an order (optionally assigned)
GET  /api/v1/orders/pending                -- pending orders, newest first
GET  /api/v1/orders/in-progress            -- in-progress orders, newest first
POST /api/v1/orders/{order_id}/assign      -- assign a unit to a pending order
POST /api/v1/orders/{order_id}/cancel      -- close a pending order
POST /api/v1/orders/{order_id}/close       -- close an in-progress order
POST /api/v1/orders/{order_id}/voucher     -- finalize with a corporate voucher
GET  /api/v1/orders/archive/{date}         -- archived orders for DD-MM-YYYY
GET  /api/v1/orders/archive/{date}/{order_id}
"""

from __future__ import annotations

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from taxidispatch.api.dependencies import (
    checked_archive_date,
    get_db,
    get_operator_session,
)
from taxidispatch.api.middleware import limiter
from taxidispatch.api.schemas import (
    ArchivedOrderResponse,
    AssignRequest,
    CloseRequest,
    OrderCreateRequest,
    OrderResponse,
    TerminalOrderResponse,
    VoucherFinalizeResponse,
    VoucherRequest,
    VoucherResponse,
)
from taxidispatch.config import settings
from taxidispatch.domain.exceptions import RegistrationInProgress
from taxidispatch.infrastructure.locks import DistributedLock
from taxidispatch.infrastructure.redis_client import get_redis
from taxidispatch.infrastructure.sessions import OperatorSession
from taxidispatch.services.dispatch import DispatchService, OrderDraft, VoucherDraft

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "",
    status_code=201,
    response_model=OrderResponse,
    summary="Register a ride order",
    description=(
        "Resolves the caller, fills missing address / sector from the client "
        "record and stores the order as PENDING.  When ``unit`` is given the "
        "order is assigned in the same request and returned IN_PROGRESS."
    ),
)
@limiter.limit(settings.rate_limit)
async def create_order(
    request: Request,
    body: OrderCreateRequest,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    session: OperatorSession = Depends(get_operator_session),
):
    # ── Double-submit guard ───────────────────────────────────────
    guard = DistributedLock(
        redis, f"registration:{session.token}", settings.lock_ttl_seconds
    )
    if not await guard.acquire():
        raise RegistrationInProgress()
    try:
        order = await DispatchService(db, redis).register_order(
            OrderDraft(**body.model_dump()), session.operator_name
        )
        await db.commit()
    finally:
        await guard.release()
    return OrderResponse.from_entity(order)


@router.get(
    "/pending",
    response_model=list[OrderResponse],
    summary="List pending orders, newest first",
)
@limiter.limit(settings.rate_limit)
async def list_pending(
    request: Request,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    session: OperatorSession = Depends(get_operator_session),
):
    orders = await DispatchService(db, redis).list_pending()
    return [OrderResponse.from_entity(o) for o in orders]


@router.get(
    "/in-progress",
    response_model=list[OrderResponse],
    summary="List in-progress orders, newest first",
)
@limiter.limit(settings.rate_limit)
async def list_in_progress(
    request: Request,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    session: OperatorSession = Depends(get_operator_session),
):
    orders = await DispatchService(db, redis).list_in_progress()
    return [OrderResponse.from_entity(o) for o in orders]


@router.post(
    "/{order_id}/assign",
    response_model=OrderResponse,
    summary="Assign a unit to a pending order",
)
@limiter.limit(settings.rate_limit)
async def assign_order(
    request: Request,
    order_id: str,
    body: AssignRequest,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    session: OperatorSession = Depends(get_operator_session),
):
    order = await DispatchService(db, redis).assign_unit(
        order_id, body.unit, body.eta_minutes, session.operator_name
    )
    return OrderResponse.from_entity(order)


@router.post(
    "/{order_id}/cancel",
    response_model=TerminalOrderResponse,
    summary="Close a pending order",
    description="Allowed kinds: CANCELLED_UNASSIGNED, NO_UNIT_AVAILABLE.",
)
@limiter.limit(settings.rate_limit)
async def cancel_order(
    request: Request,
    order_id: str,
    body: CloseRequest,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    session: OperatorSession = Depends(get_operator_session),
):
    terminal = await DispatchService(db, redis).cancel_pending(
        order_id, body.kind, body.reason, session.operator_name
    )
    return TerminalOrderResponse.from_entity(terminal)


@router.post(
    "/{order_id}/close",
    response_model=TerminalOrderResponse,
    summary="Close an in-progress order",
    description=(
        "Allowed kinds: CANCELLED_BY_CLIENT, CANCELLED_BY_UNIT, "
        "FINALIZED_PLAIN.  Voucher finalization has its own endpoint."
    ),
)
@limiter.limit(settings.rate_limit)
async def close_order(
    request: Request,
    order_id: str,
    body: CloseRequest,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    session: OperatorSession = Depends(get_operator_session),
):
    terminal = await DispatchService(db, redis).close_in_progress(
        order_id, body.kind, body.reason, session.operator_name
    )
    return TerminalOrderResponse.from_entity(terminal)


@router.post(
    "/{order_id}/voucher",
    response_model=VoucherFinalizeResponse,
    summary="Finalize an in-progress order with a corporate voucher",
)
@limiter.limit(settings.rate_limit)
async def finalize_with_voucher(
    request: Request,
    order_id: str,
    body: VoucherRequest,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    session: OperatorSession = Depends(get_operator_session),
):
    terminal, voucher = await DispatchService(db, redis).finalize_voucher(
        order_id, VoucherDraft(**body.model_dump()), session.operator_name
    )
    return VoucherFinalizeResponse(
        order=TerminalOrderResponse.from_entity(terminal),
        voucher=VoucherResponse.model_validate(voucher),
    )


@router.get(
    "/archive/{archive_date}",
    response_model=list[ArchivedOrderResponse],
    summary="List orders archived on a local date (DD-MM-YYYY)",
)
@limiter.limit(settings.rate_limit)
async def list_archived(
    request: Request,
    archive_date: str,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    session: OperatorSession = Depends(get_operator_session),
):
    rows = await DispatchService(db, redis).list_archived(
        checked_archive_date(archive_date)
    )
    return [ArchivedOrderResponse.from_row(r) for r in rows]


@router.get(
    "/archive/{archive_date}/{order_id}",
    response_model=ArchivedOrderResponse,
    summary="Get one archived order",
)
@limiter.limit(settings.rate_limit)
async def get_archived(
    request: Request,
    archive_date: str,
    order_id: str,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    session: OperatorSession = Depends(get_operator_session),
):
    row = await DispatchService(db, redis).get_archived(
        checked_archive_date(archive_date), order_id
    )
    return ArchivedOrderResponse.from_row(row)
