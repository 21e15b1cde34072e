"""
Operator session endpoints
==========================

POST   /api/v1/sessions -- log in, returns a bearer token
DELETE /api/v1/sessions -- log out the current token
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from taxidispatch.api.dependencies import (
    get_db,
    get_operator_session,
    get_session_store,
)
from taxidispatch.api.middleware import limiter
from taxidispatch.api.schemas import LoginRequest, SessionResponse
from taxidispatch.config import settings
from taxidispatch.domain.exceptions import SessionInvalid
from taxidispatch.infrastructure.repositories import OperatorRepository
from taxidispatch.infrastructure.sessions import (
    OperatorSession,
    SessionStore,
    check_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post(
    "",
    status_code=201,
    response_model=SessionResponse,
    summary="Log in an operator",
)
@limiter.limit(settings.rate_limit)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
):
    operator = await OperatorRepository(db).get_by_username(body.username)
    if (
        operator is None
        or not operator.is_active
        or not check_password(body.password, operator.password_hash)
    ):
        logger.info("Rejected login for %s", body.username)
        raise SessionInvalid("Wrong username or password")

    session = await store.open(operator.id, operator.name)
    logger.info("Operator %s logged in", operator.name)
    return SessionResponse(token=session.token, operator_name=session.operator_name)


@router.delete("", status_code=204, summary="Log out")
@limiter.limit(settings.rate_limit)
async def logout(
    request: Request,
    session: OperatorSession = Depends(get_operator_session),
    store: SessionStore = Depends(get_session_store),
):
    await store.close(session.token)
    logger.info("Operator %s logged out", session.operator_name)
