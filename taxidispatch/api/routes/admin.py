"""
Admin / observability endpoints
===============================

GET /api/v1/admin/health         -- simple health check
GET /api/v1/admin/authorization  -- last issued general authorization number
"""

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Request

from taxidispatch.api.dependencies import get_operator_session
from taxidispatch.api.middleware import limiter
from taxidispatch.api.schemas import AuthorizationStateResponse, HealthResponse
from taxidispatch.config import settings
from taxidispatch.infrastructure.redis_client import get_redis
from taxidispatch.infrastructure.sessions import OperatorSession
from taxidispatch.services.sequence import AuthorizationAllocator

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/authorization",
    response_model=AuthorizationStateResponse,
    summary="Last issued authorization number",
)
@limiter.limit(settings.rate_limit)
async def authorization_state(
    request: Request,
    redis: aioredis.Redis = Depends(get_redis),
    session: OperatorSession = Depends(get_operator_session),
):
    return AuthorizationStateResponse(
        last_issued=await AuthorizationAllocator(redis).peek()
    )


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
