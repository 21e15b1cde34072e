"""FastAPI dependency injection helpers."""

from typing import Optional

import redis.asyncio as aioredis
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from taxidispatch.config import settings
from taxidispatch.domain.entities import parse_archive_date
from taxidispatch.domain.exceptions import SessionInvalid, ValidationFailed
from taxidispatch.infrastructure.database import async_session_factory
from taxidispatch.infrastructure.redis_client import get_redis
from taxidispatch.infrastructure.sessions import OperatorSession, SessionStore
from taxidispatch.infrastructure.webhook import WebhookClient

bearer = HTTPBearer(auto_error=False)


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session_store(
    redis: aioredis.Redis = Depends(get_redis),
) -> SessionStore:
    return SessionStore(redis, settings.session_ttl_seconds)


async def get_operator_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    store: SessionStore = Depends(get_session_store),
) -> OperatorSession:
    """Resolve the bearer token to the logged-in operator, else 401."""
    if credentials is None:
        raise SessionInvalid("Login required")
    session = await store.load(credentials.credentials)
    if session is None:
        raise SessionInvalid("Session expired, log in again")
    return session


def get_webhook() -> WebhookClient:
    return WebhookClient()


def checked_archive_date(value: str) -> str:
    """Reject archive dates that are not ``DD-MM-YYYY``."""
    try:
        parse_archive_date(value)
    except ValueError:
        raise ValidationFailed(f"Archive dates are DD-MM-YYYY, got {value!r}")
    return value
