"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production models carry no
PostgreSQL-only column types, so ``Base.metadata`` is created directly.
Redis is replaced by ``FakeRedis``, a small in-memory double covering the
commands the service issues (SET NX/EX, GET, INCR, DELETE and the lock
release script).
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from taxidispatch.infrastructure.database import Base
from taxidispatch.infrastructure.locks import RELEASE_SCRIPT
from taxidispatch.infrastructure.models import ClientModel, DriverModel


# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(TEST_DB_URL, echo=False)
TestSessionFactory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)

# Dispatch centre local time (UTC-5, no DST)
LOCAL_TZ = timezone(timedelta(hours=-5))
PUSH_TOKEN = "t" * 120


class FixedClock:
    """Callable clock the tests can move forward."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 10, 19, 9, 30, tzinfo=LOCAL_TZ)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeRedis:
    """In-memory stand-in for ``redis.asyncio.Redis`` (decode_responses=True)."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.expiry: dict[str, float] = {}

    def _alive(self, key: str) -> bool:
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= time.monotonic():
            self.store.pop(key, None)
            self.expiry.pop(key, None)
        return key in self.store

    async def set(self, key, value, nx=False, ex=None):
        if nx and self._alive(key):
            return None
        self.store[key] = str(value)
        if ex:
            self.expiry[key] = time.monotonic() + ex
        else:
            self.expiry.pop(key, None)
        return True

    async def get(self, key):
        return self.store[key] if self._alive(key) else None

    async def incr(self, key):
        value = int(self.store[key]) + 1 if self._alive(key) else 1
        self.store[key] = str(value)
        return value

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self._alive(key):
                removed += 1
            self.store.pop(key, None)
            self.expiry.pop(key, None)
        return removed

    async def eval(self, script, numkeys, *args):
        if script != RELEASE_SCRIPT:
            raise NotImplementedError(
                "FakeRedis.eval only understands the lock release script"
            )
        key, token = args[0], args[1]
        if self._alive(key) and self.store[key] == token:
            return await self.delete(key)
        return 0


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield a session, then drop everything."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionFactory() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def session_factory(db_session) -> async_sessionmaker:
    """Factory bound to the same test database as ``db_session``."""
    return TestSessionFactory


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


async def add_driver(
    session: AsyncSession,
    unit: str = "12",
    estatus=True,
    fcm_token: Optional[str] = PUSH_TOKEN,
    **fields,
) -> DriverModel:
    driver = DriverModel(
        unit=unit,
        name=fields.pop("name", f"Driver {unit}"),
        plate=fields.pop("plate", "PBA-1234"),
        color=fields.pop("color", "Amarillo"),
        phone=fields.pop("phone", "0991234567"),
        photo=fields.pop("photo", ""),
        estatus=estatus,
        fcm_token=fcm_token,
        **fields,
    )
    session.add(driver)
    await session.flush()
    return driver


async def add_client(session: AsyncSession, kind, doc_id: str, **fields) -> ClientModel:
    fields.setdefault("telefono", doc_id)
    client = ClientModel(
        kind=kind,
        doc_id=doc_id,
        name=fields.pop("name", "Cliente"),
        sector=fields.pop("sector", ""),
        addresses=fields.pop("addresses", []),
        **fields,
    )
    session.add(client)
    await session.flush()
    return client
