"""
Authorization numbering
=======================

Two independent number spaces coexist:

* **General authorizations** (``AuthorizationAllocator``) start at 200 and
  are stamped on corporate orders.  The counter lives in Redis and is bumped
  with ``INCR``, the store's native atomic increment, so concurrent operators
  can never be handed the same number.
* **Voucher numbers** (``VoucherNumberAllocator``) start at 40000 and are
  derived from the voucher ledger itself: highest existing number + 1.
  max+1 is not atomic, so callers hold the ``voucher_number`` lock across
  allocation and insert.

Both allocators fail open: when the backend errors they log a warning and
hand out the seed value instead of failing the operator's action.  That can
issue a duplicate if the backend was only slow; set
``authorization_fail_open = False`` to propagate the error instead.
"""

from __future__ import annotations

import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taxidispatch.config import settings
from taxidispatch.infrastructure.repositories import VoucherRepository

logger = logging.getLogger(__name__)


class AuthorizationAllocator:
    def __init__(
        self,
        client: aioredis.Redis,
        key: Optional[str] = None,
        seed: Optional[int] = None,
        fail_open: Optional[bool] = None,
    ):
        self.redis = client
        self.key = key or settings.authorization_counter_key
        self.seed = seed if seed is not None else settings.authorization_seed
        self.fail_open = (
            fail_open if fail_open is not None else settings.authorization_fail_open
        )

    async def allocate(self) -> int:
        """Issue the next authorization number."""
        try:
            # absent counter behaves as seed - 1, so the first INCR yields the seed
            await self.redis.set(self.key, self.seed - 1, nx=True)
            value = int(await self.redis.incr(self.key))
        except RedisError:
            if not self.fail_open:
                raise
            logger.warning(
                "Authorization counter %s unavailable; issuing fallback %d "
                "(may duplicate an existing number)",
                self.key,
                self.seed,
                exc_info=True,
            )
            return self.seed
        logger.info("Issued authorization %d", value)
        return value

    async def peek(self) -> int:
        """Last issued number, ``seed - 1`` before the first allocation."""
        raw = await self.redis.get(self.key)
        return int(raw) if raw is not None else self.seed - 1


class VoucherNumberAllocator:
    def __init__(
        self,
        session: AsyncSession,
        seed: Optional[int] = None,
        fail_open: Optional[bool] = None,
    ):
        self.vouchers = VoucherRepository(session)
        self.seed = seed if seed is not None else settings.voucher_number_seed
        self.fail_open = (
            fail_open if fail_open is not None else settings.authorization_fail_open
        )

    async def allocate(self) -> int:
        """``max(seed, last + 1)`` over the voucher ledger."""
        try:
            last = await self.vouchers.last_voucher_number()
        except SQLAlchemyError:
            if not self.fail_open:
                raise
            logger.warning(
                "Voucher ledger unavailable; issuing fallback voucher number %d "
                "(may duplicate an existing number)",
                self.seed,
                exc_info=True,
            )
            return self.seed
        if last is None:
            return self.seed
        return max(self.seed, last + 1)
