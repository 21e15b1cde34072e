"""
Authorization numbering tests.

1. The general sequence starts at 200 and never repeats, even when callers
   race.
2. Voucher numbers live in a separate space starting at 40000.
3. Both allocators fail open with the seed value unless told not to.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import OperationalError

from taxidispatch.domain.enums import VoucherType
from taxidispatch.infrastructure.models import VoucherModel
from taxidispatch.services.sequence import (
    AuthorizationAllocator,
    VoucherNumberAllocator,
)


def _voucher(number: int, order_id: str) -> VoucherModel:
    return VoucherModel(
        order_id=order_id,
        voucher_number=number,
        authorization_number=200,
        empresa="Corporación Andina",
        client_name="Ana",
        destination="Aeropuerto",
        voucher_type=VoucherType.ELECTRONIC,
    )


class TestAuthorizationAllocator:
    @pytest.mark.asyncio
    async def test_first_number_is_200(self, fake_redis):
        allocator = AuthorizationAllocator(fake_redis, key="seq")
        assert await allocator.allocate() == 200

    @pytest.mark.asyncio
    async def test_sequence_is_strictly_increasing(self, fake_redis):
        allocator = AuthorizationAllocator(fake_redis, key="seq")
        issued = [await allocator.allocate() for _ in range(5)]
        assert issued == [200, 201, 202, 203, 204]

    @pytest.mark.asyncio
    async def test_concurrent_callers_get_distinct_numbers(self, fake_redis):
        """Two operators pressing the button at the same moment."""
        first = AuthorizationAllocator(fake_redis, key="seq")
        second = AuthorizationAllocator(fake_redis, key="seq")
        results = await asyncio.gather(
            *[first.allocate() for _ in range(10)],
            *[second.allocate() for _ in range(10)],
        )
        assert len(set(results)) == 20
        assert min(results) == 200

    @pytest.mark.asyncio
    async def test_existing_counter_is_not_reseeded(self, fake_redis):
        await fake_redis.set("seq", "350")
        allocator = AuthorizationAllocator(fake_redis, key="seq")
        assert await allocator.allocate() == 351

    @pytest.mark.asyncio
    async def test_peek(self, fake_redis):
        allocator = AuthorizationAllocator(fake_redis, key="seq")
        assert await allocator.peek() == 199
        await allocator.allocate()
        assert await allocator.peek() == 200

    @pytest.mark.asyncio
    async def test_fails_open_with_seed(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(side_effect=RedisConnectionError("down"))
        allocator = AuthorizationAllocator(mock_redis, key="seq", fail_open=True)
        assert await allocator.allocate() == 200

    @pytest.mark.asyncio
    async def test_fail_closed_propagates(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        mock_redis.incr = AsyncMock(side_effect=RedisConnectionError("down"))
        allocator = AuthorizationAllocator(mock_redis, key="seq", fail_open=False)
        with pytest.raises(RedisConnectionError):
            await allocator.allocate()


class TestVoucherNumberAllocator:
    @pytest.mark.asyncio
    async def test_empty_ledger_starts_at_40000(self, db_session):
        assert await VoucherNumberAllocator(db_session).allocate() == 40000

    @pytest.mark.asyncio
    async def test_next_after_highest(self, db_session):
        db_session.add_all([_voucher(40000, "a"), _voucher(40007, "b")])
        await db_session.flush()
        assert await VoucherNumberAllocator(db_session).allocate() == 40008

    @pytest.mark.asyncio
    async def test_never_below_seed(self, db_session):
        db_session.add(_voucher(12, "legacy"))
        await db_session.flush()
        assert await VoucherNumberAllocator(db_session).allocate() == 40000

    @pytest.mark.asyncio
    async def test_independent_of_general_sequence(self, db_session, fake_redis):
        general = AuthorizationAllocator(fake_redis, key="seq")
        for _ in range(3):
            await general.allocate()
        assert await VoucherNumberAllocator(db_session).allocate() == 40000
        assert await general.allocate() == 203

    @pytest.mark.asyncio
    async def test_fails_open_with_seed(self, db_session):
        allocator = VoucherNumberAllocator(db_session, fail_open=True)
        allocator.vouchers.last_voucher_number = AsyncMock(
            side_effect=OperationalError("SELECT", {}, Exception("gone"))
        )
        assert await allocator.allocate() == 40000

    @pytest.mark.asyncio
    async def test_fail_closed_propagates(self, db_session):
        allocator = VoucherNumberAllocator(db_session, fail_open=False)
        allocator.vouchers.last_voucher_number = AsyncMock(
            side_effect=OperationalError("SELECT", {}, Exception("gone"))
        )
        with pytest.raises(OperationalError):
            await allocator.allocate()
