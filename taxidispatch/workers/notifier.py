"""
Background Notification Worker
==============================

Runs every ``NOTIFICATION_INTERVAL_SECONDS`` (default 10 s) when
``PUSH_GATEWAY_URL`` is configured.

Assignment writes a copy of the order into ``notification_staging``; this
worker drains that table and posts one push request per row to the gateway
so the driver's device rings.

Concurrency safety
------------------
* **Redis distributed lock** ensures only one instance runs the cycle at a
  time across multiple API processes.
* **SELECT … FOR UPDATE** on the staged rows keeps a slow cycle and a fresh
  one from delivering the same row twice.

Per cycle
---------
1. Fetch staged rows, oldest first.
2. Rows without a device token are dropped with a warning: the order itself
   is already in progress, only the ring is lost.
3. POST ``{order_id, unit, token, title, body}`` to the gateway.
4. Delete each delivered row; failed rows stay staged for the next cycle.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from taxidispatch.config import settings
from taxidispatch.infrastructure.database import async_session_factory
from taxidispatch.infrastructure.locks import DistributedLock
from taxidispatch.infrastructure.models import NotificationModel
from taxidispatch.infrastructure.redis_client import get_redis
from taxidispatch.infrastructure.repositories import NotificationRepository

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_notification_loop() -> None:
    global _task, _stop_event
    if not settings.push_gateway_url:
        logger.info("Notification worker disabled (no push gateway configured)")
        return
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Notification worker started (interval=%ds)",
        settings.notification_interval_seconds,
    )


async def stop_notification_loop() -> None:
    global _task, _stop_event
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
        logger.info("Notification worker stopped")
    _task = None
    _stop_event = None


def push_payload(row: NotificationModel) -> dict:
    return {
        "order_id": row.id,
        "unit": row.unit,
        "token": row.push_token,
        "title": "Nuevo pedido asignado",
        "body": f"{row.client_name or 'Cliente'}: {row.address or row.coordinates}",
    }


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    """Periodic loop: run a notification cycle then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_notification_cycle()
        except Exception:
            logger.exception("Unhandled error in notification cycle")
        # Wait for the interval or until stop is signalled
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.notification_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle


async def run_notification_cycle(
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    """Execute one delivery cycle.  Returns the number of rows delivered."""
    if not settings.push_gateway_url:
        return 0

    redis = await get_redis()
    lock = DistributedLock(redis, "notification_staging", ttl_seconds=60)

    if not await lock.acquire():
        logger.debug("Lock held by another worker, skipping notification cycle")
        return 0

    delivered = 0
    try:
        async with async_session_factory() as session:
            repo = NotificationRepository(session)
            staged = await repo.get_staged_for_update()
            if not staged:
                await session.commit()
                return 0

            async with httpx.AsyncClient(
                timeout=settings.webhook_timeout_seconds, transport=transport
            ) as client:
                for row in staged:
                    if not row.push_token:
                        logger.warning(
                            "Dropping notification for order %s: unit %s has no "
                            "valid push token",
                            row.id,
                            row.unit,
                        )
                        await repo.delete(row.id)
                        continue
                    try:
                        response = await client.post(
                            settings.push_gateway_url, json=push_payload(row)
                        )
                        response.raise_for_status()
                    except httpx.HTTPError as exc:
                        logger.warning(
                            "Push for order %s to unit %s failed: %s",
                            row.id,
                            row.unit,
                            exc,
                        )
                        continue
                    await repo.delete(row.id)
                    delivered += 1

            await session.commit()
            if delivered:
                logger.info("Notification cycle: %d pushes delivered", delivered)
    except Exception:
        logger.exception("Error in notification cycle")
    finally:
        await lock.release()

    return delivered
