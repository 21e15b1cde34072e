"""
Outbound WhatsApp-style messaging.

A plain form-encoded POST to a fixed endpoint.  Delivery is fire-and-forget:
callers schedule ``send`` as a background task and a failure is only logged,
it never blocks or fails the operation that triggered it.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from taxidispatch.config import settings

logger = logging.getLogger(__name__)


class WebhookClient:
    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url if url is not None else settings.webhook_url
        self.timeout = timeout if timeout is not None else settings.webhook_timeout_seconds
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def send(self, phone: str, message: str) -> bool:
        """POST ``numero`` / ``mensaje``.  Returns True when delivered."""
        if not self.enabled:
            logger.debug("Webhook disabled, dropping message to %s", phone)
            return False
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self.url, data={"numero": phone, "mensaje": message}
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Webhook delivery to %s failed: %s", phone, exc)
            return False
        return True


def reservation_confirmation(
    client_name: str, scheduled_for: str, destination: str
) -> str:
    return (
        f"Hola {client_name or 'cliente'}, su reserva para el {scheduled_for}"
        f" con destino {destination or 'por confirmar'} ha sido registrada."
    )


def driver_status_broadcast(unit: str, name: str, active: bool) -> str:
    state = "ACTIVA" if active else "INACTIVA"
    return f"La unidad {unit} ({name}) ahora se encuentra {state}."
