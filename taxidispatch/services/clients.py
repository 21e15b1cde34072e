"""
Client resolution and address history.

``ClientResolver.resolve`` replaces the per-collection copies of the lookup
the console used to carry: the phone is classified once and each format has
exactly one strategy.

Mobile numbers are tried per collection (mobile clients, then general
clients) in three steps:

1. ``telefono`` field equals the normalized number
2. document id equals the normalized number
3. document id equals the last 9 digits (records created before ids carried
   the country code)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from taxidispatch.config import settings
from taxidispatch.domain.addresses import active_address, merge_address
from taxidispatch.domain.entities import AddressEntry
from taxidispatch.domain.enums import AddressMode, ClientKind, PhoneFormat
from taxidispatch.domain.exceptions import ValidationFailed
from taxidispatch.domain.phone import classify_phone, clean_phone, mobile_candidates
from taxidispatch.infrastructure.models import ClientModel
from taxidispatch.infrastructure.repositories import ClientRepository
from taxidispatch.services.clock import Clock, local_now

logger = logging.getLogger(__name__)

MATCHED_BY_PHONE = "telefono"
MATCHED_BY_ID = "id"


@dataclass
class ClientLookup:
    found: bool
    phone_format: PhoneFormat
    display_phone: str
    full_phone: str
    client: Optional[ClientModel] = None
    client_type: Optional[ClientKind] = None
    matched_by: Optional[str] = None
    address: str = ""
    coordinates: str = ""
    sector: str = ""


@dataclass
class ClientDraft:
    phone: str
    name: str
    sector: str = ""
    email: Optional[str] = None
    address: str = ""
    coordinates: str = ""
    id_cliente: Optional[int] = None


def client_addresses(client: ClientModel) -> list[AddressEntry]:
    return [AddressEntry.from_dict(item) for item in (client.addresses or [])]


class ClientResolver:
    def __init__(self, session: AsyncSession, country_code: Optional[str] = None):
        self.clients = ClientRepository(session)
        self.country_code = country_code or settings.country_code

    async def resolve(self, raw_phone: str) -> ClientLookup:
        phone_format = classify_phone(raw_phone)
        digits = clean_phone(raw_phone or "")

        if phone_format == PhoneFormat.INVALID:
            raise ValidationFailed(f"Malformed phone number: {raw_phone!r}")

        if phone_format == PhoneFormat.FIXED_LINE:
            client = await self.clients.get_by_doc_id(ClientKind.FIXED_LINE, digits)
            return self._lookup(phone_format, digits, digits, client, MATCHED_BY_ID)

        if phone_format == PhoneFormat.SHORT_ID:
            client = await self.clients.find_by_id_cliente(
                ClientKind.GENERAL, int(digits)
            )
            full_phone = (client.telefono or "") if client else ""
            return self._lookup(phone_format, digits, full_phone, client, MATCHED_BY_ID)

        candidates = mobile_candidates(digits, self.country_code)
        for kind in (ClientKind.MOBILE, ClientKind.GENERAL):
            client = await self.clients.find_by_telefono(kind, candidates.normalized)
            if client:
                return self._lookup(
                    phone_format, digits, candidates.normalized, client, MATCHED_BY_PHONE
                )
            client = await self.clients.get_by_doc_id(kind, candidates.normalized)
            if client is None:
                client = await self.clients.get_by_doc_id(kind, candidates.legacy_id)
            if client:
                return self._lookup(
                    phone_format, digits, candidates.normalized, client, MATCHED_BY_ID
                )

        return self._lookup(phone_format, digits, candidates.normalized, None, None)

    @staticmethod
    def _lookup(
        phone_format: PhoneFormat,
        digits: str,
        full_phone: str,
        client: Optional[ClientModel],
        matched_by: Optional[str],
    ) -> ClientLookup:
        if client is None:
            return ClientLookup(
                found=False,
                phone_format=phone_format,
                display_phone=full_phone or digits,
                full_phone=full_phone,
            )

        # Found by id: keep what the operator typed, it may be a short code.
        if matched_by == MATCHED_BY_ID:
            display_phone = digits
        else:
            display_phone = client.telefono or full_phone
        entry = active_address(client_addresses(client))
        return ClientLookup(
            found=True,
            phone_format=phone_format,
            display_phone=display_phone,
            full_phone=client.telefono or full_phone,
            client=client,
            client_type=client.kind,
            matched_by=matched_by,
            address=entry.address if entry else "",
            coordinates=entry.coordinates if entry else "",
            sector=client.sector or "",
        )


class AddressHistory:
    def __init__(self, session: AsyncSession, clock: Clock = local_now):
        self.clients = ClientRepository(session)
        self.clock = clock

    async def merge(
        self,
        client: ClientModel,
        address: str,
        coordinates: str,
        mode: AddressMode = AddressMode.MANUAL,
    ) -> bool:
        """Merge one address into the client's history; write only on change."""
        merged, changed = merge_address(
            client_addresses(client), address, coordinates, mode, self.clock()
        )
        if changed:
            await self.clients.save_addresses(client, [e.to_dict() for e in merged])
            logger.info("Address history updated for client %s", client.doc_id)
        return changed


class ClientService:
    def __init__(
        self,
        session: AsyncSession,
        country_code: Optional[str] = None,
        clock: Clock = local_now,
    ):
        self.clients = ClientRepository(session)
        self.history = AddressHistory(session, clock)
        self.country_code = country_code or settings.country_code

    async def register(self, draft: ClientDraft) -> ClientModel:
        phone_format = classify_phone(draft.phone)
        digits = clean_phone(draft.phone or "")
        if not (draft.name or "").strip():
            raise ValidationFailed("Client name is required")

        if phone_format == PhoneFormat.FIXED_LINE:
            kind, doc_id = ClientKind.FIXED_LINE, digits
        elif phone_format == PhoneFormat.MOBILE:
            kind = ClientKind.MOBILE
            doc_id = mobile_candidates(digits, self.country_code).normalized
        else:
            raise ValidationFailed(
                f"Cannot register a client under phone {draft.phone!r}"
            )

        if await self.clients.get_by_doc_id(kind, doc_id):
            raise ValidationFailed(f"Client {doc_id} is already registered")

        client = await self.clients.create(
            ClientModel(
                kind=kind,
                doc_id=doc_id,
                telefono=doc_id,
                id_cliente=draft.id_cliente,
                name=draft.name.strip(),
                sector=draft.sector or "",
                country_prefix=self.country_code,
                email=draft.email,
                addresses=[],
            )
        )
        if draft.address:
            await self.history.merge(client, draft.address, draft.coordinates)
        logger.info("Registered %s client %s", kind.value, doc_id)
        return client

    async def get(self, kind: ClientKind, doc_id: str) -> Optional[ClientModel]:
        return await self.clients.get_by_doc_id(kind, doc_id)
