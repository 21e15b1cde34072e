"""
Client endpoints
================

GET  /api/v1/clients/lookup?phone=            -- resolve a caller by phone
POST /api/v1/clients                          -- register a new client
POST /api/v1/clients/{kind}/{doc_id}/addresses -- merge an address into history
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from taxidispatch.api.dependencies import get_db, get_operator_session
from taxidispatch.api.middleware import limiter
from taxidispatch.api.schemas import (
    AddressMergeRequest,
    AddressMergeResponse,
    ClientCreateRequest,
    ClientLookupResponse,
    ClientResponse,
)
from taxidispatch.config import settings
from taxidispatch.domain.enums import ClientKind
from taxidispatch.domain.exceptions import ClientNotFound
from taxidispatch.infrastructure.sessions import OperatorSession
from taxidispatch.services.clients import (
    AddressHistory,
    ClientDraft,
    ClientResolver,
    ClientService,
)

router = APIRouter(prefix="/clients", tags=["clients"])


@router.get(
    "/lookup",
    response_model=ClientLookupResponse,
    summary="Resolve a caller by phone number",
    description=(
        "5 digits: short client id in the general collection. "
        "7 digits: fixed line. 8 or more: mobile, normalized to the "
        "country code and matched by phone field, then by document id."
    ),
)
@limiter.limit(settings.rate_limit)
async def lookup_client(
    request: Request,
    phone: str = Query(..., max_length=20),
    db: AsyncSession = Depends(get_db),
    session: OperatorSession = Depends(get_operator_session),
):
    lookup = await ClientResolver(db).resolve(phone)
    return ClientLookupResponse(
        found=lookup.found,
        client_type=lookup.client_type,
        matched_by=lookup.matched_by,
        display_phone=lookup.display_phone,
        full_phone=lookup.full_phone,
        address=lookup.address,
        coordinates=lookup.coordinates,
        sector=lookup.sector,
        data=ClientResponse.model_validate(lookup.client) if lookup.client else None,
    )


@router.post(
    "",
    status_code=201,
    response_model=ClientResponse,
    summary="Register a fixed-line or mobile client",
)
@limiter.limit(settings.rate_limit)
async def create_client(
    request: Request,
    body: ClientCreateRequest,
    db: AsyncSession = Depends(get_db),
    session: OperatorSession = Depends(get_operator_session),
):
    client = await ClientService(db).register(ClientDraft(**body.model_dump()))
    return ClientResponse.model_validate(client)


@router.post(
    "/{kind}/{doc_id}/addresses",
    response_model=AddressMergeResponse,
    summary="Merge an address into the client's history",
)
@limiter.limit(settings.rate_limit)
async def merge_client_address(
    request: Request,
    kind: ClientKind,
    doc_id: str,
    body: AddressMergeRequest,
    db: AsyncSession = Depends(get_db),
    session: OperatorSession = Depends(get_operator_session),
):
    client = await ClientService(db).get(kind, doc_id)
    if client is None:
        raise ClientNotFound(f"No {kind.value} client {doc_id}")
    changed = await AddressHistory(db).merge(
        client, body.address, body.coordinates, body.mode
    )
    return AddressMergeResponse(changed=changed, addresses=client.addresses or [])
