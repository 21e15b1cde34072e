"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from taxidispatch.domain.entities import (
    InProgressOrder,
    OrderBase,
    TerminalOrder,
    archive_path,
)
from taxidispatch.domain.enums import (
    CASH_PAYMENT,
    AddressMode,
    ClientKind,
    OrderStatus,
    ReservationStatus,
    VoucherType,
)


# ── Requests ──────────────────────────────────────────────────────────


class LoginRequest(BaseModel):
    username: str = Field(..., max_length=64)
    password: str = Field(..., min_length=6, max_length=128)


class OrderCreateRequest(BaseModel):
    phone: str = Field(..., max_length=20)
    client_name: str = ""
    address: str = Field("", max_length=255)
    sector: str = ""
    coordinates: str = Field("", max_length=60, description='"lat,lng"')
    base: str = ""
    destination: str = ""
    empresa: str = CASH_PAYMENT
    mode: AddressMode = AddressMode.MANUAL
    unit: Optional[str] = Field(
        None, max_length=10, description="Assign straight away (manual mode)."
    )
    eta_minutes: int = Field(0, ge=0, le=240)
    idempotency_key: Optional[str] = Field(
        None,
        max_length=64,
        description="Client-generated UUID to prevent double registration on retries.",
    )


class AssignRequest(BaseModel):
    unit: str = Field(..., min_length=1, max_length=10)
    eta_minutes: int = Field(0, ge=0, le=240)


class CloseRequest(BaseModel):
    kind: OrderStatus
    reason: str = Field("", max_length=255)


class VoucherRequest(BaseModel):
    client_name: str = ""
    destination: str = ""
    empresa: str = ""
    voucher_type: VoucherType = VoucherType.ELECTRONIC
    physical_number: Optional[str] = Field(None, max_length=40)


class ClientCreateRequest(BaseModel):
    phone: str = Field(..., max_length=20)
    name: str = Field(..., max_length=120)
    sector: str = ""
    email: Optional[str] = None
    address: str = ""
    coordinates: str = ""
    id_cliente: Optional[int] = None


class AddressMergeRequest(BaseModel):
    address: str = Field(..., min_length=1, max_length=255)
    coordinates: str = Field("", max_length=60)
    mode: AddressMode = AddressMode.MANUAL


class ReservationCreateRequest(BaseModel):
    phone: str = Field(..., max_length=20)
    scheduled_at: datetime
    client_name: str = ""
    address: str = ""
    coordinates: str = ""
    sector: str = ""
    motive: str = ""
    destination: str = ""
    empresa: str = CASH_PAYMENT
    authorization_number: Optional[int] = Field(None, ge=200)


class DriverCreateRequest(BaseModel):
    unit: str = Field(..., min_length=1, max_length=10)
    name: str = Field(..., min_length=1, max_length=120)
    plate: str = ""
    color: str = ""
    phone: str = ""
    photo: str = ""
    estatus: Union[bool, str] = True
    token: Optional[str] = None
    fcm_token: Optional[str] = None
    device_token: Optional[str] = None


class DriverUpdateRequest(BaseModel):
    name: Optional[str] = None
    plate: Optional[str] = None
    color: Optional[str] = None
    phone: Optional[str] = None
    photo: Optional[str] = None
    token: Optional[str] = None
    fcm_token: Optional[str] = None
    device_token: Optional[str] = None


class DriverStatusRequest(BaseModel):
    estatus: Union[bool, str]


# ── Responses ─────────────────────────────────────────────────────────


class SessionResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    operator_name: str


class DriverSnapshotResponse(BaseModel):
    unit: str
    name: str
    plate: str
    color: str
    phone: str
    photo: str
    has_push_token: bool


class OrderResponse(BaseModel):
    id: str
    status: OrderStatus
    client_phone: str
    client_full_phone: str
    client_name: str
    address: str
    sector: str
    coordinates: str
    base: str
    destination: str
    empresa: str
    authorization_number: Optional[int] = None
    mode: AddressMode
    operator: str
    created_at: Optional[datetime] = None
    driver: Optional[DriverSnapshotResponse] = None
    eta_minutes: Optional[int] = None
    assigned_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, order: OrderBase) -> "OrderResponse":
        data: dict[str, Any] = {
            "id": order.id,
            "status": order.status,
            "client_phone": order.client_phone,
            "client_full_phone": order.client_full_phone,
            "client_name": order.client_name,
            "address": order.address,
            "sector": order.sector,
            "coordinates": order.coordinates,
            "base": order.base,
            "destination": order.destination,
            "empresa": order.empresa,
            "authorization_number": order.authorization_number,
            "mode": order.mode,
            "operator": order.operator,
            "created_at": order.created_at,
        }
        driver = getattr(order, "driver", None)
        if driver is not None:
            data["driver"] = DriverSnapshotResponse(
                unit=driver.unit,
                name=driver.name,
                plate=driver.plate,
                color=driver.color,
                phone=driver.phone,
                photo=driver.photo,
                has_push_token=driver.push_token is not None,
            )
        if isinstance(order, (InProgressOrder, TerminalOrder)):
            data["eta_minutes"] = order.eta_minutes
            data["assigned_at"] = order.assigned_at
        return cls(**data)


class TerminalOrderResponse(BaseModel):
    order_id: str
    status: OrderStatus
    archive_date: str
    archive_path: str
    reason: str
    closed_by: str
    closed_at: datetime
    color: str
    empresa: str
    authorization_number: Optional[int] = None

    @classmethod
    def from_entity(cls, order: TerminalOrder) -> "TerminalOrderResponse":
        return cls(
            order_id=order.id,
            status=order.kind,
            archive_date=order.archive_date,
            archive_path=order.archive_path,
            reason=order.reason,
            closed_by=order.closed_by,
            closed_at=order.closed_at,
            color=order.color,
            empresa=order.empresa,
            authorization_number=order.authorization_number,
        )


class ArchivedOrderResponse(BaseModel):
    order_id: str
    archive_date: str
    archive_path: str
    status: OrderStatus
    reason: str
    closed_by: str
    color: str
    closed_at: datetime
    payload: dict[str, Any]

    @classmethod
    def from_row(cls, row) -> "ArchivedOrderResponse":
        return cls(
            order_id=row.order_id,
            archive_date=row.archive_date,
            archive_path=archive_path(row.archive_date, row.order_id),
            status=row.status,
            reason=row.reason,
            closed_by=row.closed_by,
            color=row.color,
            closed_at=row.closed_at,
            payload=row.payload,
        )


class VoucherResponse(BaseModel):
    id: int
    order_id: str
    voucher_number: int
    authorization_number: int
    empresa: str
    client_name: str
    client_phone: str
    destination: str
    voucher_type: VoucherType
    physical_number: Optional[str] = None
    unit: Optional[str] = None
    operator: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class VoucherFinalizeResponse(BaseModel):
    order: TerminalOrderResponse
    voucher: VoucherResponse


class NextNumberResponse(BaseModel):
    next_number: int


class AddressResponse(BaseModel):
    address: str
    coordinates: str = ""
    registered_at: Optional[str] = None
    active: bool = True
    mode: AddressMode = AddressMode.MANUAL
    updated_at: Optional[str] = None


class ClientResponse(BaseModel):
    kind: ClientKind
    doc_id: str
    telefono: Optional[str] = None
    id_cliente: Optional[int] = None
    name: str
    sector: str
    country_prefix: str
    email: Optional[str] = None
    addresses: list[AddressResponse] = []

    model_config = {"from_attributes": True}


class ClientLookupResponse(BaseModel):
    found: bool
    client_type: Optional[ClientKind] = None
    matched_by: Optional[str] = None
    display_phone: str
    full_phone: str
    address: str = ""
    coordinates: str = ""
    sector: str = ""
    data: Optional[ClientResponse] = None


class AddressMergeResponse(BaseModel):
    changed: bool
    addresses: list[AddressResponse]


class ReservationResponse(BaseModel):
    id: int
    client_phone: str
    client_name: str
    address: str
    coordinates: str
    sector: str
    scheduled_at: datetime
    motive: str
    destination: str
    empresa: str
    authorization_number: Optional[int] = None
    status: ReservationStatus
    unit: Optional[str] = None
    order_id: Optional[str] = None
    operator: str

    model_config = {"from_attributes": True}


class ReservationPromoteResponse(BaseModel):
    reservation: ReservationResponse
    order: OrderResponse


class DriverResponse(BaseModel):
    unit: str
    name: str
    plate: str
    color: str
    phone: str
    photo: str
    estatus: bool

    model_config = {"from_attributes": True}


class DriverStatusLogResponse(BaseModel):
    unit: str
    previous: bool
    current: bool
    operator: str
    changed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DailyReportResponse(BaseModel):
    key: str
    operator: str
    report_date: str
    registered: int = 0
    assigned: int = 0
    cancelled: int = 0
    finalized: int = 0
    vouchers: int = 0

    model_config = {"from_attributes": True}


class AuthorizationStateResponse(BaseModel):
    last_issued: int


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    code: str
