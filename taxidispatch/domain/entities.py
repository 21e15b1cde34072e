"""
Domain entities with business logic.

Patterns used
-------------
- **Tagged union** for orders: ``PendingOrder``, ``InProgressOrder`` and
  ``TerminalOrder`` each carry a fixed field set.  The only way to get from
  one shape to the next is a transition method, checked against
  ``ORDER_TRANSITIONS`` (PENDING -> IN_PROGRESS -> terminal, or
  PENDING -> terminal).
- ``DriverSnapshot`` is the frozen copy of the driver registry entry that
  travels with an order once a unit is assigned.
"""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field, fields
from datetime import date, datetime
from typing import Any, ClassVar, Optional

from .enums import (
    ARCHIVE_COLORS,
    CASH_PAYMENT,
    ORDER_TRANSITIONS,
    TERMINAL_STATUSES,
    AddressMode,
    OrderStatus,
)
from .exceptions import InvalidStateTransition

ARCHIVE_DATE_FORMAT = "%d-%m-%Y"

_FALSY_STATUS_STRINGS = {"", "false", "0", "no", "inactivo"}


def unit_is_active(estatus: Any) -> bool:
    """Driver ``estatus`` as stored by the console: bool, or legacy string."""
    if isinstance(estatus, str):
        return estatus.strip().lower() not in _FALSY_STATUS_STRINGS
    return bool(estatus)


def pick_push_token(tokens: list[Optional[str]], min_length: int) -> Optional[str]:
    """First token long enough to be a real device token, else ``None``."""
    for token in tokens:
        if token and len(token.strip()) >= min_length:
            return token.strip()
    return None


def archive_date(moment: datetime) -> str:
    return moment.strftime(ARCHIVE_DATE_FORMAT)


def parse_archive_date(value: str) -> date:
    return datetime.strptime(value, ARCHIVE_DATE_FORMAT).date()


def archive_path(day: str, order_id: str) -> str:
    return f"archive/{day}/orders/{order_id}"


def _check_transition(current: OrderStatus, new: OrderStatus) -> None:
    allowed = ORDER_TRANSITIONS.get(current, set())
    if new not in allowed:
        raise InvalidStateTransition(
            f"Cannot transition from {current.value} to {new.value}"
        )


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class DriverSnapshot:
    unit: str
    name: str = ""
    plate: str = ""
    color: str = ""
    phone: str = ""
    photo: str = ""
    push_token: Optional[str] = None


@dataclass
class AddressEntry:
    address: str
    coordinates: str = ""
    registered_at: Optional[str] = None
    active: bool = True
    mode: AddressMode = AddressMode.MANUAL
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "AddressEntry":
        return cls(
            address=data.get("address") or "",
            coordinates=data.get("coordinates") or "",
            registered_at=data.get("registered_at"),
            active=bool(data.get("active", False)),
            mode=AddressMode(data.get("mode") or AddressMode.MANUAL.value),
            updated_at=data.get("updated_at"),
        )

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "coordinates": self.coordinates,
            "registered_at": self.registered_at,
            "active": self.active,
            "mode": self.mode.value,
            "updated_at": self.updated_at,
        }


# ── Orders ────────────────────────────────────────────────────────────


@dataclass(kw_only=True)
class OrderBase:
    id: str
    client_phone: str = ""
    client_full_phone: str = ""
    client_name: str = ""
    address: str = ""
    sector: str = ""
    coordinates: str = ""  # "lat,lng"
    base: str = ""
    destination: str = ""
    empresa: str = CASH_PAYMENT
    authorization_number: Optional[int] = None
    mode: AddressMode = AddressMode.MANUAL
    operator: str = ""
    created_at: Optional[datetime] = None

    status: ClassVar[OrderStatus]

    @property
    def is_corporate(self) -> bool:
        return bool(self.empresa) and self.empresa != CASH_PAYMENT

    def _common(self) -> dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in (f.name for f in fields(OrderBase))
        }

    def to_record(self) -> dict[str, Any]:
        """JSON-friendly copy of every field, used for the archive payload."""
        record = {"status": self.status.value}
        for key, value in asdict(self).items():
            record[key] = _plain(value)
        return record


@dataclass(kw_only=True)
class PendingOrder(OrderBase):
    status: ClassVar[OrderStatus] = OrderStatus.PENDING

    def assign(
        self,
        driver: DriverSnapshot,
        eta_minutes: int,
        at: datetime,
    ) -> "InProgressOrder":
        _check_transition(self.status, OrderStatus.IN_PROGRESS)
        return InProgressOrder(
            **self._common(),
            driver=driver,
            eta_minutes=eta_minutes,
            assigned_at=at,
        )

    def terminate(
        self,
        kind: OrderStatus,
        *,
        reason: str,
        closed_by: str,
        at: datetime,
    ) -> "TerminalOrder":
        _check_transition(self.status, kind)
        return TerminalOrder(
            **self._common(),
            kind=kind,
            reason=reason,
            closed_by=closed_by,
            closed_at=at,
        )


@dataclass(kw_only=True)
class InProgressOrder(OrderBase):
    status: ClassVar[OrderStatus] = OrderStatus.IN_PROGRESS

    driver: DriverSnapshot
    eta_minutes: int = 0
    assigned_at: Optional[datetime] = None

    def terminate(
        self,
        kind: OrderStatus,
        *,
        reason: str,
        closed_by: str,
        at: datetime,
    ) -> "TerminalOrder":
        _check_transition(self.status, kind)
        return TerminalOrder(
            **self._common(),
            kind=kind,
            driver=self.driver,
            eta_minutes=self.eta_minutes,
            assigned_at=self.assigned_at,
            reason=reason,
            closed_by=closed_by,
            closed_at=at,
        )


@dataclass(kw_only=True)
class TerminalOrder(OrderBase):
    kind: OrderStatus
    driver: Optional[DriverSnapshot] = None
    eta_minutes: Optional[int] = None
    assigned_at: Optional[datetime] = None
    reason: str = ""
    closed_by: str = ""
    closed_at: datetime
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.kind not in TERMINAL_STATUSES:
            raise InvalidStateTransition(f"{self.kind.value} is not a terminal status")

    @property
    def status(self) -> OrderStatus:  # type: ignore[override]
        return self.kind

    @property
    def color(self) -> str:
        return ARCHIVE_COLORS[self.kind]

    @property
    def archive_date(self) -> str:
        return archive_date(self.closed_at)

    @property
    def archive_path(self) -> str:
        return archive_path(self.archive_date, self.id)

    def to_record(self) -> dict[str, Any]:
        record = super().to_record()
        record["color"] = self.color
        return record


def _plain(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value
