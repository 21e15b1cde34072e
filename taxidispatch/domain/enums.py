"""Domain enumerations and state-transition rules."""

import enum


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    FINALIZED_PLAIN = "FINALIZED_PLAIN"
    FINALIZED_VOUCHER = "FINALIZED_VOUCHER"
    CANCELLED_BY_CLIENT = "CANCELLED_BY_CLIENT"
    CANCELLED_BY_UNIT = "CANCELLED_BY_UNIT"
    CANCELLED_UNASSIGNED = "CANCELLED_UNASSIGNED"
    NO_UNIT_AVAILABLE = "NO_UNIT_AVAILABLE"


TERMINAL_STATUSES: frozenset[OrderStatus] = frozenset(
    {
        OrderStatus.FINALIZED_PLAIN,
        OrderStatus.FINALIZED_VOUCHER,
        OrderStatus.CANCELLED_BY_CLIENT,
        OrderStatus.CANCELLED_BY_UNIT,
        OrderStatus.CANCELLED_UNASSIGNED,
        OrderStatus.NO_UNIT_AVAILABLE,
    }
)

# State machine: maps current status -> set of valid next statuses
ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {
        OrderStatus.IN_PROGRESS,
        OrderStatus.CANCELLED_UNASSIGNED,
        OrderStatus.NO_UNIT_AVAILABLE,
    },
    OrderStatus.IN_PROGRESS: {
        OrderStatus.CANCELLED_BY_CLIENT,
        OrderStatus.CANCELLED_BY_UNIT,
        OrderStatus.FINALIZED_PLAIN,
        OrderStatus.FINALIZED_VOUCHER,
    },
    **{status: set() for status in TERMINAL_STATUSES},
}

# Row colour the console uses when listing the archive
ARCHIVE_COLORS: dict[OrderStatus, str] = {
    OrderStatus.FINALIZED_PLAIN: "#10b981",
    OrderStatus.FINALIZED_VOUCHER: "#3b82f6",
    OrderStatus.CANCELLED_BY_CLIENT: "#ef4444",
    OrderStatus.CANCELLED_BY_UNIT: "#f97316",
    OrderStatus.CANCELLED_UNASSIGNED: "#6b7280",
    OrderStatus.NO_UNIT_AVAILABLE: "#eab308",
}

CASH_PAYMENT = "Efectivo"


class PhoneFormat(str, enum.Enum):
    SHORT_ID = "SHORT_ID"
    FIXED_LINE = "FIXED_LINE"
    MOBILE = "MOBILE"
    INVALID = "INVALID"


class ClientKind(str, enum.Enum):
    FIXED_LINE = "fixed_line"
    MOBILE = "mobile"
    GENERAL = "general"


class AddressMode(str, enum.Enum):
    MANUAL = "manual"
    APLICACION = "aplicacion"


class ReservationStatus(str, enum.Enum):
    PENDIENTE = "pendiente"
    ASIGNADA = "asignada"


class VoucherType(str, enum.Enum):
    ELECTRONIC = "electronic"
    PHYSICAL = "physical"
