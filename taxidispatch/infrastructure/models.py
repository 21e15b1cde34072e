"""
SQLAlchemy ORM models.

Each table stands for one collection of the dispatch console.

Tables
------
* ``pending_orders``        -- available, unassigned ride requests
* ``in_progress_orders``    -- orders with an assigned unit
* ``notification_staging``  -- copy of each assignment for push delivery
* ``archived_orders``       -- terminal orders, partitioned by local date
* ``clients``               -- fixed-line, mobile and general clients
* ``drivers``               -- driver / unit registry
* ``driver_status_log``     -- audit trail of ``estatus`` changes
* ``vouchers``              -- append-only corporate voucher ledger
* ``reservations``          -- trips booked ahead of time
* ``daily_reports``         -- per operator per day counters
* ``operators``             -- console operator credentials

Live order tables share their columns through mixins so a record can be
copied between them without losing fields.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)

from .database import Base
from taxidispatch.domain.enums import (
    AddressMode,
    ClientKind,
    OrderStatus,
    ReservationStatus,
    VoucherType,
)


class OrderColumns:
    id = Column(String(40), primary_key=True)
    client_phone = Column(String(20), nullable=False, default="")
    client_full_phone = Column(String(20), nullable=False, default="")
    client_name = Column(String(120), nullable=False, default="")
    address = Column(String(255), nullable=False, default="")
    sector = Column(String(120), nullable=False, default="")
    coordinates = Column(String(60), nullable=False, default="")
    base = Column(String(60), nullable=False, default="")
    destination = Column(String(255), nullable=False, default="")
    empresa = Column(String(120), nullable=False, default="Efectivo")
    authorization_number = Column(Integer, nullable=True)
    mode = Column(
        Enum(AddressMode, name="address_mode"),
        default=AddressMode.MANUAL,
        nullable=False,
    )
    operator = Column(String(120), nullable=False, default="")
    idempotency_key = Column(String(64), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AssignmentColumns:
    unit = Column(String(10), nullable=False)
    driver_name = Column(String(120), nullable=False, default="")
    plate = Column(String(20), nullable=False, default="")
    driver_color = Column(String(40), nullable=False, default="")
    driver_phone = Column(String(20), nullable=False, default="")
    driver_photo = Column(String(512), nullable=False, default="")
    push_token = Column(String(512), nullable=True)
    eta_minutes = Column(Integer, nullable=False, default=0)
    assigned_at = Column(DateTime(timezone=True), nullable=True)


class PendingOrderModel(OrderColumns, Base):
    __tablename__ = "pending_orders"


class InProgressOrderModel(OrderColumns, AssignmentColumns, Base):
    __tablename__ = "in_progress_orders"

    __table_args__ = (Index("idx_in_progress_unit", "unit"),)


class NotificationModel(OrderColumns, AssignmentColumns, Base):
    __tablename__ = "notification_staging"

    staged_at = Column(DateTime(timezone=True), server_default=func.now())


class ArchivedOrderModel(Base):
    __tablename__ = "archived_orders"

    archive_date = Column(String(10), primary_key=True)  # DD-MM-YYYY
    order_id = Column(String(40), primary_key=True)
    status = Column(Enum(OrderStatus, name="order_status"), nullable=False)
    payload = Column(JSON, nullable=False)
    reason = Column(String(255), nullable=False, default="")
    closed_by = Column(String(120), nullable=False, default="")
    color = Column(String(10), nullable=False, default="")
    empresa = Column(String(120), nullable=False, default="")
    authorization_number = Column(Integer, nullable=True)
    unit = Column(String(10), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_archived_status", "status"),
        Index("idx_archived_order", "order_id"),
    )


class ClientModel(Base):
    __tablename__ = "clients"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(Enum(ClientKind, name="client_kind"), nullable=False)
    doc_id = Column(String(20), nullable=False)
    telefono = Column(String(20), nullable=True)
    id_cliente = Column(Integer, nullable=True)
    name = Column(String(120), nullable=False, default="")
    sector = Column(String(120), nullable=False, default="")
    country_prefix = Column(String(5), nullable=False, default="593")
    email = Column(String(255), nullable=True)
    addresses = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("kind", "doc_id", name="uq_clients_kind_doc"),
        Index("idx_clients_telefono", "kind", "telefono"),
        Index("idx_clients_id_cliente", "id_cliente"),
    )


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    unit = Column(String(10), unique=True, nullable=False)
    name = Column(String(120), nullable=False)
    plate = Column(String(20), nullable=False, default="")
    color = Column(String(40), nullable=False, default="")
    phone = Column(String(20), nullable=False, default="")
    photo = Column(String(512), nullable=False, default="")
    estatus = Column(Boolean, nullable=False, default=True)
    token = Column(String(512), nullable=True)
    fcm_token = Column(String(512), nullable=True)
    device_token = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("idx_drivers_estatus", "estatus"),)


class DriverStatusLogModel(Base):
    __tablename__ = "driver_status_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    unit = Column(String(10), nullable=False)
    previous = Column(Boolean, nullable=False)
    current = Column(Boolean, nullable=False)
    operator = Column(String(120), nullable=False, default="")
    changed_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_driver_status_unit", "unit"),)


class VoucherModel(Base):
    __tablename__ = "vouchers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(40), unique=True, nullable=False)
    voucher_number = Column(Integer, unique=True, nullable=False)
    authorization_number = Column(Integer, nullable=False)
    empresa = Column(String(120), nullable=False)
    client_name = Column(String(120), nullable=False)
    client_phone = Column(String(20), nullable=False, default="")
    destination = Column(String(255), nullable=False)
    voucher_type = Column(
        Enum(VoucherType, name="voucher_type"),
        default=VoucherType.ELECTRONIC,
        nullable=False,
    )
    physical_number = Column(String(40), nullable=True)
    unit = Column(String(10), nullable=True)
    operator = Column(String(120), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_vouchers_empresa", "empresa"),)


class ReservationModel(Base):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_phone = Column(String(20), nullable=False)
    client_name = Column(String(120), nullable=False, default="")
    address = Column(String(255), nullable=False, default="")
    coordinates = Column(String(60), nullable=False, default="")
    sector = Column(String(120), nullable=False, default="")
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    motive = Column(String(255), nullable=False, default="")
    destination = Column(String(255), nullable=False, default="")
    empresa = Column(String(120), nullable=False, default="Efectivo")
    authorization_number = Column(Integer, nullable=True)
    status = Column(
        Enum(ReservationStatus, name="reservation_status"),
        default=ReservationStatus.PENDIENTE,
        nullable=False,
    )
    unit = Column(String(10), nullable=True)
    order_id = Column(String(40), nullable=True)
    operator = Column(String(120), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_reservations_status", "status"),
        Index("idx_reservations_scheduled", "scheduled_at"),
    )


class DailyReportModel(Base):
    __tablename__ = "daily_reports"

    key = Column(String(160), primary_key=True)  # {operator}_{DD-MM-YYYY}
    operator = Column(String(120), nullable=False)
    report_date = Column(String(10), nullable=False)
    registered = Column(Integer, nullable=False, default=0)
    assigned = Column(Integer, nullable=False, default=0)
    cancelled = Column(Integer, nullable=False, default=0)
    finalized = Column(Integer, nullable=False, default=0)
    vouchers = Column(Integer, nullable=False, default=0)

    __table_args__ = (Index("idx_daily_reports_date", "report_date"),)


class OperatorModel(Base):
    __tablename__ = "operators"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(64), unique=True, nullable=False)
    name = Column(String(120), nullable=False)
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
