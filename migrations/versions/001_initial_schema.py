"""Initial schema: live and archived orders, clients, drivers, vouchers.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

# Shared by several tables: created once, referenced with create_type=False
ADDRESS_MODE = postgresql.ENUM(
    "MANUAL", "APLICACION", name="address_mode", create_type=False
)
ORDER_STATUS = postgresql.ENUM(
    "PENDING",
    "IN_PROGRESS",
    "FINALIZED_PLAIN",
    "FINALIZED_VOUCHER",
    "CANCELLED_BY_CLIENT",
    "CANCELLED_BY_UNIT",
    "CANCELLED_UNASSIGNED",
    "NO_UNIT_AVAILABLE",
    name="order_status",
    create_type=False,
)
CLIENT_KIND = postgresql.ENUM(
    "FIXED_LINE", "MOBILE", "GENERAL", name="client_kind", create_type=False
)
VOUCHER_TYPE = postgresql.ENUM(
    "ELECTRONIC", "PHYSICAL", name="voucher_type", create_type=False
)
RESERVATION_STATUS = postgresql.ENUM(
    "PENDIENTE", "ASIGNADA", name="reservation_status", create_type=False
)

ENUM_TYPES = (ADDRESS_MODE, ORDER_STATUS, CLIENT_KIND, VOUCHER_TYPE, RESERVATION_STATUS)


def _order_columns() -> list:
    return [
        sa.Column("id", sa.String(40), primary_key=True),
        sa.Column("client_phone", sa.String(20), nullable=False),
        sa.Column("client_full_phone", sa.String(20), nullable=False),
        sa.Column("client_name", sa.String(120), nullable=False),
        sa.Column("address", sa.String(255), nullable=False),
        sa.Column("sector", sa.String(120), nullable=False),
        sa.Column("coordinates", sa.String(60), nullable=False),
        sa.Column("base", sa.String(60), nullable=False),
        sa.Column("destination", sa.String(255), nullable=False),
        sa.Column("empresa", sa.String(120), nullable=False),
        sa.Column("authorization_number", sa.Integer, nullable=True),
        sa.Column("mode", ADDRESS_MODE, nullable=False),
        sa.Column("operator", sa.String(120), nullable=False),
        sa.Column("idempotency_key", sa.String(64), unique=True, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    ]


def _assignment_columns() -> list:
    return [
        sa.Column("unit", sa.String(10), nullable=False),
        sa.Column("driver_name", sa.String(120), nullable=False),
        sa.Column("plate", sa.String(20), nullable=False),
        sa.Column("driver_color", sa.String(40), nullable=False),
        sa.Column("driver_phone", sa.String(20), nullable=False),
        sa.Column("driver_photo", sa.String(512), nullable=False),
        sa.Column("push_token", sa.String(512), nullable=True),
        sa.Column("eta_minutes", sa.Integer, nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for enum_type in ENUM_TYPES:
            enum_type.create(bind, checkfirst=True)

    # ── live orders ───────────────────────────────────────────────────
    op.create_table("pending_orders", *_order_columns())

    op.create_table(
        "in_progress_orders", *_order_columns(), *_assignment_columns()
    )
    op.create_index("idx_in_progress_unit", "in_progress_orders", ["unit"])

    op.create_table(
        "notification_staging",
        *_order_columns(),
        *_assignment_columns(),
        sa.Column(
            "staged_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── archived_orders ───────────────────────────────────────────────
    op.create_table(
        "archived_orders",
        sa.Column("archive_date", sa.String(10), primary_key=True),
        sa.Column("order_id", sa.String(40), primary_key=True),
        sa.Column("status", ORDER_STATUS, nullable=False),
        sa.Column("payload", sa.JSON, nullable=False),
        sa.Column("reason", sa.String(255), nullable=False),
        sa.Column("closed_by", sa.String(120), nullable=False),
        sa.Column("color", sa.String(10), nullable=False),
        sa.Column("empresa", sa.String(120), nullable=False),
        sa.Column("authorization_number", sa.Integer, nullable=True),
        sa.Column("unit", sa.String(10), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_archived_status", "archived_orders", ["status"])
    op.create_index("idx_archived_order", "archived_orders", ["order_id"])

    # ── clients ───────────────────────────────────────────────────────
    op.create_table(
        "clients",
        sa.Column("pk", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("kind", CLIENT_KIND, nullable=False),
        sa.Column("doc_id", sa.String(20), nullable=False),
        sa.Column("telefono", sa.String(20), nullable=True),
        sa.Column("id_cliente", sa.Integer, nullable=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("sector", sa.String(120), nullable=False),
        sa.Column("country_prefix", sa.String(5), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("addresses", sa.JSON, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("kind", "doc_id", name="uq_clients_kind_doc"),
    )
    op.create_index("idx_clients_telefono", "clients", ["kind", "telefono"])
    op.create_index("idx_clients_id_cliente", "clients", ["id_cliente"])

    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("unit", sa.String(10), unique=True, nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("plate", sa.String(20), nullable=False),
        sa.Column("color", sa.String(40), nullable=False),
        sa.Column("phone", sa.String(20), nullable=False),
        sa.Column("photo", sa.String(512), nullable=False),
        sa.Column("estatus", sa.Boolean, nullable=False),
        sa.Column("token", sa.String(512), nullable=True),
        sa.Column("fcm_token", sa.String(512), nullable=True),
        sa.Column("device_token", sa.String(512), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_drivers_estatus", "drivers", ["estatus"])

    op.create_table(
        "driver_status_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("unit", sa.String(10), nullable=False),
        sa.Column("previous", sa.Boolean, nullable=False),
        sa.Column("current", sa.Boolean, nullable=False),
        sa.Column("operator", sa.String(120), nullable=False),
        sa.Column(
            "changed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_driver_status_unit", "driver_status_log", ["unit"])

    # ── vouchers ──────────────────────────────────────────────────────
    op.create_table(
        "vouchers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("order_id", sa.String(40), unique=True, nullable=False),
        sa.Column("voucher_number", sa.Integer, unique=True, nullable=False),
        sa.Column("authorization_number", sa.Integer, nullable=False),
        sa.Column("empresa", sa.String(120), nullable=False),
        sa.Column("client_name", sa.String(120), nullable=False),
        sa.Column("client_phone", sa.String(20), nullable=False),
        sa.Column("destination", sa.String(255), nullable=False),
        sa.Column("voucher_type", VOUCHER_TYPE, nullable=False),
        sa.Column("physical_number", sa.String(40), nullable=True),
        sa.Column("unit", sa.String(10), nullable=True),
        sa.Column("operator", sa.String(120), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_vouchers_empresa", "vouchers", ["empresa"])

    # ── reservations ──────────────────────────────────────────────────
    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("client_phone", sa.String(20), nullable=False),
        sa.Column("client_name", sa.String(120), nullable=False),
        sa.Column("address", sa.String(255), nullable=False),
        sa.Column("coordinates", sa.String(60), nullable=False),
        sa.Column("sector", sa.String(120), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("motive", sa.String(255), nullable=False),
        sa.Column("destination", sa.String(255), nullable=False),
        sa.Column("empresa", sa.String(120), nullable=False),
        sa.Column("authorization_number", sa.Integer, nullable=True),
        sa.Column("status", RESERVATION_STATUS, nullable=False),
        sa.Column("unit", sa.String(10), nullable=True),
        sa.Column("order_id", sa.String(40), nullable=True),
        sa.Column("operator", sa.String(120), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_reservations_status", "reservations", ["status"])
    op.create_index("idx_reservations_scheduled", "reservations", ["scheduled_at"])

    # ── daily_reports / operators ─────────────────────────────────────
    op.create_table(
        "daily_reports",
        sa.Column("key", sa.String(160), primary_key=True),
        sa.Column("operator", sa.String(120), nullable=False),
        sa.Column("report_date", sa.String(10), nullable=False),
        sa.Column("registered", sa.Integer, nullable=False),
        sa.Column("assigned", sa.Integer, nullable=False),
        sa.Column("cancelled", sa.Integer, nullable=False),
        sa.Column("finalized", sa.Integer, nullable=False),
        sa.Column("vouchers", sa.Integer, nullable=False),
    )
    op.create_index("idx_daily_reports_date", "daily_reports", ["report_date"])

    op.create_table(
        "operators",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(64), unique=True, nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )


def downgrade() -> None:
    for table in (
        "operators",
        "daily_reports",
        "reservations",
        "vouchers",
        "driver_status_log",
        "drivers",
        "clients",
        "archived_orders",
        "notification_staging",
        "in_progress_orders",
        "pending_orders",
    ):
        op.drop_table(table)
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for enum_type in ENUM_TYPES:
            enum_type.drop(bind, checkfirst=True)
