"""Initial schema: users, bookings, payments, assignments, adjustments, notes, audit.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

BOOKING_STATUS = sa.Enum(
    "PENDING_PAYMENT", "PAID", "IN_PROGRESS", "COMPLETED", "CANCELLED",
    name="bookingstatus",
)
PAYMENT_STATUS = sa.Enum(
    "CREATED", "PENDING", "SUCCESS", "PAID", "FAILED", name="paymentstatus"
)
TAXI_ASSIGN_STATUS = sa.Enum("NOT_ASSIGNED", "ASSIGNED", name="taxiassignstatus")
ADJUSTMENT_TYPE = sa.Enum("EXTRA_KM", "TOLL", "WAITING", name="adjustmenttype")
AUDIT_ACTION = sa.Enum("STATUS_CHANGE", "CANCEL", "TAXI_ASSIGNED", name="auditaction")


def _timestamps(updated: bool = True) -> list:
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=True)]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True))
    return cols


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        *_timestamps(updated=False),
    )

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("pickup_location", sa.String(500), nullable=False),
        sa.Column("drop_location", sa.String(500), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("car_model", sa.String(120), nullable=True),
        sa.Column("distance_km", sa.Float, nullable=True),
        sa.Column("estimated_fare", sa.Float, nullable=True),
        sa.Column("total_amount", sa.Float, nullable=False),
        sa.Column("actual_km", sa.Float, nullable=True),
        sa.Column("extra_km", sa.Float, nullable=True),
        sa.Column("extra_charge", sa.Float, nullable=True),
        sa.Column("cancellation_reason", sa.Text, nullable=True),
        sa.Column("status", BOOKING_STATUS, nullable=False),
        sa.Column("taxi_assign_status", TAXI_ASSIGN_STATUS, nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_bookings_status", "bookings", ["status"])
    op.create_index("idx_bookings_user", "bookings", ["user_id"])

    # ── payments ──────────────────────────────────────────────────────
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer, sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("amount", sa.Float, nullable=False),
        sa.Column("currency", sa.String(8), nullable=False),
        sa.Column("status", PAYMENT_STATUS, nullable=False),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("provider_txn_id", sa.String(255), nullable=True),
        sa.Column("remaining_amount", sa.Float, nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_payments_booking", "payments", ["booking_id"])
    op.create_index(
        "idx_payments_provider_txn", "payments", ["provider_txn_id", "status"]
    )

    # ── taxi_assignments ──────────────────────────────────────────────
    op.create_table(
        "taxi_assignments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer, sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("driver_name", sa.String(120), nullable=False),
        sa.Column("driver_number", sa.String(32), nullable=False),
        sa.Column("cab_number", sa.String(32), nullable=False),
        sa.Column("cab_name", sa.String(120), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("booking_id", name="uq_taxi_assignments_booking"),
    )

    # ── fare_adjustments ──────────────────────────────────────────────
    op.create_table(
        "fare_adjustments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer, sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("type", ADJUSTMENT_TYPE, nullable=False),
        sa.Column("amount", sa.Float, nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("admin_id", sa.Integer, nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index(
        "idx_fare_adjustments_booking", "fare_adjustments", ["booking_id"]
    )

    # ── booking_notes ─────────────────────────────────────────────────
    op.create_table(
        "booking_notes",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer, sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("admin_id", sa.Integer, nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index("idx_booking_notes_booking", "booking_notes", ["booking_id"])

    # ── audit_logs ────────────────────────────────────────────────────
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.Integer, nullable=False),
        sa.Column("action", AUDIT_ACTION, nullable=False),
        sa.Column("old_value", sa.JSON, nullable=True),
        sa.Column("new_value", sa.JSON, nullable=True),
        sa.Column("admin_id", sa.Integer, nullable=False),
        sa.Column("reason", sa.Text, nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index(
        "idx_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"]
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("booking_notes")
    op.drop_table("fare_adjustments")
    op.drop_table("taxi_assignments")
    op.drop_table("payments")
    op.drop_table("bookings")
    op.drop_table("users")
    for enum_name in (
        "auditaction",
        "adjustmenttype",
        "taxiassignstatus",
        "paymentstatus",
        "bookingstatus",
    ):
        op.execute(f"DROP TYPE IF EXISTS {enum_name}")
