# alembic/versions/001_initial_schema.py
"""Initial schema - facilities, bookings, payments

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000

Bookings carry a storage-level overlap guard named
bookings_no_overlap_per_facility: a gist exclusion constraint on
PostgreSQL (needs btree_gist) and a BEFORE INSERT trigger on SQLite.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

OVERLAP_CONSTRAINT_NAME = "bookings_no_overlap_per_facility"


def upgrade() -> None:
    """Create booking engine tables."""
    print("Creating facility booking schema...")

    bind = op.get_bind()
    dialect_name = bind.dialect.name if bind is not None else "postgresql"
    is_postgres = dialect_name == "postgresql"

    if is_postgres:
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    op.create_table(
        "facilities",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("price_per_hour", sa.Numeric(10, 2), nullable=False),
        sa.Column("commission_rate", sa.Numeric(5, 4), nullable=True),
        sa.Column("operating_hours", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("price_per_hour >= 0", name="ck_facilities_price_non_negative"),
        sa.CheckConstraint(
            "commission_rate IS NULL OR (commission_rate > 0 AND commission_rate <= 1)",
            name="ck_facilities_commission_rate_range",
        ),
    )
    op.create_index("ix_facilities_id", "facilities", ["id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("facility_id", sa.String(26), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("commission_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("booking_code", sa.String(16), nullable=False),
        sa.Column("special_request", sa.Text(), nullable=True),
        sa.Column("payment_ref", sa.String(255), nullable=True),
        sa.Column("cancelled_by_id", sa.String(64), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["facility_id"], ["facilities.id"]),
        sa.UniqueConstraint("booking_code", name="uq_bookings_booking_code"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="ck_bookings_status",
        ),
        sa.CheckConstraint("start_time < end_time", name="ck_bookings_time_order"),
        sa.CheckConstraint("duration_minutes > 0", name="ck_bookings_duration_positive"),
        sa.CheckConstraint("total_amount >= 0", name="ck_bookings_amount_non_negative"),
        sa.CheckConstraint(
            "commission_amount >= 0", name="ck_bookings_commission_non_negative"
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_booking_date", "bookings", ["booking_date"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index(
        "ix_bookings_facility_date_status", "bookings", ["facility_id", "booking_date", "status"]
    )
    op.create_index("ix_bookings_user_status_date", "bookings", ["user_id", "status", "booking_date"])

    if is_postgres:
        op.execute(
            f"ALTER TABLE bookings ADD CONSTRAINT {OVERLAP_CONSTRAINT_NAME} "
            "EXCLUDE USING gist ("
            "facility_id WITH =, "
            "tsrange(booking_date + start_time, booking_date + end_time, '[)') WITH &&"
            ") WHERE (status IN ('pending', 'confirmed'))"
        )
    elif dialect_name == "sqlite":
        op.execute(
            f"CREATE TRIGGER IF NOT EXISTS {OVERLAP_CONSTRAINT_NAME} "
            "BEFORE INSERT ON bookings "
            "WHEN NEW.status IN ('pending', 'confirmed') "
            "BEGIN "
            f"SELECT RAISE(ABORT, '{OVERLAP_CONSTRAINT_NAME}') "
            "WHERE EXISTS ("
            "SELECT 1 FROM bookings b "
            "WHERE b.facility_id = NEW.facility_id "
            "AND b.booking_date = NEW.booking_date "
            "AND b.status IN ('pending', 'confirmed') "
            "AND b.start_time < NEW.end_time "
            "AND NEW.start_time < b.end_time"
            "); "
            "END"
        )

    op.create_table(
        "payments",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("booking_id", sa.String(26), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("method", sa.String(50), nullable=True),
        sa.Column("transaction_ref", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_reason", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"]),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'failed', 'refunded')",
            name="ck_payments_status",
        ),
        sa.CheckConstraint("amount >= 0", name="ck_payments_amount_non_negative"),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_booking_status", "payments", ["booking_id", "status"])

    print("Facility booking schema created")


def downgrade() -> None:
    """Drop booking engine tables."""
    print("Dropping facility booking schema...")

    bind = op.get_bind()
    dialect_name = bind.dialect.name if bind is not None else "postgresql"

    op.drop_index("ix_payments_booking_status", table_name="payments")
    op.drop_index("ix_payments_id", table_name="payments")
    op.drop_table("payments")

    if dialect_name == "sqlite":
        op.execute(f"DROP TRIGGER IF EXISTS {OVERLAP_CONSTRAINT_NAME}")

    op.drop_index("ix_bookings_user_status_date", table_name="bookings")
    op.drop_index("ix_bookings_facility_date_status", table_name="bookings")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_booking_date", table_name="bookings")
    op.drop_index("ix_bookings_id", table_name="bookings")
    op.drop_table("bookings")

    op.drop_index("ix_facilities_id", table_name="facilities")
    op.drop_table("facilities")
