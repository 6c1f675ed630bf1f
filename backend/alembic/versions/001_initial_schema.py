"""Initial schema: packages, slot templates, customers, staff users, bookings, payments.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Packages table (slug primary key)
    packages = op.create_table(
        "packages",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("features", sa.JSON(), nullable=False),
        sa.Column("is_popular", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("price > 0", name="check_package_price_positive"),
    )

    # Staff users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'viewer'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint(
            "role IN ('super_admin', 'admin', 'manager', 'viewer')", name="check_user_role"
        ),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Slot templates table
    op.create_table(
        "slot_templates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("package_id", sa.String(50), sa.ForeignKey("packages.id"), nullable=True),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("duration_hours", sa.Numeric(4, 2), nullable=False, server_default=sa.text("1")),
        sa.Column("max_capacity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="check_slot_day_of_week"),
        sa.CheckConstraint("start_time < end_time", name="check_slot_start_before_end"),
        sa.CheckConstraint("duration_hours > 0", name="check_slot_duration_positive"),
        sa.CheckConstraint("max_capacity >= 1", name="check_slot_capacity_positive"),
    )
    op.create_index("ix_slot_templates_id", "slot_templates", ["id"])
    # Every availability lookup is "active templates for weekday N"
    op.create_index("ix_slot_templates_day_active", "slot_templates", ["day_of_week", "is_active"])

    # Customers table
    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("total_spent", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("last_booking_date", sa.Date(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_customers_id", "customers", ["id"])
    # UNIQUE EMAIL: the conflict target for the customer upsert
    op.create_index("ix_customers_email", "customers", ["email"], unique=True)

    # Bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("package_id", sa.String(50), sa.ForeignKey("packages.id"), nullable=True),
        sa.Column("service_name", sa.String(255), nullable=True),
        sa.Column("time_slot_template_id", sa.Integer(), sa.ForeignKey("slot_templates.id"), nullable=True),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=True),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("booking_time", sa.Time(), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=False),
        sa.Column("customer_phone", sa.String(50), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("session_id", sa.String(255), nullable=True),
        sa.Column("payment_intent_id", sa.String(255), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("cancellation_reason", sa.String(500), nullable=True),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("refund_status", sa.String(50), nullable=True),
        sa.Column("refund_notified_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        # UNIQUE SESSION: the idempotency key for checkout reconciliation.
        # Two concurrent deliveries of the same event race on this constraint
        # and exactly one INSERT wins.
        sa.UniqueConstraint("session_id", name="uq_bookings_session_id"),
        sa.CheckConstraint("price > 0", name="check_booking_price_positive"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'refunded')",
            name="check_booking_status",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_customer_id", "bookings", ["customer_id"])
    op.create_index("ix_bookings_customer_email", "bookings", ["customer_email"])
    op.create_index("ix_bookings_payment_intent_id", "bookings", ["payment_intent_id"])
    # Covers the capacity count: WHERE booking_date = ? AND status IN (...) GROUP BY booking_time
    op.create_index("ix_bookings_date_time_status", "bookings", ["booking_date", "booking_time", "status"])

    # Payments table
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=True),
        sa.Column("session_id", sa.String(255), nullable=False),
        sa.Column("payment_reference", sa.String(255), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'usd'")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'succeeded'")),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("booking_data", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("session_id", name="uq_payments_session_id"),
        sa.CheckConstraint(
            "status IN ('succeeded', 'failed', 'refunded')", name="check_payment_status"
        ),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_booking_id", "payments", ["booking_id"])
    op.create_index("ix_payments_customer_id", "payments", ["customer_id"])
    op.create_index("ix_payments_payment_reference", "payments", ["payment_reference"])

    op.bulk_insert(
        packages,
        [
            {
                "id": "indie",
                "name": "Indie",
                "price": 399,
                "features": ["1 hr studio rental", "20 cinematic edits", "1 look/1 backdrop", "Online gallery"],
                "is_popular": False,
                "is_active": True,
            },
            {
                "id": "feature",
                "name": "Feature",
                "price": 799,
                "features": [
                    "3 hr production",
                    "60 final stills",
                    "2 looks + set changes",
                    "Color-graded gallery",
                    "MUA & stylist included",
                ],
                "is_popular": True,
                "is_active": True,
            },
            {
                "id": "blockbuster",
                "name": "Blockbuster",
                "price": 1499,
                "features": [
                    "Full-day shoot",
                    "120+ hero images",
                    "Unlimited sets",
                    "Behind-the-scenes 4K video",
                    "Same-day teaser",
                ],
                "is_popular": False,
                "is_active": True,
            },
        ],
    )


def downgrade() -> None:
    op.drop_table("payments")
    op.drop_table("bookings")
    op.drop_table("customers")
    op.drop_table("slot_templates")
    op.drop_table("users")
    op.drop_table("packages")
