"""Initial schema: businesses, clients, services, availability, bookings, reviews.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "businesses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("zone", sa.String(100), nullable=True),
        sa.Column("city", sa.String(100), nullable=False, server_default=sa.text("'Gijón'")),
        sa.Column("plan", sa.String(20), nullable=False, server_default=sa.text("'free'")),
        sa.Column("commission_rate", sa.Numeric(5, 4), nullable=False, server_default=sa.text("0.15")),
        sa.Column("rating", sa.Numeric(3, 1), nullable=False, server_default=sa.text("0")),
        sa.Column("total_reviews", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("commission_rate >= 0 AND commission_rate <= 1", name="check_commission_rate_fraction"),
        sa.CheckConstraint("total_reviews >= 0", name="check_total_reviews_non_negative"),
    )
    op.create_index("ix_businesses_id", "businesses", ["id"])
    op.create_index("ix_businesses_email", "businesses", ["email"], unique=True)
    # Listing: WHERE category = ? ORDER BY rating DESC
    op.create_index("ix_businesses_category_rating", "businesses", ["category", "rating"])

    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_clients_id", "clients", ["id"])
    op.create_index("ix_clients_email", "clients", ["email"], unique=True)

    op.create_table(
        "services",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("price > 0", name="check_service_price_positive"),
        sa.CheckConstraint("duration_minutes > 0", name="check_service_duration_positive"),
    )
    op.create_index("ix_services_id", "services", ["id"])
    op.create_index("ix_services_business_id", "services", ["business_id"])

    op.create_table(
        "availability",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.Time(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'available'")),
        *_timestamps(),
        sa.UniqueConstraint("business_id", "date", "time", name="uq_availability_business_date_time"),
        sa.CheckConstraint("status IN ('available', 'booked')", name="check_availability_status"),
    )
    op.create_index("ix_availability_id", "availability", ["id"])
    # Covers the reservation lookup and "free slots from today" listings
    op.create_index("ix_availability_business_status_date", "availability", ["business_id", "status", "date"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=False),
        sa.Column("service_id", sa.Integer(), sa.ForeignKey("services.id"), nullable=False),
        sa.Column("availability_id", sa.Integer(), sa.ForeignKey("availability.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.Time(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("commission_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("cancellation_charge", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("confirmation_code", sa.String(16), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("confirmation_code", name="uq_bookings_confirmation_code"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="check_booking_status",
        ),
        sa.CheckConstraint("cancellation_charge >= 0", name="check_cancellation_charge_non_negative"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_client_id", "bookings", ["client_id"])
    op.create_index("ix_bookings_business_id", "bookings", ["business_id"])
    op.create_index("ix_bookings_business_date", "bookings", ["business_id", "date"])
    # At most one live booking per slot, whatever the slot row says
    op.create_index(
        "uq_bookings_live_availability",
        "bookings",
        ["availability_id"],
        unique=True,
        postgresql_where=sa.text("status != 'cancelled'"),
    )

    op.create_table(
        "reviews",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("booking_id", name="uq_reviews_booking_id"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="check_review_rating_range"),
    )
    op.create_index("ix_reviews_id", "reviews", ["id"])
    op.create_index("ix_reviews_business_id", "reviews", ["business_id"])


def downgrade() -> None:
    op.drop_table("reviews")
    op.drop_table("bookings")
    op.drop_table("availability")
    op.drop_table("services")
    op.drop_table("clients")
    op.drop_table("businesses")
