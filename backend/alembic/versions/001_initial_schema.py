"""Initial schema: users, facilities, trainers, bookings, reviews, athletes,
donations, notifications with indexes and constraints.

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

ACTIVE_BOOKING = "status IN ('upcoming', 'completed')"


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'user'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('user', 'trainer', 'admin')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Facilities and trainers
    op.create_table(
        "facilities",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("price_per_hour", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("operating_hours", sa.JSON(), nullable=False),
        sa.Column("equipment_for_rent", sa.JSON(), nullable=False),
        sa.Column("rating", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
    )
    op.create_index("ix_facilities_id", "facilities", ["id"])
    op.create_index("ix_facilities_location", "facilities", ["location"])

    op.create_table(
        "trainers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("specialization", sa.String(255), nullable=True),
        sa.Column("hourly_rate", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("availability", sa.JSON(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("rating", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
    )
    op.create_index("ix_trainers_id", "trainers", ["id"])

    # Athlete campaigns
    op.create_table(
        "athletes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sport", sa.String(100), nullable=False),
        sa.Column("goal_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("raised_amount", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("raised_amount >= 0", name="check_athlete_raised_non_negative"),
    )
    op.create_index("ix_athletes_id", "athletes", ["id"])

    # Bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_code", sa.String(16), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("target_kind", sa.String(20), nullable=False),
        sa.Column("facility_id", sa.Integer(), sa.ForeignKey("facilities.id"), nullable=True),
        sa.Column("trainer_id", sa.Integer(), sa.ForeignKey("trainers.id"), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time_slot", sa.String(11), nullable=False),
        sa.Column("duration_hours", sa.Numeric(5, 2), nullable=False),
        sa.Column("participants", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("needs_transportation", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("special_requests", sa.Text(), nullable=True),
        sa.Column("rented_equipment", sa.JSON(), nullable=False),
        sa.Column("facility_cost", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("equipment_cost", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("transportation_cost", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("trainer_cost", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_cost", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'upcoming'")),
        sa.Column("refund_due", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.UniqueConstraint("booking_code", name="uq_bookings_booking_code"),
        sa.CheckConstraint("facility_id IS NOT NULL OR trainer_id IS NOT NULL", name="check_booking_has_target"),
        sa.CheckConstraint(
            "(target_kind = 'facility' AND facility_id IS NOT NULL) "
            "OR (target_kind = 'trainer' AND trainer_id IS NOT NULL)",
            name="check_booking_primary_target",
        ),
        sa.CheckConstraint("participants > 0", name="check_booking_participants_positive"),
        sa.CheckConstraint(
            "status IN ('upcoming', 'completed', 'cancelled', 'no-show')",
            name="check_booking_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'failed', 'refunded')",
            name="check_booking_payment_status",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_facility_id", "bookings", ["facility_id"])
    op.create_index("ix_bookings_trainer_id", "bookings", ["trainer_id"])
    op.create_index("ix_bookings_user_date", "bookings", ["user_id", "date"])
    # DOUBLE-BOOKING BACKSTOP: at most one active booking per target slot.
    # Cancelled and no-show rows are outside the predicate, so a freed slot
    # can be booked again while its history stays in the table.
    op.create_index(
        "uq_bookings_facility_slot_active",
        "bookings",
        ["facility_id", "date", "time_slot"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_BOOKING),
    )
    op.create_index(
        "uq_bookings_trainer_slot_active",
        "bookings",
        ["trainer_id", "date", "time_slot"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_BOOKING),
    )

    # Reviews table
    op.create_table(
        "reviews",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("facility_id", sa.Integer(), sa.ForeignKey("facilities.id", ondelete="CASCADE"), nullable=True),
        sa.Column("trainer_id", sa.Integer(), sa.ForeignKey("trainers.id", ondelete="CASCADE"), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "facility_id", name="uq_review_user_facility"),
        sa.UniqueConstraint("user_id", "trainer_id", name="uq_review_user_trainer"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="check_review_rating_range"),
        sa.CheckConstraint("(facility_id IS NULL) <> (trainer_id IS NULL)", name="check_review_single_target"),
    )
    op.create_index("ix_reviews_id", "reviews", ["id"])
    op.create_index("ix_reviews_user_id", "reviews", ["user_id"])
    op.create_index("ix_reviews_facility_id", "reviews", ["facility_id"])
    op.create_index("ix_reviews_trainer_id", "reviews", ["trainer_id"])

    # Donations table
    op.create_table(
        "donations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("donor_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("athlete_id", sa.Integer(), sa.ForeignKey("athletes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("is_anonymous", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("donor_name", sa.String(255), nullable=False),
        sa.Column("donor_email", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'succeeded'")),
        sa.Column("payment_reference", sa.String(64), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="check_donation_amount_positive"),
    )
    op.create_index("ix_donations_id", "donations", ["id"])
    op.create_index("ix_donations_donor_user_id", "donations", ["donor_user_id"])
    op.create_index("ix_donations_payment_reference", "donations", ["payment_reference"])
    op.create_index("ix_donations_athlete_created", "donations", ["athlete_id", "created_at"])

    # Notifications table
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(500), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "related_booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("related_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "related_athlete_id", sa.Integer(), sa.ForeignKey("athletes.id", ondelete="SET NULL"), nullable=True
        ),
        *_timestamps(),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    # Inbox listing (newest first) and unread badge count
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"])
    op.create_index("ix_notifications_user_unread", "notifications", ["user_id", "is_read"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("donations")
    op.drop_table("reviews")
    op.drop_table("bookings")
    op.drop_table("athletes")
    op.drop_table("trainers")
    op.drop_table("facilities")
    op.drop_table("users")
