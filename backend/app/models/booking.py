"""
Booking model: a reservation of a facility and/or trainer for one time slot.

Key design decisions:
- `target_kind` tags which reference is primary; both references may be set
  (a trainer session held at a facility) and each is conflict-checked.
- Partial unique indexes on (target, date, time_slot) over active statuses are
  the race-safety backstop for double booking. Cancelled and no-show rows
  never block a slot.
- Cost components are snapshots; `total_cost` is only accepted when it equals
  the sum of the four components.
- Status is kept on the row (no deletes on cancellation).
"""

import secrets
import string
from datetime import datetime, time, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship, validates

from app.core.exceptions import ValidationError
from app.db.base import Base, TimestampMixin

TARGET_KINDS = ("facility", "trainer")
BOOKING_STATUSES = ("upcoming", "completed", "cancelled", "no-show")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")
# Statuses that hold a slot against new bookings
ACTIVE_STATUSES = ("upcoming", "completed")

_ACTIVE_SQL = "status IN ('upcoming', 'completed')"
_CODE_ALPHABET = string.ascii_uppercase + string.digits
COST_FIELDS = ("facility_cost", "equipment_cost", "transportation_cost", "trainer_cost")


def generate_booking_code(length: int = 8) -> str:
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(length))


def parse_time_slot(time_slot: str) -> tuple[time, time]:
    """Split "HH:MM-HH:MM" into (start, end). End "00:00" stays midnight."""
    try:
        start_raw, end_raw = time_slot.split("-")
        start = datetime.strptime(start_raw.strip(), "%H:%M").time()
        end = datetime.strptime(end_raw.strip(), "%H:%M").time()
    except (AttributeError, ValueError):
        raise ValidationError(f"Invalid time slot '{time_slot}'. Use HH:MM-HH:MM.")
    return start, end


def _minutes(value: time, is_end: bool = False) -> int:
    minutes = value.hour * 60 + value.minute
    if is_end and minutes == 0:
        return 24 * 60
    return minutes


def slot_duration_hours(time_slot: str) -> float:
    start, end = parse_time_slot(time_slot)
    duration = _minutes(end, is_end=True) - _minutes(start)
    if duration <= 0:
        raise ValidationError(f"Time slot '{time_slot}' must end after it starts.")
    return duration / 60


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_code = Column(String(16), nullable=False, unique=True, default=generate_booking_code)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    target_kind = Column(String(20), nullable=False)
    facility_id = Column(Integer, ForeignKey("facilities.id"), nullable=True, index=True)
    trainer_id = Column(Integer, ForeignKey("trainers.id"), nullable=True, index=True)

    date = Column(Date, nullable=False)
    time_slot = Column(String(11), nullable=False)
    duration_hours = Column(Numeric(5, 2), nullable=False)
    participants = Column(Integer, nullable=False, default=1)
    needs_transportation = Column(Boolean, nullable=False, default=False)
    special_requests = Column(Text, nullable=True)

    # [{"name": ..., "quantity": ..., "unit_price_per_hour": ...}]
    rented_equipment = Column(JSON, nullable=False, default=list)
    facility_cost = Column(Numeric(12, 2), nullable=False, default=0)
    equipment_cost = Column(Numeric(12, 2), nullable=False, default=0)
    transportation_cost = Column(Numeric(12, 2), nullable=False, default=0)
    trainer_cost = Column(Numeric(12, 2), nullable=False, default=0)
    total_cost = Column(Numeric(12, 2), nullable=False, default=0)

    payment_status = Column(String(20), nullable=False, default="pending")
    status = Column(String(20), nullable=False, default="upcoming")
    refund_due = Column(Boolean, nullable=False, default=False)

    user = relationship("User")
    facility = relationship("Facility")
    trainer = relationship("Trainer")

    __table_args__ = (
        CheckConstraint(
            "facility_id IS NOT NULL OR trainer_id IS NOT NULL",
            name="check_booking_has_target",
        ),
        CheckConstraint(
            "(target_kind = 'facility' AND facility_id IS NOT NULL) "
            "OR (target_kind = 'trainer' AND trainer_id IS NOT NULL)",
            name="check_booking_primary_target",
        ),
        CheckConstraint("participants > 0", name="check_booking_participants_positive"),
        CheckConstraint(
            "status IN ('upcoming', 'completed', 'cancelled', 'no-show')",
            name="check_booking_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'failed', 'refunded')",
            name="check_booking_payment_status",
        ),
        # One active booking per facility slot
        Index(
            "uq_bookings_facility_slot_active",
            "facility_id",
            "date",
            "time_slot",
            unique=True,
            postgresql_where=text(_ACTIVE_SQL),
            sqlite_where=text(_ACTIVE_SQL),
        ),
        # One active booking per trainer slot
        Index(
            "uq_bookings_trainer_slot_active",
            "trainer_id",
            "date",
            "time_slot",
            unique=True,
            postgresql_where=text(_ACTIVE_SQL),
            sqlite_where=text(_ACTIVE_SQL),
        ),
        Index("ix_bookings_user_date", "user_id", "date"),
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        kind = self.target_kind
        if kind not in TARGET_KINDS:
            raise ValidationError(f"Unknown booking target kind '{kind}'.")
        if self.facility_id is None and self.trainer_id is None:
            raise ValidationError("Booking must be associated with either a facility or a trainer.")
        if kind == "facility" and self.facility_id is None:
            raise ValidationError("A facility booking requires a facility.")
        if kind == "trainer" and self.trainer_id is None:
            raise ValidationError("A trainer booking requires a trainer.")

    @validates("target_kind")
    def _freeze_target_kind(self, key, value):
        if self.target_kind is not None and value != self.target_kind:
            raise ValidationError("Booking target kind cannot be changed.")
        return value

    @validates("total_cost")
    def _check_total(self, key, value):
        expected = sum(Decimal(str(getattr(self, name) or 0)) for name in COST_FIELDS)
        if Decimal(str(value)) != expected:
            raise ValidationError("total_cost must equal the sum of its components.")
        return value

    def apply_costs(self, breakdown) -> None:
        """Copy a CostBreakdown onto the row; the only way costs are written."""
        self.facility_cost = breakdown.facility_cost
        self.equipment_cost = breakdown.equipment_cost
        self.transportation_cost = breakdown.transportation_cost
        self.trainer_cost = breakdown.trainer_cost
        self.total_cost = breakdown.total_cost
        self.rented_equipment = [item.to_snapshot() for item in breakdown.rented_equipment]

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def starts_at(self) -> datetime:
        start, _ = parse_time_slot(self.time_slot)
        return datetime.combine(self.date, start, tzinfo=timezone.utc)

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, code={self.booking_code}, {self.target_kind}, "
            f"{self.date} {self.time_slot}, status={self.status})>"
        )

