"""
Booking conflict resolution.

CONCURRENCY STRATEGY: Pre-check + Partial Unique Index
======================================================

Problem:
  Two users request the same court (or trainer) for the same date and slot at
  the same time. Both run "is anyone booked?" -> no, both insert.

Solution:
  1. Application pre-check (this module): look for an active booking
     (status upcoming/completed) on each named target for (date, slot).
     Rejects the common case early with a message naming the target.
  2. Storage backstop: partial unique indexes
        (facility_id, date, time_slot) WHERE status IN ('upcoming','completed')
        (trainer_id,  date, time_slot) WHERE status IN ('upcoming','completed')
     The loser of a true race fails on INSERT/UPDATE; `translate_integrity_error`
     turns that into the same SlotConflictError as the pre-check.

  Cancelled and no-show bookings never block, in either layer.

  Both layers compare slot strings for equality. That equals an overlap test
  because create_booking only accepts slots from the fixed two-hour catalog.

When a booking names both a facility and a trainer, both are checked and a
conflict on either rejects the whole booking. The primary target is checked
first so its message wins when both are taken.
"""

from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import SlotConflictError
from app.core.logging import get_logger
from app.models.booking import ACTIVE_STATUSES, Booking

logger = get_logger(__name__)

_INDEX_TARGETS = {
    "uq_bookings_facility_slot_active": "facility",
    "uq_bookings_trainer_slot_active": "trainer",
}


def _targets_in_order(
    target_kind: str,
    facility_id: Optional[int],
    trainer_id: Optional[int],
) -> list[tuple[str, int]]:
    targets = [("facility", facility_id), ("trainer", trainer_id)]
    if target_kind == "trainer":
        targets.reverse()
    return [(kind, target_id) for kind, target_id in targets if target_id is not None]


async def find_active_booking(
    db: AsyncSession,
    kind: str,
    target_id: int,
    booking_date: date,
    time_slot: str,
    exclude_booking_id: Optional[int] = None,
) -> Optional[Booking]:
    column = Booking.facility_id if kind == "facility" else Booking.trainer_id
    query = select(Booking).where(
        column == target_id,
        Booking.date == booking_date,
        Booking.time_slot == time_slot,
        Booking.status.in_(ACTIVE_STATUSES),
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)
    result = await db.execute(query.limit(1))
    return result.scalar_one_or_none()


async def ensure_slot_free(
    db: AsyncSession,
    target_kind: str,
    booking_date: date,
    time_slot: str,
    facility_id: Optional[int] = None,
    trainer_id: Optional[int] = None,
    exclude_booking_id: Optional[int] = None,
) -> None:
    """
    Raise SlotConflictError if any named target already holds an active
    booking for (date, slot). `exclude_booking_id` lets a booking that is
    being re-activated ignore itself.
    """
    for kind, target_id in _targets_in_order(target_kind, facility_id, trainer_id):
        existing = await find_active_booking(
            db, kind, target_id, booking_date, time_slot, exclude_booking_id=exclude_booking_id
        )
        if existing is not None:
            logger.info(
                "booking_slot_conflict",
                target_kind=kind,
                target_id=target_id,
                date=booking_date.isoformat(),
                time_slot=time_slot,
                existing_booking_id=existing.id,
            )
            raise SlotConflictError(kind)


def translate_integrity_error(error: IntegrityError) -> Optional[SlotConflictError]:
    """
    Map a unique-index violation from the booking slot indexes to a
    SlotConflictError. Returns None for unrelated integrity errors.

    PostgreSQL reports the index name; SQLite only reports the columns.
    """
    text = str(error.orig)
    for index_name, kind in _INDEX_TARGETS.items():
        if index_name in text:
            return SlotConflictError(kind)
    if "UNIQUE constraint failed" in text:
        if "bookings.facility_id" in text:
            return SlotConflictError("facility")
        if "bookings.trainer_id" in text:
            return SlotConflictError("trainer")
    return None
