"""
Booking service: creation, cancellation, admin overrides and read side.

Creation pipeline (one transaction):

  resolve targets -> conflict pre-check -> price -> INSERT -> notify (row)
        |                                              |
        404 primary missing                            IntegrityError on the
        (secondary missing: dropped, logged)           slot index -> 409

  after commit (background): push notification, confirmation email,
  availability cache invalidation.

Status changes go through app.services.lifecycle and emit exactly one
notification to the owner when the status actually changes.
"""

import math
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import get_settings
from app.core.exceptions import AuthorizationError, NotFoundError, SlotConflictError, ValidationError
from app.core.logging import get_logger
from app.core.metrics import record_booking_attempt, record_transition
from app.models.booking import Booking
from app.models.facility import Facility, Trainer
from app.models.user import User
from app.schemas.booking import BookingCreate
from app.services import lifecycle
from app.services.availability_service import SLOT_CATALOG
from app.services.background import schedule_after_commit
from app.services.cache_service import invalidate_availability
from app.services.conflict_service import ensure_slot_free, translate_integrity_error
from app.services.email_service import booking_confirmation_email, booking_status_email, send_email
from app.services.notification_service import notify
from app.services.pricing_service import calculate_costs

logger = get_logger(__name__)


async def _load_booking(db: AsyncSession, booking_id: int) -> Optional[Booking]:
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .options(
            selectinload(Booking.user),
            selectinload(Booking.facility),
            selectinload(Booking.trainer),
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _flush_booking(db: AsyncSession) -> None:
    """Flush, turning a slot-index violation into the same 409 as the pre-check."""
    try:
        await db.flush()
    except IntegrityError as e:
        conflict = translate_integrity_error(e)
        if conflict is None:
            raise
        logger.warning("booking_slot_race_lost", target_kind=conflict.target_kind)
        record_booking_attempt("race_lost")
        raise conflict from e


def _schedule_cache_invalidation(db: AsyncSession, facility_id: Optional[int]) -> None:
    if facility_id is not None:
        schedule_after_commit(db, "availability_invalidate", lambda: invalidate_availability(facility_id))


def _schedule_email(db: AsyncSession, job: str, to_email: str, subject: str, html_body: str) -> None:
    schedule_after_commit(db, job, lambda: send_email(to_email, subject, html_body))


async def _resolve_targets(db: AsyncSession, data: BookingCreate) -> tuple[Optional[Facility], Optional[Trainer]]:
    facility = await db.get(Facility, data.facility_id) if data.facility_id is not None else None
    trainer = await db.get(Trainer, data.trainer_id) if data.trainer_id is not None else None

    if data.target_kind == "facility":
        if facility is None:
            raise NotFoundError("Facility not found")
        if data.trainer_id is not None and trainer is None:
            logger.warning("booking_secondary_target_missing", target_kind="trainer", target_id=data.trainer_id)
    else:
        if trainer is None:
            raise NotFoundError("Trainer not found")
        if data.facility_id is not None and facility is None:
            logger.warning("booking_secondary_target_missing", target_kind="facility", target_id=data.facility_id)
    return facility, trainer


async def create_booking(db: AsyncSession, user: User, data: BookingCreate) -> Booking:
    """
    Create a booking for `user`.

    Raises NotFoundError (primary target), SlotConflictError (slot taken on
    either target) or ValidationError (bad slot or session length).

    Only catalog slots are bookable, so two active bookings of one target on
    one day either share a slot string or do not overlap at all.
    """
    if data.time_slot not in SLOT_CATALOG:
        record_booking_attempt("invalid")
        raise ValidationError(f"Time slot must be one of: {', '.join(SLOT_CATALOG)}")

    facility, trainer = await _resolve_targets(db, data)
    target_kind = data.target_kind
    facility_id = facility.id if facility else None
    trainer_id = trainer.id if trainer else None

    try:
        await ensure_slot_free(
            db,
            target_kind,
            data.date,
            data.time_slot,
            facility_id=facility_id,
            trainer_id=trainer_id,
        )
    except SlotConflictError:
        record_booking_attempt("conflict")
        raise

    try:
        costs = calculate_costs(
            target_kind,
            data.time_slot,
            facility=facility,
            trainer=trainer,
            equipment=data.rented_equipment,
            needs_transportation=data.needs_transportation,
            session_hours=data.session_hours,
        )
    except ValidationError:
        record_booking_attempt("invalid")
        raise

    booking = Booking(
        user_id=user.id,
        target_kind=target_kind,
        facility_id=facility_id,
        trainer_id=trainer_id,
        date=data.date,
        time_slot=data.time_slot,
        duration_hours=costs.duration_hours,
        participants=data.participants,
        needs_transportation=data.needs_transportation,
        special_requests=(data.special_requests or "").strip() or None,
        payment_status="pending",
        status="upcoming",
    )
    booking.apply_costs(costs)
    db.add(booking)
    await _flush_booking(db)

    target_name = facility.name if target_kind == "facility" else f"session with {trainer.name}"
    when = booking.date.strftime("%b %d, %Y")
    await notify(
        db,
        user.id,
        "booking_created",
        f"Your booking for {target_name} on {when} at {booking.time_slot} is confirmed! (#{booking.booking_code})",
        link=f"/bookings/{booking.id}",
        related_booking_id=booking.id,
        related_user_id=trainer.user_id if target_kind == "trainer" else None,
    )

    location = (facility.address or facility.location) if facility else ""
    subject, html_body = booking_confirmation_email(user.name, target_name, booking, location=location)
    _schedule_email(db, "booking_confirmation_email", user.email, subject, html_body)
    _schedule_cache_invalidation(db, facility_id)

    record_booking_attempt("created")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        booking_code=booking.booking_code,
        user_id=user.id,
        target_kind=target_kind,
        facility_id=facility_id,
        trainer_id=trainer_id,
        date=booking.date.isoformat(),
        time_slot=booking.time_slot,
        total_cost=float(booking.total_cost),
    )
    return await _load_booking(db, booking.id)


async def get_booking(db: AsyncSession, booking_id: int, user: User) -> Booking:
    """Fetch a booking visible to its owner or an admin."""
    booking = await _load_booking(db, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")
    if booking.user_id != user.id and not user.is_admin:
        raise AuthorizationError("Not authorized to view this booking")
    return booking


async def get_user_bookings(db: AsyncSession, user_id: int) -> list[Booking]:
    """Get all bookings for a user, newest first."""
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == user_id)
        .options(selectinload(Booking.facility), selectinload(Booking.trainer))
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


async def _announce_status_change(
    db: AsyncSession,
    booking: Booking,
    old_status: str,
    actor: User,
    by_admin: bool,
) -> None:
    target = lifecycle.describe_target(
        booking,
        booking.facility.name if booking.facility else None,
        booking.trainer.name if booking.trainer else None,
    )
    await notify(
        db,
        booking.user_id,
        "booking_status_update",
        lifecycle.status_change_message(booking, target, by_admin=by_admin),
        link=f"/bookings/{booking.id}",
        related_booking_id=booking.id,
        related_user_id=actor.id if by_admin else None,
    )
    if booking.status == "cancelled" and booking.user is not None:
        subject, html_body = booking_status_email(booking.user.name, target, booking)
        _schedule_email(db, "booking_cancellation_email", booking.user.email, subject, html_body)
    _schedule_cache_invalidation(db, booking.facility_id)

    record_transition(old_status, booking.status, "admin" if by_admin else "owner")
    logger.info(
        "booking_status_changed",
        booking_id=booking.id,
        from_status=old_status,
        to_status=booking.status,
        actor_id=actor.id,
        refund_due=booking.refund_due,
    )


async def cancel_booking(
    db: AsyncSession,
    booking_id: int,
    user: User,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Cancel as owner (window enforced) or admin (window ignored).
    A second cancel is rejected with "Booking is already cancelled".
    """
    booking = await _load_booking(db, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")

    is_owner = booking.user_id == user.id
    if not is_owner and not user.is_admin:
        raise AuthorizationError("Not authorized to cancel this booking")

    lifecycle.check_cancellation(
        booking,
        by_admin=user.is_admin,
        now=now or datetime.now(timezone.utc),
        window_hours=get_settings().CANCELLATION_WINDOW_HOURS,
    )

    old_status = lifecycle.apply_status(booking, "cancelled")
    await db.flush()
    if booking.refund_due:
        logger.warning("booking_refund_due", booking_id=booking.id, total_cost=float(booking.total_cost))

    await _announce_status_change(db, booking, old_status, user, by_admin=not is_owner)
    return await _load_booking(db, booking.id)


async def update_status_by_admin(db: AsyncSession, booking_id: int, new_status: str, admin: User) -> Booking:
    """
    Admin override of a booking's status. Setting the current status is a
    no-op (no notification). Re-activating a booking re-checks its slot.
    """
    booking = await _load_booking(db, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")

    if not lifecycle.check_admin_transition(booking, new_status):
        logger.info("booking_status_unchanged", booking_id=booking.id, status=new_status, actor_id=admin.id)
        return booking

    if lifecycle.reactivates(booking.status, new_status):
        await ensure_slot_free(
            db,
            booking.target_kind,
            booking.date,
            booking.time_slot,
            facility_id=booking.facility_id,
            trainer_id=booking.trainer_id,
            exclude_booking_id=booking.id,
        )

    old_status = lifecycle.apply_status(booking, new_status)
    await _flush_booking(db)

    await _announce_status_change(db, booking, old_status, admin, by_admin=True)
    return await _load_booking(db, booking.id)


async def list_admin_bookings(
    db: AsyncSession,
    page: int = 1,
    limit: int = 15,
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
    target_kind: Optional[str] = None,
    search: Optional[str] = None,
) -> tuple[list[Booking], int, int]:
    """Paginated, filtered list of all bookings. Returns (bookings, total, pages)."""
    filters = []
    if status:
        filters.append(Booking.status == status)
    if payment_status:
        filters.append(Booking.payment_status == payment_status)
    if target_kind:
        filters.append(Booking.target_kind == target_kind)
    if search:
        filters.append(func.lower(Booking.booking_code).contains(search.strip().lower(), autoescape=True))

    total = (await db.execute(select(func.count(Booking.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(Booking)
        .where(*filters)
        .options(selectinload(Booking.facility), selectinload(Booking.trainer))
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total, math.ceil(total / limit) if limit else 0


async def delete_booking_by_admin(db: AsyncSession, booking_id: int, admin: User) -> None:
    booking = await db.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")

    facility_id = booking.facility_id
    await db.delete(booking)
    await db.flush()
    _schedule_cache_invalidation(db, facility_id)
    logger.info("booking_deleted", booking_id=booking_id, actor_id=admin.id)
