"""
Booking status state machine.

    upcoming --> completed
             --> cancelled
             --> no-show

Only `upcoming` has outgoing edges for owners. Admins may override to any
status with two exceptions: a terminal booking never goes back to
`upcoming`, and a completed booking is never cancelled.

`payment_status` is independent. Cancelling a paid booking only raises
`refund_due`; refunds happen outside this service.

These functions validate and mutate the ORM object in memory; persistence,
notifications and conflict re-checks are the caller's job.
"""

from datetime import datetime, timedelta
from typing import Optional

from app.core.exceptions import ConflictError, ValidationError
from app.models.booking import ACTIVE_STATUSES, BOOKING_STATUSES, Booking

TERMINAL_STATUSES = ("completed", "cancelled", "no-show")


def check_cancellation(booking: Booking, by_admin: bool, now: datetime, window_hours: int) -> None:
    """Raise unless `booking` may be cancelled by this actor right now."""
    if booking.status == "cancelled":
        raise ValidationError("Booking is already cancelled")
    if booking.status == "completed":
        raise ValidationError("Cannot cancel a completed booking")
    if booking.status != "upcoming":
        raise ValidationError(f"Cannot cancel a booking marked {booking.status}")

    if by_admin:
        return
    if booking.starts_at - now <= timedelta(hours=window_hours):
        raise ValidationError(
            f"Cancellation window has passed (must be more than {window_hours} hours "
            "before the booking starts). Admins can override."
        )


def check_admin_transition(booking: Booking, new_status: str) -> bool:
    """
    Validate an admin override. Returns False for a no-op (same status),
    True when the status will change.
    """
    if new_status not in BOOKING_STATUSES:
        raise ValidationError("Invalid or missing status value")
    if new_status == booking.status:
        return False
    if booking.status in TERMINAL_STATUSES and new_status == "upcoming":
        raise ConflictError(f"A {booking.status} booking cannot be reopened")
    if booking.status == "completed" and new_status == "cancelled":
        raise ConflictError("Cannot cancel a completed booking")
    return True


def reactivates(old_status: str, new_status: str) -> bool:
    """True when the move makes the booking hold its slot again."""
    return old_status not in ACTIVE_STATUSES and new_status in ACTIVE_STATUSES


def apply_status(booking: Booking, new_status: str) -> str:
    """Set the new status, flag refunds, and return the previous status."""
    old_status = booking.status
    booking.status = new_status
    if new_status == "cancelled" and booking.payment_status == "paid":
        booking.refund_due = True
    return old_status


def describe_target(booking: Booking, facility_name: Optional[str], trainer_name: Optional[str]) -> str:
    if booking.target_kind == "facility" and facility_name:
        return f"booking for {facility_name}"
    if booking.target_kind == "trainer" and trainer_name:
        return f"session with {trainer_name}"
    return "booking"


def status_change_message(booking: Booking, target: str, by_admin: bool) -> str:
    when = f"{booking.date.strftime('%b %d, %Y')} at {booking.time_slot}"
    code = f"(#{booking.booking_code})"
    if not by_admin:
        return f"Confirmation: your {target} on {when} has been cancelled. {code}"
    if booking.status == "cancelled":
        return f"Admin Update: your {target} on {when} has been cancelled by administration. {code}"
    if booking.status == "completed":
        return f"Admin Update: your {target} on {when} has been marked as completed. {code}"
    return f"Admin Update: the status of your {target} on {when} has been updated to {booking.status}. {code}"
