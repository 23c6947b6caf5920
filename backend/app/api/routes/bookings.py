"""
Booking endpoints: create, read, and cancel.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import commit, get_db
from app.models.user import User
from app.schemas.booking import BookingCreate, BookingResponse, BookingCancelResponse
from app.services import booking_service
from app.core.security import get_current_user

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Book a facility, a trainer, or a trainer at a facility for one slot.

    Returns 409 when the slot is already taken on any named target. The
    confirmation notification is stored with the booking; the push and the
    confirmation email go out after commit.
    """
    booking = await booking_service.create_booking(db, user, booking_data)
    await commit(db)
    return booking


@router.get("", response_model=list[BookingResponse])
async def list_my_bookings(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get all bookings for the authenticated user, newest first."""
    return await booking_service.get_user_bookings(db, user.id)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Booking details for its owner or an admin."""
    return await booking_service.get_booking(db, booking_id, user)


@router.put("/{booking_id}/cancel", response_model=BookingCancelResponse)
async def cancel_booking(
    booking_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Cancel a booking. Owners must cancel more than 24 hours before the start;
    admins may cancel any upcoming booking.
    """
    booking = await booking_service.cancel_booking(db, booking_id, user)
    await commit(db)
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking=BookingResponse.model_validate(booking),
    )
