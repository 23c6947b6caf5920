"""
Admin booking moderation endpoints.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import commit, get_db
from app.models.user import User
from app.schemas.booking import AdminBookingListResponse, BookingResponse, BookingStatusUpdate
from app.services import booking_service
from app.core.security import require_admin

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/bookings", response_model=AdminBookingListResponse)
async def list_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(15, ge=1, le=100),
    status_filter: Optional[Literal["upcoming", "completed", "cancelled", "no-show"]] = Query(None, alias="status"),
    payment_status: Optional[Literal["pending", "paid", "failed", "refunded"]] = Query(None),
    target_kind: Optional[Literal["facility", "trainer"]] = Query(None),
    search: Optional[str] = Query(None, max_length=16, description="Booking code fragment"),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """All bookings, newest first, with optional filters."""
    bookings, total, pages = await booking_service.list_admin_bookings(
        db,
        page=page,
        limit=limit,
        status=status_filter,
        payment_status=payment_status,
        target_kind=target_kind,
        search=search,
    )
    return AdminBookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
        page=page,
        limit=limit,
        pages=pages,
    )


@router.put("/bookings/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: int,
    body: BookingStatusUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Override a booking's status. The owner is notified when it changes."""
    booking = await booking_service.update_status_by_admin(db, booking_id, body.status, admin)
    await commit(db)
    return booking


@router.delete("/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(
    booking_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Permanently delete a booking."""
    await booking_service.delete_booking_by_admin(db, booking_id, admin)
    await commit(db)
