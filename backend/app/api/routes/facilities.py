"""
Facility endpoints: availability grid and reviews.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import commit, get_db
from app.models.user import User
from app.schemas.availability import DayAvailability
from app.schemas.review import ReviewCreate, ReviewResponse
from app.services.availability_service import get_facility_availability
from app.services.review_service import create_review
from app.core.security import get_current_user

router = APIRouter(prefix="/facilities", tags=["Facilities"])


@router.get("/{facility_id}/availability", response_model=list[DayAvailability])
async def facility_availability(
    facility_id: int,
    month: Optional[str] = Query(None, description="YYYY-MM; defaults to the current month"),
    db: AsyncSession = Depends(get_db),
):
    """
    Per-day slot availability for one month. Public.

    Past days are always unavailable. Served from Redis when cached.
    """
    return await get_facility_availability(db, facility_id, month)


@router.post("/{facility_id}/reviews", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def review_facility(
    facility_id: int,
    review_data: ReviewCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Review a facility (one review per user)."""
    review = await create_review(db, user, "facility", facility_id, review_data)
    await commit(db)
    return review
