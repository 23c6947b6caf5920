"""
Athlete campaign endpoints: donations.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import commit, get_db
from app.models.user import User
from app.schemas.donation import DonationCreate, DonationReceipt, DonationResponse
from app.services.donation_service import make_donation
from app.core.security import get_current_user

router = APIRouter(prefix="/athletes", tags=["Athletes"])


@router.post("/{athlete_id}/donations", response_model=DonationReceipt, status_code=status.HTTP_201_CREATED)
async def donate(
    athlete_id: int,
    donation_data: DonationCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Donate to an active athlete campaign. Payment is simulated; the campaign
    total is incremented atomically with the donation record.
    """
    donation, raised_amount, goal_amount = await make_donation(db, user, athlete_id, donation_data)
    await commit(db)
    return DonationReceipt(
        donation=DonationResponse.model_validate(donation),
        athlete_id=athlete_id,
        raised_amount=raised_amount,
        goal_amount=goal_amount,
    )
