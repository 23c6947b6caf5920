"""
Trainer endpoints: reviews.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import commit, get_db
from app.models.user import User
from app.schemas.review import ReviewCreate, ReviewResponse
from app.services.review_service import create_review
from app.core.security import get_current_user

router = APIRouter(prefix="/trainers", tags=["Trainers"])


@router.post("/{trainer_id}/reviews", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def review_trainer(
    trainer_id: int,
    review_data: ReviewCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Review a trainer (one review per user)."""
    review = await create_review(db, user, "trainer", trainer_id, review_data)
    await commit(db)
    return review
