"""
Review endpoints shared by facilities and trainers.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import commit, get_db
from app.models.user import User
from app.services.review_service import delete_review
from app.core.security import get_current_user

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_review(
    review_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete a review. Authors may delete their own; admins any."""
    await delete_review(db, review_id, user)
    await commit(db)
