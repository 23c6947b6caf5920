"""
Reviews of facilities and trainers.

One review per (user, target). Creating or deleting a review schedules a
rating recomputation for its target after commit; the review request never
waits for (or fails because of) the aggregation.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AuthorizationError, ConflictError, NotFoundError
from app.core.logging import get_logger
from app.models.facility import Facility, Trainer
from app.models.review import Review
from app.models.user import User
from app.schemas.review import ReviewCreate
from app.services.rating_service import schedule_rating_refresh

logger = get_logger(__name__)

_TARGET_MODELS = {"facility": Facility, "trainer": Trainer}


async def create_review(
    db: AsyncSession,
    user: User,
    target_kind: str,
    target_id: int,
    review_data: ReviewCreate,
) -> Review:
    """
    Add the caller's review of a facility or trainer.
    Raises 404 for an unknown target and 409 for a second review.
    """
    model = _TARGET_MODELS[target_kind]
    if await db.get(model, target_id) is None:
        raise NotFoundError(f"{target_kind.capitalize()} not found")

    target_column = Review.facility_id if target_kind == "facility" else Review.trainer_id
    existing = await db.execute(
        select(Review.id).where(Review.user_id == user.id, target_column == target_id)
    )
    if existing.scalar_one_or_none() is not None:
        logger.warning("review_duplicate", user_id=user.id, target_kind=target_kind, target_id=target_id)
        raise ConflictError(f"You have already reviewed this {target_kind}")

    review = Review(
        user_id=user.id,
        rating=review_data.rating,
        content=review_data.content.strip(),
        **{f"{target_kind}_id": target_id},
    )
    db.add(review)
    try:
        await db.flush()
    except IntegrityError as e:
        raise ConflictError(f"You have already reviewed this {target_kind}") from e
    await db.refresh(review)

    schedule_rating_refresh(db, target_kind, target_id)
    logger.info(
        "review_created",
        review_id=review.id,
        user_id=user.id,
        target_kind=target_kind,
        target_id=target_id,
        rating=review.rating,
    )
    return review


async def delete_review(db: AsyncSession, review_id: int, user: User) -> None:
    """Delete a review (author or admin) and refresh its target's rating."""
    review = await db.get(Review, review_id)
    if review is None:
        raise NotFoundError("Review not found")
    if review.user_id != user.id and not user.is_admin:
        raise AuthorizationError("Not authorized to delete this review")

    target_kind, target_id = review.target_kind, review.target_id
    await db.delete(review)
    await db.flush()

    schedule_rating_refresh(db, target_kind, target_id)
    logger.info("review_deleted", review_id=review_id, user_id=user.id, target_kind=target_kind, target_id=target_id)
