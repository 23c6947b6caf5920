"""
Rating aggregation for facilities and trainers.

`rating` (mean, one decimal, 0 when empty) and `review_count` are derived
from the reviews table with a single statement:

    UPDATE facilities
       SET rating       = (SELECT coalesce(round(avg(rating), 1), 0) FROM reviews WHERE facility_id = :id),
           review_count = (SELECT count(id) FROM reviews WHERE facility_id = :id)
     WHERE id = :id

No read-modify-write in Python, so concurrent review writes cannot lose an
update, and re-running the job is harmless. It runs in the background after
the review transaction commits, in its own session.
"""

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.db.session import get_session_factory
from app.models.facility import Facility, Trainer
from app.models.review import Review
from app.services.background import schedule_after_commit

logger = get_logger(__name__)


def _target_columns(target_kind: str):
    if target_kind == "facility":
        return Facility, Review.facility_id
    if target_kind == "trainer":
        return Trainer, Review.trainer_id
    raise ValueError(f"Unknown review target kind '{target_kind}'")


async def recompute_rating(db: AsyncSession, target_kind: str, target_id: int) -> None:
    """Rewrite rating and review_count for one target from its reviews."""
    model, review_fk = _target_columns(target_kind)

    average = (
        select(func.coalesce(func.round(func.avg(Review.rating), 1), 0))
        .where(review_fk == target_id)
        .scalar_subquery()
    )
    count = select(func.count(Review.id)).where(review_fk == target_id).scalar_subquery()

    await db.execute(
        update(model)
        .where(model.id == target_id)
        .values(rating=average, review_count=count)
        .execution_options(synchronize_session=False)
    )
    logger.info("rating_recomputed", target_kind=target_kind, target_id=target_id)


async def refresh_rating(target_kind: str, target_id: int) -> None:
    """Background job body: recompute in a fresh session and commit."""
    async with get_session_factory()() as session:
        await recompute_rating(session, target_kind, target_id)
        await session.commit()


def schedule_rating_refresh(db: AsyncSession, target_kind: str, target_id: int) -> None:
    schedule_after_commit(db, "rating_recompute", lambda: refresh_rating(target_kind, target_id))
