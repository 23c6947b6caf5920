"""
Review of exactly one facility or one trainer.

One review per (user, target), enforced by unique constraints; NULL target
columns never collide, so each constraint only bites for its own kind.
"""

from sqlalchemy import Column, Integer, Text, ForeignKey, UniqueConstraint, CheckConstraint

from app.db.base import Base, TimestampMixin


class Review(Base, TimestampMixin):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    facility_id = Column(Integer, ForeignKey("facilities.id", ondelete="CASCADE"), nullable=True, index=True)
    trainer_id = Column(Integer, ForeignKey("trainers.id", ondelete="CASCADE"), nullable=True, index=True)
    rating = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "facility_id", name="uq_review_user_facility"),
        UniqueConstraint("user_id", "trainer_id", name="uq_review_user_trainer"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="check_review_rating_range"),
        CheckConstraint(
            "(facility_id IS NULL) <> (trainer_id IS NULL)",
            name="check_review_single_target",
        ),
    )

    @property
    def target_kind(self) -> str:
        return "facility" if self.facility_id is not None else "trainer"

    @property
    def target_id(self) -> int:
        return self.facility_id if self.facility_id is not None else self.trainer_id

    def __repr__(self) -> str:
        return f"<Review(id={self.id}, {self.target_kind}={self.target_id}, rating={self.rating})>"
