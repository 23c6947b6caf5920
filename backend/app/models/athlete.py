"""
Athlete fundraising campaigns and the donations made to them.

`raised_amount` is denormalized for listing pages and is only ever changed by
an atomic `raised_amount = raised_amount + :amount` update issued in the same
transaction as the donation insert.
"""

from sqlalchemy import Column, Integer, String, Boolean, Numeric, ForeignKey, Text, Index, CheckConstraint

from app.db.base import Base, TimestampMixin


class Athlete(Base, TimestampMixin):
    __tablename__ = "athletes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    sport = Column(String(100), nullable=False)
    goal_amount = Column(Numeric(12, 2), nullable=False)
    raised_amount = Column(Numeric(12, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    __table_args__ = (
        CheckConstraint("raised_amount >= 0", name="check_athlete_raised_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Athlete(id={self.id}, name={self.name}, raised={self.raised_amount}/{self.goal_amount})>"


class Donation(Base, TimestampMixin):
    __tablename__ = "donations"

    id = Column(Integer, primary_key=True, index=True)
    donor_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    athlete_id = Column(Integer, ForeignKey("athletes.id", ondelete="CASCADE"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    is_anonymous = Column(Boolean, nullable=False, default=False)
    donor_name = Column(String(255), nullable=False)
    donor_email = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    # Payments are simulated: every accepted donation is recorded as succeeded
    payment_status = Column(String(20), nullable=False, default="succeeded")
    payment_reference = Column(String(64), nullable=True, index=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="check_donation_amount_positive"),
        Index("ix_donations_athlete_created", "athlete_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Donation(id={self.id}, athlete={self.athlete_id}, amount={self.amount})>"
