"""
Bookable targets: facilities and trainers.

Key design decisions:
- Operating hours and the equipment catalog are small embedded lists (JSON),
  read whole on every availability/pricing request.
- Equipment `available` is an advertised ceiling; bookings never decrement it.
- `rating`/`review_count` are derived columns owned by the rating aggregator.
"""

from typing import Optional

from sqlalchemy import Column, Integer, String, Float, Numeric, ForeignKey, JSON, Index

from app.db.base import Base, TimestampMixin


class Facility(Base, TimestampMixin):
    __tablename__ = "facilities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    location = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)
    price_per_hour = Column(Numeric(12, 2), nullable=False, default=0)
    # [{"day": "Monday", "open": "08:00", "close": "20:00"}, ...]
    operating_hours = Column(JSON, nullable=False, default=list)
    # [{"name": "Racket", "price_per_hour": 200, "available": 4}, ...]
    equipment_for_rent = Column(JSON, nullable=False, default=list)
    rating = Column(Float, nullable=False, default=0)
    review_count = Column(Integer, nullable=False, default=0)

    __table_args__ = (Index("ix_facilities_location", "location"),)

    def find_equipment(self, name: str) -> Optional[dict]:
        for item in self.equipment_for_rent or []:
            if item.get("name") == name:
                return item
        return None

    def __repr__(self) -> str:
        return f"<Facility(id={self.id}, name={self.name})>"


class Trainer(Base, TimestampMixin):
    __tablename__ = "trainers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    specialization = Column(String(255), nullable=True)
    hourly_rate = Column(Numeric(12, 2), nullable=False, default=0)
    # Weekday tags such as ["Monday", "Wednesday"]; advisory only
    availability = Column(JSON, nullable=False, default=list)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    rating = Column(Float, nullable=False, default=0)
    review_count = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Trainer(id={self.id}, name={self.name})>"
