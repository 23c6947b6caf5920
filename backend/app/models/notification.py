"""
In-app notification for a single recipient.

Rows are created only by the notification service; owners can mark them
read or delete them.
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Index, Text

from app.db.base import Base, TimestampMixin

NOTIFICATION_TYPES = (
    "booking_created",
    "booking_status_update",
    "booking_reminder",
    "financial_aid_update",
    "donation_received",
    "donation_thankyou",
    "weather_alert",
    "new_facility_nearby",
    "system_announcement",
    "trainer_application_submitted",
    "trainer_application_approved",
    "trainer_application_rejected",
    "new_trainer_application",
)


class Notification(Base, TimestampMixin):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(50), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(500), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)

    related_booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    related_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    related_athlete_id = Column(Integer, ForeignKey("athletes.id", ondelete="SET NULL"), nullable=True)

    __table_args__ = (
        # Inbox listing, newest first
        Index("ix_notifications_user_created", "user_id", "created_at"),
        # Unread badge count
        Index("ix_notifications_user_unread", "user_id", "is_read"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user={self.user_id}, type={self.type}, read={self.is_read})>"
