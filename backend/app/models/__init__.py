from app.models.user import User
from app.models.facility import Facility, Trainer
from app.models.booking import Booking
from app.models.review import Review
from app.models.athlete import Athlete, Donation
from app.models.notification import Notification

__all__ = [
    "User", "Facility", "Trainer", "Booking", "Review",
    "Athlete", "Donation", "Notification",
]
