from app.schemas.user import UserCreate, UserResponse, UserLogin, Token
from app.schemas.booking import (
    BookingCreate,
    BookingResponse,
    BookingCancelResponse,
    BookingStatusUpdate,
    AdminBookingListResponse,
)
from app.schemas.availability import DayAvailability
from app.schemas.review import ReviewCreate, ReviewResponse
from app.schemas.notification import NotificationResponse, NotificationListResponse, MarkReadRequest
from app.schemas.donation import DonationCreate, DonationReceipt

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token",
    "BookingCreate", "BookingResponse", "BookingCancelResponse",
    "BookingStatusUpdate", "AdminBookingListResponse",
    "DayAvailability",
    "ReviewCreate", "ReviewResponse",
    "NotificationResponse", "NotificationListResponse", "MarkReadRequest",
    "DonationCreate", "DonationReceipt",
]
