"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import date, datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field, model_validator

TIME_SLOT_PATTERN = r"^\d{2}:\d{2}-\d{2}:\d{2}$"


class EquipmentRequest(BaseModel):
    name: str
    quantity: int


class BookingCreate(BaseModel):
    facility_id: Optional[int] = None
    trainer_id: Optional[int] = None
    date: date
    time_slot: str = Field(..., pattern=TIME_SLOT_PATTERN)
    participants: int = Field(default=1, gt=0, le=500)
    session_hours: Optional[float] = None
    rented_equipment: list[EquipmentRequest] = Field(default_factory=list, max_length=50)
    needs_transportation: bool = False
    special_requests: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def check_target(self):
        if self.facility_id is None and self.trainer_id is None:
            raise ValueError("Booking must be associated with either a facility or a trainer.")
        return self

    @property
    def target_kind(self) -> str:
        return "facility" if self.facility_id is not None else "trainer"


class FacilitySummary(BaseModel):
    id: int
    name: str
    location: str
    address: Optional[str]

    model_config = {"from_attributes": True}


class TrainerSummary(BaseModel):
    id: int
    name: str
    specialization: Optional[str]

    model_config = {"from_attributes": True}


class RentedEquipment(BaseModel):
    name: str
    quantity: int
    unit_price_per_hour: float


class BookingResponse(BaseModel):
    id: int
    booking_code: str
    user_id: int
    target_kind: str
    facility_id: Optional[int]
    trainer_id: Optional[int]
    facility: Optional[FacilitySummary] = None
    trainer: Optional[TrainerSummary] = None
    date: date
    time_slot: str
    duration_hours: float
    participants: int
    needs_transportation: bool
    special_requests: Optional[str]
    rented_equipment: list[RentedEquipment]
    facility_cost: float
    equipment_cost: float
    transportation_cost: float
    trainer_cost: float
    total_cost: float
    payment_status: str
    status: str
    refund_due: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingCancelResponse(BaseModel):
    message: str
    booking: BookingResponse


class BookingStatusUpdate(BaseModel):
    status: Literal["upcoming", "completed", "cancelled", "no-show"]


class AdminBookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    total: int
    page: int
    limit: int
    pages: int
