"""
Pydantic schemas for athlete donations.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class DonationCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    donor_email: EmailStr
    donor_name: Optional[str] = Field(None, max_length=255)
    is_anonymous: bool = False
    message: Optional[str] = Field(None, max_length=1000)


class DonationResponse(BaseModel):
    id: int
    athlete_id: int
    amount: float
    is_anonymous: bool
    donor_name: str
    message: Optional[str]
    payment_status: str
    payment_reference: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class DonationReceipt(BaseModel):
    donation: DonationResponse
    athlete_id: int
    raised_amount: float
    goal_amount: float
