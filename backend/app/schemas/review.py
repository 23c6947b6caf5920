"""
Pydantic schemas for facility and trainer reviews.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    content: str = Field(..., min_length=1, max_length=2000)


class ReviewResponse(BaseModel):
    id: int
    user_id: int
    facility_id: Optional[int]
    trainer_id: Optional[int]
    rating: int
    content: str
    created_at: datetime

    model_config = {"from_attributes": True}
