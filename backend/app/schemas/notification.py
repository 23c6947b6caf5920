"""
Pydantic schemas for the notification inbox and read-state operations.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, model_validator


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    type: str
    message: str
    link: Optional[str]
    is_read: bool
    related_booking_id: Optional[int]
    related_user_id: Optional[int]
    related_athlete_id: Optional[int]
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    unread_count: int
    total: int
    page: int
    limit: int


class MarkReadRequest(BaseModel):
    notification_ids: Optional[list[int]] = Field(None, max_length=500)
    mark_all: bool = False

    @model_validator(mode="after")
    def check_target(self):
        if not self.mark_all and not self.notification_ids:
            raise ValueError('Provide "notification_ids" or "mark_all": true.')
        return self


class MarkReadResponse(BaseModel):
    message: str
    unread_count: int
