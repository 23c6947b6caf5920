"""
Pydantic schemas for the facility availability grid.
"""

from datetime import date
from pydantic import BaseModel


class SlotAvailability(BaseModel):
    time: str
    available: bool


class DayAvailability(BaseModel):
    date: date
    slots: list[SlotAvailability]
