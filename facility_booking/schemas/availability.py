"""Schemas for slot availability responses."""

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class Slot(BaseModel):
    """One bookable tile of a facility's day."""

    start: str = Field(description="Slot start, HH:MM")
    end: str = Field(description="Slot end, HH:MM")
    available: bool


class DaySlots(BaseModel):
    date: date
    day_of_week: str
    operating_hours: Optional[Dict[str, str]] = Field(
        default=None, description="Open/close for the weekday, null when closed"
    )
    slots: List[Slot] = Field(default_factory=list)
