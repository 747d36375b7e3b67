# backend/salon_booking/schemas/slots.py
"""
Pydantic schemas for slots API.
"""

from datetime import date, datetime
from pydantic import BaseModel, Field


class CandidateRead(BaseModel):
    """One bookable window."""
    specialist_id: int
    start: datetime
    end: datetime
    time: str = Field(description='Start time "HH:MM"')

    model_config = {"from_attributes": True}

    @classmethod
    def from_candidate(cls, candidate) -> "CandidateRead":
        return cls(
            specialist_id=candidate.specialist_id,
            start=candidate.start,
            end=candidate.end,
            time=candidate.start.strftime("%H:%M"),
        )


class SlotsDayResponse(BaseModel):
    """Bookable windows for a service on a day."""
    service_id: int
    date: date
    service_duration_min: int
    slot_step_minutes: int = Field(description="Grid step in minutes (15/30/60)")
    candidates: list[CandidateRead]

    model_config = {"from_attributes": True}
