# backend/salon_booking/schemas/bookings.py

import re
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from ..models import ReservationStatus


class ContactIn(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def normalize_phone(cls, v: Optional[str]) -> Optional[str]:
        """Keep digits and a leading +."""
        if v is None:
            return v
        v = v.strip()
        if v.startswith("+"):
            return "+" + re.sub(r"\D", "", v[1:])
        return re.sub(r"\D", "", v) or None


class BookingCreate(BaseModel):
    service_id: int
    specialist_id: int
    start: datetime = Field(description="Candidate start time")
    contact: Optional[ContactIn] = None


class BookingReschedule(BaseModel):
    start: datetime
    specialist_id: Optional[int] = Field(None, description="Defaults to the current specialist")


class BookingRebook(BaseModel):
    start: datetime
    specialist_id: Optional[int] = None


class BookingCancel(BaseModel):
    reason: Optional[str] = None


class BookingRead(BaseModel):
    id: int

    service_id: int
    specialist_id: int
    client_id: str
    ledger_entry_id: int

    start_time: datetime
    end_time: datetime

    status: ReservationStatus

    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
