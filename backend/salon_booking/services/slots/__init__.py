# backend/salon_booking/services/slots/__init__.py
"""
Slots calculation module.

calculator: pure candidate generation from loaded data
availability: database-backed loader for a service and date
"""

from .config import BookingConfig, get_booking_config
from .calculator import calculate_candidates
from .windows import BusyInterval, Candidate, TimeWindow, WorkingWindow

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "calculate_candidates",
    "BusyInterval",
    "Candidate",
    "TimeWindow",
    "WorkingWindow",
]
