# backend/salon_booking/services/slots/config.py
"""
Booking configuration for slots calculation.
"""

from dataclasses import dataclass
from functools import lru_cache

from ...config import settings


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for the booking/slots system.

    Attributes:
        horizon_days: How many days ahead slots may be requested
        min_advance_minutes: Minimum lead time before a slot can be booked
        slot_step_minutes: Candidate grid step in minutes (15/30/60)
    """
    horizon_days: int = 60
    min_advance_minutes: int = 0
    slot_step_minutes: int = 30  # 15 / 30 / 60

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_step_minutes not in (15, 30, 60):
            raise ValueError(f"slot_step_minutes must be 15, 30, or 60, got {self.slot_step_minutes}")
        if self.horizon_days < 1:
            raise ValueError(f"horizon_days must be >= 1, got {self.horizon_days}")
        if self.min_advance_minutes < 0:
            raise ValueError(f"min_advance_minutes must be >= 0, got {self.min_advance_minutes}")


@lru_cache
def get_booking_config() -> BookingConfig:
    """Get booking configuration (singleton), built from settings."""
    return BookingConfig(
        horizon_days=settings.horizon_days,
        min_advance_minutes=settings.min_advance_minutes,
        slot_step_minutes=settings.slot_step_minutes,
    )
