# backend/salon_booking/services/slots/windows.py
"""
Time window value types shared by the calculator, the ledger and the
booking manager.

All windows are half-open: [start, end). Back-to-back windows
(a.end == b.start) do not overlap.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta


@dataclass(frozen=True, order=True)
class TimeWindow:
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end <= self.start:
            raise ValueError(f"Window end must be after start: {self.start} - {self.end}")

    @classmethod
    def from_duration(cls, start: datetime, duration_min: int) -> "TimeWindow":
        return cls(start, start + timedelta(minutes=duration_min))

    @property
    def work_date(self) -> date:
        return self.start.date()

    @property
    def duration_min(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.start < other.end and other.start < self.end

    def within_one_day(self) -> bool:
        """True if the window ends no later than midnight of its start date."""
        midnight = datetime.combine(self.work_date + timedelta(days=1), time.min)
        return self.end <= midnight


@dataclass(frozen=True)
class WorkingWindow:
    """One available working-hours row of a specialist on a given date."""
    specialist_id: int
    start_time: time
    end_time: time


@dataclass(frozen=True)
class BusyInterval:
    """A held or occupied ledger interval."""
    specialist_id: int
    window: TimeWindow


@dataclass(frozen=True, order=True)
class Candidate:
    """Bookable window offered to a client. Never persisted."""
    start: datetime
    specialist_id: int
    end: datetime

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.start, self.end)
