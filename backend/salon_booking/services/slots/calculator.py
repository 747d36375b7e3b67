# backend/salon_booking/services/slots/calculator.py
"""
Candidate window calculation.

Pure function over already-loaded data:
  working windows (per specialist) + busy intervals + service duration
  -> ordered candidates (start, specialist_id, end)

Contains:
✓ specialist working hours for the date
✓ held / occupied ledger intervals
✓ optional not_before bound (min advance)

Does NOT contain:
✗ Database access (see availability.py)
✗ Qualification lookup (see availability.py)
"""

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable

from .windows import BusyInterval, Candidate, TimeWindow, WorkingWindow


def calculate_candidates(
    target_date: date,
    duration_min: int,
    working_windows: Iterable[WorkingWindow],
    busy_intervals: Iterable[BusyInterval],
    step_minutes: int = 30,
    not_before: datetime | None = None,
) -> list[Candidate]:
    """
    Calculate bookable candidate windows for one date.

    For every working window the cursor walks from its start in
    step_minutes increments while cursor + duration fits before its end.
    A cursor is emitted unless [cursor, cursor + duration) overlaps a busy
    interval of the same specialist.

    Returns:
        Candidates sorted by start time, then specialist id. Empty list
        when nothing fits.
    """
    if duration_min <= 0 or step_minutes <= 0:
        return []

    duration = timedelta(minutes=duration_min)
    step = timedelta(minutes=step_minutes)

    busy: dict[int, list[TimeWindow]] = defaultdict(list)
    for interval in busy_intervals:
        busy[interval.specialist_id].append(interval.window)

    found: set[Candidate] = set()

    for working in working_windows:
        cursor = datetime.combine(target_date, working.start_time)
        window_end = datetime.combine(target_date, working.end_time)
        specialist_busy = busy.get(working.specialist_id, [])

        while cursor + duration <= window_end:
            if not_before is None or cursor >= not_before:
                slot = TimeWindow(cursor, cursor + duration)
                if not any(slot.overlaps(b) for b in specialist_busy):
                    found.add(Candidate(cursor, working.specialist_id, slot.end))
            cursor += step

    return sorted(found)
