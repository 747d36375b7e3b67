# backend/salon_booking/services/slots/availability.py
"""
Service availability for a day.

Loads everything the calculator needs from committed state:
- Service duration
- Specialists qualified for the service
- Their available working hours for the date
- Held / occupied ledger intervals

Read-only: never takes the claim lock and never writes.
"""

from datetime import date, datetime, timedelta
from sqlalchemy import select
from sqlalchemy.orm import Session

from ...models import Services, Specialists, WorkingHours, t_specialist_services
from ..ledger import SlotLedger
from .calculator import calculate_candidates
from .config import BookingConfig, get_booking_config
from .windows import TimeWindow, WorkingWindow


def calculate_service_availability(
    db: Session,
    service_id: int,
    target_date: date,
    config: BookingConfig | None = None,
    specialist_id: int | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Calculate bookable candidates for a service.

    Returns:
        Dict for SlotsDayResponse. Unknown service or no qualified
        specialists -> empty candidate list, never an error.
    """
    config = config or get_booking_config()
    now = now or datetime.now()

    result = {
        "service_id": service_id,
        "date": target_date,
        "service_duration_min": 0,
        "slot_step_minutes": config.slot_step_minutes,
        "candidates": [],
    }

    service = get_active_service(db, service_id)
    if not service:
        return result
    result["service_duration_min"] = service.duration_min

    specialist_ids = get_qualified_specialist_ids(db, service_id)
    if specialist_id is not None:
        specialist_ids = [s for s in specialist_ids if s == specialist_id]
    if not specialist_ids:
        return result

    working = get_working_windows(db, specialist_ids, target_date)
    if not working:
        return result

    busy = SlotLedger(db).busy_intervals(specialist_ids, target_date)

    result["candidates"] = calculate_candidates(
        target_date,
        service.duration_min,
        working,
        busy,
        step_minutes=config.slot_step_minutes,
        not_before=earliest_start(config, now),
    )
    return result


def is_window_offerable(
    db: Session,
    service: Services,
    specialist_id: int,
    window: TimeWindow,
    config: BookingConfig | None = None,
    now: datetime | None = None,
) -> bool:
    """
    Static checks for a requested window, ledger state aside:
    right duration, qualified specialist, inside available working hours,
    not earlier than the minimum advance, not beyond the booking horizon.
    """
    config = config or get_booking_config()
    now = now or datetime.now()

    if window.duration_min != service.duration_min:
        return False
    if not window.within_one_day():
        return False
    if window.start < earliest_start(config, now):
        return False
    if window.work_date > latest_date(config, now):
        return False
    if specialist_id not in get_qualified_specialist_ids(db, service.id):
        return False

    for working in get_working_windows(db, [specialist_id], window.work_date):
        opens = datetime.combine(window.work_date, working.start_time)
        closes = datetime.combine(window.work_date, working.end_time)
        if opens <= window.start and window.end <= closes:
            return True
    return False


def earliest_start(config: BookingConfig, now: datetime) -> datetime:
    return now + timedelta(minutes=config.min_advance_minutes)


def latest_date(config: BookingConfig, now: datetime) -> date:
    return now.date() + timedelta(days=config.horizon_days)


# ── Database helpers ─────────────────────────────────────────────────────


def get_active_service(db: Session, service_id: int) -> Services | None:
    """Get service by ID."""
    return db.query(Services).filter(
        Services.id == service_id,
        Services.is_active == 1
    ).first()


def get_qualified_specialist_ids(db: Session, service_id: int) -> list[int]:
    """
    Active specialists who provide this service.

    A service without any active qualification rows can be performed by
    every active specialist.
    """
    assigned = db.execute(
        select(t_specialist_services.c.specialist_id)
        .join(Specialists, Specialists.id == t_specialist_services.c.specialist_id)
        .where(
            t_specialist_services.c.service_id == service_id,
            t_specialist_services.c.is_active == 1,
        )
        .where(Specialists.is_active == 1)
    ).scalars().all()

    has_rows = db.execute(
        select(t_specialist_services.c.specialist_id)
        .where(
            t_specialist_services.c.service_id == service_id,
            t_specialist_services.c.is_active == 1,
        )
        .limit(1)
    ).first()
    if has_rows:
        return sorted(assigned)

    return sorted(
        db.execute(select(Specialists.id).where(Specialists.is_active == 1)).scalars().all()
    )


def get_working_windows(db: Session, specialist_ids: list[int], target_date: date) -> list[WorkingWindow]:
    """Available working-hours rows for the date."""
    rows = (
        db.query(WorkingHours)
        .filter(
            WorkingHours.specialist_id.in_(specialist_ids),
            WorkingHours.date == target_date,
            WorkingHours.is_available == 1,
        )
        .all()
    )
    return [WorkingWindow(r.specialist_id, r.start_time, r.end_time) for r in rows]
