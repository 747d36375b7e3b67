# backend/salon_booking/routers/bookings.py
# - Every state change goes through BookingManager
# - DELETE = hard delete, cancelled reservations only
# - 409 slot_unavailable carries fresh candidates for the same day

import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ..database import get_db, storage_errors
from ..dependencies import get_booking_manager
from ..errors import NotFound, SlotUnavailable, StorageUnavailable
from ..models import ReservationStatus
from ..schemas.bookings import (
    BookingCancel,
    BookingCreate,
    BookingRead,
    BookingRebook,
    BookingReschedule,
)
from ..schemas.slots import CandidateRead
from ..services.booking import BookingManager
from ..services.identity import ClientSession, get_current_session
from ..services.reservations import ContactSnapshot
from ..services.slots.availability import calculate_service_availability, get_active_service
from ..services.slots.windows import TimeWindow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("/", response_model=list[BookingRead])
def list_my_bookings(
    status_filter: ReservationStatus | None = Query(None, alias="status"),
    session: ClientSession | None = Depends(get_current_session),
    manager: BookingManager = Depends(get_booking_manager),
):
    return manager.list_client_bookings(session, status_filter)


@router.get("/{id}", response_model=BookingRead)
def get_booking(
    id: int,
    session: ClientSession | None = Depends(get_current_session),
    manager: BookingManager = Depends(get_booking_manager),
):
    return manager.get_booking(session, id)


@router.post("/", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    session: ClientSession | None = Depends(get_current_session),
    manager: BookingManager = Depends(get_booking_manager),
    db: Session = Depends(get_db),
):
    window = _window_for(db, data.service_id, data.start)
    contact = ContactSnapshot(**data.contact.model_dump()) if data.contact else None
    try:
        return manager.create_booking(session, data.specialist_id, window, data.service_id, contact)
    except SlotUnavailable as exc:
        _attach_alternatives(exc, db, data.service_id, window.work_date)
        raise


@router.post("/{id}/cancel", response_model=BookingRead)
def cancel_booking(
    id: int,
    data: BookingCancel | None = None,
    session: ClientSession | None = Depends(get_current_session),
    manager: BookingManager = Depends(get_booking_manager),
):
    return manager.cancel_booking(session, id, reason=data.reason if data else None)


@router.post("/{id}/reschedule", response_model=BookingRead)
def reschedule_booking(
    id: int,
    data: BookingReschedule,
    session: ClientSession | None = Depends(get_current_session),
    manager: BookingManager = Depends(get_booking_manager),
    db: Session = Depends(get_db),
):
    current = manager.get_booking(session, id)
    service_id = current.service_id
    window = _window_for(db, service_id, data.start)
    try:
        return manager.reschedule_booking(session, id, window, specialist_id=data.specialist_id)
    except SlotUnavailable as exc:
        _attach_alternatives(exc, db, service_id, window.work_date)
        raise


@router.post("/{id}/confirm", response_model=BookingRead)
def confirm_booking(
    id: int,
    session: ClientSession | None = Depends(get_current_session),
    manager: BookingManager = Depends(get_booking_manager),
):
    return manager.confirm_booking(session, id)


@router.post("/{id}/rebook", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
def rebook_booking(
    id: int,
    data: BookingRebook,
    session: ClientSession | None = Depends(get_current_session),
    manager: BookingManager = Depends(get_booking_manager),
    db: Session = Depends(get_db),
):
    original = manager.get_booking(session, id)
    service_id = original.service_id
    window = _window_for(db, service_id, data.start)
    try:
        return manager.rebook_booking(session, id, window, specialist_id=data.specialist_id)
    except SlotUnavailable as exc:
        _attach_alternatives(exc, db, service_id, window.work_date)
        raise


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_booking(
    id: int,
    session: ClientSession | None = Depends(get_current_session),
    manager: BookingManager = Depends(get_booking_manager),
):
    manager.delete_booking(session, id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def _window_for(db: Session, service_id: int, start: datetime) -> TimeWindow:
    """Requested window: start + service duration."""
    with storage_errors(db):
        service = get_active_service(db, service_id)
    if not service:
        raise NotFound(f"Service {service_id} not found")
    return TimeWindow.from_duration(start.replace(tzinfo=None), service.duration_min)


def _attach_alternatives(exc: SlotUnavailable, db: Session, service_id: int, day: date) -> None:
    try:
        with storage_errors(db):
            result = calculate_service_availability(db, service_id, day)
    except StorageUnavailable:
        logger.warning(f"No alternatives for service {service_id} on {day}: storage unavailable")
        return
    exc.alternatives = [
        CandidateRead.from_candidate(c).model_dump(mode="json") for c in result["candidates"]
    ]
