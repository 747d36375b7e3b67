# backend/salon_booking/routers/slots.py
"""
Slots API endpoints.

GET /slots/day - Bookable windows for a service on a specific day
"""

from datetime import date, timedelta
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db, storage_errors
from ..schemas.slots import CandidateRead, SlotsDayResponse
from ..services.slots import get_booking_config
from ..services.slots.availability import calculate_service_availability


router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/day", response_model=SlotsDayResponse)
def get_slots_day(
    service_id: int,
    specialist_id: int | None = None,
    target_date: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
):
    """Get bookable windows for a service on a specific day."""
    config = get_booking_config()

    today = date.today()
    max_date = today + timedelta(days=config.horizon_days)

    if target_date < today:
        raise HTTPException(status_code=400, detail="Date cannot be in the past")

    if target_date > max_date:
        raise HTTPException(status_code=400, detail=f"Date cannot be more than {config.horizon_days} days ahead")

    with storage_errors(db):
        result = calculate_service_availability(
            db=db,
            service_id=service_id,
            target_date=target_date,
            config=config,
            specialist_id=specialist_id,
        )
    result["candidates"] = [CandidateRead.from_candidate(c) for c in result["candidates"]]

    return SlotsDayResponse(**result)
