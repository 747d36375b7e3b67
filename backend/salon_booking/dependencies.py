# backend/salon_booking/dependencies.py

from fastapi import Depends
from sqlalchemy.orm import Session

from .database import get_db
from .redis_client import redis_client
from .services.booking import BookingManager
from .services.events import NotificationOutbox, RedisOutbox
from .services.profiles import ProfileStore


def get_outbox() -> NotificationOutbox:
    return RedisOutbox(redis_client)


def get_booking_manager(
    db: Session = Depends(get_db),
    outbox: NotificationOutbox = Depends(get_outbox),
) -> BookingManager:
    return BookingManager(db, outbox, profiles=ProfileStore(db))
