"""
Reservation store: lookups and the status transition table.

Reservations are created and mutated only by BookingManager.
"""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import InvalidTransition, NotFound
from ..models import Reservations, ReservationStatus

ACTIVE_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)

# Rebooking a cancelled reservation creates a new pending one; it is not a
# transition of the cancelled row.
ALLOWED_TRANSITIONS: dict[ReservationStatus, set[ReservationStatus]] = {
    ReservationStatus.PENDING: {ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED},
    ReservationStatus.CONFIRMED: {ReservationStatus.CANCELLED},
    ReservationStatus.CANCELLED: set(),
}


@dataclass(frozen=True)
class ContactSnapshot:
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    notes: str | None = None

    def filled_from(self, profile) -> "ContactSnapshot":
        """Missing fields taken from a stored profile."""
        if profile is None:
            return self
        return ContactSnapshot(
            name=self.name or profile.full_name,
            phone=self.phone or profile.phone,
            email=self.email or profile.email,
            notes=self.notes,
        )


def check_transition(current: ReservationStatus, target: ReservationStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(f"Cannot change reservation from {current.value} to {target.value}")


def get_reservation(db: Session, reservation_id: int, lock: bool = False) -> Reservations:
    """
    Load a reservation with fresh column values.

    lock=True adds FOR UPDATE where the database supports it.
    """
    obj = db.get(
        Reservations,
        reservation_id,
        populate_existing=True,
        with_for_update=lock or None,
    )
    if obj is None:
        raise NotFound(f"Reservation {reservation_id} not found")
    return obj


def list_client_reservations(
    db: Session,
    client_id: str,
    status: ReservationStatus | None = None,
) -> list[Reservations]:
    """Newest first."""
    stmt = select(Reservations).where(Reservations.client_id == client_id)
    if status is not None:
        stmt = stmt.where(Reservations.status == status)
    stmt = stmt.order_by(Reservations.created_at.desc(), Reservations.id.desc())
    return list(db.execute(stmt).scalars().all())


def add_reservation(
    db: Session,
    service_id: int,
    specialist_id: int,
    client_id: str,
    ledger_entry_id: int,
    start_time,
    end_time,
    contact: ContactSnapshot,
) -> Reservations:
    obj = Reservations(
        service_id=service_id,
        specialist_id=specialist_id,
        client_id=client_id,
        ledger_entry_id=ledger_entry_id,
        start_time=start_time,
        end_time=end_time,
        status=ReservationStatus.PENDING,
        contact_name=contact.name,
        contact_phone=contact.phone,
        contact_email=contact.email,
        notes=contact.notes or "",
    )
    db.add(obj)
    db.flush()
    return obj
