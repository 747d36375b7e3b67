"""
Booking transaction manager.

Every operation is one unit of work on the given Session:

  create     claim window -> insert pending reservation -> bind
  cancel     reservation cancelled + ledger entry released
  reschedule claim new window -> release old -> bind new -> update window
  confirm    pending -> confirmed (owner)
  rebook     cancelled reservation -> new pending reservation
  delete     hard delete, cancelled reservations only

Writers are serialized per (specialist, date) and per reservation by an
in-process KeyedLockRegistry; the ledger adds the database-side lock.
Ledger invariants are re-verified before commit. Notifications and the
profile update run only after a successful commit and never fail the
operation.

Errors raised to callers are limited to salon_booking.errors.
"""

import logging
from contextlib import ExitStack, contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterator

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..database import storage_errors
from ..errors import (
    ConsistencyViolation,
    Forbidden,
    InvalidTransition,
    NotFound,
    SlotUnavailable,
    StorageUnavailable,
)
from ..models import Reservations, ReservationStatus, Services, SlotLedgerEntry, Specialists
from .events import Audience, NotificationOutbox
from .identity import ClientSession, require_session
from .ledger import NotHeld, SlotConflict, SlotLedger
from .locks import KeyedLockRegistry, LockTimeout, claim_locks, day_key, reservation_key
from .profiles import ProfileStore
from .reservations import (
    ACTIVE_STATUSES,
    ContactSnapshot,
    add_reservation,
    check_transition,
    get_reservation,
    list_client_reservations,
)
from .slots.availability import is_window_offerable
from .slots.config import BookingConfig, get_booking_config
from .slots.windows import TimeWindow

logger = logging.getLogger(__name__)

OWNER_MESSAGES = {
    "booked": "New booking: {service} on {when}",
    "rebooked": "Client rebooked: {service} on {when}",
    "cancelled": "Booking cancelled: {service} on {when}",
    "rescheduled": "Booking moved: {service} -> new time {when}",
    "deleted": "Booking deleted: {service} ({when})",
}


class BookingManager:
    def __init__(
        self,
        db: Session,
        outbox: NotificationOutbox,
        profiles: ProfileStore | None = None,
        config: BookingConfig | None = None,
        locks: KeyedLockRegistry | None = None,
        lock_timeout: float | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db = db
        self.outbox = outbox
        self.profiles = profiles or ProfileStore(db)
        self.config = config or get_booking_config()
        self.locks = locks or claim_locks
        self.lock_timeout = settings.claim_lock_timeout_seconds if lock_timeout is None else lock_timeout
        self.clock = clock
        self.ledger = SlotLedger(db, lock_timeout=self.lock_timeout)

    # ── Operations ───────────────────────────────────────────────────────

    def create_booking(
        self,
        session: ClientSession | None,
        specialist_id: int,
        window: TimeWindow,
        service_id: int,
        contact: ContactSnapshot | None = None,
    ) -> Reservations:
        """
        Claim a window and create a pending reservation for it.

        Raises:
            Unauthenticated: no session.
            NotFound: unknown service or specialist.
            SlotUnavailable: window taken meanwhile or not offerable; re-query
                candidates and pick another one.
        """
        session = require_session(session)
        contact = (contact or ContactSnapshot()).filled_from(self._stored_profile(session.client_id))
        if not contact.email and session.email:
            contact = replace(contact, email=session.email)

        reservation = self._create(session.client_id, specialist_id, window, service_id, contact)
        self._notify(reservation, client_kind="confirmation", owner_kind="booked")
        self._remember_contact(session.client_id, contact)
        return reservation

    def cancel_booking(
        self,
        session: ClientSession | None,
        reservation_id: int,
        reason: str | None = None,
    ) -> Reservations:
        """
        Cancel a reservation and return its window to the pool.

        Cancelling an already cancelled reservation returns it unchanged.
        """
        session = require_session(session)

        with self._transaction(reservation_key(reservation_id)) as locks:
            reservation = get_reservation(self.db, reservation_id, lock=True)
            self._authorize(session, reservation)

            changed = reservation.status != ReservationStatus.CANCELLED
            if changed:
                work_date = reservation.start_time.date()
                locks.enter_context(
                    self.locks.hold([day_key(reservation.specialist_id, work_date)], self.lock_timeout)
                )
                check_transition(reservation.status, ReservationStatus.CANCELLED)
                reservation.status = ReservationStatus.CANCELLED
                reservation.cancel_reason = reason
                reservation.cancelled_by = self._actor(session, reservation).value
                reservation.updated_at = self.clock()
                self.db.flush()

                self.ledger.release(reservation.ledger_entry_id)
                self.ledger.verify_day(reservation.specialist_id, work_date)

        if changed:
            logger.info(f"Reservation {reservation_id} cancelled by {session.client_id}")
            self._notify(reservation, client_kind="status_update", owner_kind="cancelled")
        else:
            logger.info(f"Reservation {reservation_id} already cancelled, nothing to do")
        return reservation

    def reschedule_booking(
        self,
        session: ClientSession | None,
        reservation_id: int,
        new_window: TimeWindow,
        specialist_id: int | None = None,
    ) -> Reservations:
        """
        Move a reservation to a new window (optionally another specialist).

        The new window is claimed before the old one is released; if the
        claim fails the reservation and its ledger entry stay untouched.
        The reservation goes back to pending.
        """
        session = require_session(session)

        with self._transaction(reservation_key(reservation_id)) as locks:
            reservation = get_reservation(self.db, reservation_id, lock=True)
            self._authorize(session, reservation)
            if reservation.status not in ACTIVE_STATUSES:
                raise InvalidTransition(
                    f"Cannot reschedule a {reservation.status.value} reservation; rebook it instead"
                )

            target = reservation.specialist_id if specialist_id is None else specialist_id
            old_slice = (reservation.specialist_id, reservation.start_time.date())
            locks.enter_context(
                self.locks.hold([day_key(target, new_window.work_date), day_key(*old_slice)], self.lock_timeout)
            )

            service = self.db.get(Services, reservation.service_id)
            self._ensure_offerable(service, target, new_window)

            old_entry_id = reservation.ledger_entry_id

            claim = self._claim(
                target,
                new_window,
                replacing=old_entry_id if target == reservation.specialist_id else None,
            )
            self.ledger.release(old_entry_id)
            self.ledger.bind(claim, reservation.id)

            reservation.ledger_entry_id = claim.entry_id
            reservation.specialist_id = target
            reservation.start_time = new_window.start
            reservation.end_time = new_window.end
            reservation.status = ReservationStatus.PENDING
            reservation.updated_at = self.clock()
            self.db.flush()

            self.ledger.verify_day(target, new_window.work_date)
            if old_slice != (target, new_window.work_date):
                self.ledger.verify_day(*old_slice)

        logger.info(
            f"Reservation {reservation_id} rescheduled to specialist {target} "
            f"at {new_window.start:%Y-%m-%d %H:%M}"
        )
        self._notify(reservation, client_kind="status_update", owner_kind="rescheduled")
        return reservation

    def confirm_booking(self, session: ClientSession | None, reservation_id: int) -> Reservations:
        """pending -> confirmed. Owner only; confirming twice is a no-op."""
        session = require_session(session)
        if not session.is_owner:
            raise Forbidden("Only the owner can confirm reservations")

        with self._transaction(reservation_key(reservation_id)):
            reservation = get_reservation(self.db, reservation_id, lock=True)
            changed = reservation.status != ReservationStatus.CONFIRMED
            if changed:
                check_transition(reservation.status, ReservationStatus.CONFIRMED)
                reservation.status = ReservationStatus.CONFIRMED
                reservation.updated_at = self.clock()
                self.db.flush()

        if changed:
            logger.info(f"Reservation {reservation_id} confirmed")
            self._notify(reservation, client_kind="status_update", owner_kind=None)
        return reservation

    def rebook_booking(
        self,
        session: ClientSession | None,
        reservation_id: int,
        window: TimeWindow,
        specialist_id: int | None = None,
    ) -> Reservations:
        """
        Book the service of a cancelled reservation again, as a new
        pending reservation with the same contact details.
        """
        session = require_session(session)
        with storage_errors(self.db):
            original = get_reservation(self.db, reservation_id)
        self._authorize(session, original)
        if original.status != ReservationStatus.CANCELLED:
            raise InvalidTransition("Only cancelled reservations can be rebooked")

        contact = ContactSnapshot(
            name=original.contact_name,
            phone=original.contact_phone,
            email=original.contact_email,
            notes=original.notes,
        )
        reservation = self._create(
            original.client_id,
            original.specialist_id if specialist_id is None else specialist_id,
            window,
            original.service_id,
            contact,
        )
        logger.info(f"Reservation {reservation_id} rebooked as {reservation.id}")
        self._notify(reservation, client_kind="confirmation", owner_kind="rebooked")
        return reservation

    def delete_booking(self, session: ClientSession | None, reservation_id: int) -> None:
        """Hard delete. Allowed only for cancelled reservations."""
        session = require_session(session)

        with self._transaction(reservation_key(reservation_id)):
            reservation = get_reservation(self.db, reservation_id, lock=True)
            self._authorize(session, reservation)
            if reservation.status != ReservationStatus.CANCELLED:
                raise InvalidTransition("Only cancelled reservations can be deleted")

            entry = self.db.get(SlotLedgerEntry, reservation.ledger_entry_id)
            if entry is not None and entry.reservation_id == reservation.id:
                raise ConsistencyViolation(
                    f"Cancelled reservation {reservation_id} still owns ledger entry {entry.id}"
                )

            payload = self._payload(reservation)
            self.db.delete(reservation)

        logger.info(f"Reservation {reservation_id} deleted by {session.client_id}")
        self._notify(payload, client_kind="status_update", owner_kind="deleted")

    # ── Queries ──────────────────────────────────────────────────────────

    def get_booking(self, session: ClientSession | None, reservation_id: int) -> Reservations:
        session = require_session(session)
        with storage_errors(self.db):
            reservation = get_reservation(self.db, reservation_id)
        self._authorize(session, reservation)
        return reservation

    def list_client_bookings(
        self,
        session: ClientSession | None,
        status: ReservationStatus | None = None,
    ) -> list[Reservations]:
        session = require_session(session)
        with storage_errors(self.db):
            return list_client_reservations(self.db, session.client_id, status)

    # ── Internals ────────────────────────────────────────────────────────

    @contextmanager
    def _transaction(self, *lock_keys: str) -> Iterator[ExitStack]:
        """
        Hold lock_keys, run the block, commit.

        The yielded ExitStack takes extra locks that stay held until after
        commit. Any failure rolls back; storage failures are reported as
        StorageUnavailable so the caller can retry with the same arguments.
        """
        try:
            with ExitStack() as locks:
                locks.enter_context(self.locks.hold(lock_keys, self.lock_timeout))
                try:
                    yield locks
                    self.db.commit()
                except BaseException:
                    self.db.rollback()
                    raise
        except LockTimeout as exc:
            raise StorageUnavailable("Booking calendar is busy, try again") from exc
        except NotHeld as exc:
            logger.critical(f"Ledger claim lost inside transaction: {exc}")
            raise ConsistencyViolation(str(exc)) from exc
        except ConsistencyViolation as exc:
            logger.critical(f"Consistency violation, transaction rolled back: {exc}")
            raise
        except IntegrityError as exc:
            logger.critical(f"Integrity error, transaction rolled back: {exc}")
            raise ConsistencyViolation("Booking data failed an integrity check") from exc
        except DBAPIError as exc:
            logger.warning(f"Booking storage unavailable: {exc}")
            raise StorageUnavailable() from exc

    def _create(
        self,
        client_id: str,
        specialist_id: int,
        window: TimeWindow,
        service_id: int,
        contact: ContactSnapshot,
    ) -> Reservations:
        with self._transaction(day_key(specialist_id, window.work_date)):
            service = self.db.get(Services, service_id)
            if service is None or not service.is_active:
                raise NotFound(f"Service {service_id} not found")
            self._ensure_offerable(service, specialist_id, window)

            claim = self._claim(specialist_id, window)
            reservation = add_reservation(
                self.db,
                service_id=service.id,
                specialist_id=specialist_id,
                client_id=client_id,
                ledger_entry_id=claim.entry_id,
                start_time=window.start,
                end_time=window.end,
                contact=contact,
            )
            self.ledger.bind(claim, reservation.id)
            self.ledger.verify_day(specialist_id, window.work_date)

        logger.info(
            f"Reservation {reservation.id} created: client={client_id}, service={service_id}, "
            f"specialist={specialist_id}, time={window.start:%Y-%m-%d %H:%M}"
        )
        return reservation

    def _claim(self, specialist_id: int, window: TimeWindow, replacing: int | None = None):
        try:
            return self.ledger.claim(specialist_id, window, replacing=replacing)
        except SlotConflict as exc:
            logger.info(f"Claim rejected: {exc}")
            raise SlotUnavailable("This time was just taken, pick another one") from exc

    def _ensure_offerable(self, service: Services | None, specialist_id: int, window: TimeWindow) -> None:
        if service is None:
            raise NotFound("Service not found")
        specialist = self.db.get(Specialists, specialist_id)
        if specialist is None:
            raise NotFound(f"Specialist {specialist_id} not found")
        if not is_window_offerable(self.db, service, specialist_id, window, self.config, self.clock()):
            raise SlotUnavailable("This time is not offered for the service")

    @staticmethod
    def _authorize(session: ClientSession, reservation: Reservations) -> None:
        if session.is_owner or reservation.client_id == session.client_id:
            return
        raise Forbidden(f"Reservation {reservation.id} belongs to another client")

    @staticmethod
    def _actor(session: ClientSession, reservation: Reservations) -> Audience:
        if reservation.client_id == session.client_id:
            return Audience.CLIENT
        return Audience.OWNER

    def _stored_profile(self, client_id: str):
        try:
            return self.profiles.get_profile(client_id)
        except SQLAlchemyError as e:
            logger.warning(f"Profile lookup failed for {client_id}: {e}")
            self.db.rollback()
            return None

    def _remember_contact(self, client_id: str, contact: ContactSnapshot) -> None:
        try:
            self.profiles.save_profile(
                client_id,
                full_name=contact.name,
                phone=contact.phone,
                email=contact.email,
            )
        except SQLAlchemyError as e:
            logger.warning(f"Profile update failed for {client_id}: {e}")
            self.db.rollback()

    @staticmethod
    def _payload(reservation: Reservations) -> dict:
        service = reservation.service
        return {
            "reservation_id": reservation.id,
            "client_id": reservation.client_id,
            "service_id": reservation.service_id,
            "service_name": service.name if service else None,
            "specialist_id": reservation.specialist_id,
            "start_time": reservation.start_time.isoformat(),
            "end_time": reservation.end_time.isoformat(),
            "status": reservation.status.value,
            "contact_email": reservation.contact_email,
        }

    def _notify(
        self,
        source: Reservations | dict,
        client_kind: str | None,
        owner_kind: str | None,
    ) -> None:
        """Post-commit outbox intents. Failures are logged only."""
        try:
            payload = source if isinstance(source, dict) else self._payload(source)
        except Exception:
            logger.exception("Could not build notification payload")
            return

        reservation_id = payload["reservation_id"]
        for audience, kind in ((Audience.CLIENT, client_kind), (Audience.OWNER, owner_kind)):
            if kind is None:
                continue
            body = dict(payload)
            if audience == Audience.OWNER:
                when = datetime.fromisoformat(payload["start_time"])
                body["owner_email"] = settings.owner_email
                body["message"] = OWNER_MESSAGES[kind].format(
                    service=payload["service_name"] or "-",
                    when=f"{when:%d.%m.%Y %H:%M}",
                )
            try:
                self.outbox.enqueue(reservation_id, audience, kind, body)
            except Exception:
                logger.exception(f"Outbox enqueue failed: reservation={reservation_id} {audience.value}/{kind}")
