"""
Slot ledger: the persisted state of every booked window.

Each entry is open, held (claimed inside a running transaction) or
occupied (bound to a reservation). This module is the only place that
changes entry state. It works inside the caller's Session and never
commits; the booking manager owns the transaction.

Invariants checked by verify_day():
  - held/occupied entries of one specialist never overlap
  - an entry is occupied iff exactly one active reservation points at it
    and it points back at that reservation
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import and_, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import ConsistencyViolation, NotFound
from ..models import LedgerDayLocks, LedgerState, Reservations, SlotLedgerEntry
from .reservations import ACTIVE_STATUSES
from .slots.windows import BusyInterval, TimeWindow

logger = logging.getLogger(__name__)

ACTIVE_STATES = (LedgerState.HELD, LedgerState.OCCUPIED)


class SlotConflict(Exception):
    """Window overlaps a held or occupied entry of the same specialist."""

    def __init__(self, specialist_id: int, window: TimeWindow, entry_id: int):
        super().__init__(
            f"Specialist {specialist_id}: {window.start:%Y-%m-%d %H:%M}-{window.end:%H:%M} "
            f"overlaps ledger entry {entry_id}"
        )
        self.entry_id = entry_id


class NotHeld(Exception):
    """Entry is not held under the given claim."""


@dataclass(frozen=True)
class Claim:
    entry_id: int
    specialist_id: int
    window: TimeWindow
    token: str


def _day_bounds(work_date: date) -> tuple[datetime, datetime]:
    start = datetime.combine(work_date, time.min)
    return start, start + timedelta(days=1)


class SlotLedger:
    def __init__(self, db: Session, lock_timeout: float | None = None):
        self.db = db
        self.lock_timeout = settings.claim_lock_timeout_seconds if lock_timeout is None else lock_timeout

    # ── State transitions ────────────────────────────────────────────────

    def claim(
        self,
        specialist_id: int,
        window: TimeWindow,
        replacing: int | None = None,
    ) -> Claim:
        """
        Hold a window for a specialist.

        Locks the (specialist, date) slice, re-checks overlap against held
        and occupied entries, and only then writes the held entry, so a
        successful claim implies the window was free at that moment.

        Args:
            replacing: entry id the caller will release in the same
                transaction (reschedule); ignored by the overlap check.

        Raises:
            SlotConflict: window overlaps an active entry.
        """
        if not window.within_one_day():
            raise ValueError(f"Window must not cross midnight: {window}")

        self._lock_day(specialist_id, window.work_date)

        conflict = self._first_overlap(specialist_id, window, ignore_id=replacing)
        if conflict is not None:
            raise SlotConflict(specialist_id, window, conflict)

        token = uuid.uuid4().hex
        entry = self._reusable_entry(specialist_id, window)
        if entry is None:
            entry = SlotLedgerEntry(
                specialist_id=specialist_id,
                work_date=window.work_date,
                start_time=window.start,
                end_time=window.end,
            )
            self.db.add(entry)

        entry.state = LedgerState.HELD
        entry.hold_token = token
        entry.reservation_id = None
        entry.updated_at = datetime.now()
        self.db.flush()

        logger.debug(f"Claimed ledger entry {entry.id} for specialist {specialist_id} at {window.start}")
        return Claim(entry.id, specialist_id, window, token)

    def bind(self, claim: Claim, reservation_id: int) -> SlotLedgerEntry:
        """held -> occupied, stamping the reservation back-reference."""
        entry = self.db.get(SlotLedgerEntry, claim.entry_id)
        if entry is None or entry.state != LedgerState.HELD or entry.hold_token != claim.token:
            raise NotHeld(f"Ledger entry {claim.entry_id} is not held by this claim")

        entry.state = LedgerState.OCCUPIED
        entry.reservation_id = reservation_id
        entry.hold_token = None
        entry.updated_at = datetime.now()
        self.db.flush()
        return entry

    def release(self, entry_id: int) -> SlotLedgerEntry:
        """held/occupied -> open. Releasing an open entry is a no-op."""
        entry = self.db.get(SlotLedgerEntry, entry_id)
        if entry is None:
            raise NotFound(f"Ledger entry {entry_id} not found")

        if entry.state == LedgerState.OPEN:
            return entry

        entry.state = LedgerState.OPEN
        entry.reservation_id = None
        entry.hold_token = None
        entry.updated_at = datetime.now()
        self.db.flush()
        return entry

    # ── Reads ────────────────────────────────────────────────────────────

    def busy_intervals(self, specialist_ids: list[int], work_date: date) -> list[BusyInterval]:
        """Held and occupied intervals touching work_date."""
        if not specialist_ids:
            return []

        day_start, day_end = _day_bounds(work_date)
        rows = self.db.execute(
            select(SlotLedgerEntry.specialist_id, SlotLedgerEntry.start_time, SlotLedgerEntry.end_time)
            .where(
                SlotLedgerEntry.specialist_id.in_(specialist_ids),
                SlotLedgerEntry.state.in_(ACTIVE_STATES),
                SlotLedgerEntry.start_time < day_end,
                SlotLedgerEntry.end_time > day_start,
            )
        ).all()
        return [BusyInterval(r.specialist_id, TimeWindow(r.start_time, r.end_time)) for r in rows]

    def verify_day(self, specialist_id: int, work_date: date) -> None:
        """
        Re-check both ledger invariants for one (specialist, date) slice.

        Run after flush and before commit. Raises ConsistencyViolation.
        """
        day_start, day_end = _day_bounds(work_date)

        entries = self.db.execute(
            select(SlotLedgerEntry)
            .where(
                SlotLedgerEntry.specialist_id == specialist_id,
                SlotLedgerEntry.start_time < day_end,
                SlotLedgerEntry.end_time > day_start,
            )
            .order_by(SlotLedgerEntry.start_time)
            .execution_options(populate_existing=True)
        ).scalars().all()

        latest_end = None
        for entry in entries:
            if entry.state not in ACTIVE_STATES:
                continue
            if entry.state == LedgerState.HELD:
                raise ConsistencyViolation(f"Ledger entry {entry.id} left held")
            if latest_end is not None and entry.start_time < latest_end:
                raise ConsistencyViolation(
                    f"Ledger entry {entry.id} overlaps another entry of specialist {specialist_id}"
                )
            latest_end = entry.end_time if latest_end is None else max(latest_end, entry.end_time)

        entry_ids = [e.id for e in entries]
        active = self.db.execute(
            select(Reservations.id, Reservations.ledger_entry_id)
            .where(
                Reservations.ledger_entry_id.in_(entry_ids),
                Reservations.status.in_(ACTIVE_STATUSES),
            )
        ).all() if entry_ids else []

        referrers: dict[int, list[int]] = {}
        for row in active:
            referrers.setdefault(row.ledger_entry_id, []).append(row.id)

        for entry in entries:
            refs = referrers.get(entry.id, [])
            if entry.state == LedgerState.OCCUPIED:
                if refs != [entry.reservation_id]:
                    raise ConsistencyViolation(
                        f"Occupied ledger entry {entry.id} -> reservation {entry.reservation_id}, "
                        f"active referrers {refs}"
                    )
            elif refs:
                raise ConsistencyViolation(
                    f"Reservations {refs} reference {entry.state.value} ledger entry {entry.id}"
                )

    # ── Internals ────────────────────────────────────────────────────────

    def _lock_day(self, specialist_id: int, work_date: date) -> None:
        """
        Take the database-side lock for a (specialist, date) slice.

        Postgres: row lock via SELECT ... FOR UPDATE on ledger_day_locks,
        bounded by a transaction-local lock_timeout (LockNotAvailable is an
        OperationalError, reported by the manager as StorageUnavailable).
        SQLite: the INSERT opens the write transaction, which SQLite
        serializes database-wide; FOR UPDATE is not rendered and the wait
        is bounded by the connection busy timeout.
        """
        values = {"specialist_id": specialist_id, "work_date": work_date}
        dialect = self.db.get_bind().dialect.name

        if dialect == "postgresql":
            timeout_ms = max(1, int(self.lock_timeout * 1000))
            self.db.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))
            stmt = postgresql.insert(LedgerDayLocks).values(**values).on_conflict_do_nothing()
        elif dialect == "sqlite":
            stmt = sqlite.insert(LedgerDayLocks).values(**values).on_conflict_do_nothing()
        else:
            raise NotImplementedError(f"Slot ledger does not support the {dialect} dialect")
        self.db.execute(stmt)

        self.db.execute(
            select(LedgerDayLocks)
            .where(
                LedgerDayLocks.specialist_id == specialist_id,
                LedgerDayLocks.work_date == work_date,
            )
            .with_for_update()
        )

    def _first_overlap(self, specialist_id: int, window: TimeWindow, ignore_id: int | None) -> int | None:
        conditions = [
            SlotLedgerEntry.specialist_id == specialist_id,
            SlotLedgerEntry.state.in_(ACTIVE_STATES),
            SlotLedgerEntry.start_time < window.end,
            SlotLedgerEntry.end_time > window.start,
        ]
        if ignore_id is not None:
            conditions.append(SlotLedgerEntry.id != ignore_id)

        return self.db.execute(
            select(SlotLedgerEntry.id).where(and_(*conditions)).limit(1)
        ).scalar_one_or_none()

    def _reusable_entry(self, specialist_id: int, window: TimeWindow) -> SlotLedgerEntry | None:
        """An open entry with exactly this window, left behind by a cancel."""
        return self.db.execute(
            select(SlotLedgerEntry)
            .where(
                SlotLedgerEntry.specialist_id == specialist_id,
                SlotLedgerEntry.state == LedgerState.OPEN,
                SlotLedgerEntry.start_time == window.start,
                SlotLedgerEntry.end_time == window.end,
            )
            .limit(1)
            .execution_options(populate_existing=True)
        ).scalars().first()
