from .tables import (
    Base,
    LedgerDayLocks,
    LedgerState,
    Profiles,
    Reservations,
    ReservationStatus,
    Services,
    SlotLedgerEntry,
    Specialists,
    WorkingHours,
    metadata,
    t_specialist_services,
)

__all__ = [
    "Base",
    "LedgerDayLocks",
    "LedgerState",
    "Profiles",
    "Reservations",
    "ReservationStatus",
    "Services",
    "SlotLedgerEntry",
    "Specialists",
    "WorkingHours",
    "metadata",
    "t_specialist_services",
]
