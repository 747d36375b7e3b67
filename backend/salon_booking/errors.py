"""
Booking error taxonomy.

Callers outside the booking core only ever see these exceptions, never
storage-specific failures. Each carries the HTTP status the API maps it to.
"""


class BookingError(Exception):
    """Base exception for booking core errors."""

    status_code = 400
    code = "booking_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class SlotUnavailable(BookingError):
    """The requested window is no longer available."""

    status_code = 409
    code = "slot_unavailable"


class Unauthenticated(BookingError):
    """A signed-in session is required."""

    status_code = 401
    code = "unauthenticated"


class Forbidden(BookingError):
    """The session may not act on this reservation."""

    status_code = 403
    code = "forbidden"


class NotFound(BookingError):
    """Reservation, service or specialist not found."""

    status_code = 404
    code = "not_found"


class InvalidTransition(BookingError):
    """The reservation status does not allow this operation."""

    status_code = 409
    code = "invalid_transition"


class StorageUnavailable(BookingError):
    """Booking storage is temporarily unavailable."""

    status_code = 503
    code = "storage_unavailable"


class ConsistencyViolation(BookingError):
    """Slot ledger and reservations disagree."""

    status_code = 500
    code = "consistency_violation"
