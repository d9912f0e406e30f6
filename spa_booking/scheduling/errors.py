"""Booking error taxonomy.

Every rejection the engine can produce is a ``BookingError`` subclass
with a ``kind``. The orchestrator catches these at its public boundary
and turns them into ``BookingOutcome`` results. ``GatewayError`` is the
one exception that is never converted: it signals the store itself is
unusable.
"""

from typing import Optional

from spa_booking.schemas.booking_schema import ConflictReport
from spa_booking.schemas.outcome_schema import BookingErrorKind


class BookingError(Exception):
    """Base class for recoverable booking rejections."""

    kind: BookingErrorKind = BookingErrorKind.CONFLICT

    def __init__(self, message: str, report: Optional[ConflictReport] = None) -> None:
        super().__init__(message)
        self.message = message
        self.report = report or ConflictReport()


class OutsideBusinessHoursError(BookingError):
    kind = BookingErrorKind.OUTSIDE_BUSINESS_HOURS


class TooSoonError(BookingError):
    kind = BookingErrorKind.TOO_SOON


class BeyondBookingWindowError(BookingError):
    kind = BookingErrorKind.BEYOND_BOOKING_WINDOW


class NoAvailabilityError(BookingError):
    """No staff or no room is qualified for the service on that date."""

    kind = BookingErrorKind.NO_AVAILABILITY


class StaffUnavailableError(BookingError):
    """The requested therapist cannot perform the service or is off that day."""

    kind = BookingErrorKind.STAFF_UNAVAILABLE


class UnknownResourceError(BookingError):
    kind = BookingErrorKind.UNKNOWN_RESOURCE


class BookingNotFoundError(BookingError):
    kind = BookingErrorKind.NOT_FOUND


class InvalidTransitionError(BookingError):
    """Raised when a status trigger is not valid from the current status."""

    kind = BookingErrorKind.INVALID_STATUS


class ConflictError(BookingError):
    """Buffer overlap on the staff or room line. Carries the report."""

    kind = BookingErrorKind.CONFLICT


class NoAvailableSlotError(ConflictError):
    """Every candidate conflicted, or the commit lost its race twice."""

    kind = BookingErrorKind.NO_AVAILABLE_SLOT


class TransactionConflictError(BookingError):
    """A concurrent write touched the same staff or room day before commit."""

    kind = BookingErrorKind.TRANSACTION_CONFLICT


class PartialCoupleFailureError(BookingError):
    """Second half of a couple failed after the first was written.

    Only raised on gateways without atomic pair writes, and only after the
    first sibling has been removed again.
    """

    kind = BookingErrorKind.PARTIAL_COUPLE_FAILURE


class GatewayError(RuntimeError):
    """The persistence layer is unreachable or failed unexpectedly."""
