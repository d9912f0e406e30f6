"""Typed results returned by the booking orchestrator."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from spa_booking.schemas.booking_schema import Booking, ConflictReport


class BookingErrorKind(str, Enum):
    OUTSIDE_BUSINESS_HOURS = "outside_business_hours"
    TOO_SOON = "too_soon"
    BEYOND_BOOKING_WINDOW = "beyond_booking_window"
    NO_AVAILABILITY = "no_availability"
    STAFF_UNAVAILABLE = "staff_unavailable"
    CONFLICT = "conflict"
    NO_AVAILABLE_SLOT = "no_available_slot"
    TRANSACTION_CONFLICT = "transaction_conflict"
    PARTIAL_COUPLE_FAILURE = "partial_couple_failure"
    NOT_FOUND = "not_found"
    INVALID_STATUS = "invalid_status"
    UNKNOWN_RESOURCE = "unknown_resource"


class BookingOutcome(BaseModel):
    """Result of a grant, reschedule or status change.

    ``bookings`` holds the written (or, for validation-only calls, the
    planned) rows. ``conflicts`` is populated whenever a conflict check
    rejected the request.
    """

    success: bool
    message: str
    bookings: list[Booking] = Field(default_factory=list)
    error: Optional[BookingErrorKind] = None
    conflicts: ConflictReport = Field(default_factory=ConflictReport)

    @property
    def booking(self) -> Optional[Booking]:
        return self.bookings[0] if self.bookings else None


class SlotAvailability(BaseModel):
    """Whether a start time can currently be granted for a service."""

    time: str
    available: bool
    staff_id: Optional[str] = None
    room_id: Optional[str] = None
    reason: Optional[str] = None
