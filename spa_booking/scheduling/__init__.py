from spa_booking.scheduling.errors import (
    BeyondBookingWindowError,
    BookingError,
    BookingNotFoundError,
    ConflictError,
    GatewayError,
    InvalidTransitionError,
    NoAvailabilityError,
    NoAvailableSlotError,
    OutsideBusinessHoursError,
    PartialCoupleFailureError,
    StaffUnavailableError,
    TooSoonError,
    TransactionConflictError,
    UnknownResourceError,
)
from spa_booking.scheduling.catalog import ResourceCatalog, default_catalog
from spa_booking.scheduling.availability import AvailabilityResolver, Candidate
from spa_booking.scheduling.conflicts import bookings_collide, find_conflicts
from spa_booking.scheduling.intervals import BUFFER_MINUTES, BusinessHours, plan_interval
from spa_booking.scheduling.status_machine import BookingStatusMachine, StatusTrigger
from spa_booking.scheduling.orchestrator import BookingOrchestrator

__all__ = [
    "BookingOrchestrator", "ResourceCatalog", "default_catalog",
    "AvailabilityResolver", "Candidate", "bookings_collide", "find_conflicts",
    "BUFFER_MINUTES", "BusinessHours", "plan_interval",
    "BookingStatusMachine", "StatusTrigger",
    "BookingError", "OutsideBusinessHoursError", "TooSoonError", "BeyondBookingWindowError",
    "NoAvailabilityError", "StaffUnavailableError", "UnknownResourceError",
    "BookingNotFoundError", "InvalidTransitionError", "ConflictError", "NoAvailableSlotError",
    "TransactionConflictError", "PartialCoupleFailureError", "GatewayError",
]
