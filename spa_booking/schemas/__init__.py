from spa_booking.schemas.booking_schema import (
    ANY_STAFF,
    AnyQualified,
    Booking,
    BookingStatus,
    BookingType,
    Conflict,
    ConflictReport,
    ConflictType,
    Customer,
    RescheduleLineage,
    SpecificStaff,
    StaffSelector,
    TimeInterval,
    staff_selector,
)
from spa_booking.schemas.catalog_schema import Room, Service, ServiceCategory, Staff
from spa_booking.schemas.outcome_schema import BookingErrorKind, BookingOutcome, SlotAvailability

__all__ = [
    "ANY_STAFF", "AnyQualified", "SpecificStaff", "StaffSelector", "staff_selector",
    "Booking", "BookingStatus", "BookingType", "Customer", "RescheduleLineage",
    "Conflict", "ConflictReport", "ConflictType", "TimeInterval",
    "Room", "Service", "ServiceCategory", "Staff",
    "BookingErrorKind", "BookingOutcome", "SlotAvailability",
]
