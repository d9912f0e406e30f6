"""Abstract persistence gateway for bookings.

The engine never talks to a database directly. It opens a transaction
on a ``BookingGateway``, reads the day's bookings, decides, writes, and
lets the gateway commit. Gateways enforce the at-most-one-booking-per-
resource-interval contract at commit time using per (resource, day)
conflict keys: a transaction that read a staff or room day and then
writes to it fails with ``TransactionConflictError`` if another
transaction wrote to that same staff or room day in between.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from spa_booking.schemas.booking_schema import Booking, BookingStatus

STAFF_KEY = "staff"
ROOM_KEY = "room"


@dataclass(frozen=True)
class ResourceKey:
    """Conflict key: one staff member or room on one date."""

    kind: str
    resource_id: str
    day: date


def resource_keys(booking: Booking) -> tuple[ResourceKey, ResourceKey]:
    return (
        ResourceKey(STAFF_KEY, booking.staff_id, booking.booking_date),
        ResourceKey(ROOM_KEY, booking.room_id, booking.booking_date),
    )


class BookingTransaction(ABC):
    """Unit of work over the booking store.

    Reads see this transaction's own uncommitted writes.
    """

    @abstractmethod
    def list_bookings_for_date(self, day: date) -> list[Booking]:
        """Return every booking on ``day`` regardless of status."""

    @abstractmethod
    def get_booking(self, booking_id: str) -> Optional[Booking]:
        """Return one booking, or None if it does not exist."""

    @abstractmethod
    def list_group(self, group_id: str) -> list[Booking]:
        """Return all bookings sharing a couple group id."""

    @abstractmethod
    def insert_booking(self, booking: Booking) -> Booking:
        """Stage a new booking row."""

    def insert_booking_pair(
        self, first: Booking, second: Booking
    ) -> tuple[Booking, Booking]:
        """Stage two linked rows; both become visible at commit or neither does."""
        return self.insert_booking(first), self.insert_booking(second)

    @abstractmethod
    def update_booking_schedule(
        self,
        booking_id: str,
        new_date: date,
        new_start: int,
        new_end: int,
        new_buffer_start: int,
        new_buffer_end: int,
    ) -> Booking:
        """Move a booking in place.

        Raises:
            BookingNotFoundError: If the booking does not exist.
        """

    @abstractmethod
    def update_staff(self, booking_id: str, staff_id: str) -> Booking:
        """Hand a booking to another staff member, keeping its time and room.

        Raises:
            BookingNotFoundError: If the booking does not exist.
        """

    @abstractmethod
    def update_status(self, booking_id: str, status: BookingStatus) -> Booking:
        """Set a booking's status.

        Raises:
            BookingNotFoundError: If the booking does not exist.
        """

    @abstractmethod
    def delete_booking(self, booking_id: str) -> None:
        """Remove a row. Only used to undo half of a couple on non-atomic stores."""

    @abstractmethod
    def list_pending_created_before(self, cutoff: datetime) -> list[Booking]:
        """Pending bookings created before ``cutoff``."""


class BookingGateway(ABC):
    """Factory for booking transactions."""

    # False when two inserts cannot be committed as one unit; the
    # orchestrator then compensates couple failures itself.
    atomic_pairs: bool = True

    @abstractmethod
    def transaction(self) -> AbstractContextManager[BookingTransaction]:
        """Open a transaction.

        Commits when the block exits normally and discards all writes when
        it raises. Commit raises ``TransactionConflictError`` when a
        concurrent write invalidated what this transaction read.
        """
