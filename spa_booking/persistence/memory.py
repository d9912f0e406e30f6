"""
In-process booking store.

Used by tests and single-process deployments. Conflict keys are
versioned per (resource, day): a transaction remembers the versions it
saw when it listed a day and is rejected at commit if any key it writes
has moved on since.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from typing import Optional

from spa_booking.persistence.gateway import (
    BookingGateway,
    BookingTransaction,
    ResourceKey,
    resource_keys,
)
from spa_booking.schemas.booking_schema import Booking, BookingStatus
from spa_booking.scheduling.errors import BookingNotFoundError, TransactionConflictError

logger = logging.getLogger(__name__)


class _InMemoryTransaction(BookingTransaction):
    def __init__(self, gateway: "InMemoryBookingGateway") -> None:
        self._gateway = gateway
        self._read_versions: dict[date, dict[ResourceKey, int]] = {}
        self._staged: dict[str, Booking] = {}
        self._deleted: set[str] = set()
        self._touched: set[ResourceKey] = set()

    def _view(self) -> dict[str, Booking]:
        rows = self._gateway._committed_rows()
        rows.update(self._staged)
        for booking_id in self._deleted:
            rows.pop(booking_id, None)
        return rows

    def _require(self, booking_id: str) -> Booking:
        booking = self.get_booking(booking_id)
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        return booking

    def _stage(self, booking: Booking) -> Booking:
        self._staged[booking.id] = booking
        self._deleted.discard(booking.id)
        self._touched.update(resource_keys(booking))
        return booking

    def list_bookings_for_date(self, day: date) -> list[Booking]:
        if day not in self._read_versions:
            self._read_versions[day] = self._gateway._versions_for(day)
        return [b for b in self._view().values() if b.booking_date == day]

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self._view().get(booking_id)

    def list_group(self, group_id: str) -> list[Booking]:
        return [b for b in self._view().values() if b.group_id == group_id]

    def insert_booking(self, booking: Booking) -> Booking:
        if booking.id in self._view():
            raise ValueError(f"Booking {booking.id} already exists")
        return self._stage(booking)

    def update_booking_schedule(
        self,
        booking_id: str,
        new_date: date,
        new_start: int,
        new_end: int,
        new_buffer_start: int,
        new_buffer_end: int,
    ) -> Booking:
        current = self._require(booking_id)
        self._touched.update(resource_keys(current))
        return self._stage(current.evolve(
            booking_date=new_date,
            start_minute=new_start,
            end_minute=new_end,
            buffer_start=new_buffer_start,
            buffer_end=new_buffer_end,
        ))

    def update_staff(self, booking_id: str, staff_id: str) -> Booking:
        current = self._require(booking_id)
        self._touched.update(resource_keys(current))
        return self._stage(current.evolve(staff_id=staff_id))

    def update_status(self, booking_id: str, status: BookingStatus) -> Booking:
        return self._stage(self._require(booking_id).evolve(status=status))

    def delete_booking(self, booking_id: str) -> None:
        current = self._require(booking_id)
        self._staged.pop(booking_id, None)
        self._deleted.add(booking_id)
        self._touched.update(resource_keys(current))

    def list_pending_created_before(self, cutoff: datetime) -> list[Booking]:
        return [
            b for b in self._view().values()
            if b.status == BookingStatus.PENDING and b.created_at < cutoff
        ]


class InMemoryBookingGateway(BookingGateway):
    """Thread-safe dict-backed gateway."""

    atomic_pairs = True

    def __init__(self) -> None:
        self._rows: dict[str, Booking] = {}
        self._versions: dict[ResourceKey, int] = {}
        self._lock = threading.Lock()

    def _committed_rows(self) -> dict[str, Booking]:
        with self._lock:
            return dict(self._rows)

    def _versions_for(self, day: date) -> dict[ResourceKey, int]:
        with self._lock:
            return {key: v for key, v in self._versions.items() if key.day == day}

    @contextmanager
    def transaction(self) -> Iterator[BookingTransaction]:
        tx = _InMemoryTransaction(self)
        yield tx
        self._commit(tx)

    def _commit(self, tx: _InMemoryTransaction) -> None:
        with self._lock:
            for key in tx._touched:
                seen = tx._read_versions.get(key.day)
                if seen is None:
                    continue
                if self._versions.get(key, 0) != seen.get(key, 0):
                    raise TransactionConflictError(
                        f"Concurrent write to {key.kind} {key.resource_id} on {key.day}"
                    )
            self._rows.update(tx._staged)
            for booking_id in tx._deleted:
                self._rows.pop(booking_id, None)
            for key in tx._touched:
                self._versions[key] = self._versions.get(key, 0) + 1
        if tx._staged or tx._deleted:
            logger.debug(
                "Committed %d writes, %d deletes", len(tx._staged), len(tx._deleted)
            )

    def all_bookings(self) -> list[Booking]:
        """Every stored row, for admin listings and tests."""
        return list(self._committed_rows().values())
