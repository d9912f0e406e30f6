"""Buffer-zone conflict detection for a single candidate.

Staff and room lines are checked independently, so one existing booking
can yield both a staff and a room conflict. Two bookings on the same line
collide when either one's appointment runs into the other's buffer. The
effect is a turnover gap of one buffer between one appointment's end and
the next one's start: a 10:00-11:00 booking leaves 11:15 free.

Intervals are half-open: an appointment starting exactly when another's
buffer ends does not collide.
"""

import logging
from collections.abc import Collection, Iterable
from typing import Optional

from spa_booking.schemas.booking_schema import (
    Booking,
    Conflict,
    ConflictReport,
    ConflictType,
    TimeInterval,
)
from spa_booking.scheduling.intervals import PlannedInterval

logger = logging.getLogger(__name__)


def held_overlap(booking: Booking, planned: PlannedInterval) -> Optional[TimeInterval]:
    """Window where ``booking`` and ``planned`` contend for one resource.

    Returns None when neither appointment reaches into the other's buffer.
    Otherwise returns the intersection of the two buffered intervals.
    """
    if not (
        planned.interval.overlaps(booking.buffered_interval)
        or booking.interval.overlaps(planned.buffered)
    ):
        return None
    return booking.buffered_interval.intersection(planned.buffered)


def bookings_collide(first: Booking, second: Booking) -> bool:
    """True when two bookings would contend for a shared staff member or room."""
    planned = PlannedInterval(interval=second.interval, buffered=second.buffered_interval)
    return held_overlap(first, planned) is not None


def find_conflicts(
    staff_id: str,
    room_id: str,
    planned: PlannedInterval,
    existing: Iterable[Booking],
    exclude_ids: Collection[str] = (),
) -> ConflictReport:
    """Collect every staff-line and room-line collision with active bookings.

    Args:
        staff_id: Therapist the candidate would occupy.
        room_id: Room the candidate would occupy.
        planned: The candidate's appointment and buffered intervals.
        existing: Bookings already on the schedule for that date. Retired
            rows (cancelled, completed, no-show, rescheduled) are skipped.
        exclude_ids: Booking ids to ignore, e.g. the booking being moved.

    Returns:
        A report; empty means the candidate is grantable.
    """
    conflicts: list[Conflict] = []
    for booking in existing:
        if not booking.is_active or booking.id in exclude_ids:
            continue
        if booking.staff_id != staff_id and booking.room_id != room_id:
            continue
        overlap = held_overlap(booking, planned)
        if overlap is None:
            continue
        if booking.staff_id == staff_id:
            conflicts.append(Conflict(
                type=ConflictType.STAFF,
                conflicting_booking_id=booking.id,
                resource_id=staff_id,
                overlap=overlap,
            ))
        if booking.room_id == room_id:
            conflicts.append(Conflict(
                type=ConflictType.ROOM,
                conflicting_booking_id=booking.id,
                resource_id=room_id,
                overlap=overlap,
            ))

    if conflicts:
        logger.debug(
            "%d conflicts for staff=%s room=%s at %s",
            len(conflicts), staff_id, room_id, planned.interval.describe(),
        )
    return ConflictReport(conflicts=conflicts)
