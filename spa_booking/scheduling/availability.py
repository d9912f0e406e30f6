"""
Availability resolution: which (staff, room) pairs may take a service on a date.

Pure catalog filtering. Existing bookings are not consulted here; the
conflict detector prunes candidates against the day's schedule afterwards.
"""

import logging
from dataclasses import dataclass
from datetime import date

from spa_booking.schemas.booking_schema import AnyQualified, SpecificStaff, StaffSelector
from spa_booking.schemas.catalog_schema import Room, Service, Staff
from spa_booking.scheduling.catalog import ResourceCatalog
from spa_booking.scheduling.errors import StaffUnavailableError
from spa_booking.utils import sunday_weekday

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    """A tentative (staff, room) pairing for a booking request."""

    staff: Staff
    room: Room


class AvailabilityResolver:
    """Filters the catalog down to qualified, working resources."""

    def __init__(self, catalog: ResourceCatalog) -> None:
        self._catalog = catalog

    def qualified_rooms(self, service: Service) -> list[Room]:
        """Rooms that support the service, smallest capacity first."""
        rooms = [room for room in self._catalog.rooms if room.supports(service)]
        return sorted(rooms, key=lambda room: room.capacity)

    def qualified_staff(self, service: Service, day: date) -> list[Staff]:
        """Staff able to perform the service and working that day.

        Staff whose default room suits the service come first; ties keep
        catalog order.
        """
        weekday = sunday_weekday(day)
        room_ids = {room.id for room in self.qualified_rooms(service)}
        staff = [
            member
            for member in self._catalog.staff
            if member.can_perform(service.category) and member.works_on(weekday)
        ]
        return sorted(staff, key=lambda member: member.default_room_id not in room_ids)

    def check_staff(self, staff: Staff, service: Service, day: date) -> None:
        """Raise StaffUnavailableError if this therapist cannot take the service that day."""
        if not staff.can_perform(service.category):
            raise StaffUnavailableError(
                f"{staff.name} is not qualified to perform {service.category.value} services"
            )
        if not staff.works_on(sunday_weekday(day)):
            raise StaffUnavailableError(
                f"{staff.name} does not work on {day.strftime('%A')}s"
            )

    def rooms_for(self, staff: Staff, rooms: list[Room]) -> list[Room]:
        """Order rooms for one therapist: their default room first when it qualifies."""
        preferred = [room for room in rooms if room.id == staff.default_room_id]
        return preferred + [room for room in rooms if room.id != staff.default_room_id]

    def resolve(
        self, service: Service, day: date, selector: StaffSelector
    ) -> list[Candidate]:
        """Return candidate pairs in preference order.

        An empty list means nobody (or no room) can take the service that
        day. A specific therapist who is unqualified or off raises
        StaffUnavailableError instead of being silently substituted.
        """
        rooms = self.qualified_rooms(service)

        if isinstance(selector, SpecificStaff):
            member = self._catalog.get_staff(selector.staff_id)
            self.check_staff(member, service, day)
            staff = [member]
        elif isinstance(selector, AnyQualified):
            staff = self.qualified_staff(service, day)
        else:
            raise TypeError(f"Unsupported staff selector: {selector!r}")

        candidates = [
            Candidate(staff=member, room=room)
            for member in staff
            for room in self.rooms_for(member, rooms)
        ]
        logger.debug(
            "Resolved %d candidates for %s on %s (%d staff, %d rooms)",
            len(candidates), service.id, day.isoformat(), len(staff), len(rooms),
        )
        return candidates
