"""Read-only catalog of services, staff and rooms.

The catalog is built once and injected into the orchestrator. Admin
tooling that edits staff or rooms builds a new catalog rather than
mutating this one.
"""

import logging
from collections.abc import Iterable
from types import MappingProxyType
from typing import TypeVar

from spa_booking.schemas.catalog_schema import Room, Service, ServiceCategory, Staff
from spa_booking.scheduling.errors import UnknownResourceError

logger = logging.getLogger(__name__)

T = TypeVar("T", Service, Staff, Room)

SUNDAY, MONDAY, TUESDAY, WEDNESDAY, THURSDAY, FRIDAY, SATURDAY = range(7)
ALL_WEEK = frozenset(range(7))


def _index(kind: str, items: Iterable[T]) -> MappingProxyType:
    indexed: dict[str, T] = {}
    for item in items:
        if item.id in indexed:
            raise ValueError(f"Duplicate {kind} id: {item.id!r}")
        indexed[item.id] = item
    return MappingProxyType(indexed)


class ResourceCatalog:
    """Immutable lookup of services, staff and rooms in catalog order."""

    def __init__(
        self,
        services: Iterable[Service],
        staff: Iterable[Staff],
        rooms: Iterable[Room],
    ) -> None:
        self._services = _index("service", services)
        self._staff = _index("staff", staff)
        self._rooms = _index("room", rooms)

        for member in self._staff.values():
            if member.default_room_id and member.default_room_id not in self._rooms:
                raise ValueError(
                    f"Staff {member.id!r} has unknown default room {member.default_room_id!r}"
                )
        logger.debug(
            "Catalog built: %d services, %d staff, %d rooms",
            len(self._services), len(self._staff), len(self._rooms),
        )

    @property
    def services(self) -> tuple[Service, ...]:
        return tuple(self._services.values())

    @property
    def staff(self) -> tuple[Staff, ...]:
        return tuple(self._staff.values())

    @property
    def rooms(self) -> tuple[Room, ...]:
        return tuple(self._rooms.values())

    def get_service(self, service_id: str) -> Service:
        try:
            return self._services[service_id]
        except KeyError:
            raise UnknownResourceError(f"Unknown service {service_id!r}") from None

    def get_staff(self, staff_id: str) -> Staff:
        try:
            return self._staff[staff_id]
        except KeyError:
            raise UnknownResourceError(f"Unknown staff member {staff_id!r}") from None

    def get_room(self, room_id: str) -> Room:
        try:
            return self._rooms[room_id]
        except KeyError:
            raise UnknownResourceError(f"Unknown room {room_id!r}") from None


def default_catalog() -> ResourceCatalog:
    """The reference spa: three rooms, four therapists, a representative menu."""
    services = [
        Service(id="classic-facial", name="Classic Facial", category=ServiceCategory.FACIAL,
                duration=60, price=85.0),
        Service(id="acne-facial", name="Deep Cleansing Acne Facial",
                category=ServiceCategory.FACIAL, duration=75, price=95.0),
        Service(id="swedish-massage", name="Swedish Massage", category=ServiceCategory.MASSAGE,
                duration=60, price=90.0),
        Service(id="hot-stone-massage", name="Hot Stone Massage",
                category=ServiceCategory.MASSAGE, duration=90, price=120.0),
        Service(id="brow-wax", name="Eyebrow Wax", category=ServiceCategory.WAXING,
                duration=15, price=20.0),
        Service(id="brazilian-wax", name="Brazilian Wax", category=ServiceCategory.WAXING,
                duration=45, price=65.0),
        Service(id="body-scrub", name="Salt Body Scrub", category=ServiceCategory.BODY_TREATMENT,
                duration=60, price=95.0, requires_special_room=True),
        Service(id="mud-wrap", name="Mud Body Wrap", category=ServiceCategory.BODY_TREATMENT,
                duration=60, price=100.0),
        Service(id="couples-massage", name="Couples Massage", category=ServiceCategory.MASSAGE,
                duration=60, price=170.0, is_couples_service=True),
        Service(id="relaxation-package", name="Relaxation Package",
                category=ServiceCategory.PACKAGE, duration=120, price=210.0,
                is_couples_service=True),
    ]
    rooms = [
        Room(id="room-1", name="Room 1", capacity=1,
             capabilities=frozenset({ServiceCategory.FACIAL, ServiceCategory.WAXING})),
        Room(id="room-2", name="Room 2", capacity=2,
             capabilities=frozenset({
                 ServiceCategory.FACIAL, ServiceCategory.WAXING, ServiceCategory.MASSAGE,
                 ServiceCategory.PACKAGE,
             })),
        Room(id="room-3", name="Room 3", capacity=2, special_equipment=True,
             capabilities=frozenset({
                 ServiceCategory.FACIAL, ServiceCategory.WAXING, ServiceCategory.MASSAGE,
                 ServiceCategory.BODY_TREATMENT, ServiceCategory.PACKAGE,
                 ServiceCategory.SPECIAL,
             })),
    ]
    staff = [
        Staff(id="amara", name="Amara Reyes",
              capabilities=frozenset({ServiceCategory.FACIAL}),
              work_days=frozenset({SUNDAY, MONDAY, WEDNESDAY, FRIDAY, SATURDAY}),
              default_room_id="room-1"),
        Staff(id="jonah", name="Jonah Castro",
              capabilities=frozenset({
                  ServiceCategory.FACIAL, ServiceCategory.WAXING, ServiceCategory.MASSAGE,
                  ServiceCategory.BODY_TREATMENT, ServiceCategory.PACKAGE,
              }),
              work_days=ALL_WEEK,
              default_room_id="room-3"),
        Staff(id="keala", name="Keala Santos",
              capabilities=frozenset({ServiceCategory.FACIAL, ServiceCategory.WAXING}),
              work_days=frozenset({SUNDAY, MONDAY, WEDNESDAY, FRIDAY, SATURDAY}),
              default_room_id="room-2"),
        Staff(id="mateo", name="Mateo Cruz",
              capabilities=frozenset({
                  ServiceCategory.MASSAGE, ServiceCategory.BODY_TREATMENT,
                  ServiceCategory.PACKAGE,
              }),
              work_days=frozenset({SUNDAY})),
    ]
    return ResourceCatalog(services=services, staff=staff, rooms=rooms)
