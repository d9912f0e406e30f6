"""Shared test fixtures and helpers."""

from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

import pytest

from spa_booking.config import AppConfig, BusinessConfig, DatabaseConfig, SchedulingConfig
from spa_booking.persistence.memory import InMemoryBookingGateway
from spa_booking.schemas.booking_schema import Booking, BookingStatus, BookingType, Customer
from spa_booking.scheduling.catalog import default_catalog
from spa_booking.scheduling.conflicts import bookings_collide
from spa_booking.scheduling.intervals import BusinessHours, plan_interval
from spa_booking.scheduling.orchestrator import BookingOrchestrator
from spa_booking.utils import parse_hhmm

GUAM = ZoneInfo("Pacific/Guam")

# Sunday morning, two hours before the first bookable start of the day
NOW = datetime(2026, 3, 1, 8, 0, tzinfo=GUAM)
TODAY = date(2026, 3, 1)
SUNDAY = date(2026, 3, 8)
MONDAY = date(2026, 3, 9)
TUESDAY = date(2026, 3, 10)

HOURS = BusinessHours(open_minute=9 * 60, close_minute=20 * 60)


class FixedClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int) -> None:
        self.now = self.now + timedelta(minutes=minutes)


def make_config(commit_retries: int = 1) -> AppConfig:
    return AppConfig(
        business=BusinessConfig(
            name="Test Spa", timezone="Pacific/Guam", open_time="09:00", close_time="20:00",
        ),
        scheduling=SchedulingConfig(
            min_advance_minutes=120,
            max_advance_days=30,
            slot_step_minutes=15,
            commit_retries=commit_retries,
            abandoned_pending_minutes=30,
        ),
        database=DatabaseConfig(),
        log_level="DEBUG",
    )


@pytest.fixture
def catalog():
    return default_catalog()


@pytest.fixture
def gateway():
    return InMemoryBookingGateway()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def orchestrator(catalog, gateway, config, clock):
    return BookingOrchestrator(catalog, gateway, config=config, clock=clock)


@pytest.fixture
def customer():
    return Customer(name="Leilani Aguon", phone="(671) 482-7765", email="leilani@example.com")


def make_booking(
    staff_id: str = "amara",
    room_id: str = "room-1",
    start: str = "10:00",
    end: str = "11:00",
    day: date = SUNDAY,
    status: BookingStatus = BookingStatus.CONFIRMED,
    service_id: str = "classic-facial",
    booking_id: Optional[str] = None,
    group_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Booking:
    """Helper to create a Booking with buffers computed for 09:00-20:00 hours."""
    start_minute = parse_hhmm(start)
    planned = plan_interval(day, start_minute, parse_hhmm(end) - start_minute, HOURS)
    fields = dict(
        service_id=service_id,
        staff_id=staff_id,
        room_id=room_id,
        booking_date=day,
        start_minute=planned.interval.start,
        end_minute=planned.interval.end,
        buffer_start=planned.buffered.start,
        buffer_end=planned.buffered.end,
        status=status,
        booking_type=BookingType.COUPLE if group_id else BookingType.SINGLE,
        group_id=group_id,
        created_at=created_at or NOW,
    )
    if booking_id:
        fields["id"] = booking_id
    return Booking(**fields)


def seed(gateway, *bookings: Booking) -> None:
    """Commit bookings straight into a gateway."""
    with gateway.transaction() as tx:
        for booking in bookings:
            tx.insert_booking(booking)


def assert_no_overlaps(bookings: list[Booking]) -> None:
    """No two active bookings sharing a staff member or room reach into each other's buffer."""
    active = [b for b in bookings if b.is_active]
    for i, a in enumerate(active):
        for b in active[i + 1:]:
            if a.staff_id == b.staff_id or a.room_id == b.room_id:
                assert not bookings_collide(a, b), (a, b)
