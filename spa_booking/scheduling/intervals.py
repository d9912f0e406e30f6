"""Occupied and buffered interval calculation.

Every appointment is padded by a fixed turnover buffer on both sides.
The padding saturates at business open and close, so a 09:00 booking
has no buffer before it and a booking ending at close has none after.
"""

from dataclasses import dataclass
from datetime import date

from spa_booking.config import BusinessConfig
from spa_booking.schemas.booking_schema import TimeInterval
from spa_booking.scheduling.errors import OutsideBusinessHoursError
from spa_booking.utils import format_minutes, parse_hhmm

BUFFER_MINUTES = 15


@dataclass(frozen=True)
class BusinessHours:
    open_minute: int
    close_minute: int

    @classmethod
    def from_config(cls, config: BusinessConfig) -> "BusinessHours":
        return cls(parse_hhmm(config.open_time), parse_hhmm(config.close_time))


@dataclass(frozen=True)
class PlannedInterval:
    """Appointment interval and its clamped buffered interval."""

    interval: TimeInterval
    buffered: TimeInterval


def plan_interval(
    day: date, start_minute: int, duration: int, hours: BusinessHours
) -> PlannedInterval:
    """Compute the occupied and buffered intervals for a start time.

    Raises:
        OutsideBusinessHoursError: If the appointment starts before open
            or would run past close.
    """
    end_minute = start_minute + duration
    if start_minute < hours.open_minute:
        raise OutsideBusinessHoursError(
            f"Appointment cannot start before opening ({format_minutes(hours.open_minute)})"
        )
    if end_minute > hours.close_minute:
        raise OutsideBusinessHoursError(
            f"Appointment {format_minutes(start_minute)}+{duration}min would end after "
            f"closing ({format_minutes(hours.close_minute)})"
        )

    interval = TimeInterval(day=day, start=start_minute, end=end_minute)
    buffered = TimeInterval(
        day=day,
        start=max(hours.open_minute, start_minute - BUFFER_MINUTES),
        end=min(hours.close_minute, end_minute + BUFFER_MINUTES),
    )
    return PlannedInterval(interval=interval, buffered=buffered)
