"""Booking, interval and conflict data models."""

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from spa_booking.utils import format_minutes, normalize_phone


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    RESCHEDULED = "rescheduled"


# Only these statuses occupy staff and room time.
ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


class BookingType(str, Enum):
    SINGLE = "single"
    COUPLE = "couple"
    BLOCK = "block"


# Service id carried by admin time blocks, which have no catalog service.
BLOCK_SERVICE_ID = "time-block"


class ConflictType(str, Enum):
    STAFF = "staff"
    ROOM = "room"


@dataclass(frozen=True)
class SpecificStaff:
    """Request a named therapist."""

    staff_id: str


@dataclass(frozen=True)
class AnyQualified:
    """Let the engine pick any qualified therapist working that day."""


StaffSelector = Union[SpecificStaff, AnyQualified]

ANY_STAFF = AnyQualified()


def staff_selector(value: Optional[str]) -> StaffSelector:
    """Map an external staff preference to a selector.

    Empty values and the public ``"any"`` option become ``ANY_STAFF``.
    """
    if value is None or value.strip().lower() in ("", "any"):
        return ANY_STAFF
    return SpecificStaff(value.strip())


class TimeInterval(BaseModel):
    """Half-open interval ``[start, end)`` in minutes of day on one date."""

    model_config = ConfigDict(frozen=True)

    day: date
    start: int = Field(ge=0, le=24 * 60)
    end: int = Field(ge=0, le=24 * 60)

    @model_validator(mode="after")
    def _check_order(self) -> "TimeInterval":
        if self.end <= self.start:
            raise ValueError(f"Interval end {self.end} must be after start {self.start}")
        return self

    def overlaps(self, other: "TimeInterval") -> bool:
        """Touching endpoints do not overlap."""
        return self.day == other.day and self.start < other.end and other.start < self.end

    def intersection(self, other: "TimeInterval") -> Optional["TimeInterval"]:
        if not self.overlaps(other):
            return None
        return TimeInterval(
            day=self.day, start=max(self.start, other.start), end=min(self.end, other.end)
        )

    def describe(self) -> str:
        return f"{self.day.isoformat()} {format_minutes(self.start)}-{format_minutes(self.end)}"


class Customer(BaseModel):
    """Who the appointment is for."""

    model_config = ConfigDict(frozen=True)

    name: str
    phone: str
    email: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def _normalize_phone(cls, value: str) -> str:
        return normalize_phone(value)


class RescheduleLineage(BaseModel):
    """Link from a rescheduled booking back to the row it replaced."""

    model_config = ConfigDict(frozen=True)

    rescheduled_from: str
    count: int = Field(ge=1)
    reason: Optional[str] = None


class Booking(BaseModel):
    """A granted appointment occupying one staff member and one room."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    service_id: str
    staff_id: str
    room_id: str
    booking_date: date
    start_minute: int
    end_minute: int
    buffer_start: int
    buffer_end: int
    status: BookingStatus = BookingStatus.PENDING
    booking_type: BookingType = BookingType.SINGLE
    group_id: Optional[str] = None
    lineage: Optional[RescheduleLineage] = None
    customer: Optional[Customer] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _check_consistency(self) -> "Booking":
        if (self.booking_type == BookingType.COUPLE) != (self.group_id is not None):
            raise ValueError("Couple bookings, and only couple bookings, carry a group_id")
        if not self.buffer_start <= self.start_minute < self.end_minute <= self.buffer_end:
            raise ValueError(
                "Buffered interval must contain the appointment interval: "
                f"{self.buffer_start}<={self.start_minute}<{self.end_minute}<={self.buffer_end}"
            )
        return self

    def evolve(self, **changes: Any) -> "Booking":
        """Return a validated copy with ``changes`` applied."""
        return type(self).model_validate({**self.model_dump(), **changes})

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(day=self.booking_date, start=self.start_minute, end=self.end_minute)

    @property
    def buffered_interval(self) -> TimeInterval:
        return TimeInterval(day=self.booking_date, start=self.buffer_start, end=self.buffer_end)

    @property
    def start_time(self) -> str:
        return format_minutes(self.start_minute)

    @property
    def end_time(self) -> str:
        return format_minutes(self.end_minute)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_block(self) -> bool:
        return self.booking_type == BookingType.BLOCK

    @property
    def reschedule_count(self) -> int:
        return self.lineage.count if self.lineage else 0


class Conflict(BaseModel):
    """One staff-line or room-line overlap with an existing booking."""

    model_config = ConfigDict(frozen=True)

    type: ConflictType
    conflicting_booking_id: str
    resource_id: str
    overlap: TimeInterval

    @property
    def description(self) -> str:
        return (
            f"{self.type.value} {self.resource_id} is held by booking "
            f"{self.conflicting_booking_id} during {self.overlap.describe()} "
            "(including buffer time)"
        )


class ConflictReport(BaseModel):
    """Set of conflicts found for one or more candidates."""

    conflicts: list[Conflict] = Field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def staff_conflicts(self) -> list[Conflict]:
        return [c for c in self.conflicts if c.type == ConflictType.STAFF]

    @property
    def room_conflicts(self) -> list[Conflict]:
        return [c for c in self.conflicts if c.type == ConflictType.ROOM]

    def merge(self, other: "ConflictReport") -> "ConflictReport":
        """Union of two reports, dropping duplicates and keeping first-seen order."""
        seen: set[tuple[ConflictType, str, str]] = set()
        merged: list[Conflict] = []
        for conflict in [*self.conflicts, *other.conflicts]:
            key = (conflict.type, conflict.conflicting_booking_id, conflict.resource_id)
            if key not in seen:
                seen.add(key)
                merged.append(conflict)
        return ConflictReport(conflicts=merged)

    def summary(self) -> str:
        return "; ".join(c.description for c in self.conflicts)
