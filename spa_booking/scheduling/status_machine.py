"""
Finite state machine for booking status.

    pending ──confirm──> confirmed ──complete──> completed
       │                    ├──no_show──> no_show
       │                    ├──cancel──> cancelled
       └──cancel──> cancelled └─reschedule─> rescheduled

``completed``, ``cancelled`` and ``no_show`` are terminal. ``rescheduled``
retires the row; the replacement booking carries the lineage.

Usage:
    sm = BookingStatusMachine(BookingStatus.PENDING)
    sm.transition(StatusTrigger.CONFIRM)
    assert sm.current_status == BookingStatus.CONFIRMED
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from spa_booking.schemas.booking_schema import BookingStatus
from spa_booking.scheduling.errors import InvalidTransitionError

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({
    BookingStatus.COMPLETED,
    BookingStatus.CANCELLED,
    BookingStatus.NO_SHOW,
})


class StatusTrigger(str, Enum):
    """Events that change a booking's status."""
    CONFIRM = "confirm"
    CANCEL = "cancel"
    COMPLETE = "complete"
    MARK_NO_SHOW = "mark_no_show"
    RESCHEDULE = "reschedule"


@dataclass
class Transition:
    """A single valid status transition."""
    from_status: BookingStatus
    to_status: BookingStatus
    trigger: StatusTrigger


@dataclass
class StatusEntry:
    """Recorded history entry for a status change."""
    status: BookingStatus
    entered_at: datetime
    trigger: Optional[StatusTrigger] = None


class BookingStatusMachine:
    """Validates status changes for one booking."""

    TRANSITIONS: list[Transition] = [
        Transition(BookingStatus.PENDING, BookingStatus.CONFIRMED, StatusTrigger.CONFIRM),
        Transition(BookingStatus.PENDING, BookingStatus.CANCELLED, StatusTrigger.CANCEL),
        Transition(BookingStatus.CONFIRMED, BookingStatus.COMPLETED, StatusTrigger.COMPLETE),
        Transition(BookingStatus.CONFIRMED, BookingStatus.NO_SHOW, StatusTrigger.MARK_NO_SHOW),
        Transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED, StatusTrigger.CANCEL),
        Transition(BookingStatus.CONFIRMED, BookingStatus.RESCHEDULED, StatusTrigger.RESCHEDULE),
    ]

    def __init__(self, status: BookingStatus = BookingStatus.PENDING) -> None:
        self._current_status = status
        self._history: list[StatusEntry] = [
            StatusEntry(status=status, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_status(self) -> BookingStatus:
        return self._current_status

    def transition(self, trigger: StatusTrigger) -> BookingStatus:
        """
        Apply a trigger to the current status.

        Returns:
            The new status.

        Raises:
            InvalidTransitionError: If no transition exists for the trigger.
        """
        for t in self.TRANSITIONS:
            if t.from_status == self._current_status and t.trigger == trigger:
                old_status = self._current_status
                self._current_status = t.to_status
                self._history.append(StatusEntry(
                    status=self._current_status,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Status transition: %s -> %s (trigger: %s)",
                    old_status.value, self._current_status.value, trigger.value,
                )
                return self._current_status

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_status.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[StatusTrigger]:
        """Return all triggers valid from the current status."""
        return [t.trigger for t in self.TRANSITIONS if t.from_status == self._current_status]

    def get_history(self) -> list[StatusEntry]:
        return list(self._history)

    def is_terminal(self) -> bool:
        return self._current_status in TERMINAL_STATUSES
