"""Failure taxonomy for the scheduling core.

Validation, not-found and invalid-transition failures are raised before any
state is touched. Slot contention is an ordinary outcome and is returned as a
``Conflict`` value instead.
"""
from dataclasses import dataclass
from datetime import datetime


class SchedulingError(Exception):
    code = "scheduling_error"


class ValidationError(SchedulingError):
    code = "validation_error"


class RangeError(ValidationError):
    """A duration, buffer or date lies outside its allowed range."""

    code = "out_of_range"


class WindowExceeded(ValidationError):
    """The requested date is further ahead than the booking window allows."""

    code = "window_exceeded"


class NotFound(SchedulingError):
    code = "not_found"


class InvalidTransition(SchedulingError):
    code = "invalid_transition"

    def __init__(self, status: str, action: str) -> None:
        super().__init__(f"Cannot {action} an appointment in status '{status}'")
        self.status = status
        self.action = action


@dataclass(frozen=True)
class Conflict:
    """The requested interval is occupied by a booking or a live hold."""

    start: datetime
    end: datetime
    appointment_id: int | None = None
    hold_id: str | None = None
    reason: str = "Slot is not available"

    code = "slot_unavailable"


@dataclass(frozen=True)
class SlotNoLongerAvailable(Conflict):
    reason: str = "Slot is no longer available"
