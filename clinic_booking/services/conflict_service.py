from collections.abc import Iterable
from dataclasses import dataclass

from clinic_booking.models.interval import Interval


@dataclass(frozen=True)
class BookingInterval:
    """Time range occupied by a committed appointment, projected for overlap checks."""

    interval: Interval
    appointment_id: int | None = None


@dataclass(frozen=True)
class HeldInterval:
    """Time range claimed by a live reservation hold."""

    interval: Interval
    hold_id: str
    patient_id: int


def overlaps(a: Interval, b: Interval) -> bool:
    """Half-open overlap: ranges that only touch at an endpoint do not conflict."""
    return a.start < b.end and b.start < a.end


def find_booking_conflict(
    candidate: Interval, bookings: Iterable[BookingInterval]
) -> BookingInterval | None:
    for booking in bookings:
        if overlaps(candidate, booking.interval):
            return booking
    return None


def find_hold_conflict(
    candidate: Interval, holds: Iterable[HeldInterval], ignore_patient_id: int | None = None
) -> HeldInterval | None:
    """First live hold overlapping ``candidate``; holds owned by ``ignore_patient_id`` are skipped."""
    for hold in holds:
        if ignore_patient_id is not None and hold.patient_id == ignore_patient_id:
            continue
        if overlaps(candidate, hold.interval):
            return hold
    return None
