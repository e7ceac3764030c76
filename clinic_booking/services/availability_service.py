import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.core.config import settings
from clinic_booking.core.errors import RangeError, WindowExceeded
from clinic_booking.models.availability import (
    ClinicHoursInfo,
    DayAvailability,
    SlotStatus,
    TimeSlot,
)
from clinic_booking.models.interval import Interval, OperatingHours, format_minute_of_day
from clinic_booking.services.clinic_service import get_clinic
from clinic_booking.services.conflict_service import (
    BookingInterval,
    HeldInterval,
    find_booking_conflict,
    find_hold_conflict,
)
from clinic_booking.services.occupancy_service import find_occupant, load_bookings, load_live_holds

logger = logging.getLogger(__name__)


def validate_slot_rules(duration: int, buffer: int) -> None:
    if not settings.min_slot_duration_minutes <= duration <= settings.max_slot_duration_minutes:
        raise RangeError(
            f"Duration must be between {settings.min_slot_duration_minutes} "
            f"and {settings.max_slot_duration_minutes} minutes"
        )
    if not settings.min_buffer_minutes <= buffer <= settings.max_buffer_minutes:
        raise RangeError(
            f"Buffer time must be between {settings.min_buffer_minutes} "
            f"and {settings.max_buffer_minutes} minutes"
        )


def validate_booking_window(d: date, today: date, max_advance_days: int) -> None:
    if max_advance_days < 0:
        raise RangeError("max_advance_days must not be negative")
    if d < today:
        raise RangeError("Cannot check availability for past dates")
    if d > today + timedelta(days=max_advance_days):
        raise WindowExceeded(f"Cannot book more than {max_advance_days} days in advance")


def _first_start(open_at: datetime, now: datetime | None, step: timedelta) -> datetime:
    """First slot start on the day's grid (open + k * step) not earlier than ``now``."""
    if now is None or now <= open_at:
        return open_at
    steps = -((open_at - now) // step)  # ceil((now - open_at) / step)
    return open_at + steps * step


def compute_day(
    hours: OperatingHours,
    bookings: Iterable[BookingInterval],
    d: date,
    duration: int,
    buffer: int,
    include_unavailable: bool = False,
    max_advance_days: int | None = None,
    *,
    now: datetime,
    holds: Iterable[HeldInterval] = (),
    ignore_patient_id: int | None = None,
) -> DayAvailability:
    """Bookable slots for one clinic day.

    Slots sit on a grid anchored at opening time and spaced ``duration + buffer``
    apart, so the same day always yields the same starts. On the current day,
    starts before ``now`` are skipped by rounding up to the next grid point.
    Counts cover every slot on the grid; ``time_slots`` omits booked and blocked
    slots unless ``include_unavailable`` is set.
    """
    validate_slot_rules(duration, buffer)
    validate_booking_window(
        d, now.date(), settings.max_advance_days if max_advance_days is None else max_advance_days
    )

    day_hours = hours.for_date(d)
    if day_hours is None:
        return DayAvailability(date=d.isoformat(), is_open=False)

    bookings = list(bookings)
    holds = list(holds)
    open_at = day_hours.open_at(d)
    close_at = day_hours.close_at(d)
    length = timedelta(minutes=duration)
    step = timedelta(minutes=duration + buffer)

    candidates: list[TimeSlot] = []
    current = _first_start(open_at, now if d == now.date() else None, step)
    while current + length <= close_at:
        interval = Interval(start=current, end=current + length)
        slot = TimeSlot(start=interval.start, end=interval.end, duration=duration)
        booking = find_booking_conflict(interval, bookings)
        if booking:
            slot.status = SlotStatus.BOOKED
            slot.appointment_id = booking.appointment_id
        else:
            hold = find_hold_conflict(interval, holds, ignore_patient_id=ignore_patient_id)
            if hold:
                slot.status = SlotStatus.BLOCKED
                slot.hold_id = hold.hold_id
        candidates.append(slot)
        current += step

    return DayAvailability(
        date=d.isoformat(),
        is_open=True,
        clinic_hours=ClinicHoursInfo(
            open=format_minute_of_day(day_hours.open_minute),
            close=format_minute_of_day(day_hours.close_minute),
        ),
        total_slots=len(candidates),
        available_slots=sum(1 for s in candidates if s.status == SlotStatus.AVAILABLE),
        booked_slots=sum(1 for s in candidates if s.status == SlotStatus.BOOKED),
        time_slots=[s for s in candidates if include_unavailable or s.status == SlotStatus.AVAILABLE],
    )


async def get_day_availability(
    session: AsyncSession,
    clinic_id: int,
    d: date,
    duration: int | None = None,
    buffer: int | None = None,
    include_unavailable: bool = False,
    max_advance_days: int | None = None,
    now: datetime | None = None,
    patient_id: int | None = None,
) -> DayAvailability:
    """Availability for a clinic day. A ``patient_id`` sees its own holds as available."""
    now = now or settings.local_now()
    duration = settings.default_slot_duration_minutes if duration is None else duration
    buffer = settings.default_buffer_minutes if buffer is None else buffer
    max_advance_days = settings.max_advance_days if max_advance_days is None else max_advance_days
    # Reject bad input before touching the database
    validate_slot_rules(duration, buffer)
    validate_booking_window(d, now.date(), max_advance_days)

    clinic = await get_clinic(session, clinic_id)
    bookings = await load_bookings(session, clinic_id, d)
    holds = await load_live_holds(session, clinic_id, d, now)
    return compute_day(
        clinic.operating_hours,
        bookings,
        d,
        duration,
        buffer,
        include_unavailable,
        max_advance_days,
        now=now,
        holds=holds,
        ignore_patient_id=patient_id,
    )


async def get_weekly_availability(
    session: AsyncSession,
    clinic_id: int,
    start_date: date,
    days: int = 7,
    duration: int | None = None,
    buffer: int | None = None,
    now: datetime | None = None,
) -> list[DayAvailability]:
    if not 1 <= days <= settings.weekly_max_days:
        raise RangeError(f"Days must be between 1 and {settings.weekly_max_days}")
    now = now or settings.local_now()
    out: list[DayAvailability] = []
    for i in range(days):
        out.append(
            await get_day_availability(
                session, clinic_id, start_date + timedelta(days=i), duration, buffer, now=now
            )
        )
    return out


async def get_next_available_slot(
    session: AsyncSession,
    clinic_id: int,
    duration: int | None = None,
    start_from: date | None = None,
    now: datetime | None = None,
) -> TimeSlot | None:
    """First available slot within ``next_slot_search_days`` days, or None."""
    now = now or settings.local_now()
    day = max(start_from or now.date(), now.date())
    last_bookable = now.date() + timedelta(days=settings.max_advance_days)
    for _ in range(settings.next_slot_search_days):
        if day > last_bookable:
            break
        availability = await get_day_availability(session, clinic_id, day, duration, now=now)
        for slot in availability.time_slots:
            if slot.available:
                return slot
        day += timedelta(days=1)
    logger.info("No available slot for clinic %s in the next %d days", clinic_id, settings.next_slot_search_days)
    return None


async def is_slot_available(
    session: AsyncSession,
    clinic_id: int,
    start: datetime,
    duration: int,
    now: datetime | None = None,
    patient_id: int | None = None,
) -> bool:
    """True when the range lies inside opening hours and nothing occupies it."""
    now = now or settings.local_now()
    clinic = await get_clinic(session, clinic_id)
    interval = Interval.from_start(start, duration)
    day_hours = clinic.operating_hours.for_date(start.date())
    if day_hours is None or not day_hours.contains(interval):
        return False
    occupant = await find_occupant(session, clinic_id, interval, now, ignore_patient_id=patient_id)
    return occupant is None
