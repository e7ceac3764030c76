"""Reads of what currently occupies a clinic's calendar: committed bookings and live holds."""
from datetime import date, datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.core.config import settings
from clinic_booking.core.errors import Conflict
from clinic_booking.models.appointment import Appointment, AppointmentStatus
from clinic_booking.models.hold import ReservationHold
from clinic_booking.models.interval import Interval
from clinic_booking.services.conflict_service import (
    BookingInterval,
    HeldInterval,
    find_booking_conflict,
    find_hold_conflict,
)


def blocking_statuses() -> list[str]:
    statuses = [AppointmentStatus.CONFIRMED.value, AppointmentStatus.COMPLETED.value]
    if settings.reserve_slots_during_negotiation:
        statuses += [AppointmentStatus.PENDING.value, AppointmentStatus.COUNTER_OFFERED.value]
    return statuses


def booking_interval(appointment: Appointment) -> BookingInterval:
    return BookingInterval(interval=appointment.slot_interval, appointment_id=appointment.id)


async def load_bookings(
    session: AsyncSession,
    clinic_id: int,
    d: date,
    exclude_appointment_id: int | None = None,
) -> list[BookingInterval]:
    q = (
        select(Appointment)
        .where(
            Appointment.clinic_id == clinic_id,
            Appointment.slot_date == d,
            Appointment.status.in_(blocking_statuses()),
        )
        .order_by(Appointment.slot_time)
    )
    if exclude_appointment_id is not None:
        q = q.where(Appointment.id != exclude_appointment_id)
    result = await session.execute(q)
    return [booking_interval(a) for a in result.scalars().all()]


async def load_live_holds(
    session: AsyncSession, clinic_id: int, d: date, now: datetime
) -> list[HeldInterval]:
    """Holds on ``d`` that have not expired at ``now``; expired rows are simply not returned."""
    day_start = datetime.combine(d, time())
    result = await session.execute(
        select(ReservationHold)
        .where(
            ReservationHold.clinic_id == clinic_id,
            ReservationHold.start < day_start + timedelta(days=1),
            ReservationHold.end > day_start,
            ReservationHold.expires_at > now,
        )
        .order_by(ReservationHold.start)
    )
    return [
        HeldInterval(interval=h.interval, hold_id=h.id, patient_id=h.patient_id)
        for h in result.scalars().all()
    ]


async def find_occupant(
    session: AsyncSession,
    clinic_id: int,
    interval: Interval,
    now: datetime,
    *,
    ignore_patient_id: int | None = None,
    exclude_appointment_id: int | None = None,
    conflict_cls: type[Conflict] = Conflict,
) -> Conflict | None:
    """Return a conflict describing whatever occupies ``interval``, or None when it is free.

    Bookings are checked before holds. Holds owned by ``ignore_patient_id`` do not count.
    """
    bookings = await load_bookings(
        session, clinic_id, interval.start.date(), exclude_appointment_id=exclude_appointment_id
    )
    booking = find_booking_conflict(interval, bookings)
    if booking:
        return conflict_cls(start=interval.start, end=interval.end, appointment_id=booking.appointment_id)
    holds = await load_live_holds(session, clinic_id, interval.start.date(), now)
    hold = find_hold_conflict(interval, holds, ignore_patient_id=ignore_patient_id)
    if hold:
        return conflict_cls(start=interval.start, end=interval.end, hold_id=hold.hold_id)
    return None
