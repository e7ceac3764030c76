import logging
from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.core.config import settings
from clinic_booking.core.errors import Conflict, RangeError, ValidationError
from clinic_booking.models.hold import ReservationHold
from clinic_booking.models.interval import Interval
from clinic_booking.services.availability_service import validate_booking_window, validate_slot_rules
from clinic_booking.services.clinic_service import get_clinic, get_patient
from clinic_booking.services.occupancy_service import find_occupant

logger = logging.getLogger(__name__)


def is_live(hold: ReservationHold, now: datetime | None = None) -> bool:
    now = now or settings.local_now()
    return now < hold.expires_at


async def place_hold(
    session: AsyncSession,
    clinic_id: int,
    start: datetime,
    duration: int,
    patient_id: int,
    ttl_minutes: int | None = None,
    now: datetime | None = None,
) -> ReservationHold | Conflict:
    """Claim a slot for ``ttl_minutes``; returns a Conflict when it is already taken.

    The clinic row is locked for the rest of the transaction, so the check and
    the insert cannot interleave with another claim on the same clinic.
    """
    now = now or settings.local_now()
    ttl_minutes = settings.hold_ttl_minutes if ttl_minutes is None else ttl_minutes
    if not 1 <= ttl_minutes <= settings.max_hold_ttl_minutes:
        raise RangeError(f"Hold TTL must be between 1 and {settings.max_hold_ttl_minutes} minutes")
    validate_slot_rules(duration, settings.min_buffer_minutes)
    validate_booking_window(start.date(), now.date(), settings.max_advance_days)
    interval = Interval.from_start(start, duration)

    clinic = await get_clinic(session, clinic_id, for_update=True)
    await get_patient(session, patient_id)
    day_hours = clinic.operating_hours.for_date(start.date())
    if day_hours is None or not day_hours.contains(interval):
        raise ValidationError("Requested slot is outside the clinic's opening hours")
    if start < now:
        raise RangeError("Cannot hold a slot that has already started")

    await _purge_expired(session, now, clinic_id=clinic_id)
    occupant = await find_occupant(session, clinic_id, interval, now)
    if occupant:
        logger.info(
            "Hold refused for clinic %s at %s: occupied (appointment=%s hold=%s)",
            clinic_id, start, occupant.appointment_id, occupant.hold_id,
        )
        return occupant

    hold = ReservationHold(
        clinic_id=clinic_id,
        patient_id=patient_id,
        start=interval.start,
        end=interval.end,
        created_at=now,
        expires_at=now + timedelta(minutes=ttl_minutes),
    )
    session.add(hold)
    await session.flush()
    logger.info("Slot held: %s for patient %s until %s", hold.id, patient_id, hold.expires_at)
    return hold


async def get_live_hold(
    session: AsyncSession, hold_id: str, now: datetime | None = None
) -> ReservationHold | None:
    """Fetch a hold; an expired one is deleted and reported as absent."""
    now = now or settings.local_now()
    hold = await session.get(ReservationHold, hold_id)
    if hold is None:
        return None
    if not is_live(hold, now):
        await session.delete(hold)
        await session.flush()
        return None
    return hold


async def release_hold(session: AsyncSession, hold_id: str) -> None:
    """Idempotent: releasing a missing or expired hold succeeds silently."""
    result = await session.execute(delete(ReservationHold).where(ReservationHold.id == hold_id))
    await session.flush()
    if result.rowcount:
        logger.info("Hold released: %s", hold_id)


async def release_patient_holds(
    session: AsyncSession, clinic_id: int, patient_id: int, interval: Interval
) -> int:
    """Drop a patient's holds overlapping ``interval`` once the slot is turned into an appointment."""
    result = await session.execute(
        delete(ReservationHold).where(
            ReservationHold.clinic_id == clinic_id,
            ReservationHold.patient_id == patient_id,
            ReservationHold.start < interval.end,
            ReservationHold.end > interval.start,
        )
    )
    await session.flush()
    return result.rowcount or 0


async def _purge_expired(session: AsyncSession, now: datetime, clinic_id: int | None = None) -> int:
    q = delete(ReservationHold).where(ReservationHold.expires_at <= now)
    if clinic_id is not None:
        q = q.where(ReservationHold.clinic_id == clinic_id)
    result = await session.execute(q)
    await session.flush()
    return result.rowcount or 0


async def purge_expired_holds(session: AsyncSession, now: datetime | None = None) -> int:
    """Delete every expired hold. Returns count deleted."""
    return await _purge_expired(session, now or settings.local_now())


async def list_patient_holds(
    session: AsyncSession, patient_id: int, now: datetime | None = None
) -> list[ReservationHold]:
    now = now or settings.local_now()
    result = await session.execute(
        select(ReservationHold)
        .where(ReservationHold.patient_id == patient_id, ReservationHold.expires_at > now)
        .order_by(ReservationHold.start)
    )
    return list(result.scalars().all())
