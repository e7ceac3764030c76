import logging
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.core.config import settings
from clinic_booking.core.errors import Conflict, NotFound, ValidationError
from clinic_booking.models.appointment import Appointment, AppointmentStatus
from clinic_booking.models.clinic import Clinic
from clinic_booking.models.interval import Interval
from clinic_booking.models.negotiation import (
    AppointmentRequest,
    CancelActor,
    ClinicCounterOffer,
    ClinicReply,
    PatientCounter,
    PatientReply,
)
from clinic_booking.models.notification import NotificationEvent
from clinic_booking.services import negotiation_service
from clinic_booking.services.availability_service import validate_booking_window, validate_slot_rules
from clinic_booking.services.clinic_service import get_clinic, get_patient
from clinic_booking.services.hold_service import get_live_hold, release_patient_holds
from clinic_booking.services.negotiation_service import last_clinic_offer
from clinic_booking.services.occupancy_service import find_occupant, load_bookings, load_live_holds

logger = logging.getLogger(__name__)


async def get_appointment(
    session: AsyncSession, appointment_id: int, *, for_update: bool = False
) -> Appointment:
    q = select(Appointment).where(Appointment.id == appointment_id)
    if for_update:
        q = q.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(q)
    appointment = result.scalar_one_or_none()
    if not appointment:
        raise NotFound(f"Appointment {appointment_id} not found")
    return appointment


async def _lock_for_transition(session: AsyncSession, appointment_id: int) -> tuple[Appointment, Clinic]:
    """Lock the clinic first, then the appointment, so concurrent claims on a clinic queue up."""
    appointment = await get_appointment(session, appointment_id)
    clinic = await get_clinic(session, appointment.clinic_id, for_update=True, require_active=False)
    appointment = await get_appointment(session, appointment_id, for_update=True)
    return appointment, clinic


async def request_appointment(
    session: AsyncSession, data: AppointmentRequest, now: datetime | None = None
) -> tuple[Appointment, NotificationEvent] | Conflict:
    """Create a ``pending`` appointment for a free slot.

    The requesting patient's own hold on the slot does not count as a conflict
    and is consumed when the appointment is created.
    """
    now = now or settings.local_now()
    validate_slot_rules(data.duration, settings.min_buffer_minutes)
    validate_booking_window(data.requested_date, now.date(), settings.max_advance_days)
    interval = Interval.from_start(data.start, data.duration)
    if interval.start < now:
        raise ValidationError("Requested time has already passed")

    clinic = await get_clinic(session, data.clinic_id, for_update=True)
    patient = await get_patient(session, data.patient_id)
    day_hours = clinic.operating_hours.for_date(data.requested_date)
    if day_hours is None or not day_hours.contains(interval):
        raise ValidationError("Requested slot is outside the clinic's opening hours")
    if data.hold_id:
        hold = await get_live_hold(session, data.hold_id, now)
        if hold is None or hold.patient_id != data.patient_id:
            logger.info("Hold %s is not live for patient %s; checking slot directly", data.hold_id, data.patient_id)

    occupant = await find_occupant(session, clinic.id, interval, now, ignore_patient_id=patient.id)
    if occupant:
        return occupant

    appointment = negotiation_service.open_request(data, now)
    appointment.patient = patient
    appointment.clinic = clinic
    session.add(appointment)
    await session.flush()
    released = await release_patient_holds(session, clinic.id, patient.id, interval)
    logger.info(
        "Appointment requested: %s for patient %s at clinic %s on %s (holds released: %d)",
        appointment.id, patient.id, clinic.id, interval.start, released,
    )
    return appointment, negotiation_service.request_event(appointment)


def _target_date(appointment: Appointment, response: ClinicReply | PatientReply) -> date:
    if isinstance(response, (ClinicCounterOffer, PatientCounter)):
        return response.proposed_date
    if response.response_type == "accept":
        offer = last_clinic_offer(appointment)
        if offer is not None:
            return offer.proposed_date
    return appointment.slot_date


async def respond_as_clinic(
    session: AsyncSession, appointment_id: int, response: ClinicReply, now: datetime | None = None
) -> tuple[Appointment, NotificationEvent] | Conflict:
    now = now or settings.local_now()
    appointment, clinic = await _lock_for_transition(session, appointment_id)
    d = _target_date(appointment, response)
    bookings = await load_bookings(session, clinic.id, d, exclude_appointment_id=appointment.id)
    holds = await load_live_holds(session, clinic.id, d, now)
    outcome = negotiation_service.apply_clinic_response(
        appointment, response, hours=clinic.operating_hours, bookings=bookings, holds=holds, now=now
    )
    if isinstance(outcome, Conflict):
        logger.info("Clinic %s on appointment %s refused: %s", response.response_type, appointment.id, outcome.reason)
        return outcome
    await session.flush()
    logger.info("Appointment %s: clinic %s -> %s", appointment.id, response.response_type, appointment.status)
    return appointment, outcome


async def respond_as_patient(
    session: AsyncSession, appointment_id: int, response: PatientReply, now: datetime | None = None
) -> tuple[Appointment, NotificationEvent] | Conflict:
    now = now or settings.local_now()
    appointment, clinic = await _lock_for_transition(session, appointment_id)
    d = _target_date(appointment, response)
    bookings = await load_bookings(session, clinic.id, d, exclude_appointment_id=appointment.id)
    holds = await load_live_holds(session, clinic.id, d, now)
    outcome = negotiation_service.apply_patient_response(
        appointment, response, hours=clinic.operating_hours, bookings=bookings, holds=holds, now=now
    )
    if isinstance(outcome, Conflict):
        logger.info("Patient %s on appointment %s refused: %s", response.response_type, appointment.id, outcome.reason)
        return outcome
    await session.flush()
    logger.info("Appointment %s: patient %s -> %s", appointment.id, response.response_type, appointment.status)
    return appointment, outcome


async def cancel_appointment(
    session: AsyncSession,
    appointment_id: int,
    actor: CancelActor,
    reason: str,
    now: datetime | None = None,
) -> tuple[Appointment, NotificationEvent]:
    now = now or settings.local_now()
    appointment = await get_appointment(session, appointment_id, for_update=True)
    event = negotiation_service.cancel(appointment, actor, reason, now)
    await session.flush()
    logger.info("Appointment %s cancelled by %s: %s", appointment.id, actor.value, appointment.cancellation_reason)
    return appointment, event


async def complete_appointment(
    session: AsyncSession, appointment_id: int, now: datetime | None = None
) -> Appointment:
    now = now or settings.local_now()
    appointment = await get_appointment(session, appointment_id, for_update=True)
    negotiation_service.mark_completed(appointment, now)
    await session.flush()
    logger.info("Appointment %s completed", appointment.id)
    return appointment


async def mark_no_show(
    session: AsyncSession, appointment_id: int, now: datetime | None = None
) -> Appointment:
    now = now or settings.local_now()
    appointment = await get_appointment(session, appointment_id, for_update=True)
    negotiation_service.mark_no_show(appointment, now)
    await session.flush()
    logger.info("Appointment %s marked as no-show", appointment.id)
    return appointment


async def list_appointments(
    session: AsyncSession,
    *,
    clinic_id: int | None = None,
    patient_id: int | None = None,
    status: AppointmentStatus | None = None,
    from_date: date | None = None,
) -> list[Appointment]:
    q = select(Appointment).order_by(Appointment.slot_date, Appointment.slot_time)
    if clinic_id is not None:
        q = q.where(Appointment.clinic_id == clinic_id)
    if patient_id is not None:
        q = q.where(Appointment.patient_id == patient_id)
    if status is not None:
        q = q.where(Appointment.status == status.value)
    if from_date:
        q = q.where(Appointment.slot_date >= from_date)
    result = await session.execute(q)
    return list(result.scalars().all())
