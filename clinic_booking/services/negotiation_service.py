"""Appointment negotiation state machine.

    pending          -> counter-offered | confirmed | rejected | cancelled
    counter-offered  -> counter-offered | confirmed | rejected | cancelled
    confirmed        -> completed | cancelled | no-show

Every transition either applies completely and returns the notification event to
emit, returns a Conflict and leaves the appointment untouched, or raises before
touching anything. Nothing here does I/O; callers load bookings and holds and
own the transaction.
"""
from collections.abc import Iterable, Sequence
from datetime import date, datetime, time

from clinic_booking.core.config import settings
from clinic_booking.core.errors import (
    Conflict,
    InvalidTransition,
    RangeError,
    SlotNoLongerAvailable,
    ValidationError,
)
from clinic_booking.models.appointment import (
    NEGOTIATING_STATUSES,
    Appointment,
    AppointmentStatus,
    ClinicResponse,
    PatientResponse,
)
from clinic_booking.models.interval import Interval, OperatingHours
from clinic_booking.models.negotiation import (
    AppointmentRequest,
    CancelActor,
    ClinicConfirmation,
    ClinicCounterOffer,
    ClinicRejection,
    ClinicReply,
    PatientAccept,
    PatientCounter,
    PatientDecline,
    PatientReply,
)
from clinic_booking.models.notification import EventKind, NotificationEvent, Recipient, RecipientType
from clinic_booking.services.availability_service import validate_booking_window, validate_slot_rules
from clinic_booking.services.conflict_service import (
    BookingInterval,
    HeldInterval,
    find_booking_conflict,
    find_hold_conflict,
)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    AppointmentStatus.PENDING.value: frozenset(
        {
            AppointmentStatus.COUNTER_OFFERED.value,
            AppointmentStatus.CONFIRMED.value,
            AppointmentStatus.REJECTED.value,
            AppointmentStatus.CANCELLED.value,
        }
    ),
    AppointmentStatus.COUNTER_OFFERED.value: frozenset(
        {
            AppointmentStatus.COUNTER_OFFERED.value,
            AppointmentStatus.CONFIRMED.value,
            AppointmentStatus.REJECTED.value,
            AppointmentStatus.CANCELLED.value,
        }
    ),
    AppointmentStatus.CONFIRMED.value: frozenset(
        {
            AppointmentStatus.COMPLETED.value,
            AppointmentStatus.CANCELLED.value,
            AppointmentStatus.NO_SHOW.value,
        }
    ),
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def _require(appointment: Appointment, allowed: Iterable[str], action: str) -> None:
    if appointment.status not in allowed:
        raise InvalidTransition(appointment.status, action)


def _set_status(appointment: Appointment, target: AppointmentStatus, now: datetime) -> None:
    if not can_transition(appointment.status, target.value):
        raise InvalidTransition(appointment.status, f"move to '{target.value}'")
    appointment.status = target.value
    appointment.updated_at = now


def _require_future(interval: Interval, now: datetime) -> None:
    if interval.start < now:
        raise RangeError(f"Slot at {interval.start.isoformat(sep=' ', timespec='minutes')} has already passed")


def validate_proposal(
    hours: OperatingHours,
    proposed_date: date,
    proposed_time: time,
    duration: int,
    now: datetime,
) -> Interval:
    """Check a proposed slot is bookable in principle: sane length, in the window, inside opening hours."""
    validate_slot_rules(duration, settings.min_buffer_minutes)
    validate_booking_window(proposed_date, now.date(), settings.max_advance_days)
    interval = Interval.from_start(datetime.combine(proposed_date, proposed_time), duration)
    _require_future(interval, now)
    if not hours.is_open_on(proposed_date):
        raise ValidationError(f"Clinic is closed on {proposed_date.isoformat()}")
    day_hours = hours.for_date(proposed_date)
    if not day_hours.contains(interval):
        raise ValidationError(
            f"Proposed time {proposed_time.strftime('%H:%M')} for {duration} minutes "
            f"is outside clinic hours {day_hours.label}"
        )
    return interval


def find_conflict(
    interval: Interval,
    bookings: Iterable[BookingInterval],
    holds: Iterable[HeldInterval],
    patient_id: int | None,
    conflict_cls: type[Conflict] = Conflict,
) -> Conflict | None:
    booking = find_booking_conflict(interval, bookings)
    if booking:
        return conflict_cls(start=interval.start, end=interval.end, appointment_id=booking.appointment_id)
    hold = find_hold_conflict(interval, holds, ignore_patient_id=patient_id)
    if hold:
        return conflict_cls(start=interval.start, end=interval.end, hold_id=hold.hold_id)
    return None


def _names(appointment: Appointment) -> tuple[str, str]:
    patient_name = appointment.patient.display_name if appointment.patient else f"Patient {appointment.patient_id}"
    clinic_name = appointment.clinic.name if appointment.clinic else f"Clinic {appointment.clinic_id}"
    return patient_name, clinic_name


def _recipients(appointment: Appointment, *types: RecipientType) -> list[Recipient]:
    out = []
    for t in types:
        if t == RecipientType.PATIENT:
            email = appointment.patient.email if appointment.patient else None
            out.append(Recipient(recipient_type=t, recipient_id=appointment.patient_id, email=email))
        else:
            email = appointment.clinic.email if appointment.clinic else None
            out.append(Recipient(recipient_type=t, recipient_id=appointment.clinic_id, email=email))
    return out


def build_event(
    appointment: Appointment,
    kind: EventKind,
    to: Sequence[RecipientType],
    title: str,
    message: str,
    action_required: bool = False,
) -> NotificationEvent:
    patient_name, clinic_name = _names(appointment)
    return NotificationEvent(
        kind=kind,
        appointment_id=appointment.id,
        recipients=_recipients(appointment, *to),
        title=title,
        message=message,
        patient_name=patient_name,
        clinic_name=clinic_name,
        slot_date=appointment.slot_date,
        slot_time=appointment.slot_time,
        action_required=action_required,
    )


def _when(appointment: Appointment) -> str:
    return f"{appointment.slot_date.strftime('%a %b %d %Y')} at {appointment.slot_time.strftime('%H:%M')}"


def _with_note(text: str, note: str | None) -> str:
    return f"{text}. {note}" if note else text


def open_request(request: AppointmentRequest, now: datetime) -> Appointment:
    """New appointment in ``pending`` carrying the patient's original request."""
    return Appointment(
        patient_id=request.patient_id,
        clinic_id=request.clinic_id,
        status=AppointmentStatus.PENDING.value,
        appointment_type=request.appointment_type.value,
        requested_date=request.requested_date,
        requested_time=request.requested_time,
        requested_duration=request.duration,
        reason=request.reason,
        requested_at=now,
        slot_date=request.requested_date,
        slot_time=request.requested_time,
        slot_duration=request.duration,
        created_at=now,
        updated_at=now,
        clinic_responses=[],
        patient_responses=[],
    )


def request_event(appointment: Appointment) -> NotificationEvent:
    patient_name, _ = _names(appointment)
    return build_event(
        appointment,
        EventKind.APPOINTMENT_REQUEST,
        [RecipientType.CLINIC],
        "New Appointment Request",
        f"{patient_name} has requested an appointment for {_when(appointment)}",
        action_required=True,
    )


def apply_clinic_response(
    appointment: Appointment,
    response: ClinicReply,
    *,
    hours: OperatingHours,
    bookings: Iterable[BookingInterval],
    holds: Iterable[HeldInterval] = (),
    now: datetime,
) -> NotificationEvent | Conflict:
    """Apply a clinic's confirmation, counter-offer or rejection.

    ``bookings`` and ``holds`` must cover the date of the slot being confirmed or
    proposed and must not include this appointment.
    """
    _, clinic_name = _names(appointment)

    if isinstance(response, ClinicConfirmation):
        _require(appointment, NEGOTIATING_STATUSES, "confirm")
        interval = appointment.slot_interval
        _require_future(interval, now)
        conflict = find_conflict(interval, bookings, holds, appointment.patient_id, SlotNoLongerAvailable)
        if conflict:
            return conflict
        _set_status(appointment, AppointmentStatus.CONFIRMED, now)
        appointment.confirmed_date = appointment.slot_date
        appointment.confirmed_time = appointment.slot_time
        appointment.confirmed_duration = appointment.slot_duration
        appointment.clinic_responses.append(
            ClinicResponse(response_type=response.response_type, message=response.message, responded_at=now)
        )
        return build_event(
            appointment,
            EventKind.CONFIRMATION,
            [RecipientType.PATIENT],
            "Appointment Confirmed",
            _with_note(f"Your appointment with {clinic_name} has been confirmed for {_when(appointment)}", response.message),
        )

    if isinstance(response, ClinicCounterOffer):
        _require(appointment, NEGOTIATING_STATUSES, "counter-offer")
        duration = response.proposed_duration or appointment.slot_duration
        interval = validate_proposal(hours, response.proposed_date, response.proposed_time, duration, now)
        conflict = find_conflict(interval, bookings, holds, appointment.patient_id)
        if conflict:
            return conflict
        _set_status(appointment, AppointmentStatus.COUNTER_OFFERED, now)
        appointment.slot_date = response.proposed_date
        appointment.slot_time = response.proposed_time
        appointment.slot_duration = duration
        appointment.clinic_responses.append(
            ClinicResponse(
                response_type=response.response_type,
                proposed_date=response.proposed_date,
                proposed_time=response.proposed_time,
                proposed_duration=duration,
                message=response.message,
                responded_at=now,
            )
        )
        return build_event(
            appointment,
            EventKind.COUNTER_OFFER,
            [RecipientType.PATIENT],
            "Alternative Time Suggested",
            _with_note(f"{clinic_name} has suggested an alternative time: {_when(appointment)}", response.message),
            action_required=True,
        )

    if isinstance(response, ClinicRejection):
        _require(appointment, NEGOTIATING_STATUSES, "reject")
        _set_status(appointment, AppointmentStatus.REJECTED, now)
        appointment.clinic_responses.append(
            ClinicResponse(response_type=response.response_type, message=response.message, responded_at=now)
        )
        return build_event(
            appointment,
            EventKind.REJECTION,
            [RecipientType.PATIENT],
            "Appointment Request Declined",
            _with_note(f"Unfortunately, {clinic_name} cannot accommodate your requested appointment time", response.message),
        )

    raise TypeError(f"Unsupported clinic response: {type(response).__name__}")


def last_clinic_offer(appointment: Appointment) -> ClinicResponse | None:
    for response in reversed(appointment.clinic_responses):
        if response.response_type == "counter-offer":
            return response
    return None


def apply_patient_response(
    appointment: Appointment,
    response: PatientReply,
    *,
    hours: OperatingHours,
    bookings: Iterable[BookingInterval],
    holds: Iterable[HeldInterval] = (),
    now: datetime,
) -> NotificationEvent | Conflict:
    """Apply a patient's answer to a counter-offer. Only valid in ``counter-offered``."""
    patient_name, _ = _names(appointment)
    counter_offered = (AppointmentStatus.COUNTER_OFFERED.value,)

    if isinstance(response, PatientAccept):
        _require(appointment, counter_offered, "accept")
        offer = last_clinic_offer(appointment)
        if offer is None:
            raise InvalidTransition(appointment.status, "accept without a clinic offer")
        # The slot on the table must still be the clinic's offer, not the patient's own counter
        if (offer.proposed_date, offer.proposed_time) != (appointment.slot_date, appointment.slot_time):
            raise InvalidTransition(appointment.status, "accept while the clinic has not answered the patient's counter")
        duration = offer.proposed_duration or appointment.slot_duration
        interval = Interval.from_start(datetime.combine(offer.proposed_date, offer.proposed_time), duration)
        _require_future(interval, now)
        conflict = find_conflict(interval, bookings, holds, appointment.patient_id, SlotNoLongerAvailable)
        if conflict:
            return conflict
        _set_status(appointment, AppointmentStatus.CONFIRMED, now)
        appointment.slot_date = appointment.confirmed_date = offer.proposed_date
        appointment.slot_time = appointment.confirmed_time = offer.proposed_time
        appointment.slot_duration = appointment.confirmed_duration = duration
        appointment.patient_responses.append(
            PatientResponse(response_type=response.response_type, message=response.message, responded_at=now)
        )
        return build_event(
            appointment,
            EventKind.CONFIRMATION,
            [RecipientType.PATIENT, RecipientType.CLINIC],
            "Appointment Confirmed",
            _with_note(f"{patient_name} accepted the appointment for {_when(appointment)}", response.message),
        )

    if isinstance(response, PatientCounter):
        _require(appointment, counter_offered, "counter")
        duration = response.proposed_duration or appointment.slot_duration
        interval = validate_proposal(hours, response.proposed_date, response.proposed_time, duration, now)
        conflict = find_conflict(interval, bookings, holds, appointment.patient_id)
        if conflict:
            return conflict
        _set_status(appointment, AppointmentStatus.COUNTER_OFFERED, now)
        appointment.slot_date = response.proposed_date
        appointment.slot_time = response.proposed_time
        appointment.slot_duration = duration
        appointment.patient_responses.append(
            PatientResponse(
                response_type=response.response_type,
                proposed_date=response.proposed_date,
                proposed_time=response.proposed_time,
                proposed_duration=duration,
                message=response.message,
                responded_at=now,
            )
        )
        return build_event(
            appointment,
            EventKind.COUNTER_OFFER,
            [RecipientType.CLINIC],
            "Patient Counter-Offer",
            _with_note(f"{patient_name} has proposed {_when(appointment)} instead", response.message),
            action_required=True,
        )

    if isinstance(response, PatientDecline):
        _require(appointment, counter_offered, "decline")
        _set_status(appointment, AppointmentStatus.CANCELLED, now)
        appointment.cancelled_by = CancelActor.PATIENT.value
        appointment.cancellation_reason = response.message or "Patient declined the counter-offer"
        appointment.patient_responses.append(
            PatientResponse(response_type=response.response_type, message=response.message, responded_at=now)
        )
        return _cancellation_event(appointment)

    raise TypeError(f"Unsupported patient response: {type(response).__name__}")


def _cancellation_event(appointment: Appointment) -> NotificationEvent:
    patient_name, clinic_name = _names(appointment)
    return build_event(
        appointment,
        EventKind.CANCELLATION,
        [RecipientType.PATIENT, RecipientType.CLINIC],
        "Appointment Cancelled",
        _with_note(
            f"The appointment between {patient_name} and {clinic_name} on {_when(appointment)} "
            f"has been cancelled by the {appointment.cancelled_by}",
            appointment.cancellation_reason,
        ),
    )


def cancel(appointment: Appointment, actor: CancelActor, reason: str, now: datetime) -> NotificationEvent:
    """Cancel from any non-terminal state and notify both parties."""
    if appointment.is_terminal:
        raise InvalidTransition(appointment.status, "cancel")
    reason = (reason or "").strip() or "No reason given"
    _set_status(appointment, AppointmentStatus.CANCELLED, now)
    appointment.cancelled_by = actor.value
    appointment.cancellation_reason = reason
    if actor == CancelActor.CLINIC:
        appointment.clinic_responses.append(
            ClinicResponse(response_type="cancellation", message=reason, responded_at=now)
        )
    elif actor == CancelActor.PATIENT:
        appointment.patient_responses.append(
            PatientResponse(response_type="cancellation", message=reason, responded_at=now)
        )
    return _cancellation_event(appointment)


def mark_completed(appointment: Appointment, now: datetime) -> None:
    _require(appointment, (AppointmentStatus.CONFIRMED.value,), "complete")
    _set_status(appointment, AppointmentStatus.COMPLETED, now)


def mark_no_show(appointment: Appointment, now: datetime) -> None:
    _require(appointment, (AppointmentStatus.CONFIRMED.value,), "mark as no-show")
    _set_status(appointment, AppointmentStatus.NO_SHOW, now)
