from datetime import date, datetime, time

from pydantic import BaseModel, Field, RootModel

from clinic_booking.models.appointment import Appointment
from clinic_booking.models.negotiation import CancelActor, ClinicReply, PatientReply


class ClinicResponseBody(RootModel[ClinicReply]):
    pass


class PatientResponseBody(RootModel[PatientReply]):
    pass


class CancelRequest(BaseModel):
    actor: CancelActor
    reason: str = Field(min_length=1)


class OriginalRequest(BaseModel):
    date: date
    time: time
    duration: int
    reason: str
    requested_at: datetime


class ResponseEntry(BaseModel):
    response_type: str
    proposed_date: date | None = None
    proposed_time: time | None = None
    proposed_duration: int | None = None
    message: str | None = None
    responded_at: datetime


class AppointmentPublic(BaseModel):
    id: int
    patient_id: int
    clinic_id: int
    status: str
    appointment_type: str
    original_request: OriginalRequest
    slot_date: date
    slot_time: time
    slot_duration: int
    confirmed_date: date | None = None
    confirmed_time: time | None = None
    confirmed_duration: int | None = None
    cancelled_by: str | None = None
    cancellation_reason: str | None = None
    clinic_responses: list[ResponseEntry] = []
    patient_responses: list[ResponseEntry] = []
    created_at: datetime
    updated_at: datetime


class ConflictResponse(BaseModel):
    code: str
    detail: str
    start: datetime
    end: datetime
    appointment_id: int | None = None
    hold_id: str | None = None


def _entry(r) -> ResponseEntry:
    return ResponseEntry(
        response_type=r.response_type,
        proposed_date=r.proposed_date,
        proposed_time=r.proposed_time,
        proposed_duration=r.proposed_duration,
        message=r.message,
        responded_at=r.responded_at,
    )


def to_public(a: Appointment) -> AppointmentPublic:
    return AppointmentPublic(
        id=a.id,
        patient_id=a.patient_id,
        clinic_id=a.clinic_id,
        status=a.status,
        appointment_type=a.appointment_type,
        original_request=OriginalRequest(
            date=a.requested_date,
            time=a.requested_time,
            duration=a.requested_duration,
            reason=a.reason,
            requested_at=a.requested_at,
        ),
        slot_date=a.slot_date,
        slot_time=a.slot_time,
        slot_duration=a.slot_duration,
        confirmed_date=a.confirmed_date,
        confirmed_time=a.confirmed_time,
        confirmed_duration=a.confirmed_duration,
        cancelled_by=a.cancelled_by,
        cancellation_reason=a.cancellation_reason,
        clinic_responses=[_entry(r) for r in a.clinic_responses],
        patient_responses=[_entry(r) for r in a.patient_responses],
        created_at=a.created_at,
        updated_at=a.updated_at,
    )
