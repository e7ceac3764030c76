from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.api.deps import get_notification_gateway, get_session
from clinic_booking.api.routes.conflicts import conflict_response
from clinic_booking.api.schemas.appointment import (
    AppointmentPublic,
    CancelRequest,
    ClinicResponseBody,
    PatientResponseBody,
    to_public,
)
from clinic_booking.core.errors import Conflict
from clinic_booking.models.appointment import AppointmentStatus
from clinic_booking.models.negotiation import AppointmentRequest
from clinic_booking.services.appointment_service import (
    cancel_appointment,
    complete_appointment,
    get_appointment,
    list_appointments,
    mark_no_show,
    request_appointment,
    respond_as_clinic,
    respond_as_patient,
)
from clinic_booking.services.notification_service import NotificationGateway, dispatch_event

router = APIRouter(prefix="/appointments", tags=["appointments"])

_CONFLICT = {status.HTTP_409_CONFLICT: {"description": "Slot unavailable or invalid transition"}}


def _finish(outcome, background_tasks: BackgroundTasks, gateway: NotificationGateway):
    """Turn a service outcome into a response, queueing the notification after the transition."""
    if isinstance(outcome, Conflict):
        return conflict_response(outcome)
    appointment, event = outcome
    background_tasks.add_task(dispatch_event, gateway, event)
    return to_public(appointment)


@router.post(
    "/request",
    response_model=AppointmentPublic,
    status_code=status.HTTP_201_CREATED,
    responses=_CONFLICT,
)
async def create_request(
    body: AppointmentRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    gateway: NotificationGateway = Depends(get_notification_gateway),
):
    outcome = await request_appointment(session, body)
    return _finish(outcome, background_tasks, gateway)


@router.get("/clinic/{clinic_id}", response_model=list[AppointmentPublic])
async def clinic_appointments(
    clinic_id: int,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    from_date: date | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> list[AppointmentPublic]:
    rows = await list_appointments(session, clinic_id=clinic_id, status=status_filter, from_date=from_date)
    return [to_public(a) for a in rows]


@router.get("/patient/{patient_id}", response_model=list[AppointmentPublic])
async def patient_appointments(
    patient_id: int,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    from_date: date | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> list[AppointmentPublic]:
    rows = await list_appointments(session, patient_id=patient_id, status=status_filter, from_date=from_date)
    return [to_public(a) for a in rows]


@router.get("/{appointment_id}", response_model=AppointmentPublic)
async def read_appointment(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
) -> AppointmentPublic:
    return to_public(await get_appointment(session, appointment_id))


@router.post("/{appointment_id}/clinic-response", response_model=AppointmentPublic, responses=_CONFLICT)
async def clinic_response(
    appointment_id: int,
    body: ClinicResponseBody,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    gateway: NotificationGateway = Depends(get_notification_gateway),
):
    outcome = await respond_as_clinic(session, appointment_id, body.root)
    return _finish(outcome, background_tasks, gateway)


@router.post("/{appointment_id}/patient-response", response_model=AppointmentPublic, responses=_CONFLICT)
async def patient_response(
    appointment_id: int,
    body: PatientResponseBody,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    gateway: NotificationGateway = Depends(get_notification_gateway),
):
    outcome = await respond_as_patient(session, appointment_id, body.root)
    return _finish(outcome, background_tasks, gateway)


@router.patch("/{appointment_id}/cancel", response_model=AppointmentPublic, responses=_CONFLICT)
async def cancel(
    appointment_id: int,
    body: CancelRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    gateway: NotificationGateway = Depends(get_notification_gateway),
):
    outcome = await cancel_appointment(session, appointment_id, body.actor, body.reason)
    return _finish(outcome, background_tasks, gateway)


@router.patch("/{appointment_id}/complete", response_model=AppointmentPublic, responses=_CONFLICT)
async def complete(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
) -> AppointmentPublic:
    return to_public(await complete_appointment(session, appointment_id))


@router.patch("/{appointment_id}/no-show", response_model=AppointmentPublic, responses=_CONFLICT)
async def no_show(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
) -> AppointmentPublic:
    return to_public(await mark_no_show(session, appointment_id))
