from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.api.deps import get_session
from clinic_booking.api.routes.conflicts import conflict_response
from clinic_booking.api.schemas.hold import HoldPublic, PlaceHoldRequest
from clinic_booking.core.errors import Conflict
from clinic_booking.models.hold import ReservationHold
from clinic_booking.services.hold_service import list_patient_holds, place_hold, release_hold

router = APIRouter(prefix="/holds", tags=["holds"])


def _to_public(h: ReservationHold) -> HoldPublic:
    return HoldPublic(
        id=h.id,
        clinic_id=h.clinic_id,
        patient_id=h.patient_id,
        start=h.start,
        end=h.end,
        duration=h.interval.duration_minutes,
        created_at=h.created_at,
        expires_at=h.expires_at,
    )


@router.post(
    "",
    response_model=HoldPublic,
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_409_CONFLICT: {"description": "Slot already booked or held"}},
)
async def create_hold(
    body: PlaceHoldRequest,
    session: AsyncSession = Depends(get_session),
) -> HoldPublic | JSONResponse:
    outcome = await place_hold(
        session,
        body.clinic_id,
        body.start,
        body.duration,
        body.patient_id,
        ttl_minutes=body.ttl_minutes,
    )
    if isinstance(outcome, Conflict):
        return conflict_response(outcome)
    return _to_public(outcome)


@router.get("/patient/{patient_id}", response_model=list[HoldPublic])
async def patient_holds(
    patient_id: int,
    session: AsyncSession = Depends(get_session),
) -> list[HoldPublic]:
    return [_to_public(h) for h in await list_patient_holds(session, patient_id)]


@router.delete("/{hold_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_hold(
    hold_id: str,
    session: AsyncSession = Depends(get_session),
) -> None:
    await release_hold(session, hold_id)
