from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.api.deps import get_session
from clinic_booking.models.availability import DayAvailability, TimeSlot
from clinic_booking.services.availability_service import (
    get_day_availability,
    get_next_available_slot,
    get_weekly_availability,
)

router = APIRouter(prefix="/clinics/{clinic_id}/availability", tags=["availability"])


@router.get("", response_model=DayAvailability)
async def day_availability(
    clinic_id: int,
    date_param: date = Query(..., alias="date"),
    duration: int | None = Query(None),
    buffer: int | None = Query(None),
    include_unavailable: bool = Query(False),
    max_advance_days: int | None = Query(None),
    patient_id: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> DayAvailability:
    """Slots for one day (clinic-local date). Booked and held slots only appear with include_unavailable."""
    return await get_day_availability(
        session,
        clinic_id,
        date_param,
        duration=duration,
        buffer=buffer,
        include_unavailable=include_unavailable,
        max_advance_days=max_advance_days,
        patient_id=patient_id,
    )


@router.get("/weekly", response_model=list[DayAvailability])
async def weekly_availability(
    clinic_id: int,
    start_date: date = Query(...),
    days: int = Query(7),
    duration: int | None = Query(None),
    buffer: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> list[DayAvailability]:
    return await get_weekly_availability(
        session, clinic_id, start_date, days=days, duration=duration, buffer=buffer
    )


@router.get("/next", response_model=TimeSlot | None)
async def next_available(
    clinic_id: int,
    duration: int | None = Query(None),
    start_date: date | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> TimeSlot | None:
    return await get_next_available_slot(session, clinic_id, duration=duration, start_from=start_date)
