from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.core.errors import NotFound, ValidationError
from clinic_booking.models.clinic import Clinic
from clinic_booking.models.patient import Patient


async def get_clinic(
    session: AsyncSession, clinic_id: int, *, for_update: bool = False, require_active: bool = True
) -> Clinic:
    """Load a clinic. ``for_update`` takes a row lock that serialises slot claims for this clinic."""
    q = select(Clinic).where(Clinic.id == clinic_id)
    if for_update:
        q = q.with_for_update()
    result = await session.execute(q)
    clinic = result.scalar_one_or_none()
    if not clinic:
        raise NotFound(f"Clinic {clinic_id} not found")
    if require_active and not clinic.active:
        raise ValidationError("Clinic is not currently accepting appointments")
    return clinic


async def get_patient(session: AsyncSession, patient_id: int) -> Patient:
    patient = await session.get(Patient, patient_id)
    if not patient:
        raise NotFound(f"Patient {patient_id} not found")
    return patient
