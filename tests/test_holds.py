from datetime import timedelta

import pytest
from sqlalchemy import select

from clinic_booking.core.errors import Conflict, NotFound, RangeError, ValidationError
from clinic_booking.models import Appointment, AppointmentStatus, ReservationHold
from clinic_booking.services.hold_service import (
    get_live_hold,
    list_patient_holds,
    place_hold,
    purge_expired_holds,
    release_hold,
)
from tests.conftest import NOW, at, days_from_today

TOMORROW = days_from_today(1)


@pytest.mark.asyncio
async def test_place_hold(session, clinic, patients):
    ada, _ = patients
    hold = await place_hold(session, clinic.id, at(TOMORROW, "10:00"), 30, ada.id, now=NOW)
    await session.commit()

    assert isinstance(hold, ReservationHold)
    assert hold.end == at(TOMORROW, "10:30")
    assert hold.expires_at == NOW + timedelta(minutes=10)
    assert [h.id for h in await list_patient_holds(session, ada.id, now=NOW)] == [hold.id]


@pytest.mark.asyncio
async def test_second_hold_on_same_slot_conflicts(session, clinic, patients):
    ada, alan = patients
    first = await place_hold(session, clinic.id, at(TOMORROW, "10:00"), 30, ada.id, now=NOW)
    await session.commit()

    outcome = await place_hold(session, clinic.id, at(TOMORROW, "10:15"), 30, alan.id, now=NOW)
    assert isinstance(outcome, Conflict)
    assert outcome.hold_id == first.id
    assert outcome.appointment_id is None


@pytest.mark.asyncio
async def test_hold_can_be_taken_after_expiry(session, clinic, patients):
    ada, alan = patients
    await place_hold(session, clinic.id, at(TOMORROW, "10:00"), 30, ada.id, ttl_minutes=5, now=NOW)
    await session.commit()

    later = NOW + timedelta(minutes=5)
    hold = await place_hold(session, clinic.id, at(TOMORROW, "10:00"), 30, alan.id, now=later)
    await session.commit()

    assert isinstance(hold, ReservationHold)
    assert hold.patient_id == alan.id
    rows = (await session.execute(select(ReservationHold))).scalars().all()
    assert [r.patient_id for r in rows] == [alan.id]


@pytest.mark.asyncio
async def test_hold_on_booked_slot_conflicts(session, clinic, patients):
    ada, alan = patients
    appointment = Appointment(
        patient_id=ada.id,
        clinic_id=clinic.id,
        status=AppointmentStatus.CONFIRMED.value,
        requested_date=TOMORROW,
        requested_time=at(TOMORROW, "11:00").time(),
        requested_duration=60,
        reason="Crown",
        requested_at=NOW,
        slot_date=TOMORROW,
        slot_time=at(TOMORROW, "11:00").time(),
        slot_duration=60,
        created_at=NOW,
        updated_at=NOW,
    )
    session.add(appointment)
    await session.commit()

    outcome = await place_hold(session, clinic.id, at(TOMORROW, "11:30"), 30, alan.id, now=NOW)
    assert isinstance(outcome, Conflict)
    assert outcome.appointment_id == appointment.id
    # Touching the end of the booking is fine
    hold = await place_hold(session, clinic.id, at(TOMORROW, "12:00"), 30, alan.id, now=NOW)
    assert isinstance(hold, ReservationHold)


@pytest.mark.asyncio
async def test_hold_outside_opening_hours(session, clinic, patients):
    ada, _ = patients
    with pytest.raises(ValidationError):
        await place_hold(session, clinic.id, at(TOMORROW, "16:45"), 30, ada.id, now=NOW)
    with pytest.raises(ValidationError):
        await place_hold(session, clinic.id, at(days_from_today(6), "10:00"), 30, ada.id, now=NOW)


@pytest.mark.asyncio
async def test_hold_rejects_bad_input(session, clinic, patients):
    ada, _ = patients
    with pytest.raises(RangeError):
        await place_hold(session, clinic.id, at(TOMORROW, "10:00"), 30, ada.id, ttl_minutes=0, now=NOW)
    with pytest.raises(RangeError):
        await place_hold(session, clinic.id, at(TOMORROW, "10:00"), 5, ada.id, now=NOW)
    with pytest.raises(RangeError):
        await place_hold(session, clinic.id, at(NOW.date(), "09:00"), 30, ada.id, now=at(NOW.date(), "09:30"))
    with pytest.raises(NotFound):
        await place_hold(session, 999, at(TOMORROW, "10:00"), 30, ada.id, now=NOW)


@pytest.mark.asyncio
async def test_release_is_idempotent(session, clinic, patients):
    ada, alan = patients
    hold = await place_hold(session, clinic.id, at(TOMORROW, "10:00"), 30, ada.id, now=NOW)
    await session.commit()

    await release_hold(session, hold.id)
    await release_hold(session, hold.id)
    await release_hold(session, "does-not-exist")
    await session.commit()

    again = await place_hold(session, clinic.id, at(TOMORROW, "10:00"), 30, alan.id, now=NOW)
    assert isinstance(again, ReservationHold)


@pytest.mark.asyncio
async def test_expired_hold_is_not_live(session, clinic, patients):
    ada, _ = patients
    hold = await place_hold(session, clinic.id, at(TOMORROW, "10:00"), 30, ada.id, now=NOW)
    await session.commit()

    assert (await get_live_hold(session, hold.id, now=NOW + timedelta(minutes=9))) is not None
    assert (await get_live_hold(session, hold.id, now=NOW + timedelta(minutes=10))) is None
    assert await list_patient_holds(session, ada.id, now=NOW + timedelta(minutes=10)) == []


@pytest.mark.asyncio
async def test_purge_expired_holds(session, clinic, patients):
    ada, alan = patients
    await place_hold(session, clinic.id, at(TOMORROW, "10:00"), 30, ada.id, ttl_minutes=5, now=NOW)
    await place_hold(session, clinic.id, at(TOMORROW, "11:00"), 30, alan.id, ttl_minutes=30, now=NOW)
    await session.commit()

    assert await purge_expired_holds(session, now=NOW + timedelta(minutes=6)) == 1
    await session.commit()
    rows = (await session.execute(select(ReservationHold))).scalars().all()
    assert [r.patient_id for r in rows] == [alan.id]
