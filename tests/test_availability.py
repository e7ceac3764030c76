from datetime import datetime, time, timedelta

import pytest

from clinic_booking.core.errors import NotFound, RangeError, WindowExceeded
from clinic_booking.models import Appointment, AppointmentStatus
from clinic_booking.models.availability import SlotStatus
from clinic_booking.models.interval import Interval, OperatingHours
from clinic_booking.services.availability_service import (
    compute_day,
    get_day_availability,
    get_next_available_slot,
    get_weekly_availability,
    is_slot_available,
)
from clinic_booking.services.conflict_service import BookingInterval, HeldInterval
from tests.conftest import NOW, TODAY, WEEKDAY_HOURS, at, days_from_today

HOURS = OperatingHours.from_mapping(WEEKDAY_HOURS)
TOMORROW = days_from_today(1)  # Tuesday
SUNDAY = days_from_today(6)


def booking(d, start: str, end: str, appointment_id: int = 1) -> BookingInterval:
    return BookingInterval(interval=Interval(start=at(d, start), end=at(d, end)), appointment_id=appointment_id)


def starts(day) -> list[str]:
    return [s.start.strftime("%H:%M") for s in day.time_slots]


class TestComputeDay:
    def test_first_slot_at_opening_when_asked_before_open(self):
        day = compute_day(HOURS, [], TODAY, 30, 15, now=NOW)
        assert day.is_open
        assert day.time_slots[0].start == at(TODAY, "09:00")
        assert starts(day)[:3] == ["09:00", "09:45", "10:30"]

    def test_slot_count_with_buffer(self):
        day = compute_day(HOURS, [], TOMORROW, 30, 15, now=NOW)
        assert day.total_slots == 11
        assert starts(day)[-1] == "16:30"
        assert day.time_slots[-1].end == at(TOMORROW, "17:00")

    def test_slot_count_without_buffer(self):
        day = compute_day(HOURS, [], TOMORROW, 30, 0, now=NOW)
        assert day.total_slots == 16
        assert day.available_slots == 16

    def test_confirmed_booking_marks_only_its_slot(self):
        day = compute_day(
            HOURS, [booking(TOMORROW, "10:00", "10:30", 42)], TOMORROW, 30, 0,
            include_unavailable=True, now=NOW,
        )
        by_start = {s.start.strftime("%H:%M"): s for s in day.time_slots}
        assert by_start["10:00"].status == SlotStatus.BOOKED
        assert by_start["10:00"].appointment_id == 42
        assert by_start["09:30"].status == SlotStatus.AVAILABLE
        assert by_start["10:30"].status == SlotStatus.AVAILABLE
        assert day.booked_slots == 1
        assert day.available_slots == 15

    def test_unavailable_slots_hidden_by_default_but_counted(self):
        day = compute_day(HOURS, [booking(TOMORROW, "10:00", "10:30")], TOMORROW, 30, 0, now=NOW)
        assert "10:00" not in starts(day)
        assert day.total_slots == 16
        assert day.booked_slots == 1
        assert len(day.time_slots) == day.available_slots == 15

    def test_other_patients_hold_blocks_slot(self):
        hold = HeldInterval(
            interval=Interval(start=at(TOMORROW, "11:00"), end=at(TOMORROW, "11:30")),
            hold_id="abc",
            patient_id=1,
        )
        day = compute_day(HOURS, [], TOMORROW, 30, 0, include_unavailable=True, now=NOW, holds=[hold])
        blocked = [s for s in day.time_slots if s.status == SlotStatus.BLOCKED]
        assert [s.hold_id for s in blocked] == ["abc"]
        # The holder sees its own slot as free
        own = compute_day(HOURS, [], TOMORROW, 30, 0, now=NOW, holds=[hold], ignore_patient_id=1)
        assert own.available_slots == 16

    def test_today_rounds_up_to_next_grid_point(self):
        day = compute_day(HOURS, [], TODAY, 30, 15, now=at(TODAY, "09:10"))
        assert starts(day)[0] == "09:45"

    def test_today_on_grid_point_keeps_it(self):
        day = compute_day(HOURS, [], TODAY, 30, 15, now=at(TODAY, "10:30"))
        assert starts(day)[0] == "10:30"

    def test_today_after_last_slot_is_empty(self):
        day = compute_day(HOURS, [], TODAY, 30, 15, now=at(TODAY, "16:31"))
        assert day.is_open
        assert day.total_slots == 0
        assert day.time_slots == []

    def test_closed_day(self):
        day = compute_day(HOURS, [], SUNDAY, 30, 15, now=NOW)
        assert not day.is_open
        assert day.clinic_hours is None
        assert day.time_slots == []

    def test_twelve_hour_hours_are_understood(self):
        wednesday = days_from_today(2)
        day = compute_day(HOURS, [], wednesday, 30, 15, now=NOW)
        assert day.clinic_hours.open == "09:00"
        assert day.clinic_hours.close == "17:00"
        assert day.total_slots == 11

    def test_slots_lie_inside_hours_and_do_not_overlap(self):
        day = compute_day(HOURS, [], days_from_today(5), 45, 10, now=NOW)  # Saturday 10-14
        previous_end = None
        for slot in day.time_slots:
            assert slot.end - slot.start == timedelta(minutes=45)
            assert slot.start.time() >= time(10, 0)
            assert slot.end.time() <= time(14, 0)
            if previous_end:
                assert slot.start - previous_end == timedelta(minutes=10)
            previous_end = slot.end

    def test_same_input_gives_same_output(self):
        bookings = [booking(TOMORROW, "13:00", "13:30")]
        first = compute_day(HOURS, bookings, TOMORROW, 30, 15, now=NOW)
        second = compute_day(HOURS, bookings, TOMORROW, 30, 15, now=NOW)
        assert first == second


class TestValidation:
    def test_window_exceeded(self):
        with pytest.raises(WindowExceeded):
            compute_day(HOURS, [], days_from_today(91), 30, 15, max_advance_days=90, now=NOW)

    def test_last_day_of_window_is_allowed(self):
        compute_day(HOURS, [], days_from_today(90), 30, 15, max_advance_days=90, now=NOW)

    def test_past_date(self):
        with pytest.raises(RangeError):
            compute_day(HOURS, [], days_from_today(-1), 30, 15, now=NOW)

    @pytest.mark.parametrize("duration", [14, 241])
    def test_duration_out_of_range(self, duration):
        with pytest.raises(RangeError):
            compute_day(HOURS, [], TOMORROW, duration, 15, now=NOW)

    @pytest.mark.parametrize("buffer", [-1, 61])
    def test_buffer_out_of_range(self, buffer):
        with pytest.raises(RangeError):
            compute_day(HOURS, [], TOMORROW, 30, buffer, now=NOW)

    def test_negative_window(self):
        with pytest.raises(RangeError):
            compute_day(HOURS, [], TOMORROW, 30, 15, max_advance_days=-1, now=NOW)


def _confirmed(clinic, patient, d, hhmm: str) -> Appointment:
    start = datetime.combine(d, time.fromisoformat(hhmm))
    return Appointment(
        patient_id=patient.id,
        clinic_id=clinic.id,
        status=AppointmentStatus.CONFIRMED.value,
        requested_date=d,
        requested_time=start.time(),
        requested_duration=30,
        reason="Check-up",
        requested_at=NOW,
        slot_date=d,
        slot_time=start.time(),
        slot_duration=30,
        confirmed_date=d,
        confirmed_time=start.time(),
        confirmed_duration=30,
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.mark.asyncio
async def test_day_availability_reads_confirmed_bookings(session, clinic, patients):
    ada, _ = patients
    session.add(_confirmed(clinic, ada, TOMORROW, "10:00"))
    await session.commit()

    day = await get_day_availability(session, clinic.id, TOMORROW, 30, 0, include_unavailable=True, now=NOW)
    booked = [s for s in day.time_slots if s.status == SlotStatus.BOOKED]
    assert [s.start for s in booked] == [at(TOMORROW, "10:00")]


@pytest.mark.asyncio
async def test_pending_requests_do_not_block_slots(session, clinic, patients):
    ada, _ = patients
    pending = _confirmed(clinic, ada, TOMORROW, "10:00")
    pending.status = AppointmentStatus.PENDING.value
    session.add(pending)
    await session.commit()

    day = await get_day_availability(session, clinic.id, TOMORROW, 30, 0, now=NOW)
    assert day.booked_slots == 0


@pytest.mark.asyncio
async def test_day_availability_unknown_clinic(session):
    with pytest.raises(NotFound):
        await get_day_availability(session, 999, TOMORROW, now=NOW)


@pytest.mark.asyncio
async def test_weekly_availability(session, clinic):
    week = await get_weekly_availability(session, clinic.id, TODAY, days=7, duration=30, buffer=15, now=NOW)
    assert [d.date for d in week] == [days_from_today(i).isoformat() for i in range(7)]
    assert [d.is_open for d in week] == [True] * 6 + [False]


@pytest.mark.asyncio
async def test_weekly_availability_rejects_bad_day_count(session, clinic):
    with pytest.raises(RangeError):
        await get_weekly_availability(session, clinic.id, TODAY, days=0, now=NOW)


@pytest.mark.asyncio
async def test_next_available_slot_skips_booked_and_closed(session, clinic, patients):
    ada, _ = patients
    saturday = days_from_today(5)
    slot = await get_next_available_slot(session, clinic.id, 30, start_from=SUNDAY, now=NOW)
    assert slot.start == at(days_from_today(7), "09:00")

    session.add(_confirmed(clinic, ada, saturday, "10:00"))
    await session.commit()
    slot = await get_next_available_slot(session, clinic.id, 30, start_from=saturday, now=NOW)
    assert slot.start == at(saturday, "10:45")


@pytest.mark.asyncio
async def test_is_slot_available(session, clinic, patients):
    ada, _ = patients
    session.add(_confirmed(clinic, ada, TOMORROW, "10:00"))
    await session.commit()

    assert await is_slot_available(session, clinic.id, at(TOMORROW, "10:30"), 30, now=NOW)
    assert not await is_slot_available(session, clinic.id, at(TOMORROW, "10:15"), 30, now=NOW)
    assert not await is_slot_available(session, clinic.id, at(TOMORROW, "16:45"), 30, now=NOW)
    assert not await is_slot_available(session, clinic.id, at(SUNDAY, "10:00"), 30, now=NOW)
