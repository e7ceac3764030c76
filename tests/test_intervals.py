from datetime import date, datetime

import pytest
from pydantic import ValidationError

from clinic_booking.models.interval import DayHours, Interval, OperatingHours
from clinic_booking.services.conflict_service import (
    BookingInterval,
    HeldInterval,
    find_booking_conflict,
    find_hold_conflict,
    overlaps,
)


def iv(start: str, end: str) -> Interval:
    d = "2026-10-19"
    return Interval(start=datetime.fromisoformat(f"{d}T{start}"), end=datetime.fromisoformat(f"{d}T{end}"))


class TestOverlap:
    def test_partial_overlap(self):
        assert overlaps(iv("09:00", "10:00"), iv("09:30", "10:30"))
        assert overlaps(iv("09:30", "10:30"), iv("09:00", "10:00"))

    def test_containment(self):
        assert overlaps(iv("09:00", "12:00"), iv("10:00", "11:00"))
        assert overlaps(iv("10:00", "11:00"), iv("09:00", "12:00"))

    def test_identical(self):
        assert overlaps(iv("10:00", "10:30"), iv("10:00", "10:30"))

    def test_touching_endpoints_do_not_conflict(self):
        assert not overlaps(iv("09:30", "10:00"), iv("10:00", "10:30"))
        assert not overlaps(iv("10:30", "11:00"), iv("10:00", "10:30"))

    def test_disjoint(self):
        assert not overlaps(iv("09:00", "10:00"), iv("11:00", "12:00"))


def test_interval_rejects_empty_or_reversed_range():
    with pytest.raises(ValidationError):
        iv("10:00", "10:00")
    with pytest.raises(ValidationError):
        iv("10:00", "09:00")


def test_interval_from_start():
    interval = Interval.from_start(datetime(2026, 10, 19, 16, 45), 30)
    assert interval.end == datetime(2026, 10, 19, 17, 15)
    assert interval.duration_minutes == 30


def test_find_booking_conflict_returns_first_overlap():
    bookings = [
        BookingInterval(interval=iv("09:00", "09:30"), appointment_id=1),
        BookingInterval(interval=iv("10:00", "10:30"), appointment_id=2),
    ]
    assert find_booking_conflict(iv("10:15", "10:45"), bookings).appointment_id == 2
    assert find_booking_conflict(iv("09:30", "10:00"), bookings) is None


def test_find_hold_conflict_skips_own_holds():
    holds = [HeldInterval(interval=iv("10:00", "10:30"), hold_id="h1", patient_id=7)]
    assert find_hold_conflict(iv("10:00", "10:30"), holds).hold_id == "h1"
    assert find_hold_conflict(iv("10:00", "10:30"), holds, ignore_patient_id=7) is None


class TestDayHoursParsing:
    def test_24h(self):
        hours = DayHours.parse("09:00 - 17:00")
        assert (hours.open_minute, hours.close_minute) == (540, 1020)

    def test_12h(self):
        hours = DayHours.parse("9:30 AM - 5:00 PM")
        assert (hours.open_minute, hours.close_minute) == (570, 1020)

    def test_noon_and_midnight(self):
        hours = DayHours.parse("12:00 AM - 12:00 PM")
        assert (hours.open_minute, hours.close_minute) == (0, 720)

    def test_closed(self):
        assert DayHours.parse("Closed") is None
        assert DayHours.parse("") is None

    def test_garbage(self):
        with pytest.raises(ValueError):
            DayHours.parse("by appointment")

    def test_open_must_precede_close(self):
        with pytest.raises(ValueError):
            DayHours.parse("17:00 - 09:00")

    def test_label(self):
        assert DayHours.parse("9am - 5pm").label == "09:00 - 17:00"


def test_operating_hours_from_mapping():
    hours = OperatingHours.from_mapping(
        {"Monday": "09:00 - 17:00", "tuesday": "whenever", "sunday": "closed"}
    )
    assert hours.for_date(date(2026, 10, 19)).open_minute == 540  # Monday
    # Unparseable and missing days are closed
    assert not hours.is_open_on(date(2026, 10, 20))
    assert not hours.is_open_on(date(2026, 10, 21))
    assert not hours.is_open_on(date(2026, 10, 25))


def test_operating_hours_needs_seven_days():
    with pytest.raises(ValidationError):
        OperatingHours(days=(None,) * 6)


def test_day_hours_contains():
    hours = DayHours.parse("09:00 - 17:00")
    assert hours.contains(iv("16:30", "17:00"))
    assert not hours.contains(iv("16:45", "17:15"))
    assert not hours.contains(iv("08:45", "09:15"))
