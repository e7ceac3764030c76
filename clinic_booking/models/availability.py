from datetime import datetime
from enum import Enum

from sqlmodel import SQLModel


class SlotStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    BLOCKED = "blocked"


class TimeSlot(SQLModel):
    start: datetime
    end: datetime
    duration: int
    status: SlotStatus = SlotStatus.AVAILABLE
    appointment_id: int | None = None  # set when booked
    hold_id: str | None = None  # set when blocked by another patient's hold

    @property
    def available(self) -> bool:
        return self.status == SlotStatus.AVAILABLE


class ClinicHoursInfo(SQLModel):
    open: str  # HH:MM
    close: str  # HH:MM


class DayAvailability(SQLModel):
    date: str  # YYYY-MM-DD
    is_open: bool
    clinic_hours: ClinicHoursInfo | None = None
    total_slots: int = 0
    available_slots: int = 0
    booked_slots: int = 0
    time_slots: list[TimeSlot] = []
