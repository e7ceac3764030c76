import logging
import re
from datetime import date, datetime, time, timedelta

from pydantic import BaseModel, ConfigDict, model_validator

logger = logging.getLogger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
MINUTES_PER_DAY = 24 * 60

# "9:00 AM - 5:00 PM", "09:00 - 17:00", "9am-5pm"
_HOURS_RE = re.compile(
    r"(\d{1,2}):?(\d{2})?\s*(AM|PM)?\s*-\s*(\d{1,2}):?(\d{2})?\s*(AM|PM)?",
    re.IGNORECASE,
)


class Interval(BaseModel):
    """Half-open time range [start, end) on the clinic's local clock."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _check_order(self) -> "Interval":
        if self.end <= self.start:
            raise ValueError(f"Interval end {self.end} must be after start {self.start}")
        return self

    @classmethod
    def from_start(cls, start: datetime, duration_minutes: int) -> "Interval":
        return cls(start=start, end=start + timedelta(minutes=duration_minutes))

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


def format_minute_of_day(minute: int) -> str:
    return f"{minute // 60:02d}:{minute % 60:02d}"


def _to_24h(hour: int, period: str | None) -> int:
    if period:
        period = period.lower()
        if period == "pm" and hour != 12:
            hour += 12
        elif period == "am" and hour == 12:
            hour = 0
    return hour


class DayHours(BaseModel):
    """Open and close for one weekday as minute-of-day."""

    model_config = ConfigDict(frozen=True)

    open_minute: int
    close_minute: int

    @model_validator(mode="after")
    def _check_range(self) -> "DayHours":
        if not 0 <= self.open_minute < self.close_minute <= MINUTES_PER_DAY:
            raise ValueError(
                f"Opening hours must satisfy 0 <= open < close <= {MINUTES_PER_DAY}, "
                f"got {self.open_minute}-{self.close_minute}"
            )
        return self

    @classmethod
    def parse(cls, text: str) -> "DayHours | None":
        """Parse a human-entered range. Returns None for 'closed' or blank values."""
        if not text or text.strip().lower() == "closed":
            return None
        match = _HOURS_RE.search(text)
        if not match:
            raise ValueError(f"Unrecognised opening hours: {text!r}")
        open_hour = _to_24h(int(match.group(1)), match.group(3))
        close_hour = _to_24h(int(match.group(4)), match.group(6))
        open_minute = open_hour * 60 + int(match.group(2) or 0)
        close_minute = close_hour * 60 + int(match.group(5) or 0)
        return cls(open_minute=open_minute, close_minute=close_minute)

    def open_at(self, d: date) -> datetime:
        return datetime.combine(d, time()) + timedelta(minutes=self.open_minute)

    def close_at(self, d: date) -> datetime:
        return datetime.combine(d, time()) + timedelta(minutes=self.close_minute)

    def contains(self, interval: Interval) -> bool:
        d = interval.start.date()
        return self.open_at(d) <= interval.start and interval.end <= self.close_at(d)

    @property
    def label(self) -> str:
        return f"{format_minute_of_day(self.open_minute)} - {format_minute_of_day(self.close_minute)}"


class OperatingHours(BaseModel):
    """Weekly hours, one entry per weekday (Monday first); None means closed."""

    model_config = ConfigDict(frozen=True)

    days: tuple[DayHours | None, ...]

    @model_validator(mode="after")
    def _check_week(self) -> "OperatingHours":
        if len(self.days) != 7:
            raise ValueError(f"Operating hours need 7 weekday entries, got {len(self.days)}")
        return self

    @classmethod
    def from_mapping(cls, hours: dict[str, str] | None) -> "OperatingHours":
        """Build from a ``{"monday": "09:00 - 17:00", ...}`` mapping.

        Missing weekdays are closed. Entries that cannot be parsed are logged
        and treated as closed so that no phantom slots are offered.
        """
        hours = {k.lower(): v for k, v in (hours or {}).items()}
        days: list[DayHours | None] = []
        for name in WEEKDAYS:
            raw = hours.get(name)
            try:
                days.append(DayHours.parse(raw) if raw else None)
            except ValueError as e:
                logger.warning("Treating %s as closed: %s", name, e)
                days.append(None)
        return cls(days=tuple(days))

    def for_date(self, d: date) -> DayHours | None:
        return self.days[d.weekday()]

    def is_open_on(self, d: date) -> bool:
        return self.for_date(d) is not None
