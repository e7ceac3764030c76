from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from clinic_booking.models.interval import OperatingHours


class Clinic(SQLModel, table=True):
    __tablename__ = "clinics"
    id: int | None = Field(default=None, primary_key=True)
    name: str
    email: str | None = None
    active: bool = True
    # {"monday": "09:00 - 17:00", "sunday": "closed", ...}
    hours: dict[str, str] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    @property
    def operating_hours(self) -> OperatingHours:
        return OperatingHours.from_mapping(self.hours)
