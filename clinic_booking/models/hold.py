from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from clinic_booking.models.interval import Interval


def _new_hold_id() -> str:
    return uuid4().hex


class ReservationHold(SQLModel, table=True):
    __tablename__ = "reservation_holds"
    # At most one hold row per clinic and slot start; expired rows are purged before insert
    __table_args__ = (UniqueConstraint("clinic_id", "start", name="uq_reservation_holds_clinic_start"),)

    id: str = Field(default_factory=_new_hold_id, primary_key=True, max_length=32)
    clinic_id: int = Field(foreign_key="clinics.id", ondelete="CASCADE", index=True)
    patient_id: int = Field(foreign_key="patients.id", ondelete="CASCADE", index=True)
    # Naive clinic-local wall clock, as are all timestamps in the schema
    start: datetime = Field(sa_type=DateTime())
    end: datetime = Field(sa_type=DateTime())
    created_at: datetime = Field(sa_type=DateTime())
    expires_at: datetime = Field(sa_type=DateTime(), index=True)

    @property
    def interval(self) -> Interval:
        return Interval(start=self.start, end=self.end)
