from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, Relationship, SQLModel

from clinic_booking.models.clinic import Clinic
from clinic_booking.models.interval import Interval
from clinic_booking.models.patient import Patient


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    COUNTER_OFFERED = "counter-offered"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no-show"


# Stored status values, for membership tests against the plain string column
TERMINAL_STATUSES = frozenset(
    s.value
    for s in (
        AppointmentStatus.REJECTED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
    )
)
NEGOTIATING_STATUSES = frozenset((AppointmentStatus.PENDING.value, AppointmentStatus.COUNTER_OFFERED.value))


class AppointmentType(str, Enum):
    CONSULTATION = "consultation"
    CLEANING = "cleaning"
    PROCEDURE = "procedure"
    EMERGENCY = "emergency"
    FOLLOW_UP = "follow-up"


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: int | None = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="patients.id", ondelete="CASCADE", index=True)
    clinic_id: int = Field(foreign_key="clinics.id", ondelete="CASCADE", index=True)
    status: str = Field(default=AppointmentStatus.PENDING.value, index=True)
    appointment_type: str = AppointmentType.CONSULTATION.value

    # What the patient originally asked for; never changes after creation
    requested_date: date
    requested_time: time
    requested_duration: int
    reason: str
    requested_at: datetime = Field(sa_type=DateTime())

    # Slot currently on the table: the request, then the latest counter-offer
    slot_date: date = Field(index=True)
    slot_time: time
    slot_duration: int

    confirmed_date: date | None = None
    confirmed_time: time | None = None
    confirmed_duration: int | None = None

    cancelled_by: str | None = None
    cancellation_reason: str | None = None

    created_at: datetime = Field(sa_type=DateTime())
    updated_at: datetime = Field(sa_type=DateTime())

    patient: Optional[Patient] = Relationship(sa_relationship_kwargs={"lazy": "selectin"})
    clinic: Optional[Clinic] = Relationship(sa_relationship_kwargs={"lazy": "selectin"})
    clinic_responses: list["ClinicResponse"] = Relationship(
        back_populates="appointment",
        sa_relationship_kwargs={"lazy": "selectin", "order_by": "ClinicResponse.id"},
    )
    patient_responses: list["PatientResponse"] = Relationship(
        back_populates="appointment",
        sa_relationship_kwargs={"lazy": "selectin", "order_by": "PatientResponse.id"},
    )

    @property
    def slot_start(self) -> datetime:
        return datetime.combine(self.slot_date, self.slot_time)

    @property
    def slot_interval(self) -> Interval:
        return Interval.from_start(self.slot_start, self.slot_duration)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class ClinicResponse(SQLModel, table=True):
    __tablename__ = "clinic_responses"
    id: int | None = Field(default=None, primary_key=True)
    appointment_id: int | None = Field(
        default=None, foreign_key="appointments.id", ondelete="CASCADE", index=True
    )
    # confirmation | counter-offer | rejection | cancellation
    response_type: str
    proposed_date: date | None = None
    proposed_time: time | None = None
    proposed_duration: int | None = None
    message: str = ""
    responded_at: datetime = Field(sa_type=DateTime())

    appointment: Optional[Appointment] = Relationship(back_populates="clinic_responses")


class PatientResponse(SQLModel, table=True):
    __tablename__ = "patient_responses"
    id: int | None = Field(default=None, primary_key=True)
    appointment_id: int | None = Field(
        default=None, foreign_key="appointments.id", ondelete="CASCADE", index=True
    )
    # accept | counter | decline | cancellation
    response_type: str
    proposed_date: date | None = None
    proposed_time: time | None = None
    proposed_duration: int | None = None
    message: str | None = None
    responded_at: datetime = Field(sa_type=DateTime())

    appointment: Optional[Appointment] = Relationship(back_populates="patient_responses")
