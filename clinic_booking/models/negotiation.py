from datetime import date, datetime, time
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from clinic_booking.models.appointment import AppointmentType


class AppointmentRequest(BaseModel):
    patient_id: int
    clinic_id: int
    requested_date: date
    requested_time: time
    duration: int = 30
    appointment_type: AppointmentType = AppointmentType.CONSULTATION
    reason: str = Field(min_length=1)
    # Hold the patient placed on this slot, consumed on success
    hold_id: str | None = None

    @property
    def start(self) -> datetime:
        return datetime.combine(self.requested_date, self.requested_time)


# --- Clinic responses ---

class ClinicConfirmation(BaseModel):
    response_type: Literal["confirmation"] = "confirmation"
    message: str = ""


class ClinicCounterOffer(BaseModel):
    response_type: Literal["counter-offer"] = "counter-offer"
    proposed_date: date
    proposed_time: time
    proposed_duration: int | None = None
    message: str = ""


class ClinicRejection(BaseModel):
    response_type: Literal["rejection"] = "rejection"
    message: str = Field(min_length=1, description="Reason shown to the patient")


ClinicReply = Annotated[
    Union[ClinicConfirmation, ClinicCounterOffer, ClinicRejection],
    Field(discriminator="response_type"),
]


# --- Patient responses ---

class PatientAccept(BaseModel):
    response_type: Literal["accept"] = "accept"
    message: str | None = None


class PatientCounter(BaseModel):
    response_type: Literal["counter"] = "counter"
    proposed_date: date
    proposed_time: time
    proposed_duration: int | None = None
    message: str | None = None


class PatientDecline(BaseModel):
    response_type: Literal["decline"] = "decline"
    message: str | None = None


PatientReply = Annotated[
    Union[PatientAccept, PatientCounter, PatientDecline],
    Field(discriminator="response_type"),
]


class CancelActor(str, Enum):
    PATIENT = "patient"
    CLINIC = "clinic"
    ADMIN = "admin"
