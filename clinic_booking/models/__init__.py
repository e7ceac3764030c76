from clinic_booking.models.patient import Patient
from clinic_booking.models.clinic import Clinic
from clinic_booking.models.appointment import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    ClinicResponse,
    PatientResponse,
)
from clinic_booking.models.hold import ReservationHold

__all__ = [
    "Patient",
    "Clinic",
    "Appointment",
    "AppointmentStatus",
    "AppointmentType",
    "ClinicResponse",
    "PatientResponse",
    "ReservationHold",
]
