from datetime import date, time
from enum import Enum

from pydantic import BaseModel


class EventKind(str, Enum):
    APPOINTMENT_REQUEST = "appointment_request"
    CONFIRMATION = "confirmation"
    COUNTER_OFFER = "counter_offer"
    REJECTION = "rejection"
    CANCELLATION = "cancellation"


class RecipientType(str, Enum):
    PATIENT = "patient"
    CLINIC = "clinic"


class Recipient(BaseModel):
    recipient_type: RecipientType
    recipient_id: int
    email: str | None = None


class NotificationEvent(BaseModel):
    """Everything a gateway needs to render a message without calling back into the core."""

    kind: EventKind
    appointment_id: int | None
    recipients: list[Recipient]
    title: str
    message: str
    patient_name: str
    clinic_name: str
    slot_date: date
    slot_time: time
    action_required: bool = False
