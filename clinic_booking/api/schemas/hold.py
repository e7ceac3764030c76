from datetime import datetime

from pydantic import BaseModel


class PlaceHoldRequest(BaseModel):
    clinic_id: int
    patient_id: int
    start: datetime
    duration: int = 30
    ttl_minutes: int | None = None


class HoldPublic(BaseModel):
    id: str
    clinic_id: int
    patient_id: int
    start: datetime
    end: datetime
    duration: int
    created_at: datetime
    expires_at: datetime
