from fastapi import status
from fastapi.responses import JSONResponse

from clinic_booking.api.schemas.appointment import ConflictResponse
from clinic_booking.core.errors import Conflict


def conflict_response(conflict: Conflict) -> JSONResponse:
    """409 body for a Conflict returned by a service."""
    body = ConflictResponse(
        code=conflict.code,
        detail=conflict.reason,
        start=conflict.start,
        end=conflict.end,
        appointment_id=conflict.appointment_id,
        hold_id=conflict.hold_id,
    )
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=body.model_dump(mode="json"))
