from fastapi import Request

from clinic_booking.core.db import get_session
from clinic_booking.services.notification_service import NotificationGateway

__all__ = ["get_session", "get_notification_gateway"]


def get_notification_gateway(request: Request) -> NotificationGateway:
    """Gateway built by the application lifespan; see ``clinic_booking.main``."""
    return request.app.state.notification_gateway
