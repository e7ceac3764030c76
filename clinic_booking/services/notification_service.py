import logging
from typing import Protocol

from clinic_booking.models.notification import NotificationEvent

logger = logging.getLogger(__name__)


class NotificationGateway(Protocol):
    """Delivers transition events to patients and clinics (email, push, in-app...)."""

    def send(self, event: NotificationEvent) -> None: ...


class LoggingNotificationGateway:
    """Gateway that only records events in the log. Used until a real transport is wired in."""

    def __init__(self, site_name: str = "Clinic Booking") -> None:
        self.site_name = site_name

    def send(self, event: NotificationEvent) -> None:
        for recipient in event.recipients:
            logger.info(
                "[%s] %s -> %s %s: %s | %s",
                self.site_name,
                event.kind.value,
                recipient.recipient_type.value,
                recipient.recipient_id,
                event.title,
                event.message,
            )


def dispatch_event(gateway: NotificationGateway, event: NotificationEvent) -> None:
    """Fire-and-forget delivery (call from background task). Failures are logged, never raised."""
    try:
        gateway.send(event)
    except Exception as e:
        logger.exception(
            "Failed to deliver %s notification for appointment %s: %s",
            event.kind.value, event.appointment_id, e,
        )
