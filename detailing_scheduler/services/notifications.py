"""
Notification publishing for reservation lifecycle events.

Publishing is best effort: it happens after the reservation change has
committed, and a delivery failure is logged without touching the
reservation.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from detailing_scheduler.config import settings
from detailing_scheduler.services.sms_service import TwilioService, get_twilio_service

logger = logging.getLogger(__name__)

BOOKING_CREATED = "booking_created"
BOOKING_RESCHEDULED = "booking_rescheduled"
BOOKING_CANCELLED = "booking_cancelled"
BOOKING_COMPLETED = "booking_completed"


@dataclass
class ReservationEvent:
    """Structured event handed to the notification collaborator"""

    type: str
    recipient: str
    reservation: dict
    phone: Optional[str] = None
    data: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)


class NotificationPublisher:
    """Base publisher; subclasses implement ``deliver``"""

    def publish(self, event: ReservationEvent) -> None:
        try:
            self.deliver(event)
        except Exception:
            logger.exception(
                "Failed to deliver %s for reservation %s",
                event.type,
                event.reservation.get("id"),
            )

    def deliver(self, event: ReservationEvent) -> None:
        raise NotImplementedError


class SmsNotificationPublisher(NotificationPublisher):
    """Renders events as SMS text and sends them through Twilio"""

    def __init__(self, sms: Optional[TwilioService] = None):
        self._sms = sms

    @property
    def sms(self) -> TwilioService:
        if self._sms is None:
            self._sms = get_twilio_service()
        return self._sms

    def deliver(self, event: ReservationEvent) -> None:
        if not event.phone:
            logger.info("No phone for %s (%s), skipping SMS", event.recipient, event.type)
            return
        self.sms.send_sms(event.phone, render_message(event))
        logger.info("Sent %s SMS for reservation %s", event.type, event.reservation.get("id"))


class RecordingPublisher(NotificationPublisher):
    """Keeps events in memory"""

    def __init__(self):
        self.events: List[ReservationEvent] = []

    def deliver(self, event: ReservationEvent) -> None:
        self.events.append(event)

    def types(self) -> List[str]:
        return [event.type for event in self.events]


def render_message(event: ReservationEvent) -> str:
    r = event.reservation
    when = f"{r['date']} at {r['start_time']}"
    business = event.data.get("business_name") or settings.business_display_name

    if event.type == BOOKING_CREATED:
        return f"Booking confirmed! {r['service_type']} with {business} on {when}."
    if event.type == BOOKING_RESCHEDULED:
        previous = event.data.get("previous", {})
        return (
            f"Your appointment with {business} was moved from "
            f"{previous.get('date')} {previous.get('start_time')} to {when}."
        )
    if event.type == BOOKING_CANCELLED:
        reason = event.data.get("reason")
        suffix = f" Reason: {reason}" if reason else ""
        return f"Your appointment with {business} on {when} was cancelled.{suffix}"
    if event.type == BOOKING_COMPLETED:
        return f"Thanks for visiting {business}! Your {r['service_type']} is complete."
    return f"Update on your appointment with {business} on {when}."


# Global instance
_publisher = None


def get_publisher() -> NotificationPublisher:
    """Get or create the default publisher"""
    global _publisher
    if _publisher is None:
        _publisher = SmsNotificationPublisher()
    return _publisher
