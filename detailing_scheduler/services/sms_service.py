"""
SMS Service using Twilio
"""
import logging

from twilio.rest import Client

from detailing_scheduler.config import settings

logger = logging.getLogger(__name__)


class TwilioService:
    """Service to send SMS using Twilio"""

    def __init__(self):
        self.account_sid = settings.twilio_account_sid
        self.auth_token = settings.twilio_auth_token
        self.phone_number = settings.twilio_phone_number
        self.client = None
        self._init_client()

    def _init_client(self):
        """Initialize Twilio client"""
        if self.account_sid and self.auth_token:
            self.client = Client(self.account_sid, self.auth_token)

    @property
    def configured(self) -> bool:
        return self.client is not None

    def send_sms(self, to_number: str, message: str) -> dict:
        """
        Send SMS using Twilio.

        Args:
            to_number: Recipient phone number
            message: Message to send

        Returns:
            dict with SMS status
        """
        if not self.configured:
            logger.debug("Twilio not configured, SMS to %s not sent", to_number)
            return {
                "status": "success",
                "to": to_number,
                "message": message,
                "note": "Twilio not configured - running in test mode",
            }

        sms = self.client.messages.create(body=message, from_=self.phone_number, to=to_number)
        return {"status": "success", "to": to_number, "message": message, "sid": sms.sid}

    def send_reminder_sms(self, user_phone: str, booking_datetime: str) -> dict:
        """Send reminder SMS ahead of a reservation"""
        message = (
            f"Reminder: your detailing appointment is scheduled for {booking_datetime}. "
            "Reply to this message if you need to reschedule."
        )
        return self.send_sms(user_phone, message)

    def send_followup_sms(self, user_phone: str, feedback_link: str = None) -> dict:
        """Send feedback request after a completed reservation"""
        feedback_link = feedback_link or "https://maps.app.goo.gl/review"
        message = f"Thank you for choosing us! Tell us how we did: {feedback_link}"
        return self.send_sms(user_phone, message)


# Global instance
_twilio_service = None


def get_twilio_service() -> TwilioService:
    """Get or create Twilio service instance"""
    global _twilio_service
    if _twilio_service is None:
        _twilio_service = TwilioService()
    return _twilio_service
