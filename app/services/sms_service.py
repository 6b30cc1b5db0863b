"""
SMS Service
Twilio integration for appointment reminders and notices
"""

import logging
from typing import Optional
from twilio.rest import Client as TwilioClient
from twilio.base.exceptions import TwilioRestException

from app.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class SMSResult:
    """Result of SMS send operation"""
    def __init__(
        self,
        success: bool,
        message_id: Optional[str] = None,
        error: Optional[str] = None
    ):
        self.success = success
        self.message_id = message_id
        self.error = error


def normalize_phone(phone: Optional[str], default_country_code: str = "1") -> Optional[str]:
    """Normalize phone number to E.164 format"""
    if not phone:
        return None

    if phone.strip().startswith("+"):
        digits = "".join(c for c in phone if c.isdigit())
        return f"+{digits}" if len(digits) >= 10 else None

    digits = "".join(c for c in phone if c.isdigit())
    if len(digits) == 10:
        return f"+{default_country_code}{digits}"
    if len(digits) == 11 and digits.startswith(default_country_code):
        return f"+{digits}"
    return None


class SMSService:
    """Twilio SMS service"""

    def __init__(self, client: Optional[TwilioClient] = None):
        self.from_number = settings.TWILIO_PHONE_NUMBER
        self.client = client
        if self.client is None and settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN:
            self.client = TwilioClient(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)

    @property
    def is_configured(self) -> bool:
        """Check if Twilio is configured"""
        return self.client is not None and bool(self.from_number)

    async def send_sms(self, to_phone: str, body: str) -> SMSResult:
        """Send a single SMS"""
        if not self.is_configured:
            logger.warning("Twilio not configured, skipping SMS")
            return SMSResult(success=False, error="SMS service not configured")

        phone = normalize_phone(to_phone)
        if not phone:
            return SMSResult(success=False, error="Invalid phone number")

        try:
            message = self.client.messages.create(
                body=body,
                from_=self.from_number,
                to=phone
            )
        except TwilioRestException as e:
            logger.error(f"Twilio error sending to {phone}: {e}")
            return SMSResult(success=False, error=str(e))

        logger.info(f"SMS sent to {phone}: {message.sid}")
        return SMSResult(success=True, message_id=message.sid)


def format_reminder_sms(
    client_first_name: str,
    pet_name: str,
    service_name: str,
    date: str,
    time: str,
    business_name: str
) -> str:
    return (
        f"Hi {client_first_name}, reminder: {pet_name}'s {service_name} at "
        f"{business_name} is on {date} at {time}. Reply or call us to reschedule."
    )


# Singleton instance
_sms_service: Optional[SMSService] = None


def get_sms_service() -> SMSService:
    """Get SMS service singleton"""
    global _sms_service
    if _sms_service is None:
        _sms_service = SMSService()
    return _sms_service
