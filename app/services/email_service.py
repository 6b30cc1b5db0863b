"""
Email Service
SendGrid integration for transactional email
"""

import logging
from typing import Optional
import httpx

from app.config import get_settings
from app.services import email_templates

logger = logging.getLogger(__name__)
settings = get_settings()


class EmailResult:
    """Result of email send operation"""
    def __init__(
        self,
        success: bool,
        message_id: Optional[str] = None,
        error: Optional[str] = None
    ):
        self.success = success
        self.message_id = message_id
        self.error = error


class EmailService:
    """SendGrid email service"""

    SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.SENDGRID_API_KEY
        self.from_email = settings.SENDGRID_FROM_EMAIL
        self.from_name = settings.SENDGRID_FROM_NAME

    @property
    def is_configured(self) -> bool:
        """Check if SendGrid is configured"""
        return bool(self.api_key)

    def _build_payload(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str],
        to_name: Optional[str]
    ) -> dict:
        recipient = {"email": to_email}
        if to_name:
            recipient["name"] = to_name

        content = []
        if text_content:
            content.append({"type": "text/plain", "value": text_content})
        content.append({"type": "text/html", "value": html_content})

        return {
            "personalizations": [{"to": [recipient]}],
            "from": {"email": self.from_email, "name": self.from_name},
            "subject": subject,
            "content": content
        }

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        to_name: Optional[str] = None
    ) -> EmailResult:
        """
        Send email via SendGrid

        Never raises; failures come back as an unsuccessful EmailResult.
        """
        if not self.is_configured:
            logger.warning(f"SendGrid not configured, skipping email to {to_email}")
            return EmailResult(success=False, error="Email service not configured")

        payload = self._build_payload(to_email, subject, html_content, text_content, to_name)

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.SENDGRID_URL,
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json"
                    },
                    timeout=30.0
                )
        except httpx.TimeoutException:
            logger.error("SendGrid request timeout")
            return EmailResult(success=False, error="Request timeout")
        except httpx.HTTPError as e:
            logger.error(f"Email send error: {e}")
            return EmailResult(success=False, error=str(e))

        if response.status_code in (200, 201, 202):
            message_id = response.headers.get("X-Message-Id")
            logger.info(f"Email sent to {to_email}: {message_id}")
            return EmailResult(success=True, message_id=message_id)

        error_msg = f"HTTP {response.status_code}"
        try:
            errors = response.json().get("errors", [])
            if errors:
                error_msg = errors[0].get("message", error_msg)
        except ValueError:
            pass
        logger.error(f"SendGrid error: {error_msg}")
        return EmailResult(success=False, error=error_msg)

    async def send_otp(
        self,
        to_email: str,
        code: str,
        otp_type: str,
        name: Optional[str] = None
    ) -> EmailResult:
        subject, html = email_templates.render_otp_email(
            name, code, otp_type, settings.OTP_EXPIRE_MINUTES
        )
        text = f"Your {settings.APP_NAME} code is {code}. It expires in {settings.OTP_EXPIRE_MINUTES} minutes."
        return await self.send_email(to_email, subject, html, text_content=text, to_name=name)

    async def send_password_reset(
        self,
        to_email: str,
        name: str,
        token: str,
        expires_minutes: int
    ) -> EmailResult:
        reset_url = f"{settings.FRONTEND_URL}/reset-password?token={token}"
        html = email_templates.render_password_reset_email(name, reset_url, expires_minutes)
        return await self.send_email(
            to_email,
            f"{settings.APP_NAME}: reset your password",
            html,
            text_content=f"Reset your password: {reset_url}",
            to_name=name
        )

    async def send_welcome(
        self,
        to_email: str,
        name: str,
        temp_password: Optional[str] = None,
        business_name: Optional[str] = None
    ) -> EmailResult:
        html = email_templates.render_welcome_email(name, to_email, temp_password, business_name)
        return await self.send_email(
            to_email, f"Welcome to {settings.APP_NAME}", html, to_name=name
        )

    async def send_appointment_email(
        self,
        kind: str,
        to_email: str,
        client_name: str,
        pet_name: str,
        service_name: str,
        date: str,
        time: str,
        business_name: str,
        reason: Optional[str] = None,
        fee: Optional[float] = None
    ) -> EmailResult:
        """Booking confirmation, reminder or cancellation"""
        subject, html = email_templates.render_appointment_email(
            kind, client_name, pet_name, service_name, date, time, business_name,
            reason=reason, fee=fee
        )
        return await self.send_email(to_email, subject, html, to_name=client_name)

    async def send_invoice(
        self,
        to_email: str,
        client_name: str,
        invoice_number: str,
        total: float,
        balance_due: float,
        due_date: Optional[str],
        business_name: str,
        currency: str = "USD"
    ) -> EmailResult:
        html = email_templates.render_invoice_email(
            client_name, invoice_number, total, balance_due, due_date, business_name, currency
        )
        return await self.send_email(
            to_email,
            f"Invoice {invoice_number} from {business_name}",
            html,
            to_name=client_name
        )

    async def send_inquiry_notification(
        self,
        to_email: str,
        business_name: str,
        customer_name: str,
        customer_phone: str,
        customer_email: Optional[str],
        service_interest: str,
        message: str
    ) -> EmailResult:
        """Tell a business about a contact request from its listing"""
        html = email_templates.render_inquiry_email(
            business_name, customer_name, customer_phone, customer_email, service_interest, message
        )
        return await self.send_email(to_email, f"New inquiry from {customer_name}", html, to_name=business_name)


# Singleton instance
_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get email service singleton"""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
