"""
OTP Service
Email one-time passcodes for passwordless login, sign-up and password reset
"""

import logging
from datetime import timedelta
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.config import get_settings
from app.models.common import as_utc, utc_now
from app.models.otp import OTP, OTPType
from app.services.email_service import EmailService, get_email_service
from app.utils.security import generate_otp_code

logger = logging.getLogger(__name__)
settings = get_settings()


class OTPError(Exception):
    """OTP issue or verification failure"""
    def __init__(self, code: str, message: str, status_code: int = 400, retry_after: Optional[int] = None):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.retry_after = retry_after
        super().__init__(message)


class OTPService:
    """Issues and verifies one-time passcodes"""

    def __init__(self, db: AsyncIOMotorDatabase, email_service: Optional[EmailService] = None):
        self.db = db
        self.collection = db.otps
        self.email_service = email_service or get_email_service()

    async def _check_cooldown(self, email: str, otp_type: OTPType) -> None:
        latest = await self.collection.find_one(
            {"email": email, "type": otp_type.value},
            sort=[("created_at", -1)]
        )
        if not latest:
            return

        elapsed = (utc_now() - as_utc(latest["created_at"])).total_seconds()
        cooldown = settings.OTP_RESEND_COOLDOWN_SECONDS
        if elapsed < cooldown:
            wait = int(cooldown - elapsed) + 1
            raise OTPError(
                "OTP_COOLDOWN",
                f"Please wait {wait} seconds before requesting a new code",
                429,
                retry_after=wait
            )

    async def send_otp(self, email: str, otp_type: OTPType, name: Optional[str] = None) -> OTP:
        """
        Generate, store and email a code

        Older codes of the same type are replaced. If the email cannot be
        delivered the new code is removed again.
        """
        email = email.lower()
        await self._check_cooldown(email, otp_type)

        otp = OTP(
            email=email,
            code=generate_otp_code(settings.OTP_LENGTH),
            type=otp_type,
            expires_at=utc_now() + timedelta(minutes=settings.OTP_EXPIRE_MINUTES)
        )

        await self.collection.delete_many({"email": email, "type": otp_type.value})
        await self.collection.insert_one(otp.model_dump(mode="python"))

        result = await self.email_service.send_otp(email, otp.code, otp_type.value, name)
        if not result.success:
            await self.collection.delete_many({"email": email, "type": otp_type.value})
            logger.error(f"OTP email to {email} failed: {result.error}")
            raise OTPError("EMAIL_SEND_FAILED", "Failed to send verification code", 500)

        logger.info(f"OTP ({otp_type.value}) sent to {email}")
        return otp

    async def verify_otp(self, email: str, code: str, otp_type: OTPType) -> bool:
        """
        Check a submitted code

        Codes are single use. A code is discarded once it expires or after
        OTP_MAX_ATTEMPTS wrong guesses.

        Raises:
            OTPError: On any failure
        """
        email = email.lower()
        query = {"email": email, "type": otp_type.value, "verified": False}
        doc = await self.collection.find_one(query, sort=[("created_at", -1)])

        if not doc:
            raise OTPError("OTP_NOT_FOUND", "No active code for this email. Please request a new one")

        otp = OTP(**doc)

        if otp.is_expired():
            await self.collection.delete_many(query)
            raise OTPError("OTP_EXPIRED", "Code has expired. Please request a new one")

        if otp.attempts >= settings.OTP_MAX_ATTEMPTS:
            await self.collection.delete_many(query)
            raise OTPError("OTP_MAX_ATTEMPTS", "Too many failed attempts. Please request a new code", 429)

        if otp.code != code:
            attempts = otp.attempts + 1
            remaining = settings.OTP_MAX_ATTEMPTS - attempts
            if remaining <= 0:
                await self.collection.delete_many(query)
                raise OTPError("OTP_MAX_ATTEMPTS", "Too many failed attempts. Please request a new code", 429)

            await self.collection.update_one(query, {"$inc": {"attempts": 1}})
            raise OTPError("INVALID_OTP", f"Invalid code. {remaining} attempt(s) remaining")

        await self.collection.delete_many({"email": email, "type": otp_type.value})
        logger.info(f"OTP ({otp_type.value}) verified for {email}")
        return True
