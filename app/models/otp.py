"""
One-time passcodes for passwordless login, registration and password reset
"""

from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field, EmailStr

from app.models.common import as_utc, utc_now


class OTPType(str, Enum):
    LOGIN = "login"
    REGISTER = "register"
    PASSWORD_RESET = "password_reset"
    EMAIL_VERIFICATION = "email_verification"


class OTP(BaseModel):
    """OTP document; expired codes are reaped by a TTL index"""
    email: EmailStr
    code: str
    type: OTPType
    attempts: int = 0
    verified: bool = False
    expires_at: datetime
    created_at: datetime = Field(default_factory=utc_now)

    def is_expired(self) -> bool:
        return utc_now() >= as_utc(self.expires_at)
