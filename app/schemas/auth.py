"""
Authentication request/response schemas
"""

from typing import Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict

from app.models.business import BusinessCreate
from app.models.otp import OTPType
from app.models.user import UserResponse


class LoginRequest(BaseModel):
    """Login request schema"""
    email: EmailStr
    password: str = Field(min_length=1)

    model_config = ConfigDict(str_strip_whitespace=True)


class RegisterRequest(BaseModel):
    """
    Business admin registration (performed by a super admin)

    A business is created and linked when `business` is present.
    """
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    phone: Optional[str] = Field(None, min_length=7, max_length=20)
    business: Optional[BusinessCreate] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class TokenResponse(BaseModel):
    """Token response after successful authentication"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until access token expires
    user: UserResponse


class RefreshRequest(BaseModel):
    """Token refresh request"""
    refresh_token: str


class PasswordChangeRequest(BaseModel):
    """Change password request (authenticated users)"""
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=128)

    model_config = ConfigDict(str_strip_whitespace=True)


class PasswordResetRequest(BaseModel):
    """Request password reset (forgot password)"""
    email: EmailStr

    model_config = ConfigDict(str_strip_whitespace=True)


class PasswordResetConfirm(BaseModel):
    """Confirm password reset with token"""
    token: str
    new_password: str = Field(min_length=8, max_length=128)

    model_config = ConfigDict(str_strip_whitespace=True)


# OTP

class SendOTPRequest(BaseModel):
    email: EmailStr

    model_config = ConfigDict(str_strip_whitespace=True)


class VerifyOTPRequest(BaseModel):
    email: EmailStr
    otp: str = Field(pattern=r"^\d{4,8}$")

    model_config = ConfigDict(str_strip_whitespace=True)


class VerifyRegistrationOTPRequest(VerifyOTPRequest):
    """Client self sign-up, finished by proving the email address"""
    password: str = Field(min_length=8, max_length=128)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    phone: Optional[str] = Field(None, min_length=7, max_length=20)


class VerifyPasswordResetOTPRequest(VerifyOTPRequest):
    new_password: str = Field(min_length=8, max_length=128)


class ResendOTPRequest(BaseModel):
    email: EmailStr
    type: OTPType

    model_config = ConfigDict(str_strip_whitespace=True)
