"""
User Model
Handles authentication and user accounts for every role:
platform admins, business admins, staff and clients (pet owners)
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict

from app.models.common import Address, BaseDocument, as_utc, generate_id, utc_now


class UserRole(str, Enum):
    """User role types for RBAC"""
    SUPER_ADMIN = "super_admin"
    BUSINESS_ADMIN = "business_admin"
    STAFF = "staff"
    CLIENT = "client"


class NotificationPreferences(BaseModel):
    """Channels a user accepts notifications on"""
    email: bool = True
    sms: bool = False
    push: bool = True


class UserSettings(BaseModel):
    """Per-user preferences"""
    timezone: str = "Asia/Kolkata"
    language: str = "en"
    notifications: NotificationPreferences = Field(default_factory=NotificationPreferences)


class User(BaseDocument):
    """User document model"""
    user_id: str = Field(default_factory=lambda: generate_id("usr"))
    email: EmailStr
    password_hash: str
    role: UserRole = UserRole.CLIENT
    business_ids: list[str] = Field(default_factory=list)

    # Profile
    first_name: str
    last_name: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    address: Address = Field(default_factory=Address)

    # Access
    permissions: list[str] = Field(default_factory=list)
    specializations: list[str] = Field(default_factory=list)

    # Status
    is_active: bool = True
    email_verified: bool = False

    # Tracking
    last_login_at: Optional[datetime] = None
    failed_login_attempts: int = 0
    locked_until: Optional[datetime] = None

    settings: UserSettings = Field(default_factory=UserSettings)

    # Clients only
    pet_ids: list[str] = Field(default_factory=list)

    @property
    def full_name(self) -> str:
        """Get user's full name"""
        return f"{self.first_name} {self.last_name}"

    @property
    def business_id(self) -> Optional[str]:
        """Primary business, the one carried in tokens"""
        return self.business_ids[0] if self.business_ids else None

    def record_login(self) -> None:
        """Record successful login"""
        self.last_login_at = utc_now()
        self.failed_login_attempts = 0
        self.locked_until = None
        self.updated_at = utc_now()

    def record_failed_login(self, max_attempts: int = 5, lockout_minutes: int = 30) -> None:
        """Record failed login attempt"""
        self.failed_login_attempts += 1
        if self.failed_login_attempts >= max_attempts:
            self.locked_until = utc_now() + timedelta(minutes=lockout_minutes)
        self.updated_at = utc_now()

    def is_locked(self) -> bool:
        """Check if account is locked"""
        if self.locked_until is None:
            return False
        return utc_now() < as_utc(self.locked_until)


class UserUpdate(BaseModel):
    """Schema for a user updating their own profile"""
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    phone: Optional[str] = None
    address: Optional[Address] = None
    settings: Optional[UserSettings] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class UserResponse(BaseModel):
    """Public user response (excludes sensitive data)"""
    user_id: str
    email: EmailStr
    role: UserRole
    business_ids: list[str] = Field(default_factory=list)
    first_name: str
    last_name: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    address: Address = Field(default_factory=Address)
    permissions: list[str] = Field(default_factory=list)
    specializations: list[str] = Field(default_factory=list)
    settings: UserSettings = Field(default_factory=UserSettings)
    pet_ids: list[str] = Field(default_factory=list)
    is_active: bool
    email_verified: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
