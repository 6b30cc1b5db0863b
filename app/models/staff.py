"""
Staff Model
Groomers, vets and other team members are users with the staff role
"""

from typing import Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict

from app.models.user import UserResponse


class StaffCreate(BaseModel):
    """Schema for adding a team member"""
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    email: EmailStr
    phone: Optional[str] = Field(None, min_length=7, max_length=20)
    specializations: list[str] = Field(default_factory=list)
    permissions: Optional[list[str]] = None  # Role defaults when omitted
    business_id: Optional[str] = None  # super_admin only

    model_config = ConfigDict(str_strip_whitespace=True)


class StaffUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    phone: Optional[str] = Field(None, min_length=7, max_length=20)
    specializations: Optional[list[str]] = None
    permissions: Optional[list[str]] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class StaffResponse(UserResponse):
    """Team member with today's workload"""
    appointments_today: int = 0
    completed_total: int = 0


class StaffCreated(BaseModel):
    """Returned once, right after creation"""
    staff: StaffResponse
    temporary_password: str
