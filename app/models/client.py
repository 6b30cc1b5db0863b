"""
Client Model
Pet owners are users with the client role; these are the
schemas the business side uses to manage them
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict

from app.models.common import Address
from app.models.pet import PetCreate
from app.models.user import UserResponse


class ClientStatus(str, Enum):
    """Account state shown in client listings"""
    ACTIVE = "active"
    INACTIVE = "inactive"


class ClientSort(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    NAME = "name"


class ClientPetCreate(PetCreate):
    """Pet registered together with its owner; owner_id is ignored"""
    pass


class ClientCreate(BaseModel):
    """Schema for a business adding a client"""
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    email: EmailStr
    phone: Optional[str] = Field(None, min_length=7, max_length=20)
    address: Address = Field(default_factory=Address)
    pets: list[ClientPetCreate] = Field(default_factory=list)
    business_id: Optional[str] = None  # super_admin only
    send_welcome_email: bool = True

    model_config = ConfigDict(str_strip_whitespace=True)


class ClientUpdate(BaseModel):
    """Schema for updating a client"""
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    phone: Optional[str] = Field(None, min_length=7, max_length=20)
    address: Optional[Address] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class StatusUpdate(BaseModel):
    """Activate or deactivate an account"""
    is_active: bool


class ClientResponse(UserResponse):
    """Client with appointment and billing totals"""
    total_appointments: int = 0
    total_spent: float = 0.0
    last_visit: Optional[datetime] = None


class ClientStats(BaseModel):
    total: int = 0
    active: int = 0
    inactive: int = 0
    new_this_month: int = 0
