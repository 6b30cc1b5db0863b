"""
Inquiry Model
Contact requests sent to a business from its public listing
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict

from app.models.common import BaseDocument, generate_id


class InquirySource(str, Enum):
    WEBSITE = "website"
    PHONE = "phone"
    EMAIL = "email"
    SOCIAL = "social"
    REFERRAL = "referral"
    OTHER = "other"


class InquiryStatus(str, Enum):
    PENDING = "pending"
    CONTACTED = "contacted"
    CONVERTED = "converted"
    CLOSED = "closed"


class InquiryPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class InquiryCustomer(BaseModel):
    name: str = "Anonymous"
    phone: str
    email: Optional[str] = None


class InquiryMetadata(BaseModel):
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    referrer: Optional[str] = None


class Inquiry(BaseDocument):
    """Inquiry document model"""
    inquiry_id: str = Field(default_factory=lambda: generate_id("inq"))
    business_id: str
    customer: InquiryCustomer
    message: str
    service_interest: str = "General Inquiry"
    source: InquirySource = InquirySource.WEBSITE
    status: InquiryStatus = InquiryStatus.PENDING
    priority: InquiryPriority = InquiryPriority.MEDIUM
    contacted_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    metadata: InquiryMetadata = Field(default_factory=InquiryMetadata)


class InquiryCreate(BaseModel):
    """Public contact form"""
    business_id: str
    customer_name: Optional[str] = Field(None, max_length=100)
    customer_phone: str = Field(pattern=r"^\+?[0-9][0-9 \-]{6,18}[0-9]$")
    customer_email: Optional[EmailStr] = None
    message: str = Field(min_length=1, max_length=500)
    service_interest: Optional[str] = Field(None, max_length=100)

    model_config = ConfigDict(str_strip_whitespace=True)


class InquiryStatusUpdate(BaseModel):
    status: InquiryStatus
    priority: Optional[InquiryPriority] = None


class InquiryReceipt(BaseModel):
    inquiry_id: str
    status: InquiryStatus


class InquiryResponse(BaseModel):
    inquiry_id: str
    business_id: str
    customer: InquiryCustomer
    message: str
    service_interest: str
    source: InquirySource
    status: InquiryStatus
    priority: InquiryPriority
    contacted_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
