"""
Service Model
Grooming, boarding, vet and other offerings with pricing and duration
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, model_validator
from datetime import datetime

from app.models.common import BaseDocument, generate_id
from app.models.pet import Species


class ServiceCategory(str, Enum):
    """Service categories"""
    GROOMING = "grooming"
    VETERINARY = "veterinary"
    BOARDING = "boarding"
    DAYCARE = "daycare"
    TRAINING = "training"
    WALKING = "walking"
    SITTING = "sitting"
    BATHING = "bathing"
    NAIL_TRIMMING = "nail_trimming"
    DENTAL = "dental"
    OTHER = "other"


class PriceType(str, Enum):
    """How the service is priced"""
    FIXED = "fixed"
    VARIABLE = "variable"  # Price picked from variations (size, coat, ...)


class PriceVariation(BaseModel):
    """Alternative price, e.g. 'Large dog'"""
    name: str = Field(min_length=1, max_length=60)
    price: float = Field(ge=0)
    description: Optional[str] = None


class ServicePricing(BaseModel):
    base_price: float = Field(ge=0)
    currency: str = "USD"
    price_type: PriceType = PriceType.FIXED
    variations: list[PriceVariation] = Field(default_factory=list)

    def price_for(self, variation: Optional[str] = None) -> float:
        """Price for a named variation, falling back to the base price"""
        if variation:
            for v in self.variations:
                if v.name.lower() == variation.lower():
                    return v.price
        return self.base_price


class ServiceDuration(BaseModel):
    estimated_minutes: int = Field(default=60, ge=5, le=24 * 60)
    buffer_minutes: int = Field(default=15, ge=0, le=240)

    @property
    def total_minutes(self) -> int:
        return self.estimated_minutes + self.buffer_minutes


class ServiceRequirements(BaseModel):
    """Eligibility rules checked when booking"""
    vaccination_required: bool = False
    required_vaccines: list[str] = Field(default_factory=list)
    min_age_months: Optional[int] = Field(None, ge=0)
    max_age_months: Optional[int] = Field(None, ge=0)
    species: list[Species] = Field(default_factory=list)  # Empty means any

    @model_validator(mode="after")
    def check_age_range(self):
        if (self.min_age_months is not None and self.max_age_months is not None
                and self.min_age_months > self.max_age_months):
            raise ValueError("min_age_months cannot exceed max_age_months")
        return self


class Service(BaseDocument):
    """Service document model"""
    service_id: str = Field(default_factory=lambda: generate_id("svc"))
    business_id: str  # Multi-tenant key

    name: str
    description: Optional[str] = None
    category: ServiceCategory = ServiceCategory.OTHER

    pricing: ServicePricing
    duration: ServiceDuration = Field(default_factory=ServiceDuration)
    requirements: ServiceRequirements = Field(default_factory=ServiceRequirements)

    staff_ids: list[str] = Field(default_factory=list)
    is_active: bool = True
    created_by: Optional[str] = None

    # Stats (denormalized)
    times_booked: int = 0
    total_revenue: float = 0.0


class ServiceCreate(BaseModel):
    """Schema for creating a service"""
    name: str = Field(min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    category: ServiceCategory = ServiceCategory.OTHER
    pricing: ServicePricing
    duration: ServiceDuration = Field(default_factory=ServiceDuration)
    requirements: ServiceRequirements = Field(default_factory=ServiceRequirements)
    staff_ids: list[str] = Field(default_factory=list)
    is_active: bool = True
    business_id: Optional[str] = None  # super_admin only

    model_config = ConfigDict(str_strip_whitespace=True)


class ServiceUpdate(BaseModel):
    """Schema for updating a service"""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    category: Optional[ServiceCategory] = None
    pricing: Optional[ServicePricing] = None
    duration: Optional[ServiceDuration] = None
    requirements: Optional[ServiceRequirements] = None
    staff_ids: Optional[list[str]] = None
    is_active: Optional[bool] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class ServiceResponse(BaseModel):
    """Service response"""
    service_id: str
    business_id: str
    name: str
    description: Optional[str] = None
    category: ServiceCategory
    pricing: ServicePricing
    duration: ServiceDuration
    requirements: ServiceRequirements
    staff_ids: list[str]
    is_active: bool
    times_booked: int = 0
    total_revenue: float = 0.0
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
