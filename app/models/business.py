"""
Business Model
Multi-tenant pet-care businesses: profile, opening hours, booking policy
"""

from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict

from app.models.business_category import CategorySummary
from app.models.common import TIME_PATTERN, Address, BaseDocument, generate_id, utc_now


WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


class BusinessPlan(str, Enum):
    """Subscription plan tiers"""
    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"


class SubscriptionStatus(str, Enum):
    """Business subscription status"""
    ACTIVE = "active"
    CANCELLED = "cancelled"
    SUSPENDED = "suspended"


class DayHours(BaseModel):
    """Hours for a single day"""
    is_open: bool = True
    open: str = Field(default="09:00", pattern=TIME_PATTERN)
    close: str = Field(default="17:00", pattern=TIME_PATTERN)


class WorkingHours(BaseModel):
    """Weekly opening hours"""
    monday: DayHours = Field(default_factory=DayHours)
    tuesday: DayHours = Field(default_factory=DayHours)
    wednesday: DayHours = Field(default_factory=DayHours)
    thursday: DayHours = Field(default_factory=DayHours)
    friday: DayHours = Field(default_factory=DayHours)
    saturday: DayHours = Field(default_factory=lambda: DayHours(open="09:00", close="15:00"))
    sunday: DayHours = Field(default_factory=lambda: DayHours(is_open=False, open="10:00", close="14:00"))

    def for_date(self, day: date) -> DayHours:
        return getattr(self, WEEKDAYS[day.weekday()])


class BreakPeriod(BaseModel):
    """Daily break, e.g. lunch"""
    start: str = Field(pattern=TIME_PATTERN)
    end: str = Field(pattern=TIME_PATTERN)
    label: Optional[str] = None


class BusinessSchedule(BaseModel):
    """Opening hours, breaks and closures"""
    timezone: str = "Asia/Kolkata"
    working_hours: WorkingHours = Field(default_factory=WorkingHours)
    breaks: list[BreakPeriod] = Field(default_factory=list)
    holidays: list[date] = Field(default_factory=list)

    def is_open_on(self, day: date) -> bool:
        if day in self.holidays:
            return False
        return self.working_hours.for_date(day).is_open


class CancellationPolicy(BaseModel):
    """Late cancellation rules"""
    hours_required: int = Field(default=24, ge=0)
    fee_percentage: float = Field(default=0, ge=0, le=100)


class ReminderChannel(BaseModel):
    enabled: bool = True
    hours_before: int = Field(default=24, ge=1)


class AutoReminders(BaseModel):
    """Automatic appointment reminders"""
    email: ReminderChannel = Field(default_factory=ReminderChannel)
    sms: ReminderChannel = Field(default_factory=lambda: ReminderChannel(enabled=False, hours_before=2))


class PaymentMethodSettings(BaseModel):
    cash: bool = True
    card: bool = True
    online: bool = True


class BusinessSettings(BaseModel):
    """Booking and notification policy"""
    booking_window_days: int = Field(default=30, ge=1, le=365)
    cancellation_policy: CancellationPolicy = Field(default_factory=CancellationPolicy)
    auto_reminders: AutoReminders = Field(default_factory=AutoReminders)
    payment_methods: PaymentMethodSettings = Field(default_factory=PaymentMethodSettings)


class Subscription(BaseModel):
    plan: BusinessPlan = BusinessPlan.FREE
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    expires_at: Optional[datetime] = None

    @classmethod
    def start(cls, plan: BusinessPlan) -> "Subscription":
        """Paid plans run for 30 days from sign-up"""
        expires_at = None if plan == BusinessPlan.FREE else utc_now() + timedelta(days=30)
        return cls(plan=plan, expires_at=expires_at)


class Business(BaseDocument):
    """Business document model"""
    business_id: str = Field(default_factory=lambda: generate_id("bus"))
    owner_id: str

    # Profile
    name: str
    company_name: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[str] = None  # business_categories.category_id
    email: EmailStr
    phone: Optional[str] = None
    website: Optional[str] = None
    logo_url: Optional[str] = None
    address: Address = Field(default_factory=Address)
    is_public: bool = True  # Listed in public search

    schedule: BusinessSchedule = Field(default_factory=BusinessSchedule)
    settings: BusinessSettings = Field(default_factory=BusinessSettings)
    subscription: Subscription = Field(default_factory=Subscription)

    staff_ids: list[str] = Field(default_factory=list)
    is_active: bool = True

    # Stats (denormalized)
    total_clients: int = 0
    total_appointments: int = 0
    total_revenue: float = 0.0


class BusinessCreate(BaseModel):
    """Schema for creating a business"""
    name: str = Field(min_length=2, max_length=100)
    company_name: Optional[str] = Field(None, max_length=150)
    description: Optional[str] = None
    category_id: Optional[str] = None
    email: EmailStr
    phone: Optional[str] = None
    website: Optional[str] = None
    address: Address = Field(default_factory=Address)
    schedule: Optional[BusinessSchedule] = None
    settings: Optional[BusinessSettings] = None
    plan: BusinessPlan = BusinessPlan.FREE

    model_config = ConfigDict(str_strip_whitespace=True)


class BusinessUpdate(BaseModel):
    """Schema for updating a business"""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    company_name: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    logo_url: Optional[str] = None
    is_public: Optional[bool] = None
    address: Optional[Address] = None
    schedule: Optional[BusinessSchedule] = None
    settings: Optional[BusinessSettings] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class BusinessResponse(BaseModel):
    """Business response"""
    business_id: str
    owner_id: str
    name: str
    company_name: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[str] = None
    email: str
    phone: Optional[str] = None
    website: Optional[str] = None
    logo_url: Optional[str] = None
    address: Address
    is_public: bool = True
    schedule: BusinessSchedule
    settings: BusinessSettings
    subscription: Subscription
    staff_ids: list[str]
    is_active: bool
    total_clients: int = 0
    total_appointments: int = 0
    total_revenue: float = 0.0
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PublicServiceSummary(BaseModel):
    """Bookable service as shown on a public listing"""
    service_id: str
    name: str
    description: Optional[str] = None
    category: str
    price: float
    currency: str
    duration_minutes: int


class PublicBusiness(BaseModel):
    """What anonymous visitors may see of a business"""
    business_id: str
    name: str
    company_name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[CategorySummary] = None
    phone: Optional[str] = None
    email: str
    website: Optional[str] = None
    logo_url: Optional[str] = None
    address: Address
    schedule: Optional[BusinessSchedule] = None  # Detail view only
    services: list[PublicServiceSummary] = Field(default_factory=list)
    total_appointments: int = 0
    created_at: datetime
