"""
Appointment Model
Bookings of a service for a client's pet, with a fixed status lifecycle
"""

from datetime import datetime, date, timedelta
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.models.common import TIME_PATTERN, BaseDocument, generate_id


class AppointmentStatus(str, Enum):
    """Appointment lifecycle status"""
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class StatusAction(str, Enum):
    """Actions exposed as separate endpoints"""
    CHECKIN = "checkin"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"
    NO_SHOW = "no-show"


# action -> (allowed source statuses, target status)
STATUS_TRANSITIONS: dict[StatusAction, tuple[tuple[AppointmentStatus, ...], AppointmentStatus]] = {
    StatusAction.CHECKIN: (
        (AppointmentStatus.SCHEDULED,),
        AppointmentStatus.CONFIRMED,
    ),
    StatusAction.START: (
        (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED),
        AppointmentStatus.IN_PROGRESS,
    ),
    StatusAction.COMPLETE: (
        (AppointmentStatus.IN_PROGRESS,),
        AppointmentStatus.COMPLETED,
    ),
    StatusAction.CANCEL: (
        (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED),
        AppointmentStatus.CANCELLED,
    ),
    StatusAction.NO_SHOW: (
        (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED),
        AppointmentStatus.NO_SHOW,
    ),
}

ACTIVE_STATUSES = (
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.IN_PROGRESS,
)

TERMINAL_STATUSES = (
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
)


def available_actions(status: AppointmentStatus) -> list[StatusAction]:
    """Actions allowed from a given status, in table order"""
    return [action for action, (sources, _) in STATUS_TRANSITIONS.items() if status in sources]


def can_transition(status: AppointmentStatus, action: StatusAction) -> bool:
    return status in STATUS_TRANSITIONS[action][0]


def time_to_minutes(value: str) -> int:
    """'HH:MM' -> minutes since midnight"""
    hours, minutes = map(int, value.split(":"))
    return hours * 60 + minutes


def minutes_to_time(total: int) -> str:
    """Minutes since midnight -> 'HH:MM'"""
    return f"{total // 60:02d}:{total % 60:02d}"


def add_minutes(value: str, minutes: int) -> str:
    return minutes_to_time(time_to_minutes(value) + minutes)


def times_overlap(start_a: str, end_a: str, start_b: str, end_b: str) -> bool:
    # HH:MM strings compare lexically
    return start_a < end_b and end_a > start_b


class ServiceSnapshot(BaseModel):
    """Copy of the service taken at booking time"""
    service_id: str
    name: str
    duration_minutes: int
    buffer_minutes: int = 0
    price: float
    variation: Optional[str] = None


class Cancellation(BaseModel):
    cancelled_by: str
    cancelled_at: datetime
    reason: Optional[str] = None
    fee: float = 0.0


class Appointment(BaseDocument):
    """Appointment document model"""
    appointment_id: str = Field(default_factory=lambda: generate_id("apt"))
    business_id: str  # Multi-tenant key
    client_id: str
    pet_id: str
    staff_id: Optional[str] = None
    created_by: Optional[str] = None

    service: ServiceSnapshot

    # Scheduling
    scheduled_date: date
    start_time: str  # HH:MM
    end_time: str  # HH:MM, includes the service buffer
    timezone: str = "Asia/Kolkata"

    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    price: float = 0.0
    notes: Optional[str] = None  # Client visible
    internal_notes: Optional[str] = None  # Staff only

    # Tracking
    checked_in_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    completion_notes: Optional[str] = None
    photo_urls: list[str] = Field(default_factory=list)

    cancellation: Optional[Cancellation] = None

    # Feedback
    rating: Optional[int] = Field(None, ge=1, le=5)
    feedback: Optional[str] = None

    # Reminder channel -> sent timestamp
    reminders_sent: dict[str, datetime] = Field(default_factory=dict)

    def starts_at(self) -> datetime:
        """Naive start datetime in the business timezone"""
        hours, minutes = map(int, self.start_time.split(":"))
        return datetime.combine(self.scheduled_date, datetime.min.time()) + timedelta(hours=hours, minutes=minutes)


class AppointmentCreate(BaseModel):
    """Schema for creating an appointment"""
    client_id: Optional[str] = None  # Taken from the caller for clients
    pet_id: str
    service_id: str
    variation: Optional[str] = None
    staff_id: Optional[str] = None
    business_id: Optional[str] = None  # Clients and super_admin pick the business

    scheduled_date: date
    start_time: str = Field(pattern=TIME_PATTERN)

    notes: Optional[str] = Field(None, max_length=1000)
    internal_notes: Optional[str] = Field(None, max_length=1000)

    model_config = ConfigDict(str_strip_whitespace=True)


class AppointmentUpdate(BaseModel):
    """Schema for updating an appointment"""
    scheduled_date: Optional[date] = None
    start_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    staff_id: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=1000)
    internal_notes: Optional[str] = Field(None, max_length=1000)

    model_config = ConfigDict(str_strip_whitespace=True)


class CompleteRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)
    photo_urls: list[str] = Field(default_factory=list)
    final_price: Optional[float] = Field(None, ge=0)


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class FeedbackRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    feedback: Optional[str] = Field(None, max_length=1000)


class AvailabilityRequest(BaseModel):
    service_id: str
    scheduled_date: date
    staff_id: Optional[str] = None
    business_id: Optional[str] = None

    @field_validator("scheduled_date")
    @classmethod
    def not_in_past(cls, v: date) -> date:
        if v < date.today():
            raise ValueError("Date cannot be in the past")
        return v


class AppointmentResponse(BaseModel):
    """Public appointment response"""
    appointment_id: str
    business_id: str
    client_id: str
    pet_id: str
    staff_id: Optional[str] = None

    service: ServiceSnapshot
    scheduled_date: date
    start_time: str
    end_time: str
    timezone: str

    status: AppointmentStatus
    price: float
    notes: Optional[str] = None
    internal_notes: Optional[str] = None

    checked_in_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    completion_notes: Optional[str] = None
    photo_urls: list[str] = Field(default_factory=list)
    cancellation: Optional[Cancellation] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None
    created_at: datetime
    available_actions: list[StatusAction] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> "AppointmentResponse":
        response = cls.model_validate(appointment)
        response.available_actions = available_actions(appointment.status)
        return response
