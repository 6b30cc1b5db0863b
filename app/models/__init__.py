"""
PetSync Data Models
Pydantic models for MongoDB documents
"""

from app.models.user import User, UserRole, UserUpdate, UserResponse
from app.models.business import (
    Business, BusinessCreate, BusinessUpdate, BusinessPlan, BusinessSettings,
    BusinessSchedule, WorkingHours
)
from app.models.pet import Pet, PetCreate, PetUpdate, Species, MedicalRecord
from app.models.service import Service, ServiceCreate, ServiceUpdate, ServiceCategory, PriceType
from app.models.appointment import (
    Appointment, AppointmentStatus, AppointmentCreate, AppointmentUpdate,
    StatusAction, STATUS_TRANSITIONS
)
from app.models.invoice import Invoice, InvoiceCreate, InvoiceStatus, PaymentMethod
from app.models.otp import OTP, OTPType
from app.models.audit import AuditLog
from app.models.common import Address, AuditEntry

__all__ = [
    # User
    "User", "UserRole", "UserUpdate", "UserResponse",
    # Business
    "Business", "BusinessCreate", "BusinessUpdate", "BusinessPlan", "BusinessSettings",
    "BusinessSchedule", "WorkingHours",
    # Pet
    "Pet", "PetCreate", "PetUpdate", "Species", "MedicalRecord",
    # Service
    "Service", "ServiceCreate", "ServiceUpdate", "ServiceCategory", "PriceType",
    # Appointment
    "Appointment", "AppointmentStatus", "AppointmentCreate", "AppointmentUpdate",
    "StatusAction", "STATUS_TRANSITIONS",
    # Billing
    "Invoice", "InvoiceCreate", "InvoiceStatus", "PaymentMethod",
    # Auth
    "OTP", "OTPType", "AuditLog",
    # Common
    "Address", "AuditEntry",
]
