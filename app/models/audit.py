"""
Audit Log Model
Who did what to which resource
"""

from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field

from app.models.common import generate_id, utc_now


class AuditDetails(BaseModel):
    before: Optional[dict[str, Any]] = None
    after: Optional[dict[str, Any]] = None
    changes: list[str] = Field(default_factory=list)
    extra: Optional[dict[str, Any]] = None


class AuditMetadata(BaseModel):
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditLog(BaseModel):
    """Audit log document"""
    log_id: str = Field(default_factory=lambda: generate_id("log"))
    user_id: str
    business_id: Optional[str] = None
    action: str  # LOGIN, CREATE, UPDATE, DELETE, STATUS_CHANGE, ...
    resource: str  # user, appointment, pet, ...
    resource_id: Optional[str] = None
    details: AuditDetails = Field(default_factory=AuditDetails)
    metadata: AuditMetadata = Field(default_factory=AuditMetadata)
    created_at: datetime = Field(default_factory=utc_now)
