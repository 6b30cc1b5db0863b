"""
Common model utilities and base classes
"""

from datetime import date, datetime, timezone
from typing import Any, Optional
from pydantic import BaseModel, Field, ConfigDict
import uuid

# 24-hour HH:MM
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


def generate_id(prefix: str) -> str:
    """Generate a prefixed unique ID"""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def utc_now() -> datetime:
    """Get current UTC timestamp"""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Mongo hands back naive datetimes; treat them as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_mongo_value(value: Any) -> Any:
    """BSON has no plain date type, so dates are stored as ISO strings"""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_mongo_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_mongo_value(v) for v in value]
    return value


class Address(BaseModel):
    """Postal address shared by users and businesses"""
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class AuditEntry(BaseModel):
    """Audit log entry for tracking changes"""
    action: str
    user_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
    changes: Optional[dict] = None
    ip_address: Optional[str] = None


class BaseDocument(BaseModel):
    """Base model for MongoDB documents"""
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    deleted_at: Optional[datetime] = None
    audit_log: list[AuditEntry] = Field(default_factory=list)

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="ignore"
    )

    def to_mongo(self) -> dict:
        """Dump the model into a BSON-safe dict"""
        return to_mongo_value(self.model_dump(by_alias=True, exclude={"id"}))

    def soft_delete(self) -> None:
        """Mark document as deleted"""
        self.deleted_at = utc_now()
        self.updated_at = utc_now()

    def add_audit(self, action: str, user_id: Optional[str] = None,
                  changes: Optional[dict] = None, ip_address: Optional[str] = None) -> None:
        """Add an audit log entry"""
        self.audit_log.append(AuditEntry(
            action=action,
            user_id=user_id,
            changes=changes,
            ip_address=ip_address
        ))
        self.updated_at = utc_now()

    def is_deleted(self) -> bool:
        """Check if document is soft deleted"""
        return self.deleted_at is not None
