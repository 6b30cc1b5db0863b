"""
Audit Service
Records who did what, and serves the audit trail to admins
"""

import logging
from datetime import datetime
from typing import Any, Optional
from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.audit import AuditDetails, AuditLog, AuditMetadata
from app.schemas.common import Pagination, create_pagination

logger = logging.getLogger(__name__)


class AuditAction:
    LOGIN = "LOGIN"
    LOGIN_OTP = "LOGIN_OTP"
    LOGOUT = "LOGOUT"
    REGISTER = "REGISTER"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    PASSWORD_RESET = "PASSWORD_RESET"
    STATUS_CHANGE = "STATUS_CHANGE"
    PAYMENT = "PAYMENT"


def request_metadata(request: Optional[Request]) -> AuditMetadata:
    if request is None:
        return AuditMetadata()
    forwarded = request.headers.get("X-Forwarded-For")
    ip = forwarded.split(",")[0].strip() if forwarded else (
        request.client.host if request.client else None
    )
    return AuditMetadata(ip_address=ip, user_agent=request.headers.get("User-Agent"))


def diff_fields(before: dict, after: dict) -> list[str]:
    """Names of top-level fields whose values differ"""
    return sorted(k for k in after if before.get(k) != after.get(k))


class AuditService:
    """Append-only audit trail"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db.audit_logs

    async def log(
        self,
        user_id: str,
        action: str,
        resource: str,
        resource_id: Optional[str] = None,
        business_id: Optional[str] = None,
        before: Optional[dict[str, Any]] = None,
        after: Optional[dict[str, Any]] = None,
        extra: Optional[dict[str, Any]] = None,
        request: Optional[Request] = None
    ) -> AuditLog:
        """Write one audit entry"""
        changes = diff_fields(before or {}, after or {}) if after else []
        entry = AuditLog(
            user_id=user_id,
            business_id=business_id,
            action=action,
            resource=resource,
            resource_id=resource_id,
            details=AuditDetails(before=before, after=after, changes=changes, extra=extra),
            metadata=request_metadata(request)
        )
        await self.collection.insert_one(entry.model_dump(mode="json") | {"created_at": entry.created_at})
        logger.debug(f"Audit {action} {resource}:{resource_id} by {user_id}")
        return entry

    async def get_logs(
        self,
        business_id: Optional[str] = None,
        user_id: Optional[str] = None,
        resource: Optional[str] = None,
        action: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20
    ) -> tuple[list[AuditLog], Pagination]:
        """Filtered, newest-first page of the audit trail"""
        query: dict[str, Any] = {}
        if business_id:
            query["business_id"] = business_id
        if user_id:
            query["user_id"] = user_id
        if resource:
            query["resource"] = resource
        if action:
            query["action"] = action
        if date_from or date_to:
            query["created_at"] = {}
            if date_from:
                query["created_at"]["$gte"] = date_from
            if date_to:
                query["created_at"]["$lte"] = date_to

        total = await self.collection.count_documents(query)
        cursor = self.collection.find(query).sort("created_at", -1).skip((page - 1) * limit).limit(limit)
        docs = await cursor.to_list(length=limit)

        return [AuditLog(**doc) for doc in docs], create_pagination(total, page, limit)
