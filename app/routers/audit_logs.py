"""
Audit Logs API Router
Read access to the audit trail for administrators
"""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.database import get_database
from app.middleware.auth import require_admin
from app.models.audit import AuditLog
from app.models.user import User, UserRole
from app.schemas.common import Pagination, SingleResponse
from app.services.audit_service import AuditService

router = APIRouter()


class AuditLogList(BaseModel):
    logs: list[AuditLog]
    pagination: Pagination


@router.get("", response_model=SingleResponse[AuditLogList])
async def list_audit_logs(
    business_id: Optional[str] = None,
    user_id: Optional[str] = None,
    resource: Optional[str] = None,
    action: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    Search the audit trail

    Business admins are pinned to their own business.
    """
    if current_user.role != UserRole.SUPER_ADMIN:
        business_id = current_user.business_id

    logs, pagination = await AuditService(db).get_logs(
        business_id=business_id,
        user_id=user_id,
        resource=resource,
        action=action.upper() if action else None,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit
    )
    return SingleResponse(data=AuditLogList(logs=logs, pagination=pagination))
