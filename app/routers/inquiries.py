"""
Inquiries API Router
Follow-up on contact requests from the public listing
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.database import get_database
from app.middleware.auth import require_permission
from app.models.inquiry import InquiryResponse, InquiryStatus, InquiryStatusUpdate
from app.models.user import User
from app.schemas.common import Pagination, SingleResponse
from app.services.audit_service import AuditAction, AuditService
from app.services.discovery_service import InquiryService

router = APIRouter()


class InquiryList(BaseModel):
    inquiries: list[InquiryResponse]
    pagination: Pagination


def get_inquiry_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> InquiryService:
    return InquiryService(db)


@router.get("", response_model=SingleResponse[InquiryList])
async def list_inquiries(
    status_filter: Optional[InquiryStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_permission("clients", "read")),
    service: InquiryService = Depends(get_inquiry_service)
):
    """Newest first"""
    inquiries, pagination = await service.list_inquiries(current_user, status_filter, page, limit)
    return SingleResponse(data=InquiryList(
        inquiries=[InquiryResponse.model_validate(i) for i in inquiries],
        pagination=pagination
    ))


@router.patch("/{inquiry_id}/status", response_model=SingleResponse[InquiryResponse])
async def update_inquiry_status(
    inquiry_id: str,
    data: InquiryStatusUpdate,
    request: Request,
    current_user: User = Depends(require_permission("clients", "update")),
    service: InquiryService = Depends(get_inquiry_service)
):
    inquiry = await service.update_status(inquiry_id, data, current_user)
    await AuditService(service.db).log(
        current_user.user_id, AuditAction.STATUS_CHANGE, "inquiry", inquiry_id,
        business_id=inquiry.business_id, extra={"status": data.status.value}, request=request
    )
    return SingleResponse(data=InquiryResponse.model_validate(inquiry), message="Inquiry updated")
