"""
Public API Router
Unauthenticated business directory and contact form
"""

from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.database import get_database
from app.middleware.rate_limit import client_ip
from app.models.business import PublicBusiness
from app.models.business_category import CategorySummary
from app.models.inquiry import InquiryCreate, InquiryMetadata, InquiryReceipt
from app.schemas.common import ErrorResponse, ListResponse, Pagination, SingleResponse
from app.services.discovery_service import DiscoveryService, InquiryService
from app.services.email_service import get_email_service

router = APIRouter()


class PublicBusinessList(BaseModel):
    businesses: list[PublicBusiness]
    pagination: Pagination


class CategoryBusinessList(PublicBusinessList):
    category: CategorySummary


def get_discovery_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> DiscoveryService:
    return DiscoveryService(db)


@router.get("/categories", response_model=ListResponse[CategorySummary])
async def list_categories(service: DiscoveryService = Depends(get_discovery_service)):
    """Active categories in display order"""
    categories = await service.list_categories()
    return ListResponse(data=categories, count=len(categories))


@router.get("/search/businesses", response_model=SingleResponse[PublicBusinessList])
async def search_businesses(
    q: Optional[str] = Query(None, max_length=100),
    category: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=50),
    service: DiscoveryService = Depends(get_discovery_service)
):
    """Search listed businesses by name, description, service or category"""
    businesses, pagination = await service.search_businesses(q, category, page, limit)
    return SingleResponse(data=PublicBusinessList(businesses=businesses, pagination=pagination))


@router.get(
    "/businesses/{business_id}",
    response_model=SingleResponse[PublicBusiness],
    responses={404: {"model": ErrorResponse, "description": "Business not listed"}}
)
async def get_business(business_id: str, service: DiscoveryService = Depends(get_discovery_service)):
    """Public profile with opening hours and active services"""
    return SingleResponse(data=await service.get_business(business_id))


@router.get(
    "/categories/{category_id}/businesses",
    response_model=SingleResponse[CategoryBusinessList],
    responses={404: {"model": ErrorResponse, "description": "Category not found"}}
)
async def businesses_in_category(
    category_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=50),
    service: DiscoveryService = Depends(get_discovery_service)
):
    category, businesses, pagination = await service.businesses_in_category(category_id, page, limit)
    return SingleResponse(data=CategoryBusinessList(
        category=category,
        businesses=businesses,
        pagination=pagination
    ))


@router.post(
    "/inquiries",
    response_model=SingleResponse[InquiryReceipt],
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse, "description": "Business not found"},
        429: {"model": ErrorResponse, "description": "Too many requests"}
    }
)
async def submit_inquiry(
    data: InquiryCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Contact form on a business listing; the business is emailed"""
    service = InquiryService(db, get_email_service())
    inquiry, business = await service.submit(data, InquiryMetadata(
        user_agent=request.headers.get("User-Agent"),
        ip_address=client_ip(request),
        referrer=request.headers.get("Referer")
    ))
    background_tasks.add_task(service.notify_business, inquiry, business)

    return SingleResponse(
        data=InquiryReceipt(inquiry_id=inquiry.inquiry_id, status=inquiry.status),
        message="Inquiry sent. The business will contact you soon."
    )
