"""
Business Categories API Router
Platform category catalogue; writes are super admin only
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.database import get_database
from app.middleware.auth import require_super_admin
from app.models.business_category import (
    BusinessCategoryCreate, BusinessCategoryResponse, BusinessCategoryUpdate, DisplayOrderUpdate
)
from app.models.user import User
from app.schemas.common import ErrorResponse, ListResponse, MessageResponse, Pagination, SingleResponse
from app.services.audit_service import AuditAction, AuditService
from app.services.category_service import CategoryService

router = APIRouter()


class CategoryList(BaseModel):
    categories: list[BusinessCategoryResponse]
    pagination: Pagination


def get_category_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> CategoryService:
    return CategoryService(db)


@router.get("/active", response_model=ListResponse[BusinessCategoryResponse])
async def list_active_categories(service: CategoryService = Depends(get_category_service)):
    """Categories a business can be filed under; no login required"""
    categories = await service.list_active()
    return ListResponse(
        data=[BusinessCategoryResponse.model_validate(c) for c in categories],
        count=len(categories)
    )


@router.get("/admin/stats", response_model=SingleResponse[dict])
async def get_category_stats(
    current_user: User = Depends(require_super_admin),
    service: CategoryService = Depends(get_category_service)
):
    return SingleResponse(data=await service.get_stats())


@router.put("/bulk/display-order", response_model=ListResponse[BusinessCategoryResponse])
async def update_display_order(
    data: DisplayOrderUpdate,
    request: Request,
    current_user: User = Depends(require_super_admin),
    service: CategoryService = Depends(get_category_service)
):
    """Set several display positions at once"""
    categories = await service.reorder(data.categories)
    await AuditService(service.db).log(
        current_user.user_id, AuditAction.UPDATE, "business_category",
        extra={"display_order": {i.category_id: i.display_order for i in data.categories}},
        request=request
    )
    return ListResponse(
        data=[BusinessCategoryResponse.model_validate(c) for c in categories],
        count=len(categories)
    )


@router.get("", response_model=SingleResponse[CategoryList])
async def list_categories(
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_super_admin),
    service: CategoryService = Depends(get_category_service)
):
    categories, pagination = await service.list_categories(search, is_active, page, limit)
    return SingleResponse(data=CategoryList(
        categories=[BusinessCategoryResponse.model_validate(c) for c in categories],
        pagination=pagination
    ))


@router.post(
    "",
    response_model=SingleResponse[BusinessCategoryResponse],
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse, "description": "Category name taken"}}
)
async def create_category(
    data: BusinessCategoryCreate,
    request: Request,
    current_user: User = Depends(require_super_admin),
    service: CategoryService = Depends(get_category_service)
):
    category = await service.create_category(data, current_user)
    await AuditService(service.db).log(
        current_user.user_id, AuditAction.CREATE, "business_category", category.category_id,
        after=data.model_dump(mode="json"), request=request
    )
    return SingleResponse(
        data=BusinessCategoryResponse.model_validate(category),
        message="Category created successfully"
    )


@router.get("/{category_id}", response_model=SingleResponse[BusinessCategoryResponse])
async def get_category(
    category_id: str,
    current_user: User = Depends(require_super_admin),
    service: CategoryService = Depends(get_category_service)
):
    return SingleResponse(data=BusinessCategoryResponse.model_validate(await service.get_category(category_id)))


@router.put(
    "/{category_id}",
    response_model=SingleResponse[BusinessCategoryResponse],
    responses={409: {"model": ErrorResponse, "description": "Category name taken"}}
)
async def update_category(
    category_id: str,
    data: BusinessCategoryUpdate,
    request: Request,
    current_user: User = Depends(require_super_admin),
    service: CategoryService = Depends(get_category_service)
):
    before = await service.get_category(category_id)
    category = await service.update_category(category_id, data)
    await AuditService(service.db).log(
        current_user.user_id, AuditAction.UPDATE, "business_category", category_id,
        before=before.model_dump(mode="json", include=set(data.model_fields_set)),
        after=data.model_dump(mode="json", exclude_unset=True),
        request=request
    )
    return SingleResponse(
        data=BusinessCategoryResponse.model_validate(category),
        message="Category updated successfully"
    )


@router.delete(
    "/{category_id}",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Category still has businesses"}}
)
async def delete_category(
    category_id: str,
    request: Request,
    current_user: User = Depends(require_super_admin),
    service: CategoryService = Depends(get_category_service)
):
    await service.delete_category(category_id)
    await AuditService(service.db).log(
        current_user.user_id, AuditAction.DELETE, "business_category", category_id, request=request
    )
    return MessageResponse(message="Category deleted successfully")
