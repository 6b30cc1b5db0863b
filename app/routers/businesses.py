"""
Business API Router
Business account management for the multi-tenant system
"""

import logging
import re
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.database import get_database
from app.middleware.auth import get_current_user, require_admin, require_super_admin
from app.models.appointment import ACTIVE_STATUSES
from app.models.business import Business, BusinessCreate, BusinessResponse, BusinessUpdate, Subscription
from app.models.common import to_mongo_value, utc_now
from app.models.user import User, UserRole
from app.schemas.common import ErrorResponse, MessageResponse, Pagination, SingleResponse, create_pagination
from app.services.audit_service import AuditAction, AuditService
from app.services.category_service import CategoryService

router = APIRouter()
logger = logging.getLogger(__name__)


class BusinessList(BaseModel):
    businesses: list[BusinessResponse]
    pagination: Pagination


class BusinessCreateRequest(BusinessCreate):
    """Super admins name the owning business admin; others own what they create"""
    owner_id: Optional[str] = None


class StaffAssignment(BaseModel):
    user_id: str


def ensure_access(user: User, business_id: str, admin_only: bool = False) -> None:
    if user.role == UserRole.SUPER_ADMIN:
        return
    if business_id not in user.business_ids or (admin_only and user.role != UserRole.BUSINESS_ADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "ACCESS_DENIED", "message": "Access denied to this business"}
        )


async def get_business_doc(db: AsyncIOMotorDatabase, business_id: str) -> dict:
    doc = await db.businesses.find_one({"business_id": business_id, "deleted_at": None})
    if not doc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "BUSINESS_NOT_FOUND", "message": "Business not found"}
        )
    return doc


@router.get("", response_model=SingleResponse[BusinessList])
async def list_businesses(
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_super_admin),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """List all businesses (super admin only)"""
    query: dict = {"deleted_at": None}
    if is_active is not None:
        query["is_active"] = is_active
    if search:
        pattern = re.escape(search.strip())
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"email": {"$regex": pattern, "$options": "i"}}
        ]

    total = await db.businesses.count_documents(query)
    cursor = db.businesses.find(query).sort("created_at", -1).skip((page - 1) * limit).limit(limit)
    docs = await cursor.to_list(length=limit)

    return SingleResponse(data=BusinessList(
        businesses=[BusinessResponse(**doc) for doc in docs],
        pagination=create_pagination(total, page, limit)
    ))


@router.post(
    "",
    response_model=SingleResponse[BusinessResponse],
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse, "description": "Business email already exists"}}
)
async def create_business(
    data: BusinessCreateRequest,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Create a business and link it to its owner"""
    owner_id = data.owner_id if current_user.role == UserRole.SUPER_ADMIN and data.owner_id else current_user.user_id
    if owner_id != current_user.user_id:
        owner = await db.users.find_one({
            "user_id": owner_id, "role": UserRole.BUSINESS_ADMIN.value, "deleted_at": None
        })
        if not owner:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "OWNER_NOT_FOUND", "message": "Business admin not found"}
            )

    if await db.businesses.find_one({"email": data.email.lower()}):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "BUSINESS_EXISTS", "message": "A business with this email already exists"}
        )
    await CategoryService(db).ensure_assignable(data.category_id)

    fields = data.model_dump(exclude={"owner_id", "plan", "schedule", "settings"}, exclude_none=True)
    business = Business(owner_id=owner_id, subscription=Subscription.start(data.plan), **fields)
    business.email = business.email.lower()
    if data.schedule:
        business.schedule = data.schedule
    if data.settings:
        business.settings = data.settings

    await db.businesses.insert_one(business.to_mongo())
    await db.users.update_one(
        {"user_id": owner_id},
        {"$addToSet": {"business_ids": business.business_id}, "$set": {"updated_at": utc_now()}}
    )

    await AuditService(db).log(
        current_user.user_id, AuditAction.CREATE, "business", business.business_id,
        business_id=business.business_id, request=request
    )
    logger.info(f"Business created: {business.business_id} owned by {owner_id}")
    return SingleResponse(data=BusinessResponse.model_validate(business), message="Business created successfully")


@router.get("/me", response_model=SingleResponse[BusinessResponse])
async def get_my_business(
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """The business associated with the current user"""
    if not current_user.business_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "NO_BUSINESS", "message": "User is not associated with a business"}
        )
    return SingleResponse(data=BusinessResponse(**await get_business_doc(db, current_user.business_id)))


@router.get("/{business_id}", response_model=SingleResponse[BusinessResponse])
async def get_business(
    business_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    ensure_access(current_user, business_id)
    return SingleResponse(data=BusinessResponse(**await get_business_doc(db, business_id)))


@router.put("/{business_id}", response_model=SingleResponse[BusinessResponse])
async def update_business(
    business_id: str,
    data: BusinessUpdate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Update profile, opening hours or booking settings"""
    ensure_access(current_user, business_id, admin_only=True)
    before = await get_business_doc(db, business_id)
    await CategoryService(db).ensure_assignable(data.category_id)

    updates = data.model_dump(exclude_unset=True)
    updates["updated_at"] = utc_now()
    result = await db.businesses.find_one_and_update(
        {"business_id": business_id, "deleted_at": None},
        {"$set": to_mongo_value(updates)},
        return_document=True
    )

    await AuditService(db).log(
        current_user.user_id, AuditAction.UPDATE, "business", business_id,
        business_id=business_id,
        before={k: before.get(k) for k in updates if k != "updated_at"},
        after=data.model_dump(mode="json", exclude_unset=True),
        request=request
    )
    return SingleResponse(data=BusinessResponse(**result), message="Business updated successfully")


@router.post("/{business_id}/staff", response_model=SingleResponse[BusinessResponse])
async def add_staff(
    business_id: str,
    data: StaffAssignment,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Attach an existing staff account to the business"""
    ensure_access(current_user, business_id, admin_only=True)
    await get_business_doc(db, business_id)

    user = await db.users.find_one({"user_id": data.user_id, "deleted_at": None})
    if not user or user["role"] != UserRole.STAFF.value:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "STAFF_NOT_FOUND", "message": "Staff member not found"}
        )

    await db.users.update_one(
        {"user_id": data.user_id},
        {"$addToSet": {"business_ids": business_id}, "$set": {"updated_at": utc_now()}}
    )
    result = await db.businesses.find_one_and_update(
        {"business_id": business_id},
        {"$addToSet": {"staff_ids": data.user_id}, "$set": {"updated_at": utc_now()}},
        return_document=True
    )
    await AuditService(db).log(
        current_user.user_id, AuditAction.UPDATE, "business", business_id,
        business_id=business_id, extra={"staff_added": data.user_id}, request=request
    )
    return SingleResponse(data=BusinessResponse(**result), message="Staff member added")


@router.delete("/{business_id}/staff/{user_id}", response_model=SingleResponse[BusinessResponse])
async def remove_staff(
    business_id: str,
    user_id: str,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    ensure_access(current_user, business_id, admin_only=True)
    business = await get_business_doc(db, business_id)
    if user_id not in business.get("staff_ids", []):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "STAFF_NOT_FOUND", "message": "Staff member not found in this business"}
        )

    await db.users.update_one(
        {"user_id": user_id},
        {"$pull": {"business_ids": business_id}, "$set": {"updated_at": utc_now()}}
    )
    await db.services.update_many({"business_id": business_id}, {"$pull": {"staff_ids": user_id}})
    result = await db.businesses.find_one_and_update(
        {"business_id": business_id},
        {"$pull": {"staff_ids": user_id}, "$set": {"updated_at": utc_now()}},
        return_document=True
    )
    await AuditService(db).log(
        current_user.user_id, AuditAction.UPDATE, "business", business_id,
        business_id=business_id, extra={"staff_removed": user_id}, request=request
    )
    return SingleResponse(data=BusinessResponse(**result), message="Staff member removed")


@router.delete(
    "/{business_id}",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Business has upcoming appointments"}}
)
async def delete_business(
    business_id: str,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Deactivate a business; refused while appointments are still ahead"""
    ensure_access(current_user, business_id, admin_only=True)
    await get_business_doc(db, business_id)

    upcoming = await db.appointments.count_documents({
        "business_id": business_id,
        "scheduled_date": {"$gte": date.today().isoformat()},
        "status": {"$in": [s.value for s in ACTIVE_STATUSES]},
        "deleted_at": None
    })
    if upcoming:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "BUSINESS_HAS_APPOINTMENTS",
                "message": f"Cannot deactivate a business with {upcoming} upcoming appointment(s)"
            }
        )

    now = utc_now()
    await db.businesses.update_one(
        {"business_id": business_id},
        {"$set": {"is_active": False, "deleted_at": now, "updated_at": now}}
    )
    await AuditService(db).log(
        current_user.user_id, AuditAction.DELETE, "business", business_id,
        business_id=business_id, request=request
    )
    logger.info(f"Business deactivated: {business_id}")
    return MessageResponse(message="Business deactivated successfully")
