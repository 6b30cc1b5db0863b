"""
Staff API Router
Team member management for a business
"""

import logging
import re
from datetime import date
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.database import get_database
from app.middleware.auth import BusinessContext, get_business_context, require_permission
from app.models.appointment import ACTIVE_STATUSES, AppointmentStatus
from app.models.client import StatusUpdate
from app.models.common import to_mongo_value, utc_now
from app.models.staff import StaffCreate, StaffCreated, StaffResponse, StaffUpdate
from app.models.user import User, UserRole
from app.schemas.common import ErrorResponse, MessageResponse, Pagination, SingleResponse, create_pagination
from app.services.audit_service import AuditAction, AuditService
from app.services.email_service import get_email_service
from app.utils.permissions import default_permissions
from app.utils.security import generate_temp_password, get_password_hash

router = APIRouter()
logger = logging.getLogger(__name__)


class StaffList(BaseModel):
    staff: list[StaffResponse]
    pagination: Pagination


class TemporaryPassword(BaseModel):
    temporary_password: str


def staff_query(ctx: BusinessContext, **extra) -> dict:
    return ctx.filter_query(
        {"role": UserRole.STAFF.value, "deleted_at": None, **extra},
        business_field="business_ids"
    )


async def with_workload(db: AsyncIOMotorDatabase, doc: dict) -> StaffResponse:
    today = await db.appointments.count_documents({
        "staff_id": doc["user_id"],
        "scheduled_date": date.today().isoformat(),
        "status": {"$in": [s.value for s in ACTIVE_STATUSES]},
        "deleted_at": None
    })
    completed = await db.appointments.count_documents({
        "staff_id": doc["user_id"],
        "status": AppointmentStatus.COMPLETED.value,
        "deleted_at": None
    })
    return StaffResponse(**doc, appointments_today=today, completed_total=completed)


async def get_staff_doc(db: AsyncIOMotorDatabase, ctx: BusinessContext, staff_id: str) -> dict:
    doc = await db.users.find_one(staff_query(ctx, user_id=staff_id))
    if not doc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "STAFF_NOT_FOUND", "message": "Staff member not found"}
        )
    return doc


@router.get("", response_model=SingleResponse[StaffList])
async def list_staff(
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    specialization: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_permission("appointments", "read")),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """List team members; clients see them too so they can pick a groomer"""
    query = staff_query(ctx)
    if ctx.is_client:
        query = {
            "role": UserRole.STAFF.value, "deleted_at": None, "is_active": True,
            "business_ids": {"$in": current_user.business_ids}
        }
    elif is_active is not None:
        query["is_active"] = is_active

    if specialization:
        query["specializations"] = specialization

    if search:
        pattern = re.escape(search.strip())
        query["$or"] = [
            {"first_name": {"$regex": pattern, "$options": "i"}},
            {"last_name": {"$regex": pattern, "$options": "i"}},
            {"email": {"$regex": pattern, "$options": "i"}}
        ]

    total = await db.users.count_documents(query)
    cursor = db.users.find(query).sort([("first_name", 1), ("last_name", 1)])
    docs = await cursor.skip((page - 1) * limit).limit(limit).to_list(length=limit)

    return SingleResponse(data=StaffList(
        staff=[await with_workload(db, doc) for doc in docs],
        pagination=create_pagination(total, page, limit)
    ))


@router.get("/stats", response_model=SingleResponse[dict])
async def get_staff_stats(
    current_user: User = Depends(require_permission("staff", "read")),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    query = staff_query(ctx)
    total = await db.users.count_documents(query)
    active = await db.users.count_documents({**query, "is_active": True})

    by_specialization: dict[str, int] = {}
    for doc in await db.users.find(query, {"specializations": 1}).to_list(length=None):
        for specialty in doc.get("specializations", []):
            by_specialization[specialty] = by_specialization.get(specialty, 0) + 1

    return SingleResponse(data={
        "total": total,
        "active": active,
        "inactive": total - active,
        "by_specialization": by_specialization
    })


@router.get("/{staff_id}", response_model=SingleResponse[StaffResponse])
async def get_staff_member(
    staff_id: str,
    current_user: User = Depends(require_permission("staff", "read")),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    return SingleResponse(data=await with_workload(db, await get_staff_doc(db, ctx, staff_id)))


@router.post(
    "",
    response_model=SingleResponse[StaffCreated],
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse, "description": "Email already exists"}}
)
async def create_staff(
    data: StaffCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_permission("staff", "create")),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    Add a team member

    The temporary password is returned once and emailed to the new member.
    """
    business_id = ctx.resolve_business_id(data.business_id)
    business = await db.businesses.find_one({"business_id": business_id, "deleted_at": None})
    if not business:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "BUSINESS_NOT_FOUND", "message": "Business not found"}
        )

    if await db.users.find_one({"email": data.email.lower()}):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "EMAIL_EXISTS", "message": "An account with this email already exists"}
        )

    temp_password = generate_temp_password()
    staff = User(
        email=data.email.lower(),
        password_hash=get_password_hash(temp_password),
        role=UserRole.STAFF,
        business_ids=[business_id],
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone,
        specializations=data.specializations,
        permissions=data.permissions if data.permissions is not None else default_permissions(UserRole.STAFF),
        email_verified=True
    )
    await db.users.insert_one(staff.to_mongo())
    await db.businesses.update_one(
        {"business_id": business_id},
        {"$addToSet": {"staff_ids": staff.user_id}, "$set": {"updated_at": utc_now()}}
    )

    background_tasks.add_task(
        get_email_service().send_welcome,
        staff.email, staff.first_name, temp_password, business["name"]
    )
    await AuditService(db).log(
        current_user.user_id, AuditAction.CREATE, "staff", staff.user_id,
        business_id=business_id, request=request
    )
    logger.info(f"Staff member {staff.user_id} added to {business_id}")

    return SingleResponse(
        data=StaffCreated(staff=StaffResponse.model_validate(staff), temporary_password=temp_password),
        message="Staff member created successfully"
    )


@router.put("/{staff_id}", response_model=SingleResponse[StaffResponse])
async def update_staff(
    staff_id: str,
    data: StaffUpdate,
    request: Request,
    current_user: User = Depends(require_permission("staff", "update")),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    before = await get_staff_doc(db, ctx, staff_id)
    updates = data.model_dump(exclude_unset=True)
    updates["updated_at"] = utc_now()

    result = await db.users.find_one_and_update(
        staff_query(ctx, user_id=staff_id),
        {"$set": to_mongo_value(updates)},
        return_document=True
    )
    await AuditService(db).log(
        current_user.user_id, AuditAction.UPDATE, "staff", staff_id,
        business_id=ctx.business_id,
        before={k: before.get(k) for k in updates if k != "updated_at"},
        after=data.model_dump(mode="json", exclude_unset=True),
        request=request
    )
    return SingleResponse(data=await with_workload(db, result), message="Staff member updated successfully")


@router.patch("/{staff_id}/status", response_model=SingleResponse[StaffResponse])
async def update_staff_status(
    staff_id: str,
    data: StatusUpdate,
    request: Request,
    current_user: User = Depends(require_permission("staff", "update")),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    before = await get_staff_doc(db, ctx, staff_id)
    result = await db.users.find_one_and_update(
        staff_query(ctx, user_id=staff_id),
        {"$set": {"is_active": data.is_active, "updated_at": utc_now()}},
        return_document=True
    )
    await AuditService(db).log(
        current_user.user_id, AuditAction.STATUS_CHANGE, "staff", staff_id,
        business_id=ctx.business_id,
        before={"is_active": before.get("is_active")}, after={"is_active": data.is_active},
        request=request
    )
    return SingleResponse(data=await with_workload(db, result))


@router.post("/{staff_id}/reset-password", response_model=SingleResponse[TemporaryPassword])
async def reset_staff_password(
    staff_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_permission("staff", "update")),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Issue a new temporary password and unlock the account"""
    doc = await get_staff_doc(db, ctx, staff_id)
    temp_password = generate_temp_password()

    await db.users.update_one(
        {"user_id": staff_id},
        {"$set": {
            "password_hash": get_password_hash(temp_password),
            "failed_login_attempts": 0,
            "locked_until": None,
            "updated_at": utc_now()
        }}
    )
    background_tasks.add_task(
        get_email_service().send_welcome, doc["email"], doc["first_name"], temp_password
    )
    await AuditService(db).log(
        current_user.user_id, AuditAction.PASSWORD_RESET, "staff", staff_id,
        business_id=ctx.business_id, request=request
    )
    return SingleResponse(data=TemporaryPassword(temporary_password=temp_password), message="Password reset")


@router.delete(
    "/{staff_id}",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Staff member has active appointments"}}
)
async def delete_staff(
    staff_id: str,
    request: Request,
    current_user: User = Depends(require_permission("staff", "delete")),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    Remove a team member from the business

    A member left without any business is deactivated and their email
    released so it can be registered again.
    """
    doc = await get_staff_doc(db, ctx, staff_id)
    business_id = ctx.business_id if not ctx.is_super_admin else (doc["business_ids"] or [None])[0]

    active = await db.appointments.count_documents({
        "staff_id": staff_id,
        "business_id": business_id,
        "status": {"$in": [s.value for s in ACTIVE_STATUSES]},
        "deleted_at": None
    })
    if active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "STAFF_HAS_APPOINTMENTS",
                "message": f"Reassign {active} active appointment(s) before removing this staff member"
            }
        )

    now = utc_now()
    await db.businesses.update_one({"business_id": business_id}, {"$pull": {"staff_ids": staff_id}})
    await db.services.update_many({"business_id": business_id}, {"$pull": {"staff_ids": staff_id}})

    remaining = [b for b in doc.get("business_ids", []) if b != business_id]
    updates = {"business_ids": remaining, "updated_at": now}
    if not remaining:
        updates.update({
            "is_active": False,
            "deleted_at": now,
            "email": f"deleted_{int(now.timestamp())}_{doc['email']}"
        })
    await db.users.update_one({"user_id": staff_id}, {"$set": updates})

    await AuditService(db).log(
        current_user.user_id, AuditAction.DELETE, "staff", staff_id,
        business_id=business_id, request=request
    )
    return MessageResponse(message="Staff member removed successfully")
