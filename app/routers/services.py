"""
Services API Router
Grooming, boarding, vet and other offerings of a business
"""

import logging
import re
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.database import get_database
from app.middleware.auth import BusinessContext, get_business_context, require_permission
from app.models.appointment import ACTIVE_STATUSES
from app.models.client import StatusUpdate
from app.models.common import to_mongo_value, utc_now
from app.models.service import Service, ServiceCategory, ServiceCreate, ServiceResponse, ServiceUpdate
from app.models.user import User, UserRole
from app.schemas.common import ErrorResponse, MessageResponse, Pagination, SingleResponse, create_pagination
from app.services.audit_service import AuditAction, AuditService

router = APIRouter()
logger = logging.getLogger(__name__)


class ServiceList(BaseModel):
    services: list[ServiceResponse]
    pagination: Pagination


def service_query(ctx: BusinessContext, **extra) -> dict:
    """Clients see the services of every business they belong to"""
    query = {"deleted_at": None, **extra}
    if ctx.is_super_admin:
        return query
    if ctx.is_client:
        return {**query, "business_id": {"$in": ctx.user.business_ids}}
    return {**query, "business_id": ctx.business_id}


async def get_service_doc(db: AsyncIOMotorDatabase, ctx: BusinessContext, service_id: str) -> dict:
    doc = await db.services.find_one(service_query(ctx, service_id=service_id))
    if not doc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "SERVICE_NOT_FOUND", "message": "Service not found"}
        )
    return doc


async def validate_staff_ids(db: AsyncIOMotorDatabase, business_id: str, staff_ids: list[str]) -> None:
    """Every assigned staff member must work for the business"""
    if not staff_ids:
        return
    found = await db.users.count_documents({
        "user_id": {"$in": staff_ids},
        "role": {"$in": [UserRole.STAFF.value, UserRole.BUSINESS_ADMIN.value]},
        "business_ids": business_id,
        "deleted_at": None
    })
    if found != len(set(staff_ids)):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "INVALID_STAFF", "message": "One or more staff members do not belong to this business"}
        )


@router.get("", response_model=SingleResponse[ServiceList])
async def list_services(
    business_id: Optional[str] = None,
    category: Optional[ServiceCategory] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    List services

    Clients only ever see active services.
    """
    query = service_query(ctx)

    if business_id and (ctx.is_super_admin or ctx.verify_business_access(business_id)):
        query["business_id"] = business_id

    if ctx.is_client:
        query["is_active"] = True
    elif is_active is not None:
        query["is_active"] = is_active

    if category:
        query["category"] = category.value

    if search:
        pattern = re.escape(search.strip())
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}}
        ]

    total = await db.services.count_documents(query)
    cursor = db.services.find(query).sort([("category", 1), ("name", 1)]).skip((page - 1) * limit).limit(limit)
    docs = await cursor.to_list(length=limit)

    return SingleResponse(data=ServiceList(
        services=[ServiceResponse(**doc) for doc in docs],
        pagination=create_pagination(total, page, limit)
    ))


@router.get("/categories", response_model=SingleResponse[list[dict]])
async def list_categories(
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Every category with the number of active services in it"""
    categories = []
    for category in ServiceCategory:
        count = await db.services.count_documents(
            service_query(ctx, category=category.value, is_active=True)
        )
        categories.append({
            "value": category.value,
            "label": category.value.replace("_", " ").title(),
            "count": count
        })
    return SingleResponse(data=categories)


@router.get("/stats", response_model=SingleResponse[dict])
async def get_service_stats(
    current_user: User = Depends(require_permission("services", "read")),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    query = service_query(ctx)
    total = await db.services.count_documents(query)
    active = await db.services.count_documents({**query, "is_active": True})

    top = await db.services.find(query).sort("times_booked", -1).limit(5).to_list(length=5)
    revenue_docs = await db.services.find(query, {"total_revenue": 1}).to_list(length=None)

    return SingleResponse(data={
        "total": total,
        "active": active,
        "inactive": total - active,
        "total_revenue": round(sum(d.get("total_revenue", 0) for d in revenue_docs), 2),
        "most_booked": [
            {"service_id": d["service_id"], "name": d["name"], "times_booked": d.get("times_booked", 0)}
            for d in top
        ]
    })


@router.get("/{service_id}", response_model=SingleResponse[ServiceResponse])
async def get_service(
    service_id: str,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    return SingleResponse(data=ServiceResponse(**await get_service_doc(db, ctx, service_id)))


@router.post("", response_model=SingleResponse[ServiceResponse], status_code=status.HTTP_201_CREATED)
async def create_service(
    data: ServiceCreate,
    request: Request,
    current_user: User = Depends(require_permission("services", "create")),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    business_id = ctx.resolve_business_id(data.business_id)
    await validate_staff_ids(db, business_id, data.staff_ids)

    existing = await db.services.find_one({
        "business_id": business_id,
        "name": {"$regex": f"^{re.escape(data.name)}$", "$options": "i"},
        "deleted_at": None
    })
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "SERVICE_EXISTS", "message": "A service with this name already exists"}
        )

    service = Service(
        business_id=business_id,
        created_by=current_user.user_id,
        **data.model_dump(exclude={"business_id"})
    )
    await db.services.insert_one(service.to_mongo())

    await AuditService(db).log(
        current_user.user_id, AuditAction.CREATE, "service", service.service_id,
        business_id=business_id, request=request
    )
    logger.info(f"Service created: {service.service_id} ({service.name})")
    return SingleResponse(data=ServiceResponse.model_validate(service), message="Service created successfully")


@router.put("/{service_id}", response_model=SingleResponse[ServiceResponse])
async def update_service(
    service_id: str,
    data: ServiceUpdate,
    request: Request,
    current_user: User = Depends(require_permission("services", "update")),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    before = await get_service_doc(db, ctx, service_id)
    updates = data.model_dump(exclude_unset=True)
    if updates.get("staff_ids") is not None:
        await validate_staff_ids(db, before["business_id"], updates["staff_ids"])
    updates["updated_at"] = utc_now()

    result = await db.services.find_one_and_update(
        {"service_id": service_id, "deleted_at": None},
        {"$set": to_mongo_value(updates)},
        return_document=True
    )
    await AuditService(db).log(
        current_user.user_id, AuditAction.UPDATE, "service", service_id,
        business_id=before["business_id"],
        before={k: before.get(k) for k in updates if k != "updated_at"},
        after=data.model_dump(mode="json", exclude_unset=True),
        request=request
    )
    return SingleResponse(data=ServiceResponse(**result), message="Service updated successfully")


@router.patch("/{service_id}/status", response_model=SingleResponse[ServiceResponse])
async def update_service_status(
    service_id: str,
    data: StatusUpdate,
    request: Request,
    current_user: User = Depends(require_permission("services", "update")),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Activate or deactivate; inactive services cannot be booked"""
    before = await get_service_doc(db, ctx, service_id)
    result = await db.services.find_one_and_update(
        {"service_id": service_id, "deleted_at": None},
        {"$set": {"is_active": data.is_active, "updated_at": utc_now()}},
        return_document=True
    )
    await AuditService(db).log(
        current_user.user_id, AuditAction.STATUS_CHANGE, "service", service_id,
        business_id=before["business_id"],
        before={"is_active": before.get("is_active")}, after={"is_active": data.is_active},
        request=request
    )
    return SingleResponse(data=ServiceResponse(**result))


@router.delete(
    "/{service_id}",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Service has active appointments"}}
)
async def delete_service(
    service_id: str,
    request: Request,
    current_user: User = Depends(require_permission("services", "delete")),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Soft delete; refused while appointments for it are still open"""
    before = await get_service_doc(db, ctx, service_id)

    active = await db.appointments.count_documents({
        "service.service_id": service_id,
        "status": {"$in": [s.value for s in ACTIVE_STATUSES]},
        "deleted_at": None
    })
    if active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "SERVICE_IN_USE",
                "message": f"Cannot delete service with {active} active appointment(s)"
            }
        )

    now = utc_now()
    await db.services.update_one(
        {"service_id": service_id},
        {"$set": {"deleted_at": now, "updated_at": now, "is_active": False}}
    )
    await AuditService(db).log(
        current_user.user_id, AuditAction.DELETE, "service", service_id,
        business_id=before["business_id"], request=request
    )
    return MessageResponse(message="Service deleted successfully")
