"""
Clients API Router
Pet owners of a business: listing with totals, onboarding and account status
"""

import logging
import re
from collections import defaultdict
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.database import get_database
from app.middleware.auth import BusinessContext, get_business_context, require_permission
from app.models.appointment import ACTIVE_STATUSES, AppointmentStatus
from app.models.client import (
    ClientCreate, ClientResponse, ClientSort, ClientStats, ClientStatus, ClientUpdate, StatusUpdate
)
from app.models.common import to_mongo_value, utc_now
from app.models.invoice import InvoiceStatus
from app.models.pet import PetResponse
from app.models.user import User, UserRole
from app.schemas.common import ErrorResponse, MessageResponse, Pagination, SingleResponse, create_pagination
from app.services.audit_service import AuditAction, AuditService
from app.services.auth_service import AuthError, AuthService
from app.services.email_service import get_email_service
from app.services.pet_service import PetService
from app.utils.security import generate_temp_password

router = APIRouter()
logger = logging.getLogger(__name__)

SORTS = {
    ClientSort.NEWEST: [("created_at", -1)],
    ClientSort.OLDEST: [("created_at", 1)],
    ClientSort.NAME: [("first_name", 1), ("last_name", 1)],
}


class ClientList(BaseModel):
    clients: list[ClientResponse]
    stats: ClientStats
    pagination: Pagination


class ClientCreated(BaseModel):
    client: ClientResponse
    pets: list[PetResponse]
    temporary_password: str


def client_query(ctx: BusinessContext, **extra) -> dict:
    return ctx.filter_query(
        {"role": UserRole.CLIENT.value, "deleted_at": None, **extra},
        business_field="business_ids"
    )


async def with_totals(db: AsyncIOMotorDatabase, docs: list[dict], business_id: Optional[str]) -> list[ClientResponse]:
    """
    Decorate clients with appointment count, amount paid and last visit

    One query per collection for the whole page, keyed by client_id.
    """
    client_ids = [doc["user_id"] for doc in docs]
    scope = {"client_id": {"$in": client_ids}, "deleted_at": None}
    if business_id:
        scope["business_id"] = business_id

    appointments = await db.appointments.find(
        scope, {"client_id": 1, "status": 1, "completed_at": 1}
    ).to_list(length=None)

    paid = await db.invoices.find(
        {**scope, "status": {"$in": [InvoiceStatus.PAID.value, InvoiceStatus.PARTIAL.value]}},
        {"client_id": 1, "paid_amount": 1}
    ).to_list(length=None)

    counts = defaultdict(int)
    last_visit = {}
    for appt in appointments:
        client_id = appt["client_id"]
        counts[client_id] += 1
        completed_at = appt.get("completed_at")
        if appt.get("status") == AppointmentStatus.COMPLETED.value and completed_at:
            if client_id not in last_visit or completed_at > last_visit[client_id]:
                last_visit[client_id] = completed_at

    spent = defaultdict(float)
    for invoice in paid:
        spent[invoice["client_id"]] += invoice.get("paid_amount", 0)

    return [
        ClientResponse(
            **doc,
            total_appointments=counts[doc["user_id"]],
            total_spent=round(spent[doc["user_id"]], 2),
            last_visit=last_visit.get(doc["user_id"])
        )
        for doc in docs
    ]


async def get_client_doc(db: AsyncIOMotorDatabase, ctx: BusinessContext, client_id: str) -> dict:
    doc = await db.users.find_one(client_query(ctx, user_id=client_id))
    if not doc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "CLIENT_NOT_FOUND", "message": "Client not found"}
        )
    return doc


@router.get("", response_model=SingleResponse[ClientList])
async def list_clients(
    search: Optional[str] = None,
    status_filter: Optional[ClientStatus] = Query(None, alias="status"),
    sort: ClientSort = ClientSort.NEWEST,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_permission("clients", "read")),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """List clients with per-client totals and listing stats"""
    base = client_query(ctx)
    query = dict(base)

    if status_filter:
        query["is_active"] = status_filter == ClientStatus.ACTIVE

    if search:
        pattern = re.escape(search.strip())
        query["$or"] = [
            {"first_name": {"$regex": pattern, "$options": "i"}},
            {"last_name": {"$regex": pattern, "$options": "i"}},
            {"email": {"$regex": pattern, "$options": "i"}},
            {"phone": {"$regex": pattern, "$options": "i"}}
        ]

    total = await db.users.count_documents(query)
    cursor = db.users.find(query).sort(SORTS[sort]).skip((page - 1) * limit).limit(limit)
    docs = await cursor.to_list(length=limit)

    business_id = None if ctx.is_super_admin else ctx.business_id
    clients = await with_totals(db, docs, business_id)

    month_start = utc_now().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    all_clients = await db.users.count_documents(base)
    active = await db.users.count_documents({**base, "is_active": True})
    stats = ClientStats(
        total=all_clients,
        active=active,
        inactive=all_clients - active,
        new_this_month=await db.users.count_documents({**base, "created_at": {"$gte": month_start}})
    )

    return SingleResponse(data=ClientList(
        clients=clients, stats=stats, pagination=create_pagination(total, page, limit)
    ))


@router.get("/{client_id}", response_model=SingleResponse[ClientResponse])
async def get_client(
    client_id: str,
    current_user: User = Depends(require_permission("clients", "read")),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    doc = await get_client_doc(db, ctx, client_id)
    business_id = None if ctx.is_super_admin else ctx.business_id
    return SingleResponse(data=(await with_totals(db, [doc], business_id))[0])


@router.post(
    "",
    response_model=SingleResponse[ClientCreated],
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse, "description": "Email already exists"}}
)
async def create_client(
    data: ClientCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_permission("clients", "create")),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    Add a client with a temporary password

    Pets listed in the payload are created for the new client.
    """
    business_id = ctx.resolve_business_id(data.business_id)
    business = await db.businesses.find_one({"business_id": business_id, "deleted_at": None})
    if not business:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "BUSINESS_NOT_FOUND", "message": "Business not found"}
        )

    temp_password = generate_temp_password()
    try:
        client = await AuthService(db).register_client(
            data.email, temp_password, data.first_name, data.last_name,
            phone=data.phone, business_id=business_id
        )
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail={"code": e.code, "message": e.message})

    if data.address.model_dump(exclude_none=True):
        await db.users.update_one(
            {"user_id": client.user_id},
            {"$set": {"address": to_mongo_value(data.address.model_dump())}}
        )
        client.address = data.address

    pet_service = PetService(db)
    pets = []
    for pet_data in data.pets:
        pet_data.owner_id = client.user_id
        pets.append(await pet_service.create_pet(pet_data, current_user))
    client.pet_ids = [p.pet_id for p in pets]

    await db.businesses.update_one({"business_id": business_id}, {"$inc": {"total_clients": 1}})

    if data.send_welcome_email:
        background_tasks.add_task(
            get_email_service().send_welcome,
            client.email, client.first_name, temp_password, business["name"]
        )

    await AuditService(db).log(
        current_user.user_id, AuditAction.CREATE, "client", client.user_id,
        business_id=business_id, extra={"pets": client.pet_ids}, request=request
    )
    logger.info(f"Client {client.user_id} added to {business_id} with {len(pets)} pet(s)")

    return SingleResponse(
        data=ClientCreated(
            client=ClientResponse.model_validate(client),
            pets=[PetResponse.from_pet(p) for p in pets],
            temporary_password=temp_password
        ),
        message="Client created successfully"
    )


@router.put("/{client_id}", response_model=SingleResponse[ClientResponse])
async def update_client(
    client_id: str,
    data: ClientUpdate,
    request: Request,
    current_user: User = Depends(require_permission("clients", "update")),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    before = await get_client_doc(db, ctx, client_id)

    updates = data.model_dump(exclude_unset=True)
    if "address" in updates and updates["address"] is not None:
        updates["address"] = {**before.get("address", {}), **data.address.model_dump(exclude_unset=True)}
    updates["updated_at"] = utc_now()

    result = await db.users.find_one_and_update(
        client_query(ctx, user_id=client_id),
        {"$set": to_mongo_value(updates)},
        return_document=True
    )

    await AuditService(db).log(
        current_user.user_id, AuditAction.UPDATE, "client", client_id,
        business_id=ctx.business_id,
        before={k: before.get(k) for k in updates if k != "updated_at"},
        after={k: result.get(k) for k in updates if k != "updated_at"},
        request=request
    )
    business_id = None if ctx.is_super_admin else ctx.business_id
    client = (await with_totals(db, [result], business_id))[0]
    return SingleResponse(data=client, message="Client updated successfully")


@router.patch("/{client_id}/status", response_model=SingleResponse[ClientResponse])
async def update_client_status(
    client_id: str,
    data: StatusUpdate,
    request: Request,
    current_user: User = Depends(require_permission("clients", "update")),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Activate or deactivate a client's account"""
    before = await get_client_doc(db, ctx, client_id)
    result = await db.users.find_one_and_update(
        client_query(ctx, user_id=client_id),
        {"$set": {"is_active": data.is_active, "updated_at": utc_now()}},
        return_document=True
    )
    await AuditService(db).log(
        current_user.user_id, AuditAction.STATUS_CHANGE, "client", client_id,
        business_id=ctx.business_id,
        before={"is_active": before.get("is_active")}, after={"is_active": data.is_active},
        request=request
    )
    state = "activated" if data.is_active else "deactivated"
    return SingleResponse(data=ClientResponse(**result), message=f"Client {state}")


@router.delete(
    "/{client_id}",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Client has active appointments"}}
)
async def delete_client(
    client_id: str,
    request: Request,
    current_user: User = Depends(require_permission("clients", "delete")),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Soft delete; refused while the client has open appointments"""
    await get_client_doc(db, ctx, client_id)

    active = await db.appointments.count_documents({
        "client_id": client_id,
        "status": {"$in": [s.value for s in ACTIVE_STATUSES]},
        "deleted_at": None
    })
    if active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "CLIENT_HAS_APPOINTMENTS",
                "message": f"Cannot delete client with {active} active appointment(s)"
            }
        )

    now = utc_now()
    await db.users.update_one(
        {"user_id": client_id},
        {"$set": {"deleted_at": now, "updated_at": now, "is_active": False}}
    )
    if ctx.business_id:
        await db.businesses.update_one({"business_id": ctx.business_id}, {"$inc": {"total_clients": -1}})

    await AuditService(db).log(
        current_user.user_id, AuditAction.DELETE, "client", client_id,
        business_id=ctx.business_id, request=request
    )
    return MessageResponse(message="Client deleted successfully")
