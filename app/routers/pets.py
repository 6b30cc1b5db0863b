"""
Pets API Router
Pet profiles and their medical history
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.database import get_database
from app.middleware.auth import get_current_user
from app.models.pet import (
    MedicalRecord, MedicalRecordCreate, MedicalRecordUpdate, PetCreate, PetResponse,
    PetStatus, PetUpdate, Species
)
from app.models.user import User
from app.schemas.common import ErrorResponse, ListResponse, MessageResponse, Pagination, SingleResponse
from app.services.audit_service import AuditAction, AuditService
from app.services.pet_service import PetService

router = APIRouter()


class PetList(BaseModel):
    pets: list[PetResponse]
    pagination: Pagination


class MedicalRecordList(BaseModel):
    records: list[MedicalRecord]
    pagination: Pagination


def get_pet_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> PetService:
    return PetService(db)


@router.get("", response_model=SingleResponse[PetList])
async def list_pets(
    owner_id: Optional[str] = None,
    species: Optional[Species] = None,
    status_filter: Optional[PetStatus] = Query(None, alias="status"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: PetService = Depends(get_pet_service)
):
    """Pets visible to the caller; clients only see their own"""
    pets, pagination = await service.list_pets(
        current_user, owner_id, species, status_filter, search, page, limit
    )
    return SingleResponse(data=PetList(pets=[PetResponse.from_pet(p) for p in pets], pagination=pagination))


@router.get("/stats", response_model=SingleResponse[dict])
async def get_pet_stats(
    current_user: User = Depends(get_current_user),
    service: PetService = Depends(get_pet_service)
):
    return SingleResponse(data=await service.get_stats(current_user))


@router.get(
    "/search",
    response_model=ListResponse[PetResponse],
    responses={400: {"model": ErrorResponse, "description": "Query shorter than 2 characters"}}
)
async def search_pets(
    q: str = Query(..., description="Name, breed or microchip"),
    limit: int = Query(20, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    service: PetService = Depends(get_pet_service)
):
    pets = await service.search(q, current_user, limit)
    return ListResponse(data=[PetResponse.from_pet(p) for p in pets], count=len(pets))


@router.post("", response_model=SingleResponse[PetResponse], status_code=status.HTTP_201_CREATED)
async def create_pet(
    data: PetCreate,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database),
    service: PetService = Depends(get_pet_service)
):
    pet = await service.create_pet(data, current_user)
    await AuditService(db).log(
        current_user.user_id, AuditAction.CREATE, "pet", pet.pet_id,
        business_id=current_user.business_id, request=request
    )
    return SingleResponse(data=PetResponse.from_pet(pet), message="Pet created successfully")


@router.get("/{pet_id}", response_model=SingleResponse[PetResponse])
async def get_pet(
    pet_id: str,
    current_user: User = Depends(get_current_user),
    service: PetService = Depends(get_pet_service)
):
    return SingleResponse(data=PetResponse.from_pet(await service.get_pet(pet_id, current_user)))


@router.put("/{pet_id}", response_model=SingleResponse[PetResponse])
async def update_pet(
    pet_id: str,
    data: PetUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database),
    service: PetService = Depends(get_pet_service)
):
    pet = await service.update_pet(pet_id, data, current_user)
    await AuditService(db).log(
        current_user.user_id, AuditAction.UPDATE, "pet", pet_id,
        business_id=current_user.business_id,
        after=data.model_dump(mode="json", exclude_unset=True),
        request=request
    )
    return SingleResponse(data=PetResponse.from_pet(pet), message="Pet updated successfully")


@router.delete(
    "/{pet_id}",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Pet has active appointments"}}
)
async def delete_pet(
    pet_id: str,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database),
    service: PetService = Depends(get_pet_service)
):
    await service.delete_pet(pet_id, current_user)
    await AuditService(db).log(
        current_user.user_id, AuditAction.DELETE, "pet", pet_id,
        business_id=current_user.business_id, request=request
    )
    return MessageResponse(message="Pet deleted successfully")


# ============== Medical records ==============

@router.get("/{pet_id}/medical-records", response_model=SingleResponse[MedicalRecordList])
async def list_medical_records(
    pet_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: PetService = Depends(get_pet_service)
):
    records, pagination = await service.list_medical_records(pet_id, current_user, page, limit)
    return SingleResponse(data=MedicalRecordList(records=records, pagination=pagination))


@router.post(
    "/{pet_id}/medical-records",
    response_model=SingleResponse[MedicalRecord],
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": ErrorResponse, "description": "Clients cannot edit medical records"}}
)
async def add_medical_record(
    pet_id: str,
    data: MedicalRecordCreate,
    current_user: User = Depends(get_current_user),
    service: PetService = Depends(get_pet_service)
):
    record = await service.add_medical_record(pet_id, data, current_user)
    return SingleResponse(data=record, message="Medical record added")


@router.put("/{pet_id}/medical-records/{record_id}", response_model=SingleResponse[MedicalRecord])
async def update_medical_record(
    pet_id: str,
    record_id: str,
    data: MedicalRecordUpdate,
    current_user: User = Depends(get_current_user),
    service: PetService = Depends(get_pet_service)
):
    record = await service.update_medical_record(pet_id, record_id, data, current_user)
    return SingleResponse(data=record, message="Medical record updated")


@router.delete("/{pet_id}/medical-records/{record_id}", response_model=MessageResponse)
async def delete_medical_record(
    pet_id: str,
    record_id: str,
    current_user: User = Depends(get_current_user),
    service: PetService = Depends(get_pet_service)
):
    await service.delete_medical_record(pet_id, record_id, current_user)
    return MessageResponse(message="Medical record deleted")
