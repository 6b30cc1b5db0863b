"""
Pet Service
Pet profiles, per-role visibility and medical history
"""

import logging
import re
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.appointment import ACTIVE_STATUSES
from app.models.common import to_mongo_value, utc_now
from app.models.pet import (
    MedicalRecord, MedicalRecordCreate, MedicalRecordUpdate, Pet, PetCreate,
    PetStatus, PetUpdate, Species
)
from app.models.user import User, UserRole
from app.schemas.common import Pagination, create_pagination
from app.services.base_service import BaseService
from app.utils.exceptions import (
    AuthorizationError, ResourceInUseError, ResourceNotFoundError, PetSyncException
)

logger = logging.getLogger(__name__)


def pet_scope(user: User) -> dict:
    """Filter limiting pets to what a user may see"""
    if user.role == UserRole.SUPER_ADMIN:
        return {}
    if user.role == UserRole.CLIENT:
        return {"owner_id": user.user_id}
    return {"business_ids": user.business_id}


class PetService(BaseService[Pet]):
    """CRUD plus medical records for pets"""

    def __init__(self, db: AsyncIOMotorDatabase):
        super().__init__(db, "pets", Pet, "pet_id")

    async def list_pets(
        self,
        user: User,
        owner_id: Optional[str] = None,
        species: Optional[Species] = None,
        status: Optional[PetStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20
    ) -> tuple[list[Pet], Pagination]:
        filters: dict = {}
        if owner_id:
            filters["owner_id"] = owner_id
        if species:
            filters["species"] = species.value
        if status:
            filters["status"] = status.value
        if search:
            pattern = re.escape(search)
            filters["$or"] = [
                {"name": {"$regex": pattern, "$options": "i"}},
                {"breed": {"$regex": pattern, "$options": "i"}},
                {"microchip_id": {"$regex": pattern, "$options": "i"}},
            ]
        return await self.get_many(filters, pet_scope(user), page, limit, sort_by="name", sort_order=1)

    async def get_pet(self, pet_id: str, user: User) -> Pet:
        pet = await self.get_by_id(pet_id, pet_scope(user))
        if not pet:
            raise ResourceNotFoundError("Pet", pet_id)
        return pet

    async def _resolve_owner(self, data: PetCreate, user: User) -> User:
        if user.role == UserRole.CLIENT:
            return user

        if not data.owner_id:
            raise PetSyncException("OWNER_REQUIRED", "owner_id is required")

        query = {"user_id": data.owner_id, "role": UserRole.CLIENT.value, "deleted_at": None}
        if user.role != UserRole.SUPER_ADMIN:
            query["business_ids"] = user.business_id
        owner = await self.db.users.find_one(query)
        if not owner:
            raise ResourceNotFoundError("Client", data.owner_id)
        return User(**owner)

    async def create_pet(self, data: PetCreate, user: User) -> Pet:
        """Create a pet for a client and link it to the owner"""
        owner = await self._resolve_owner(data, user)

        business_ids = list(owner.business_ids)
        if user.business_id and user.business_id not in business_ids and user.role != UserRole.CLIENT:
            business_ids.append(user.business_id)

        fields = data.model_dump(exclude={"owner_id"}, exclude_none=True)
        pet = Pet(owner_id=owner.user_id, business_ids=business_ids, created_by=user.user_id, **fields)
        pet.add_audit("created", user.user_id)
        await self.create(pet)

        await self.db.users.update_one(
            {"user_id": owner.user_id},
            {"$addToSet": {"pet_ids": pet.pet_id}, "$set": {"updated_at": utc_now()}}
        )

        logger.info(f"Pet created: {pet.pet_id} for owner {owner.user_id}")
        return pet

    async def update_pet(self, pet_id: str, data: PetUpdate, user: User) -> Pet:
        """
        Partial update

        Nested medical and behavior fields are set one key at a time so
        fields the caller did not send, medical records included, stay put.
        """
        await self.get_pet(pet_id, user)
        updates = data.model_dump(exclude_unset=True)
        for section in ("medical", "behavior"):
            for key, value in (updates.pop(section, None) or {}).items():
                updates[f"{section}.{key}"] = value
        pet = await self.update(pet_id, updates, pet_scope(user))
        if not pet:
            raise ResourceNotFoundError("Pet", pet_id)
        return pet

    async def delete_pet(self, pet_id: str, user: User) -> None:
        """Soft delete; refused while the pet has open appointments"""
        pet = await self.get_pet(pet_id, user)

        active = await self.db.appointments.count_documents({
            "pet_id": pet_id,
            "status": {"$in": [s.value for s in ACTIVE_STATUSES]},
            "deleted_at": None
        })
        if active:
            raise ResourceInUseError("pet", f"{active} active appointment(s)")

        await self.delete(pet_id, pet_scope(user))
        await self.db.users.update_one(
            {"user_id": pet.owner_id},
            {"$pull": {"pet_ids": pet_id}}
        )
        logger.info(f"Pet deleted: {pet_id}")

    async def get_stats(self, user: User) -> dict:
        """Totals plus a per-species breakdown"""
        scope = pet_scope(user)
        total = await self.count(scope=scope)
        active = await self.count({"status": PetStatus.ACTIVE.value}, scope)

        by_species = {}
        for species in Species:
            n = await self.count({"species": species.value}, scope)
            if n:
                by_species[species.value] = n

        return {"total": total, "active": active, "inactive": total - active, "by_species": by_species}

    async def search(self, q: str, user: User, limit: int = 20) -> list[Pet]:
        """Name/breed/microchip lookup for pickers"""
        if len(q.strip()) < 2:
            raise PetSyncException("QUERY_TOO_SHORT", "Search query must be at least 2 characters")
        pets, _ = await self.list_pets(user, search=q.strip(), status=PetStatus.ACTIVE, page=1, limit=limit)
        return pets

    # ============== Medical records ==============

    def _ensure_can_edit_medical(self, user: User) -> None:
        if user.role == UserRole.CLIENT:
            raise AuthorizationError("Only staff can edit medical records")

    async def list_medical_records(
        self,
        pet_id: str,
        user: User,
        page: int = 1,
        limit: int = 10
    ) -> tuple[list[MedicalRecord], Pagination]:
        """Newest visit first"""
        pet = await self.get_pet(pet_id, user)
        records = sorted(
            pet.medical.records,
            key=lambda r: (r.visit_date, r.created_at),
            reverse=True
        )
        start = (page - 1) * limit
        return records[start:start + limit], create_pagination(len(records), page, limit)

    async def add_medical_record(self, pet_id: str, data: MedicalRecordCreate, user: User) -> MedicalRecord:
        self._ensure_can_edit_medical(user)
        await self.get_pet(pet_id, user)

        fields = data.model_dump(exclude_none=True)
        record = MedicalRecord(created_by=user.user_id, **fields)
        now = utc_now()

        await self.collection.update_one(
            {"pet_id": pet_id},
            {
                "$push": {"medical.records": to_mongo_value(record.model_dump())},
                "$set": {"last_visit": now, "updated_at": now},
                "$inc": {"total_visits": 1}
            }
        )
        logger.info(f"Medical record {record.record_id} added to pet {pet_id}")
        return record

    async def update_medical_record(
        self,
        pet_id: str,
        record_id: str,
        data: MedicalRecordUpdate,
        user: User
    ) -> MedicalRecord:
        self._ensure_can_edit_medical(user)
        pet = await self.get_pet(pet_id, user)

        records = pet.medical.records
        for i, record in enumerate(records):
            if record.record_id == record_id:
                updated = record.model_copy(update={**data.model_dump(exclude_unset=True), "updated_at": utc_now()})
                records[i] = updated
                break
        else:
            raise ResourceNotFoundError("Medical record", record_id)

        await self.collection.update_one(
            {"pet_id": pet_id},
            {"$set": {
                "medical.records": [to_mongo_value(r.model_dump()) for r in records],
                "updated_at": utc_now()
            }}
        )
        return updated

    async def delete_medical_record(self, pet_id: str, record_id: str, user: User) -> None:
        self._ensure_can_edit_medical(user)
        await self.get_pet(pet_id, user)

        result = await self.collection.update_one(
            {"pet_id": pet_id},
            {"$pull": {"medical.records": {"record_id": record_id}}}
        )
        if result.modified_count == 0:
            raise ResourceNotFoundError("Medical record", record_id)
