"""
Business Category Service
Platform category catalogue maintained by super admins
"""

import logging
import re
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.business_category import (
    BusinessCategory, BusinessCategoryCreate, BusinessCategoryUpdate, DisplayOrderItem, slugify
)
from app.models.common import utc_now
from app.models.user import User
from app.schemas.common import Pagination
from app.services.base_service import BaseService
from app.utils.exceptions import PetSyncException, ResourceExistsError, ResourceInUseError, ResourceNotFoundError

logger = logging.getLogger(__name__)

# Listing order everywhere categories are shown
DISPLAY_SORT = [("display_order", 1), ("name", 1)]


class CategoryService(BaseService[BusinessCategory]):
    """CRUD, ordering and usage stats for business categories"""

    def __init__(self, db: AsyncIOMotorDatabase):
        super().__init__(db, "business_categories", BusinessCategory, "category_id")

    async def list_categories(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        page: int = 1,
        limit: int = 20
    ) -> tuple[list[BusinessCategory], Pagination]:
        filters: dict = {}
        if is_active is not None:
            filters["is_active"] = is_active
        if search:
            pattern = re.escape(search.strip())
            filters["$or"] = [
                {"name": {"$regex": pattern, "$options": "i"}},
                {"description": {"$regex": pattern, "$options": "i"}},
            ]
        return await self.get_many(filters, page=page, limit=limit, sort_by="display_order", sort_order=1)

    async def list_active(self) -> list[BusinessCategory]:
        """Every active category in display order, for pickers and the public site"""
        docs = await self.collection.find(
            {"is_active": True, "deleted_at": None}
        ).sort(DISPLAY_SORT).to_list(length=None)
        return [BusinessCategory(**d) for d in docs]

    async def get_category(self, category_id: str) -> BusinessCategory:
        category = await self.get_by_id(category_id)
        if not category:
            raise ResourceNotFoundError("Category", category_id)
        return category

    async def find_by_key(self, key: str) -> Optional[BusinessCategory]:
        """Look a category up by id, slug or exact name"""
        doc = await self.collection.find_one({
            "$or": [
                {"category_id": key},
                {"slug": key.lower()},
                {"name": {"$regex": f"^{re.escape(key)}$", "$options": "i"}},
            ],
            "deleted_at": None
        })
        return BusinessCategory(**doc) if doc else None

    async def ensure_assignable(self, category_id: Optional[str]) -> None:
        """Businesses may only be filed under an active category"""
        if category_id is None:
            return
        doc = await self.collection.find_one({"category_id": category_id, "is_active": True, "deleted_at": None})
        if not doc:
            raise ResourceNotFoundError("Category", category_id)

    async def _ensure_unique(self, name: str, exclude_id: Optional[str] = None) -> str:
        slug = slugify(name)
        if not slug:
            raise PetSyncException("INVALID_CATEGORY_NAME", "Category name must contain letters or digits")

        query: dict = {
            "$or": [
                {"name": {"$regex": f"^{re.escape(name)}$", "$options": "i"}},
                {"slug": slug},
            ],
            "deleted_at": None
        }
        if exclude_id:
            query["category_id"] = {"$ne": exclude_id}
        if await self.collection.find_one(query):
            raise ResourceExistsError("Category", "name")
        return slug

    async def create_category(self, data: BusinessCategoryCreate, user: User) -> BusinessCategory:
        slug = await self._ensure_unique(data.name)
        fields = data.model_dump(exclude_none=True)
        category = BusinessCategory(slug=slug, created_by=user.user_id, **fields)
        await self.create(category)
        logger.info(f"Business category created: {category.category_id} ({category.slug})")
        return category

    async def update_category(self, category_id: str, data: BusinessCategoryUpdate) -> BusinessCategory:
        """Renaming regenerates the slug"""
        await self.get_category(category_id)
        updates = data.model_dump(exclude_unset=True)
        if updates.get("name"):
            updates["slug"] = await self._ensure_unique(updates["name"], exclude_id=category_id)

        category = await self.update(category_id, updates)
        if not category:
            raise ResourceNotFoundError("Category", category_id)
        return category

    async def delete_category(self, category_id: str) -> None:
        """Soft delete; refused while businesses are filed under it"""
        await self.get_category(category_id)
        in_use = await self.db.businesses.count_documents({"category_id": category_id, "deleted_at": None})
        if in_use:
            raise ResourceInUseError("category", f"{in_use} business(es) use it")
        await self.delete(category_id)
        logger.info(f"Business category deleted: {category_id}")

    async def reorder(self, items: list[DisplayOrderItem]) -> list[BusinessCategory]:
        """Apply a batch of display positions, then return the new order"""
        ids = [item.category_id for item in items]
        found = await self.collection.count_documents({"category_id": {"$in": ids}, "deleted_at": None})
        if found != len(set(ids)):
            raise ResourceNotFoundError("Category")

        now = utc_now()
        for item in items:
            await self.collection.update_one(
                {"category_id": item.category_id},
                {"$set": {"display_order": item.display_order, "updated_at": now}}
            )
        docs = await self.collection.find({"deleted_at": None}).sort(DISPLAY_SORT).to_list(length=None)
        return [BusinessCategory(**d) for d in docs]

    async def get_stats(self) -> dict:
        """Category totals plus how many live businesses each one holds"""
        docs = await self.collection.find({"deleted_at": None}).sort(DISPLAY_SORT).to_list(length=None)
        businesses = await self.db.businesses.find(
            {"deleted_at": None, "category_id": {"$ne": None}}, {"category_id": 1, "is_active": 1}
        ).to_list(length=None)

        counts: dict[str, dict] = {}
        for business in businesses:
            entry = counts.setdefault(business["category_id"], {"total": 0, "active": 0})
            entry["total"] += 1
            if business.get("is_active", True):
                entry["active"] += 1

        return {
            "total": len(docs),
            "active": sum(1 for d in docs if d.get("is_active")),
            "categories": [
                {
                    "category_id": d["category_id"],
                    "name": d["name"],
                    "businesses": counts.get(d["category_id"], {}).get("total", 0),
                    "active_businesses": counts.get(d["category_id"], {}).get("active", 0),
                }
                for d in docs
            ]
        }
