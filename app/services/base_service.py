"""
Base CRUD Service
Reusable service pattern for business-scoped collections
"""

from typing import TypeVar, Generic, Optional, Type
from motor.motor_asyncio import AsyncIOMotorDatabase, AsyncIOMotorCollection

from app.models.common import BaseDocument, to_mongo_value, utc_now
from app.schemas.common import Pagination, create_pagination

T = TypeVar("T", bound=BaseDocument)


class BaseService(Generic[T]):
    """
    Base service with CRUD operations for MongoDB collections

    Provides:
    - Create, read, update, delete operations
    - Scoping by an extra filter (business, owner)
    - Soft delete support
    - Pagination
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        collection_name: str,
        model_class: Type[T],
        id_field: str
    ):
        self.db = db
        self.collection: AsyncIOMotorCollection = db[collection_name]
        self.model_class = model_class
        self.id_field = id_field

    @staticmethod
    def _scoped(query: dict, scope: Optional[dict], include_deleted: bool = False) -> dict:
        query = {**query, **(scope or {})}
        if not include_deleted:
            query["deleted_at"] = None
        return query

    async def create(self, document: T) -> T:
        """Insert a new document"""
        await self.collection.insert_one(document.to_mongo())
        return document

    async def get_by_id(
        self,
        doc_id: str,
        scope: Optional[dict] = None,
        include_deleted: bool = False
    ) -> Optional[T]:
        """
        Get document by ID

        Args:
            doc_id: Document ID
            scope: Extra filter for multi-tenant security
            include_deleted: Whether to include soft-deleted documents
        """
        doc = await self.collection.find_one(
            self._scoped({self.id_field: doc_id}, scope, include_deleted)
        )
        return self.model_class(**doc) if doc else None

    async def get_many(
        self,
        filters: Optional[dict] = None,
        scope: Optional[dict] = None,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "created_at",
        sort_order: int = -1
    ) -> tuple[list[T], Pagination]:
        """Get a page of documents and the pagination block"""
        query = self._scoped(filters or {}, scope)

        total = await self.collection.count_documents(query)

        cursor = self.collection.find(query).sort(sort_by, sort_order)
        cursor = cursor.skip((page - 1) * limit).limit(limit)
        docs = await cursor.to_list(length=limit)

        return [self.model_class(**doc) for doc in docs], create_pagination(total, page, limit)

    async def update(
        self,
        doc_id: str,
        data: dict,
        scope: Optional[dict] = None
    ) -> Optional[T]:
        """
        Update document by ID

        None values are dropped so they never overwrite stored data.
        """
        update_data = {k: to_mongo_value(v) for k, v in data.items() if v is not None}
        update_data["updated_at"] = utc_now()

        result = await self.collection.find_one_and_update(
            self._scoped({self.id_field: doc_id}, scope),
            {"$set": update_data},
            return_document=True
        )
        return self.model_class(**result) if result else None

    async def delete(self, doc_id: str, scope: Optional[dict] = None) -> bool:
        """Soft delete by ID"""
        now = utc_now()
        result = await self.collection.update_one(
            self._scoped({self.id_field: doc_id}, scope),
            {"$set": {"deleted_at": now, "updated_at": now}}
        )
        return result.modified_count > 0

    async def count(self, filters: Optional[dict] = None, scope: Optional[dict] = None) -> int:
        """Count documents matching criteria"""
        return await self.collection.count_documents(self._scoped(filters or {}, scope))
