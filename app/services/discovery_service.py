"""
Discovery Service
Public business directory and the contact form behind it
"""

import logging
import re
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.business import Business, PublicBusiness, PublicServiceSummary
from app.models.business_category import BusinessCategory, CategorySummary
from app.models.common import utc_now
from app.models.inquiry import (
    Inquiry, InquiryCreate, InquiryCustomer, InquiryMetadata, InquiryStatus, InquiryStatusUpdate
)
from app.models.service import Service
from app.models.user import User, UserRole
from app.schemas.common import Pagination, create_pagination
from app.services.base_service import BaseService
from app.services.category_service import CategoryService
from app.services.email_service import EmailService, get_email_service
from app.utils.exceptions import ResourceNotFoundError

logger = logging.getLogger(__name__)

# Busiest first, then newest
LISTING_SORT = [("total_appointments", -1), ("created_at", -1)]


def listed_query(**extra) -> dict:
    """Businesses visible to anonymous visitors"""
    return {"is_active": True, "is_public": True, "deleted_at": None, **extra}


class DiscoveryService:
    """Read-only views over businesses for the public site"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.categories = CategoryService(db)

    async def _decorate(self, docs: list[dict], with_schedule: bool = False) -> list[PublicBusiness]:
        """Attach category and active services, one query each for the whole page"""
        businesses = [Business(**d) for d in docs]
        category_ids = list({b.category_id for b in businesses if b.category_id})
        business_ids = [b.business_id for b in businesses]

        categories = {}
        if category_ids:
            category_docs = await self.db.business_categories.find(
                {"category_id": {"$in": category_ids}, "deleted_at": None}
            ).to_list(length=None)
            categories = {
                d["category_id"]: CategorySummary.model_validate(BusinessCategory(**d)) for d in category_docs
            }

        services: dict[str, list[PublicServiceSummary]] = {b: [] for b in business_ids}
        service_docs = await self.db.services.find(
            {"business_id": {"$in": business_ids}, "is_active": True, "deleted_at": None}
        ).sort("name", 1).to_list(length=None)
        for doc in service_docs:
            service = Service(**doc)
            services[service.business_id].append(PublicServiceSummary(
                service_id=service.service_id,
                name=service.name,
                description=service.description,
                category=service.category.value,
                price=service.pricing.base_price,
                currency=service.pricing.currency,
                duration_minutes=service.duration.estimated_minutes,
            ))

        return [
            PublicBusiness(
                **b.model_dump(include={
                    "business_id", "name", "company_name", "description", "phone", "email",
                    "website", "logo_url", "address", "total_appointments", "created_at"
                }),
                category=categories.get(b.category_id),
                schedule=b.schedule if with_schedule else None,
                services=services[b.business_id],
            )
            for b in businesses
        ]

    async def _page(self, query: dict, page: int, limit: int) -> tuple[list[PublicBusiness], Pagination]:
        total = await self.db.businesses.count_documents(query)
        docs = await (
            self.db.businesses.find(query)
            .sort(LISTING_SORT)
            .skip((page - 1) * limit)
            .limit(limit)
            .to_list(length=limit)
        )
        return await self._decorate(docs), create_pagination(total, page, limit)

    async def list_categories(self) -> list[CategorySummary]:
        return [CategorySummary.model_validate(c) for c in await self.categories.list_active()]

    async def search_businesses(
        self,
        q: Optional[str] = None,
        category: Optional[str] = None,
        page: int = 1,
        limit: int = 12
    ) -> tuple[list[PublicBusiness], Pagination]:
        """
        Text and category search over listed businesses

        `q` matches the business profile and the names of its active
        services. `category` may be an id, a slug or a name; an unknown
        category yields an empty page.
        """
        query = listed_query()

        if category:
            found = await self.categories.find_by_key(category.strip())
            if not found or not found.is_active:
                return [], create_pagination(0, page, limit)
            query["category_id"] = found.category_id

        if q and q.strip():
            pattern = re.escape(q.strip())
            offering = await self.db.services.find(
                {
                    "$or": [
                        {"name": {"$regex": pattern, "$options": "i"}},
                        {"description": {"$regex": pattern, "$options": "i"}},
                    ],
                    "is_active": True,
                    "deleted_at": None
                },
                {"business_id": 1}
            ).to_list(length=None)
            query["$or"] = [
                {"name": {"$regex": pattern, "$options": "i"}},
                {"company_name": {"$regex": pattern, "$options": "i"}},
                {"description": {"$regex": pattern, "$options": "i"}},
                {"business_id": {"$in": list({s["business_id"] for s in offering})}},
            ]

        return await self._page(query, page, limit)

    async def get_business(self, business_id: str) -> PublicBusiness:
        doc = await self.db.businesses.find_one(listed_query(business_id=business_id))
        if not doc:
            raise ResourceNotFoundError("Business", business_id)
        return (await self._decorate([doc], with_schedule=True))[0]

    async def businesses_in_category(
        self,
        category_id: str,
        page: int = 1,
        limit: int = 12
    ) -> tuple[CategorySummary, list[PublicBusiness], Pagination]:
        category = await self.categories.get_category(category_id)
        if not category.is_active:
            raise ResourceNotFoundError("Category", category_id)
        businesses, pagination = await self._page(listed_query(category_id=category_id), page, limit)
        return CategorySummary.model_validate(category), businesses, pagination


class InquiryService(BaseService[Inquiry]):
    """Contact requests from the public site and their follow-up"""

    def __init__(self, db: AsyncIOMotorDatabase, email_service: Optional[EmailService] = None):
        super().__init__(db, "inquiries", Inquiry, "inquiry_id")
        self.email_service = email_service or get_email_service()

    async def submit(self, data: InquiryCreate, metadata: InquiryMetadata) -> tuple[Inquiry, dict]:
        """Store an inquiry for an active business; returns it with the business document"""
        business = await self.db.businesses.find_one(
            {"business_id": data.business_id, "is_active": True, "deleted_at": None}
        )
        if not business:
            raise ResourceNotFoundError("Business", data.business_id)

        inquiry = Inquiry(
            business_id=data.business_id,
            customer=InquiryCustomer(
                name=data.customer_name or "Anonymous",
                phone=data.customer_phone,
                email=data.customer_email.lower() if data.customer_email else None
            ),
            message=data.message,
            service_interest=data.service_interest or "General Inquiry",
            metadata=metadata
        )
        await self.create(inquiry)
        logger.info(f"Inquiry {inquiry.inquiry_id} received for {data.business_id}")
        return inquiry, business

    async def notify_business(self, inquiry: Inquiry, business: dict) -> None:
        result = await self.email_service.send_inquiry_notification(
            business["email"],
            business["name"],
            inquiry.customer.name,
            inquiry.customer.phone,
            inquiry.customer.email,
            inquiry.service_interest,
            inquiry.message
        )
        if not result.success:
            logger.warning(f"Inquiry {inquiry.inquiry_id} notification not sent: {result.error}")

    @staticmethod
    def scope(user: User) -> dict:
        if user.role == UserRole.SUPER_ADMIN:
            return {}
        return {"business_id": user.business_id}

    async def list_inquiries(
        self,
        user: User,
        status: Optional[InquiryStatus] = None,
        page: int = 1,
        limit: int = 20
    ) -> tuple[list[Inquiry], Pagination]:
        filters = {"status": status.value} if status else {}
        return await self.get_many(filters, self.scope(user), page, limit)

    async def update_status(self, inquiry_id: str, data: InquiryStatusUpdate, user: User) -> Inquiry:
        """Move an inquiry along; first contact and closing are timestamped once"""
        inquiry = await self.get_by_id(inquiry_id, self.scope(user))
        if not inquiry:
            raise ResourceNotFoundError("Inquiry", inquiry_id)

        updates: dict = {"status": data.status.value, "priority": data.priority}
        now = utc_now()
        if data.status == InquiryStatus.CONTACTED and inquiry.contacted_at is None:
            updates["contacted_at"] = now
        if data.status == InquiryStatus.CLOSED and inquiry.closed_at is None:
            updates["closed_at"] = now

        updated = await self.update(inquiry_id, updates, self.scope(user))
        if not updated:
            raise ResourceNotFoundError("Inquiry", inquiry_id)
        return updated
