"""
Invoice Service
Invoices for completed appointments, payments and status rollup
"""

import logging
from datetime import date
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.appointment import Appointment, AppointmentStatus
from app.models.common import to_mongo_value, utc_now
from app.models.invoice import (
    Invoice, InvoiceCreate, InvoiceItem, InvoiceStatus, PaymentCreate,
    PaymentEntry, calculate_totals
)
from app.models.user import User, UserRole
from app.schemas.common import Pagination
from app.services.base_service import BaseService
from app.utils.exceptions import (
    InvoiceStateError, PetSyncException, ResourceExistsError, ResourceNotFoundError
)

logger = logging.getLogger(__name__)


def invoice_scope(user: User) -> dict:
    if user.role == UserRole.SUPER_ADMIN:
        return {}
    if user.role == UserRole.CLIENT:
        return {"client_id": user.user_id}
    return {"business_id": user.business_id}


def format_invoice_number(issued: date, sequence: int) -> str:
    return f"INV-{issued.strftime('%Y%m%d')}-{sequence:04d}"


def rollup_status(total: float, paid: float) -> InvoiceStatus:
    """Status after a payment"""
    if paid >= total:
        return InvoiceStatus.PAID
    if paid > 0:
        return InvoiceStatus.PARTIAL
    return InvoiceStatus.SENT


class InvoiceService(BaseService[Invoice]):
    """Billing for a business's clients"""

    def __init__(self, db: AsyncIOMotorDatabase):
        super().__init__(db, "invoices", Invoice, "invoice_id")

    async def _next_number(self, business_id: str) -> str:
        counter = await self.db.counters.find_one_and_update(
            {"_id": f"invoice:{business_id}"},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=True
        )
        return format_invoice_number(date.today(), counter["seq"])

    async def get_invoice(self, invoice_id: str, user: User) -> Invoice:
        invoice = await self.get_by_id(invoice_id, invoice_scope(user))
        if not invoice:
            raise ResourceNotFoundError("Invoice", invoice_id)
        return invoice

    async def mark_overdue(self, business_id: Optional[str] = None) -> int:
        query = {
            "status": {"$in": [InvoiceStatus.SENT.value, InvoiceStatus.PARTIAL.value]},
            "due_date": {"$lt": date.today().isoformat()},
            "deleted_at": None
        }
        if business_id:
            query["business_id"] = business_id
        result = await self.collection.update_many(
            query, {"$set": {"status": InvoiceStatus.OVERDUE.value, "updated_at": utc_now()}}
        )
        return result.modified_count

    async def list_invoices(
        self,
        user: User,
        status: Optional[InvoiceStatus] = None,
        client_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20
    ) -> tuple[list[Invoice], Pagination]:
        await self.mark_overdue(None if user.role == UserRole.SUPER_ADMIN else user.business_id)
        filters: dict = {}
        if status:
            filters["status"] = status.value
        if client_id:
            filters["client_id"] = client_id
        return await self.get_many(filters, invoice_scope(user), page, limit)

    async def create_invoice(self, data: InvoiceCreate, user: User) -> Invoice:
        """
        Create a draft invoice

        With an appointment the client and, when no items are given, a line
        for the booked service are taken from it.
        """
        items = list(data.items)
        client_id = data.client_id
        business_id = user.business_id

        if data.appointment_id:
            doc = await self.db.appointments.find_one({
                "appointment_id": data.appointment_id,
                "deleted_at": None,
                **({} if user.role == UserRole.SUPER_ADMIN else {"business_id": user.business_id})
            })
            if not doc:
                raise ResourceNotFoundError("Appointment", data.appointment_id)
            appointment = Appointment(**doc)
            if appointment.status != AppointmentStatus.COMPLETED:
                raise InvoiceStateError("Only completed appointments can be invoiced")

            existing = await self.collection.count_documents({
                "appointment_id": appointment.appointment_id,
                "status": {"$ne": InvoiceStatus.CANCELLED.value},
                "deleted_at": None
            })
            if existing:
                raise ResourceExistsError("Invoice", "appointment")

            client_id = appointment.client_id
            business_id = appointment.business_id
            if not items:
                label = appointment.service.name
                if appointment.service.variation:
                    label += f" ({appointment.service.variation})"
                items = [InvoiceItem(description=label, unit_price=appointment.price)]

        if not client_id:
            raise PetSyncException("CLIENT_REQUIRED", "client_id is required")
        if not items:
            raise PetSyncException("ITEMS_REQUIRED", "An invoice needs at least one item")
        if not business_id:
            raise PetSyncException("NO_BUSINESS", "User is not associated with any business")

        client = await self.db.users.find_one({
            "user_id": client_id, "role": UserRole.CLIENT.value, "deleted_at": None
        })
        if not client:
            raise ResourceNotFoundError("Client", client_id)

        invoice = Invoice(
            invoice_number=await self._next_number(business_id),
            business_id=business_id,
            client_id=client_id,
            appointment_id=data.appointment_id,
            created_by=user.user_id,
            items=items,
            discount=data.discount,
            totals=calculate_totals(items, data.tax_rate, data.discount, data.tip),
            currency=data.currency,
            issued_at=utc_now(),
            due_date=data.due_date,
            notes=data.notes,
            terms=data.terms
        )
        await self.create(invoice)
        logger.info(f"Invoice {invoice.invoice_number} created for client {client_id}")
        return invoice

    async def mark_sent(self, invoice_id: str, user: User) -> Invoice:
        invoice = await self.get_invoice(invoice_id, user)
        if invoice.status in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
            raise InvoiceStateError(f"Cannot send an invoice that is {invoice.status.value}")

        now = utc_now()
        updates = {"sent_at": now, "updated_at": now}
        if invoice.status == InvoiceStatus.DRAFT:
            updates["status"] = InvoiceStatus.SENT.value

        result = await self.collection.find_one_and_update(
            {"invoice_id": invoice_id},
            {"$set": updates},
            return_document=True
        )
        return Invoice(**result)

    async def record_payment(self, invoice_id: str, data: PaymentCreate, user: User) -> Invoice:
        """Apply a payment and roll the status forward"""
        invoice = await self.get_invoice(invoice_id, user)
        if invoice.status in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
            raise InvoiceStateError(f"Cannot record a payment on an invoice that is {invoice.status.value}")
        if data.amount > invoice.balance_due + 0.005:
            raise InvoiceStateError(f"Payment exceeds balance due of {invoice.balance_due:.2f}")

        now = utc_now()
        paid = round(invoice.paid_amount + data.amount, 2)
        status = rollup_status(invoice.totals.total, paid)
        entry = PaymentEntry(paid_at=now, **data.model_dump())

        updates = {"paid_amount": paid, "status": status.value, "updated_at": now}
        if status == InvoiceStatus.PAID:
            updates["paid_at"] = now

        # Guard on paid_amount so two concurrent payments cannot both apply
        result = await self.collection.find_one_and_update(
            {"invoice_id": invoice_id, "paid_amount": invoice.paid_amount},
            {"$set": updates, "$push": {"payments": to_mongo_value(entry.model_dump())}},
            return_document=True
        )
        if not result:
            raise InvoiceStateError("Invoice changed while recording the payment, please retry")

        await self.db.businesses.update_one(
            {"business_id": invoice.business_id},
            {"$inc": {"total_revenue": data.amount}}
        )
        logger.info(f"Payment of {data.amount:.2f} recorded on {invoice.invoice_number} ({status.value})")
        return Invoice(**result)

    async def cancel_invoice(self, invoice_id: str, user: User) -> Invoice:
        invoice = await self.get_invoice(invoice_id, user)
        if invoice.status == InvoiceStatus.CANCELLED:
            raise InvoiceStateError("Invoice is already cancelled")
        if invoice.paid_amount > 0:
            raise InvoiceStateError("Invoices with payments cannot be cancelled")

        result = await self.collection.find_one_and_update(
            {"invoice_id": invoice_id, "paid_amount": 0},
            {"$set": {"status": InvoiceStatus.CANCELLED.value, "updated_at": utc_now()}},
            return_document=True
        )
        if not result:
            raise InvoiceStateError("Invoices with payments cannot be cancelled")
        return Invoice(**result)
