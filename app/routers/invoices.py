"""
Invoices API Router
Billing for completed appointments and ad-hoc items
"""

from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.database import get_database
from app.middleware.auth import require_permission
from app.models.invoice import Invoice, InvoiceCreate, InvoiceResponse, InvoiceStatus, PaymentCreate
from app.models.user import User
from app.schemas.common import ErrorResponse, Pagination, SingleResponse
from app.services.audit_service import AuditAction, AuditService
from app.services.email_service import get_email_service
from app.services.invoice_service import InvoiceService

router = APIRouter()


class InvoiceList(BaseModel):
    invoices: list[InvoiceResponse]
    pagination: Pagination


def get_invoice_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> InvoiceService:
    return InvoiceService(db)


async def email_invoice(db: AsyncIOMotorDatabase, invoice: Invoice) -> None:
    client = await db.users.find_one({"user_id": invoice.client_id})
    business = await db.businesses.find_one({"business_id": invoice.business_id})
    if not client or not business:
        return
    await get_email_service().send_invoice(
        client["email"],
        client["first_name"],
        invoice.invoice_number,
        invoice.totals.total,
        invoice.balance_due,
        invoice.due_date.isoformat() if invoice.due_date else None,
        business["name"],
        invoice.currency
    )


@router.get("", response_model=SingleResponse[InvoiceList])
async def list_invoices(
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
    client_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_permission("billing", "read")),
    service: InvoiceService = Depends(get_invoice_service)
):
    """Invoices of the caller's business; clients see their own"""
    invoices, pagination = await service.list_invoices(current_user, status_filter, client_id, page, limit)
    return SingleResponse(data=InvoiceList(
        invoices=[InvoiceResponse.from_invoice(i) for i in invoices],
        pagination=pagination
    ))


@router.get("/{invoice_id}", response_model=SingleResponse[InvoiceResponse])
async def get_invoice(
    invoice_id: str,
    current_user: User = Depends(require_permission("billing", "read")),
    service: InvoiceService = Depends(get_invoice_service)
):
    return SingleResponse(data=InvoiceResponse.from_invoice(await service.get_invoice(invoice_id, current_user)))


@router.post(
    "",
    response_model=SingleResponse[InvoiceResponse],
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": ErrorResponse, "description": "Appointment not completed or already invoiced"}
    }
)
async def create_invoice(
    data: InvoiceCreate,
    request: Request,
    current_user: User = Depends(require_permission("billing", "create")),
    db: AsyncIOMotorDatabase = Depends(get_database),
    service: InvoiceService = Depends(get_invoice_service)
):
    invoice = await service.create_invoice(data, current_user)
    await AuditService(db).log(
        current_user.user_id, AuditAction.CREATE, "invoice", invoice.invoice_id,
        business_id=invoice.business_id, extra={"invoice_number": invoice.invoice_number}, request=request
    )
    return SingleResponse(data=InvoiceResponse.from_invoice(invoice), message="Invoice created successfully")


@router.post("/{invoice_id}/send", response_model=SingleResponse[InvoiceResponse])
async def send_invoice(
    invoice_id: str,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_permission("billing", "update")),
    db: AsyncIOMotorDatabase = Depends(get_database),
    service: InvoiceService = Depends(get_invoice_service)
):
    """Email the invoice to the client and mark it sent"""
    invoice = await service.mark_sent(invoice_id, current_user)
    background_tasks.add_task(email_invoice, db, invoice)
    return SingleResponse(data=InvoiceResponse.from_invoice(invoice), message="Invoice sent")


@router.post("/{invoice_id}/payments", response_model=SingleResponse[InvoiceResponse])
async def record_payment(
    invoice_id: str,
    data: PaymentCreate,
    request: Request,
    current_user: User = Depends(require_permission("billing", "update")),
    db: AsyncIOMotorDatabase = Depends(get_database),
    service: InvoiceService = Depends(get_invoice_service)
):
    invoice = await service.record_payment(invoice_id, data, current_user)
    await AuditService(db).log(
        current_user.user_id, AuditAction.PAYMENT, "invoice", invoice_id,
        business_id=invoice.business_id,
        extra={"amount": data.amount, "method": data.method.value, "status": invoice.status.value},
        request=request
    )
    return SingleResponse(data=InvoiceResponse.from_invoice(invoice), message="Payment recorded")


@router.post("/{invoice_id}/cancel", response_model=SingleResponse[InvoiceResponse])
async def cancel_invoice(
    invoice_id: str,
    request: Request,
    current_user: User = Depends(require_permission("billing", "update")),
    db: AsyncIOMotorDatabase = Depends(get_database),
    service: InvoiceService = Depends(get_invoice_service)
):
    invoice = await service.cancel_invoice(invoice_id, current_user)
    await AuditService(db).log(
        current_user.user_id, AuditAction.STATUS_CHANGE, "invoice", invoice_id,
        business_id=invoice.business_id, after={"status": invoice.status.value}, request=request
    )
    return SingleResponse(data=InvoiceResponse.from_invoice(invoice), message="Invoice cancelled")
