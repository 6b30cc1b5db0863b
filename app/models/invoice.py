"""
Invoice Model
Billing for appointments and ad-hoc items
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, computed_field

from app.models.common import BaseDocument, generate_id


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    PARTIAL = "partial"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"
    CHECK = "check"


class DiscountType(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


class InvoiceItem(BaseModel):
    description: str = Field(min_length=1, max_length=200)
    quantity: float = Field(default=1, gt=0)
    unit_price: float = Field(ge=0)
    taxable: bool = True

    @computed_field
    @property
    def total_price(self) -> float:
        return round(self.quantity * self.unit_price, 2)


class Discount(BaseModel):
    type: DiscountType = DiscountType.FIXED
    amount: float = Field(default=0, ge=0)
    description: Optional[str] = None


class InvoiceTotals(BaseModel):
    subtotal: float = 0.0
    tax_rate: float = 0.0
    tax_amount: float = 0.0
    discount_amount: float = 0.0
    tip: float = 0.0
    total: float = 0.0


class PaymentEntry(BaseModel):
    amount: float = Field(gt=0)
    method: PaymentMethod
    paid_at: datetime
    transaction_id: Optional[str] = None
    notes: Optional[str] = None


def calculate_totals(
    items: list[InvoiceItem],
    tax_rate: float = 0.0,
    discount: Optional[Discount] = None,
    tip: float = 0.0
) -> InvoiceTotals:
    """
    Compute invoice totals

    Tax applies to taxable items after a proportional share of the discount.
    Percentage discounts are taken from the subtotal; fixed discounts are
    capped at the subtotal.
    """
    subtotal = round(sum(item.total_price for item in items), 2)
    taxable = round(sum(item.total_price for item in items if item.taxable), 2)

    discount_amount = 0.0
    if discount and discount.amount:
        if discount.type == DiscountType.PERCENTAGE:
            discount_amount = subtotal * min(discount.amount, 100) / 100
        else:
            discount_amount = min(discount.amount, subtotal)
    discount_amount = round(discount_amount, 2)

    if subtotal > 0 and discount_amount:
        taxable -= discount_amount * (taxable / subtotal)

    tax_amount = round(max(taxable, 0) * tax_rate / 100, 2)
    total = round(subtotal - discount_amount + tax_amount + tip, 2)

    return InvoiceTotals(
        subtotal=subtotal,
        tax_rate=tax_rate,
        tax_amount=tax_amount,
        discount_amount=discount_amount,
        tip=round(tip, 2),
        total=total
    )


class Invoice(BaseDocument):
    """Invoice document model"""
    invoice_id: str = Field(default_factory=lambda: generate_id("inv"))
    invoice_number: str
    business_id: str
    client_id: str
    appointment_id: Optional[str] = None
    created_by: str

    items: list[InvoiceItem]
    discount: Optional[Discount] = None
    totals: InvoiceTotals
    currency: str = "USD"

    status: InvoiceStatus = InvoiceStatus.DRAFT
    paid_amount: float = 0.0
    payments: list[PaymentEntry] = Field(default_factory=list)

    issued_at: datetime
    due_date: Optional[date] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    notes: Optional[str] = None
    terms: Optional[str] = None

    @property
    def balance_due(self) -> float:
        return round(self.totals.total - self.paid_amount, 2)


class InvoiceCreate(BaseModel):
    """Schema for creating an invoice; items default to the appointment's service"""
    client_id: Optional[str] = None
    appointment_id: Optional[str] = None
    items: list[InvoiceItem] = Field(default_factory=list)
    tax_rate: float = Field(default=0, ge=0, le=100)
    discount: Optional[Discount] = None
    tip: float = Field(default=0, ge=0)
    currency: str = "USD"
    due_date: Optional[date] = None
    notes: Optional[str] = None
    terms: Optional[str] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class PaymentCreate(BaseModel):
    amount: float = Field(gt=0)
    method: PaymentMethod
    transaction_id: Optional[str] = None
    notes: Optional[str] = None


class InvoiceResponse(BaseModel):
    invoice_id: str
    invoice_number: str
    business_id: str
    client_id: str
    appointment_id: Optional[str] = None
    items: list[InvoiceItem]
    discount: Optional[Discount] = None
    totals: InvoiceTotals
    currency: str
    status: InvoiceStatus
    paid_amount: float
    balance_due: float
    payments: list[PaymentEntry]
    issued_at: datetime
    due_date: Optional[date] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    terms: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_invoice(cls, invoice: Invoice) -> "InvoiceResponse":
        return cls(**invoice.model_dump(), balance_due=invoice.balance_due)
