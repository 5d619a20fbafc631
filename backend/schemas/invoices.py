"""
Pydantic schemas for invoice and invoice payment endpoints.

Money values are Decimal and serialize as strings ("1000.00").
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import Field

from backend.schemas.common import ApiModel, Identifier, Pagination, RawAmount, UserSummary

InvoiceStatusLiteral = Literal["DRAFT", "ISSUED", "PARTIAL", "PAID", "CANCELLED"]


# --- Nested summaries ---

class CustomerSummary(ApiModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class CategorySummary(ApiModel):
    id: str
    name: str
    type: str


class InvoiceItemResponse(ApiModel):
    id: str
    description: str
    product_sku: Optional[str] = None
    quantity: Decimal
    unit_price: Decimal
    discount: Decimal
    subtotal: Decimal


class PaymentResponse(ApiModel):
    """A recorded payment. Payments are immutable once written."""
    id: str = Field(..., description="Payment id (decimal string)")
    invoice_id: str
    amount: Decimal
    payment_method: str = Field(..., description="CASH, TRANSFER, CARD, CHEQUE or OTHER")
    reference_no: Optional[str] = None
    payment_date: str = Field(..., description="ISO-8601 timestamp")
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    user: Optional[UserSummary] = None


class LinkedTransactionResponse(ApiModel):
    id: str
    type: str
    amount: Decimal
    transaction_date: str
    description: Optional[str] = None
    reference: Optional[str] = None
    category: Optional[CategorySummary] = None


class InvoiceResponse(ApiModel):
    """
    Invoice with its line items.

    `payments`, `transactions`, `total_paid` and `remaining` are filled on
    the detail endpoint and on list entries.
    """
    id: str = Field(..., description="Invoice id (decimal string)")
    invoice_no: str = Field(..., description="Human-readable number, e.g. ADY-2024-0042")
    status: InvoiceStatusLiteral
    customer_id: Optional[str] = None
    customer: Optional[CustomerSummary] = None
    user_id: Optional[str] = None
    user: Optional[UserSummary] = None
    issue_date: Optional[str] = None
    due_date: Optional[str] = None
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    currency: str
    notes: Optional[str] = None
    items: List[InvoiceItemResponse] = Field(default_factory=list)
    payments: List[PaymentResponse] = Field(default_factory=list)
    transactions: List[LinkedTransactionResponse] = Field(default_factory=list)
    total_paid: Decimal
    remaining: Decimal
    created_at: str
    updated_at: Optional[str] = None


class InvoiceSummaryResponse(ApiModel):
    total: int
    paid: int
    pending: int


class InvoiceListResponse(ApiModel):
    invoices: List[InvoiceResponse]
    pagination: Pagination
    summary: Optional[InvoiceSummaryResponse] = None


# --- Requests ---

class InvoiceItemRequest(ApiModel):
    description: Optional[str] = None
    product_sku: Optional[str] = None
    quantity: RawAmount = None
    unit_price: RawAmount = None
    discount: RawAmount = None


class InvoiceCreateRequest(ApiModel):
    customer_id: Identifier = None
    user_id: Identifier = None
    issue_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    discount: RawAmount = None
    tax: RawAmount = None
    currency: Optional[str] = Field(None, max_length=10)
    notes: Optional[str] = None
    items: List[InvoiceItemRequest] = Field(default_factory=list)


class InvoiceUpdateRequest(ApiModel):
    """Partial update; omitted fields keep their stored values."""
    customer_id: Identifier = None
    issue_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    status: Optional[str] = Field(None, description="PAID settles the invoice, CANCELLED cancels it")
    discount: RawAmount = None
    tax: RawAmount = None
    currency: Optional[str] = Field(None, max_length=10)
    notes: Optional[str] = None
    items: Optional[List[InvoiceItemRequest]] = None


class InvoiceIssueRequest(ApiModel):
    issue_date: Optional[datetime] = Field(None, description="Defaults to now")
    due_date: Optional[datetime] = None


class InvoiceDeleteResponse(ApiModel):
    status: str = "DELETED"
    message: str
    deleted_payments: int = 0
    deleted_transactions: int = 0


class PaymentCreateRequest(ApiModel):
    """
    Body of POST /invoices/{id}/payments.

    A linked INCOME transaction is written when create_transaction is true
    and a category_id is given.
    """
    amount: RawAmount = Field(None, description="Positive amount (number or numeric string)")
    payment_method: Optional[str] = Field(None, description="Defaults to CASH")
    reference_no: Optional[str] = None
    created_by: Identifier = None
    create_transaction: bool = True
    category_id: Identifier = None


class PaymentRecordedResponse(ApiModel):
    payment: PaymentResponse
    status: InvoiceStatusLiteral
    total_paid: Decimal
    remaining: Decimal
    transaction: Optional[LinkedTransactionResponse] = None


class StandalonePaymentRequest(ApiModel):
    """Body of POST /payments; always writes the linked income transaction."""
    invoice_id: Identifier = None
    amount: RawAmount = None
    payment_method: Optional[str] = None
    payment_date: Optional[datetime] = None
    reference_no: Optional[str] = None
    notes: Optional[str] = None
