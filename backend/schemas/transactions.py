"""
Pydantic schemas for transaction CRUD endpoints.

Transactions are income/expense ledger entries. An entry may point at a
category of the same type and, informationally, at an invoice.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Union

from pydantic import Field

from backend.schemas.common import ApiModel, Identifier, Pagination, RawAmount, UserSummary
from backend.schemas.invoices import CategorySummary


class InvoiceReference(ApiModel):
    id: str
    invoice_no: str


class TransactionResponse(ApiModel):
    id: str = Field(..., description="Transaction id (decimal string)")
    type: str = Field(..., description="INCOME or EXPENSE")
    transaction_date: str = Field(..., description="ISO-8601 timestamp")
    month: int
    year: int
    description: Optional[str] = None
    amount: Decimal
    reference: Optional[str] = None
    category_id: Optional[str] = None
    category: Optional[CategorySummary] = None
    invoice_id: Optional[str] = None
    invoice: Optional[InvoiceReference] = None
    user_id: Optional[str] = None
    user: Optional[UserSummary] = None
    system_generated_key: Optional[str] = None
    created_at: str
    updated_at: Optional[str] = None


class TransactionSummaryResponse(ApiModel):
    total_income: Decimal
    total_expense: Decimal
    net: Decimal


class TransactionListResponse(ApiModel):
    transactions: List[TransactionResponse]
    pagination: Pagination
    summary: TransactionSummaryResponse


class TransactionWriteRequest(ApiModel):
    """
    Body of POST /transactions and PUT /transactions/{id}.

    type, transaction_date and amount are required; month and year are
    derived from transaction_date.
    """
    type: Optional[str] = Field(None, description="income or expense (any case)")
    transaction_date: Optional[Union[datetime, str]] = Field(
        None,
        description="ISO-8601 date or datetime",
        examples=["2024-05-01T10:00:00Z"],
    )
    amount: RawAmount = Field(None, description="Positive amount")
    description: Optional[str] = None
    category_id: Identifier = None
    reference: Optional[str] = None
    user_id: Identifier = None
    invoice_id: Identifier = None


class TransactionImportRow(ApiModel):
    """One row of a batch import; validated by the service row by row."""
    type: Optional[str] = None
    description: Optional[str] = None
    amount: RawAmount = None
    transaction_date: Optional[str] = None
    category_id: Optional[Union[int, str]] = None


class TransactionImportRequest(ApiModel):
    transactions: List[TransactionImportRow] = Field(default_factory=list)


class TransactionImportError(ApiModel):
    data: TransactionImportRow
    error: str


class TransactionImportResponse(ApiModel):
    count: int = Field(..., description="Rows created")
    total: int = Field(..., description="Rows received")
    errors: Optional[List[TransactionImportError]] = None
    transactions: List[TransactionResponse]
