"""Pydantic models for customer endpoints."""

from typing import List, Optional

from pydantic import Field

from backend.schemas.common import ApiModel, Pagination
from backend.schemas.invoices import InvoiceResponse


class CustomerResponse(ApiModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    invoice_count: Optional[int] = None
    invoices: Optional[List[InvoiceResponse]] = Field(
        None, description="Only filled by GET /customers/{id}"
    )
    created_at: str
    updated_at: Optional[str] = None


class CustomerListResponse(ApiModel):
    customers: List[CustomerResponse]
    pagination: Pagination


class CustomerWriteRequest(ApiModel):
    name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
