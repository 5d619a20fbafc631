"""
Customer CRUD API endpoints.

Endpoints:
- GET /customers - List customers (search, pagination), newest first
- POST /customers - Create a customer
- GET /customers/{customer_id} - Customer with their invoices
- PUT /customers/{customer_id} - Replace a customer's contact fields
- DELETE /customers/{customer_id} - Delete a customer (invoices are kept)
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from backend.auth.dependencies import AuthenticatedUser, get_authenticated_user
from backend.db.models import Customer
from backend.db.session import get_db_session
from backend.routes.invoices import build_invoice_response
from backend.schemas.common import DeleteResponse, Pagination
from backend.schemas.customers import CustomerListResponse, CustomerResponse, CustomerWriteRequest
from backend.services import (
    create_customer,
    delete_customer,
    get_customer_by_id,
    get_customers,
    update_customer,
)
from backend.utils.errors import ServiceError
from backend.utils.serialization import id_to_str, iso_or_none

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customers", tags=["customers"])

CustomerId = Annotated[int, Path(description="Customer id")]


def _build_customer_response(
    customer: Customer,
    invoice_count: Optional[int] = None,
    include_invoices: bool = False,
) -> CustomerResponse:
    invoices = None
    if include_invoices:
        invoices = [build_invoice_response(invoice) for invoice in customer.invoices]
        invoice_count = len(invoices)

    return CustomerResponse(
        id=id_to_str(customer.id),
        name=customer.name,
        email=customer.email,
        phone=customer.phone,
        address=customer.address,
        invoice_count=invoice_count,
        invoices=invoices,
        created_at=iso_or_none(customer.created_at),
        updated_at=iso_or_none(customer.updated_at),
    )


@router.get(
    "",
    response_model=CustomerListResponse,
    status_code=status.HTTP_200_OK,
    summary="List customers",
    description="Search matches name, email or phone (case-insensitive).",
)
def list_customers(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> CustomerListResponse:
    logger.info(f"Listing customers for user {auth_user.user_id} (page={page}, limit={limit})")

    rows, total = get_customers(session, search=search, page=page, limit=limit)
    return CustomerListResponse(
        customers=[_build_customer_response(customer, count) for customer, count in rows],
        pagination=Pagination.build(total, page, limit),
    )


@router.post(
    "",
    response_model=CustomerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a customer",
    description="name is required; email must be unique when given (409 on duplicates).",
)
def create_customer_endpoint(
    request: CustomerWriteRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> CustomerResponse:
    logger.info(f"Creating customer for user {auth_user.user_id}")

    try:
        customer = create_customer(
            session,
            name=request.name,
            email=request.email,
            phone=request.phone,
            address=request.address,
        )
    except ServiceError as e:
        raise e.to_http_exception()

    return _build_customer_response(customer, invoice_count=0)


@router.get(
    "/{customer_id}",
    response_model=CustomerResponse,
    status_code=status.HTTP_200_OK,
    summary="Get a customer with invoices",
)
def get_customer_endpoint(
    customer_id: CustomerId,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> CustomerResponse:
    try:
        customer = get_customer_by_id(session, customer_id)
    except ServiceError as e:
        raise e.to_http_exception()

    return _build_customer_response(customer, include_invoices=True)


@router.put(
    "/{customer_id}",
    response_model=CustomerResponse,
    status_code=status.HTTP_200_OK,
    summary="Update a customer",
)
def update_customer_endpoint(
    customer_id: CustomerId,
    request: CustomerWriteRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> CustomerResponse:
    logger.info(f"Updating customer {customer_id} for user {auth_user.user_id}")

    try:
        customer = update_customer(
            session,
            customer_id,
            name=request.name,
            email=request.email,
            phone=request.phone,
            address=request.address,
        )
    except ServiceError as e:
        raise e.to_http_exception()

    return _build_customer_response(customer)


@router.delete(
    "/{customer_id}",
    response_model=DeleteResponse,
    status_code=status.HTTP_200_OK,
    summary="Delete a customer",
)
def delete_customer_endpoint(
    customer_id: CustomerId,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> DeleteResponse:
    logger.info(f"Deleting customer {customer_id} for user {auth_user.user_id}")

    try:
        delete_customer(session, customer_id)
    except ServiceError as e:
        raise e.to_http_exception()

    return DeleteResponse(message="Customer deleted successfully")
