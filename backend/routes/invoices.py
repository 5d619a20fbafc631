"""
Invoice API endpoints.

Endpoints:
- GET /invoices - List invoices (filters, search, pagination, optional summary)
- POST /invoices - Create a DRAFT invoice with line items
- GET /invoices/{invoice_id} - Invoice detail with items, payments and transactions
- PUT /invoices/{invoice_id} - Edit an invoice (PAID invoices are read-only)
- DELETE /invoices/{invoice_id} - Delete an invoice (force=true also removes payments)
- POST /invoices/{invoice_id}/issue - DRAFT -> ISSUED
- POST /invoices/{invoice_id}/payments - Record a payment
- GET /invoices/{invoice_id}/payments - List payments, newest first

Lifecycle:
DRAFT -> ISSUED -> PARTIAL -> PAID, any open invoice may be CANCELLED.
"""

import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.orm import Session

from backend.auth.dependencies import AuthenticatedUser, get_authenticated_user
from backend.db.models import Invoice, InvoicePayment, Transaction
from backend.db.session import get_db_session
from backend.schemas.common import Pagination, UserSummary
from backend.schemas.invoices import (
    CategorySummary,
    CustomerSummary,
    InvoiceCreateRequest,
    InvoiceDeleteResponse,
    InvoiceIssueRequest,
    InvoiceItemResponse,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceSummaryResponse,
    InvoiceUpdateRequest,
    LinkedTransactionResponse,
    PaymentCreateRequest,
    PaymentRecordedResponse,
    PaymentResponse,
)
from backend.services import (
    create_invoice,
    delete_invoice,
    get_invoice_detail,
    get_invoices,
    issue_invoice,
    list_invoice_payments,
    record_payment,
    update_invoice,
)
from backend.services.payment_service import PaymentResult
from backend.utils.errors import ServiceError
from backend.utils.serialization import id_to_str, iso_or_none, money

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invoices", tags=["invoices"])

InvoiceId = Annotated[int, Path(description="Invoice id")]


def build_payment_response(payment: InvoicePayment) -> PaymentResponse:
    """Helper to build PaymentResponse from an InvoicePayment row."""
    user = None
    if payment.user is not None:
        user = UserSummary(id=id_to_str(payment.user.id), name=payment.user.name)

    return PaymentResponse(
        id=id_to_str(payment.id),
        invoice_id=id_to_str(payment.invoice_id),
        amount=money(payment.amount),
        payment_method=payment.payment_method,
        reference_no=payment.reference_no,
        payment_date=iso_or_none(payment.payment_date),
        created_by=id_to_str(payment.created_by),
        created_at=iso_or_none(payment.created_at),
        user=user,
    )


def build_linked_transaction_response(transaction: Transaction) -> LinkedTransactionResponse:
    category = None
    if transaction.category is not None:
        category = CategorySummary(
            id=id_to_str(transaction.category.id),
            name=transaction.category.name,
            type=transaction.category.type,
        )
    return LinkedTransactionResponse(
        id=id_to_str(transaction.id),
        type=transaction.type,
        amount=money(transaction.amount),
        transaction_date=iso_or_none(transaction.transaction_date),
        description=transaction.description,
        reference=transaction.reference,
        category=category,
    )


def build_payment_recorded_response(result: PaymentResult) -> PaymentRecordedResponse:
    transaction = None
    if result.transaction is not None:
        transaction = build_linked_transaction_response(result.transaction)
    return PaymentRecordedResponse(
        payment=build_payment_response(result.payment),
        status=result.status,
        total_paid=result.total_paid,
        remaining=result.remaining,
        transaction=transaction,
    )


def build_invoice_response(invoice: Invoice, include_transactions: bool = False) -> InvoiceResponse:
    """Helper to build InvoiceResponse from an Invoice with its relations loaded."""
    customer = None
    if invoice.customer is not None:
        customer = CustomerSummary(
            id=id_to_str(invoice.customer.id),
            name=invoice.customer.name,
            email=invoice.customer.email,
            phone=invoice.customer.phone,
            address=invoice.customer.address,
        )

    user = None
    if invoice.user is not None:
        user = UserSummary(id=id_to_str(invoice.user.id), name=invoice.user.name)

    total_paid = money(invoice.amount_paid)
    transactions: List[LinkedTransactionResponse] = []
    if include_transactions:
        transactions = [build_linked_transaction_response(t) for t in invoice.transactions]

    return InvoiceResponse(
        id=id_to_str(invoice.id),
        invoice_no=invoice.invoice_no,
        status=invoice.status,
        customer_id=id_to_str(invoice.customer_id),
        customer=customer,
        user_id=id_to_str(invoice.user_id),
        user=user,
        issue_date=iso_or_none(invoice.issue_date),
        due_date=iso_or_none(invoice.due_date),
        subtotal=money(invoice.subtotal),
        discount=money(invoice.discount),
        tax=money(invoice.tax),
        total=money(invoice.total),
        currency=invoice.currency,
        notes=invoice.notes,
        items=[
            InvoiceItemResponse(
                id=id_to_str(item.id),
                description=item.description,
                product_sku=item.product_sku,
                quantity=money(item.quantity),
                unit_price=money(item.unit_price),
                discount=money(item.discount),
                subtotal=money(item.subtotal),
            )
            for item in invoice.items
        ],
        payments=[build_payment_response(p) for p in invoice.payments],
        transactions=transactions,
        total_paid=total_paid,
        remaining=money(invoice.total) - total_paid,
        created_at=iso_or_none(invoice.created_at),
        updated_at=iso_or_none(invoice.updated_at),
    )


def _items_payload(items) -> Optional[list]:
    if items is None:
        return None
    return [item.model_dump() for item in items]


@router.get(
    "",
    response_model=InvoiceListResponse,
    status_code=status.HTTP_200_OK,
    summary="List invoices",
    description="""
    Retrieve a page of invoices.

    Filters:
    - status, customerId, userId
    - day + month + year (one day), month (+ year, default current year), or year
    - search over invoice number, customer name and notes

    Sorting: sortBy=date-desc (default) or date-asc on creation time.
    summary=true adds {total, paid, pending} invoice counts.
    """
)
def list_invoices(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
    status_filter: Optional[str] = Query(None, alias="status"),
    customer_id: Optional[int] = Query(None, alias="customerId"),
    user_id: Optional[int] = Query(None, alias="userId"),
    day: Optional[int] = Query(None, ge=1, le=31),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1900, le=9999),
    search: Optional[str] = None,
    sort_by: str = Query("date-desc", alias="sortBy", pattern="^date-(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    summary: bool = False,
) -> InvoiceListResponse:
    """List invoices with filters and pagination."""
    logger.info(f"Listing invoices for user {auth_user.user_id} (page={page}, limit={limit})")

    try:
        invoices, total, invoice_summary = get_invoices(
            session,
            status=status_filter,
            customer_id=customer_id,
            user_id=user_id,
            day=day,
            month=month,
            year=year,
            search=search,
            sort_by=sort_by,
            page=page,
            limit=limit,
            include_summary=summary,
        )
    except ServiceError as e:
        raise e.to_http_exception()

    summary_response = None
    if invoice_summary is not None:
        summary_response = InvoiceSummaryResponse(
            total=invoice_summary.total,
            paid=invoice_summary.paid,
            pending=invoice_summary.pending,
        )

    return InvoiceListResponse(
        invoices=[build_invoice_response(invoice) for invoice in invoices],
        pagination=Pagination.build(total, page, limit),
        summary=summary_response,
    )


@router.post(
    "",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a DRAFT invoice",
    description="""
    Create an invoice with at least one line item.

    - Each item needs description, quantity > 0 and unitPrice > 0
    - Line subtotal = quantity * unitPrice - item discount
    - Total = sum(line subtotals) - discount + tax
    - The invoice number is generated ({PREFIX}-{YEAR}-{NNNN})
    """
)
def create_invoice_endpoint(
    request: InvoiceCreateRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> InvoiceResponse:
    """Create a new invoice."""
    logger.info(f"Creating invoice for user {auth_user.user_id}: items={len(request.items)}")

    try:
        invoice = create_invoice(
            session,
            items=_items_payload(request.items),
            customer_id=request.customer_id,
            user_id=request.user_id,
            issue_date=request.issue_date,
            due_date=request.due_date,
            discount=request.discount,
            tax=request.tax,
            currency=request.currency,
            notes=request.notes,
        )
    except ServiceError as e:
        raise e.to_http_exception()

    return build_invoice_response(invoice, include_transactions=True)


@router.get(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    status_code=status.HTTP_200_OK,
    summary="Get invoice details",
)
def get_invoice_endpoint(
    invoice_id: InvoiceId,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> InvoiceResponse:
    """Invoice with customer, items, payments (newest first) and linked transactions."""
    try:
        invoice = get_invoice_detail(session, invoice_id)
    except ServiceError as e:
        raise e.to_http_exception()

    return build_invoice_response(invoice, include_transactions=True)


@router.put(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    status_code=status.HTTP_200_OK,
    summary="Update an invoice",
    description="""
    Edit an invoice. Omitted fields keep their stored values.

    - PAID invoices cannot be edited
    - Sending items replaces all line items and recomputes the totals
    - status=PAID records a settling CASH payment (reference AUTO-{invoiceNo})
      and its income transaction in the same database transaction
    - status=CANCELLED cancels the invoice
    - The total cannot drop below the amount already paid
    """
)
def update_invoice_endpoint(
    invoice_id: InvoiceId,
    request: InvoiceUpdateRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> InvoiceResponse:
    """Update an invoice."""
    changes = request.model_dump(exclude_unset=True)
    if "items" in changes:
        changes["items"] = _items_payload(request.items)

    logger.info(f"Updating invoice {invoice_id} for user {auth_user.user_id}: fields={sorted(changes)}")

    try:
        invoice = update_invoice(session, invoice_id, changes)
    except ServiceError as e:
        raise e.to_http_exception()

    return build_invoice_response(invoice, include_transactions=True)


@router.delete(
    "/{invoice_id}",
    response_model=InvoiceDeleteResponse,
    status_code=status.HTTP_200_OK,
    summary="Delete an invoice",
    description="""
    Delete an invoice and its items.

    Invoices with payments or linked transactions are refused (400 with the
    counts) unless force=true, which deletes those rows too.
    """
)
def delete_invoice_endpoint(
    invoice_id: InvoiceId,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
    force: bool = False,
) -> InvoiceDeleteResponse:
    """Delete an invoice."""
    logger.info(f"Deleting invoice {invoice_id} for user {auth_user.user_id} (force={force})")

    try:
        deleted = delete_invoice(session, invoice_id, force=force)
    except ServiceError as e:
        raise e.to_http_exception()

    return InvoiceDeleteResponse(
        message="Invoice deleted successfully",
        deleted_payments=deleted["deleted_payments"],
        deleted_transactions=deleted["deleted_transactions"],
    )


@router.post(
    "/{invoice_id}/issue",
    response_model=InvoiceResponse,
    status_code=status.HTTP_200_OK,
    summary="Issue a DRAFT invoice",
    description="""
    Move a DRAFT invoice to ISSUED so it can receive payments.

    issueDate defaults to now. Any other starting status is rejected with
    400 invalid_state.
    """
)
def issue_invoice_endpoint(
    invoice_id: InvoiceId,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
    request: Optional[InvoiceIssueRequest] = None,
) -> InvoiceResponse:
    """Issue an invoice."""
    request = request or InvoiceIssueRequest()
    logger.info(f"Issuing invoice {invoice_id} for user {auth_user.user_id}")

    try:
        invoice = issue_invoice(
            session,
            invoice_id,
            issue_date=request.issue_date,
            due_date=request.due_date,
        )
    except ServiceError as e:
        raise e.to_http_exception()

    return build_invoice_response(invoice, include_transactions=True)


@router.post(
    "/{invoice_id}/payments",
    response_model=PaymentRecordedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a payment",
    description="""
    Record a payment against an ISSUED or PARTIAL invoice.

    Steps (one database transaction):
    - Validate amount > 0
    - Reject unknown (404), DRAFT or CANCELLED (400) invoices
    - Reject payments that would exceed the invoice total (400)
    - Insert the payment and move the invoice to PARTIAL or PAID
    - With createTransaction and categoryId, write the INCOME transaction

    Returns the payment, the new status, the total paid and the remaining balance.
    """
)
def record_payment_endpoint(
    invoice_id: InvoiceId,
    request: PaymentCreateRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> PaymentRecordedResponse:
    """Record a payment for an invoice."""
    logger.info(f"Recording payment on invoice {invoice_id} for user {auth_user.user_id}")

    try:
        result = record_payment(
            session,
            invoice_id=invoice_id,
            amount=request.amount,
            payment_method=request.payment_method,
            reference_no=request.reference_no,
            created_by=request.created_by,
            create_linked_transaction=request.create_transaction,
            category_id=request.category_id,
        )
    except ServiceError as e:
        raise e.to_http_exception()

    return build_payment_recorded_response(result)


@router.get(
    "/{invoice_id}/payments",
    response_model=List[PaymentResponse],
    status_code=status.HTTP_200_OK,
    summary="List invoice payments",
)
def list_payments_endpoint(
    invoice_id: InvoiceId,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> List[PaymentResponse]:
    """Payments of an invoice, newest first."""
    try:
        payments = list_invoice_payments(session, invoice_id)
        return [build_payment_response(payment) for payment in payments]

    except Exception as e:
        logger.error(f"Failed to fetch payments for invoice {invoice_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "fetch_error",
                "details": "Failed to fetch payments"
            }
        )
