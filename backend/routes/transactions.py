"""
Transaction (income/expense ledger) API endpoints.

Endpoints:
- GET /transactions - List with filters, pagination and an income/expense summary
- POST /transactions - Create a transaction
- POST /transactions/import/batch - Import many rows, reporting invalid ones
- GET /transactions/{transaction_id} - Get one transaction
- PUT /transactions/{transaction_id} - Replace a transaction
- DELETE /transactions/{transaction_id} - Delete a transaction

A transaction's category must have the same type (INCOME/EXPENSE).
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.orm import Session

from backend.auth.dependencies import AuthenticatedUser, get_authenticated_user
from backend.db.models import Transaction
from backend.db.session import get_db_session
from backend.schemas.common import DeleteResponse, Pagination, UserSummary
from backend.schemas.invoices import CategorySummary
from backend.schemas.transactions import (
    InvoiceReference,
    TransactionImportError,
    TransactionImportRequest,
    TransactionImportResponse,
    TransactionListResponse,
    TransactionResponse,
    TransactionSummaryResponse,
    TransactionWriteRequest,
)
from backend.services import (
    create_transaction,
    delete_transaction,
    get_transaction_by_id,
    get_transactions,
    import_transactions,
    update_transaction,
)
from backend.utils.errors import ServiceError
from backend.utils.serialization import id_to_str, iso_or_none, money

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions", tags=["transactions"])

TransactionId = Annotated[int, Path(description="Transaction id")]


def build_transaction_response(transaction: Transaction) -> TransactionResponse:
    """Helper to build TransactionResponse from a Transaction row."""
    category = None
    if transaction.category is not None:
        category = CategorySummary(
            id=id_to_str(transaction.category.id),
            name=transaction.category.name,
            type=transaction.category.type,
        )

    invoice = None
    if transaction.invoice is not None:
        invoice = InvoiceReference(
            id=id_to_str(transaction.invoice.id),
            invoice_no=transaction.invoice.invoice_no,
        )

    user = None
    if transaction.user is not None:
        user = UserSummary(id=id_to_str(transaction.user.id), name=transaction.user.name)

    return TransactionResponse(
        id=id_to_str(transaction.id),
        type=transaction.type,
        transaction_date=iso_or_none(transaction.transaction_date),
        month=transaction.month,
        year=transaction.year,
        description=transaction.description,
        amount=money(transaction.amount),
        reference=transaction.reference,
        category_id=id_to_str(transaction.category_id),
        category=category,
        invoice_id=id_to_str(transaction.invoice_id),
        invoice=invoice,
        user_id=id_to_str(transaction.user_id),
        user=user,
        system_generated_key=transaction.system_generated_key,
        created_at=iso_or_none(transaction.created_at),
        updated_at=iso_or_none(transaction.updated_at),
    )


@router.get(
    "",
    response_model=TransactionListResponse,
    status_code=status.HTTP_200_OK,
    summary="List transactions",
    description="""
    Retrieve a page of transactions.

    Filters: type, categoryId, userId, month, year, search (description,
    reference, category name). sortBy=date-desc (default) or date-asc.

    The summary (totalIncome, totalExpense, net) covers the whole month/year
    being viewed, independent of the other filters and of pagination.
    """
)
def list_transactions(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
    type: Optional[str] = None,
    category_id: Optional[int] = Query(None, alias="categoryId"),
    user_id: Optional[int] = Query(None, alias="userId"),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1900, le=9999),
    search: Optional[str] = None,
    sort_by: str = Query("date-desc", alias="sortBy", pattern="^date-(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> TransactionListResponse:
    """List transactions with filters, pagination and summary."""
    logger.info(f"Listing transactions for user {auth_user.user_id} (page={page}, limit={limit})")

    try:
        transactions, total, summary = get_transactions(
            session,
            type=type,
            category_id=category_id,
            user_id=user_id,
            month=month,
            year=year,
            search=search,
            sort_by=sort_by,
            page=page,
            limit=limit,
        )
    except ServiceError as e:
        raise e.to_http_exception()

    return TransactionListResponse(
        transactions=[build_transaction_response(t) for t in transactions],
        pagination=Pagination.build(total, page, limit),
        summary=TransactionSummaryResponse(
            total_income=summary.total_income,
            total_expense=summary.total_expense,
            net=summary.net,
        ),
    )


@router.post(
    "",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a transaction",
    description="""
    Record an income or expense.

    - type, transactionDate and a positive amount are required
    - month and year are derived from transactionDate
    - categoryId must reference a category of the same type
    """
)
def create_transaction_endpoint(
    request: TransactionWriteRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> TransactionResponse:
    """Create a transaction."""
    logger.info(f"Creating transaction for user {auth_user.user_id}: type={request.type}")

    try:
        transaction = create_transaction(
            session,
            type=request.type,
            transaction_date=request.transaction_date,
            amount=request.amount,
            description=request.description,
            category_id=request.category_id,
            reference=request.reference,
            user_id=request.user_id,
            invoice_id=request.invoice_id,
        )
    except ServiceError as e:
        raise e.to_http_exception()

    return build_transaction_response(transaction)


@router.post(
    "/import/batch",
    response_model=TransactionImportResponse,
    status_code=status.HTTP_200_OK,
    summary="Import transactions in batch",
    description="""
    Create many transactions at once.

    Every row is validated on its own (required fields, type, positive
    amount, date, category exists and has the same type). Valid rows are
    created; invalid rows are returned in `errors` with the offending data.
    """
)
def import_transactions_endpoint(
    request: TransactionImportRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> TransactionImportResponse:
    """Batch import."""
    logger.info(f"Batch import for user {auth_user.user_id}: rows={len(request.transactions)}")

    rows = [row.model_dump() for row in request.transactions]
    try:
        created, errors = import_transactions(session, rows)
    except ServiceError as e:
        raise e.to_http_exception()

    return TransactionImportResponse(
        count=len(created),
        total=len(rows),
        errors=[TransactionImportError(data=err["data"], error=err["error"]) for err in errors] or None,
        transactions=[build_transaction_response(t) for t in created],
    )


@router.get(
    "/{transaction_id}",
    response_model=TransactionResponse,
    status_code=status.HTTP_200_OK,
    summary="Get a transaction",
)
def get_transaction_endpoint(
    transaction_id: TransactionId,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> TransactionResponse:
    try:
        transaction = get_transaction_by_id(session, transaction_id)
    except ServiceError as e:
        raise e.to_http_exception()

    return build_transaction_response(transaction)


@router.put(
    "/{transaction_id}",
    response_model=TransactionResponse,
    status_code=status.HTTP_200_OK,
    summary="Replace a transaction",
)
def update_transaction_endpoint(
    transaction_id: TransactionId,
    request: TransactionWriteRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> TransactionResponse:
    """Replace every editable field of a transaction."""
    logger.info(f"Updating transaction {transaction_id} for user {auth_user.user_id}")

    try:
        transaction = update_transaction(
            session,
            transaction_id,
            type=request.type,
            transaction_date=request.transaction_date,
            amount=request.amount,
            description=request.description,
            category_id=request.category_id,
            reference=request.reference,
            user_id=request.user_id,
            invoice_id=request.invoice_id,
        )
    except ServiceError as e:
        raise e.to_http_exception()

    return build_transaction_response(transaction)


@router.delete(
    "/{transaction_id}",
    response_model=DeleteResponse,
    status_code=status.HTTP_200_OK,
    summary="Delete a transaction",
)
def delete_transaction_endpoint(
    transaction_id: TransactionId,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> DeleteResponse:
    logger.info(f"Deleting transaction {transaction_id} for user {auth_user.user_id}")

    try:
        delete_transaction(session, transaction_id)
    except ServiceError as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Failed to delete transaction {transaction_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "delete_error",
                "details": "Failed to delete transaction"
            }
        )

    return DeleteResponse(message="Transaction deleted successfully")
