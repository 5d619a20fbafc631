"""
Transaction (income/expense ledger) persistence service.

CRITICAL RULES:
1. type is INCOME or EXPENSE, amount is positive, transaction_date is required
2. month/year are always derived from transaction_date (never client-provided)
3. A referenced category must exist and, unless disabled through
   ENFORCE_CATEGORY_TYPE_MATCH, have the same type as the transaction.
   Batch import always enforces the match.
4. invoice_id is an informational back-reference; deleting a transaction
   never touches the invoice
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from backend.config import settings
from backend.db.models import Category, Invoice, Transaction
from backend.db.session import write_transaction
from backend.services.category_service import ensure_category_matches, normalize_type
from backend.utils.constants import SYSTEM_GENERATED_KEYS, TransactionType
from backend.utils.errors import InvalidInput, NotFound, ServiceError, map_database_error
from backend.utils.serialization import money, parse_id

logger = logging.getLogger(__name__)

_DETAIL_OPTIONS = (
    selectinload(Transaction.category),
    selectinload(Transaction.invoice),
    selectinload(Transaction.user),
)


@dataclass
class TransactionSummary:
    total_income: Decimal
    total_expense: Decimal

    @property
    def net(self) -> Decimal:
        return self.total_income - self.total_expense


def parse_transaction_date(value) -> datetime:
    """
    Parse an ISO-8601 date or datetime.

    Raises:
        InvalidInput: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            raise InvalidInput("Invalid transaction date")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_amount(value) -> Decimal:
    try:
        amount = money(value)
    except (InvalidOperation, ValueError):
        raise InvalidInput("Invalid amount. Must be a positive number")
    if not amount.is_finite() or amount <= 0:
        raise InvalidInput("Invalid amount. Must be a positive number")
    return amount


def _validate_core_fields(type, transaction_date, amount) -> Tuple[str, datetime, Decimal]:
    if not type or transaction_date in (None, "") or amount in (None, ""):
        raise InvalidInput("Type, transaction date, and amount are required")
    return normalize_type(type), parse_transaction_date(transaction_date), _parse_amount(amount)


def _check_category(session: Session, category_id: Optional[int], type: str, enforce: bool) -> None:
    if category_id is None:
        return
    if enforce:
        ensure_category_matches(session, category_id, type)
    elif session.get(Category, category_id) is None:
        raise NotFound("Category not found")


def _check_invoice(session: Session, invoice_id: Optional[int]) -> None:
    if invoice_id is not None and session.get(Invoice, invoice_id) is None:
        raise NotFound("Invoice not found")


def _load(session: Session, transaction_id: int) -> Optional[Transaction]:
    return session.get(Transaction, transaction_id, options=list(_DETAIL_OPTIONS), populate_existing=True)


def create_transaction(
    session: Session,
    type: Optional[str],
    transaction_date,
    amount,
    description: Optional[str] = None,
    category_id: Optional[int] = None,
    reference: Optional[str] = None,
    user_id: Optional[int] = None,
    invoice_id: Optional[int] = None,
    system_generated_key: Optional[str] = None,
) -> Transaction:
    """
    Create a transaction.

    Returns:
        The created transaction with category, invoice and user loaded

    Raises:
        InvalidInput: Missing/invalid fields or mismatched category type
        NotFound: Referenced category or invoice does not exist
    """
    tx_type, date, value = _validate_core_fields(type, transaction_date, amount)

    logger.info(f"Creating transaction: type={tx_type}, category_id={category_id}")

    try:
        with write_transaction(session):
            _check_category(session, category_id, tx_type, settings.ENFORCE_CATEGORY_TYPE_MATCH)
            _check_invoice(session, invoice_id)
            transaction = Transaction(
                type=tx_type,
                transaction_date=date,
                month=date.month,
                year=date.year,
                description=description or None,
                category_id=category_id,
                amount=value,
                reference=reference or None,
                user_id=user_id,
                invoice_id=invoice_id,
                system_generated_key=system_generated_key,
            )
            session.add(transaction)
            session.flush()
            transaction_id = transaction.id
    except IntegrityError as e:
        raise map_database_error(e, "Transaction") from e

    logger.info(f"Transaction created successfully: id={transaction_id}")
    return _load(session, transaction_id)


def get_transactions(
    session: Session,
    type: Optional[str] = None,
    category_id: Optional[int] = None,
    user_id: Optional[int] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
    search: Optional[str] = None,
    sort_by: str = "date-desc",
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[Transaction], int, TransactionSummary]:
    """
    Fetch a page of transactions with filters plus an income/expense summary.

    The summary only honors the month/year filters so it always reflects the
    whole period being viewed.

    Returns:
        (transactions, total_matching, summary)
    """
    filters = []
    if type:
        filters.append(Transaction.type == normalize_type(type))
    if category_id is not None:
        filters.append(Transaction.category_id == category_id)
    if user_id is not None:
        filters.append(Transaction.user_id == user_id)
    if month is not None:
        filters.append(Transaction.month == month)
    if year is not None:
        filters.append(Transaction.year == year)

    base = select(Transaction).outerjoin(Transaction.category)
    if search:
        pattern = f"%{search}%"
        filters.append(
            or_(
                Transaction.description.ilike(pattern),
                Transaction.reference.ilike(pattern),
                Category.name.ilike(pattern),
            )
        )
    base = base.where(*filters)

    order = Transaction.transaction_date.asc() if sort_by == "date-asc" else Transaction.transaction_date.desc()
    stmt = (
        base.options(*_DETAIL_OPTIONS)
        .order_by(order, Transaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    transactions = list(session.scalars(stmt))

    total = session.scalar(select(func.count()).select_from(base.subquery())) or 0

    period_filters = []
    if month is not None:
        period_filters.append(Transaction.month == month)
    if year is not None:
        period_filters.append(Transaction.year == year)
    sums = dict(
        session.execute(
            select(Transaction.type, func.sum(Transaction.amount))
            .where(*period_filters)
            .group_by(Transaction.type)
        ).all()
    )
    summary = TransactionSummary(
        total_income=money(sums.get(TransactionType.INCOME.value)),
        total_expense=money(sums.get(TransactionType.EXPENSE.value)),
    )

    logger.info(f"Fetched {len(transactions)} of {total} transactions (page={page}, limit={limit})")
    return transactions, total, summary


def get_transaction_by_id(session: Session, transaction_id: int) -> Transaction:
    """
    Raises:
        NotFound: If the transaction does not exist
    """
    transaction = _load(session, transaction_id)
    if transaction is None:
        raise NotFound("Transaction not found")
    return transaction


def update_transaction(
    session: Session,
    transaction_id: int,
    type: Optional[str],
    transaction_date,
    amount,
    description: Optional[str] = None,
    category_id: Optional[int] = None,
    reference: Optional[str] = None,
    user_id: Optional[int] = None,
    invoice_id: Optional[int] = None,
) -> Transaction:
    """
    Replace every editable field of a transaction.

    Raises:
        InvalidInput, NotFound
    """
    tx_type, date, value = _validate_core_fields(type, transaction_date, amount)

    try:
        with write_transaction(session):
            transaction = session.get(Transaction, transaction_id)
            if transaction is None:
                raise NotFound("Transaction not found")
            _check_category(session, category_id, tx_type, settings.ENFORCE_CATEGORY_TYPE_MATCH)
            _check_invoice(session, invoice_id)

            transaction.type = tx_type
            transaction.transaction_date = date
            transaction.month = date.month
            transaction.year = date.year
            transaction.description = description or None
            transaction.category_id = category_id
            transaction.amount = value
            transaction.reference = reference or None
            transaction.user_id = user_id
            transaction.invoice_id = invoice_id
            session.flush()
    except IntegrityError as e:
        raise map_database_error(e, "Transaction") from e

    logger.info(f"Transaction updated: id={transaction_id}")
    return _load(session, transaction_id)


def delete_transaction(session: Session, transaction_id: int) -> None:
    """
    Raises:
        NotFound: If the transaction does not exist
    """
    with write_transaction(session):
        transaction = session.get(Transaction, transaction_id)
        if transaction is None:
            raise NotFound("Transaction not found")
        session.delete(transaction)

    logger.info(f"Transaction deleted: id={transaction_id}")


def import_transactions(
    session: Session,
    rows: List[Dict[str, Any]],
) -> Tuple[List[Transaction], List[Dict[str, Any]]]:
    """
    Create transactions from a batch, validating each row on its own.

    Each row commits in its own transaction; an invalid row is reported and
    skipped without affecting the others.

    Args:
        session: Fresh Session
        rows: Raw row dicts with type, description, amount, transaction_date
              and optional category_id

    Returns:
        (created transactions, errors) where each error is
        {"data": row, "error": message}

    Raises:
        InvalidInput: If rows is empty
    """
    if not rows:
        raise InvalidInput("Invalid transactions data")

    created_ids: List[int] = []
    errors: List[Dict[str, Any]] = []

    for row in rows:
        try:
            if not row.get("type") or row.get("amount") in (None, "") or not row.get("transaction_date"):
                raise InvalidInput("Missing required fields: type, amount, or transactionDate")
            tx_type, date, value = _validate_core_fields(
                row.get("type"), row.get("transaction_date"), row.get("amount")
            )
            try:
                category_id = parse_id(row.get("category_id"), "category_id")
            except ValueError:
                raise InvalidInput("Invalid category ID")

            with write_transaction(session):
                if category_id is not None:
                    try:
                        ensure_category_matches(session, category_id, tx_type)
                    except NotFound:
                        raise InvalidInput("Invalid category ID")
                transaction = Transaction(
                    type=tx_type,
                    transaction_date=date,
                    month=date.month,
                    year=date.year,
                    description=row.get("description") or None,
                    category_id=category_id,
                    amount=value,
                    system_generated_key=SYSTEM_GENERATED_KEYS['BULK_IMPORT'],
                )
                session.add(transaction)
                session.flush()
                created_ids.append(transaction.id)
        except ServiceError as e:
            errors.append({"data": row, "error": e.details})
        except IntegrityError as e:
            logger.warning(f"Batch row rejected by database: {e}")
            errors.append({"data": row, "error": map_database_error(e, "Transaction").details})

    created = [_load(session, transaction_id) for transaction_id in created_ids]

    logger.info(f"Batch import finished: created={len(created)}, failed={len(errors)}, total={len(rows)}")
    return created, errors
