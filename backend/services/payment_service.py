"""
Invoice payment recording.

CRITICAL RULES:
1. Only ISSUED and PARTIAL invoices accept payments (DRAFT and CANCELLED are
   rejected with InvalidState)
2. The sum of payments may never exceed the invoice total
3. |amount_paid - total| < 0.01 means PAID, anything else above zero is PARTIAL
4. Payment row, invoice status/amount_paid and the optional linked INCOME
   transaction are written in ONE database transaction

Race safety: the running total lives in invoice.amount_paid and is advanced
by a single conditional UPDATE whose WHERE clause re-checks the status and
the overshoot rule. Two concurrent payments serialize on the row; the loser
matches zero rows and is rejected instead of overshooting the total.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError, NoResultFound
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from backend.db.models import Invoice, InvoicePayment, Money, Transaction, utcnow
from backend.db.session import write_transaction
from backend.services.category_service import ensure_category_matches, get_or_create_income_category
from backend.utils.constants import (
    OVERPAYMENT_TOLERANCE,
    PAYABLE_STATUSES,
    STATUS_EPSILON,
    SYSTEM_GENERATED_KEYS,
    InvoiceStatus,
    PaymentMethod,
    TransactionType,
)
from backend.utils.errors import InvalidInput, InvalidState, NotFound, map_database_error
from backend.utils.serialization import money

logger = logging.getLogger(__name__)


@dataclass
class PaymentResult:
    """Outcome of a recorded payment."""
    payment: InvoicePayment
    status: str
    total_paid: Decimal
    remaining: Decimal
    transaction: Optional[Transaction] = None


def parse_payment_amount(amount) -> Decimal:
    """
    Validate and quantize a payment amount.

    Raises:
        InvalidInput: If the amount is missing, not numeric or not > 0
    """
    if amount is None or amount == "" or isinstance(amount, bool):
        raise InvalidInput("Payment amount is required and must be greater than 0")
    try:
        value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise InvalidInput("Payment amount is required and must be greater than 0")
    if not value.is_finite() or value <= 0:
        raise InvalidInput("Payment amount is required and must be greater than 0")
    return value


def normalize_payment_method(method: Optional[str]) -> str:
    """Upper-case a payment method, defaulting to CASH."""
    if not method:
        return PaymentMethod.CASH.value
    normalized = method.strip().upper()
    if normalized not in PaymentMethod.__members__:
        allowed = ", ".join(PaymentMethod.__members__)
        raise InvalidInput(f"Invalid payment method '{method}'. Must be one of: {allowed}")
    return normalized


def derive_status(new_total_paid: Decimal, total: Decimal, current_status: str) -> str:
    """
    Status after a payment brings the paid amount to new_total_paid.

    Mirrors the CASE expression used in the conditional UPDATE.
    """
    if abs(total - new_total_paid) < STATUS_EPSILON:
        return InvoiceStatus.PAID.value
    if new_total_paid > 0:
        return InvoiceStatus.PARTIAL.value
    return current_status


def _advance_amount_paid(session: Session, invoice_id: int, amount: Decimal) -> bool:
    """Conditionally add `amount` to the invoice; True when the row was updated."""
    new_total_paid = Invoice.amount_paid + amount
    new_status = case(
        (
            func.abs(Invoice.total - new_total_paid, type_=Money) < STATUS_EPSILON,
            InvoiceStatus.PAID.value,
        ),
        else_=InvoiceStatus.PARTIAL.value,
    )
    stmt = (
        update(Invoice)
        .where(
            Invoice.id == invoice_id,
            Invoice.status.in_(PAYABLE_STATUSES),
            new_total_paid <= Invoice.total + OVERPAYMENT_TOLERANCE,
        )
        .values(amount_paid=new_total_paid, status=new_status, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = session.execute(stmt)
    return result.rowcount == 1


def _raise_rejection(session: Session, invoice_id: int) -> None:
    """Explain why the conditional update matched no row."""
    invoice = session.get(Invoice, invoice_id, populate_existing=True)
    if invoice is None:
        raise NotFound("Invoice not found")
    if invoice.status == InvoiceStatus.DRAFT:
        raise InvalidState("Cannot add payment to draft invoice")
    if invoice.status == InvoiceStatus.CANCELLED:
        raise InvalidState("Cannot add payment to cancelled invoice")
    raise InvalidInput("Payment amount exceeds invoice total")


def _linked_transaction_description(invoice: Invoice, notes: Optional[str]) -> str:
    description = f"Invoice payment {invoice.invoice_no}"
    if invoice.customer is not None:
        description += f" - {invoice.customer.name}"
    if notes:
        description += f" - {notes}"
    return description


def apply_payment(
    session: Session,
    invoice_id: int,
    amount: Decimal,
    payment_method: str,
    reference_no: Optional[str] = None,
    created_by: Optional[int] = None,
    create_linked_transaction: bool = True,
    category_id: Optional[int] = None,
    use_default_category: bool = False,
    payment_date: Optional[datetime] = None,
    notes: Optional[str] = None,
    system_generated_key: str = SYSTEM_GENERATED_KEYS['INVOICE_PAYMENT'],
) -> PaymentResult:
    """
    Write a payment inside the caller's open transaction.

    The caller owns the transaction boundary (see record_payment and
    invoice_service.update_invoice). The conditional UPDATE is the first
    statement so the invoice row lock is taken before anything is read.
    """
    if not _advance_amount_paid(session, invoice_id, amount):
        _raise_rejection(session, invoice_id)

    invoice = session.get(
        Invoice,
        invoice_id,
        options=[selectinload(Invoice.customer)],
        populate_existing=True,
    )
    if invoice is None:
        raise NotFound("Invoice not found")

    paid_at = payment_date or utcnow()
    payment = InvoicePayment(
        invoice_id=invoice_id,
        amount=amount,
        payment_method=payment_method,
        reference_no=reference_no or None,
        payment_date=paid_at,
        created_by=created_by,
    )
    session.add(payment)

    transaction = None
    if create_linked_transaction and (category_id is not None or use_default_category):
        if category_id is not None:
            category = ensure_category_matches(session, category_id, TransactionType.INCOME.value)
        else:
            category = get_or_create_income_category(session, user_id=created_by)
        transaction = Transaction(
            type=TransactionType.INCOME.value,
            transaction_date=paid_at,
            month=paid_at.month,
            year=paid_at.year,
            description=_linked_transaction_description(invoice, notes),
            category_id=category.id,
            amount=amount,
            reference=reference_no or None,
            invoice_id=invoice_id,
            user_id=created_by,
            system_generated_key=system_generated_key,
        )
        session.add(transaction)

    session.flush()

    total_paid = money(invoice.amount_paid)
    remaining = money(invoice.total) - total_paid

    logger.info(
        f"Payment recorded: invoice_id={invoice_id}, payment_id={payment.id}, "
        f"status={invoice.status}, linked_transaction={transaction is not None}"
    )

    return PaymentResult(
        payment=payment,
        status=invoice.status,
        total_paid=total_paid,
        remaining=remaining,
        transaction=transaction,
    )


def record_payment(
    session: Session,
    invoice_id: int,
    amount,
    payment_method: Optional[str] = None,
    reference_no: Optional[str] = None,
    created_by: Optional[int] = None,
    create_linked_transaction: bool = True,
    category_id: Optional[int] = None,
    use_default_category: bool = False,
    payment_date: Optional[datetime] = None,
    notes: Optional[str] = None,
) -> PaymentResult:
    """
    Record a payment against an invoice atomically.

    Validation order:
    1. amount present and > 0 (InvalidInput)
    2. invoice exists (NotFound)
    3. invoice not DRAFT / CANCELLED (InvalidState)
    4. total paid after this payment <= invoice total (InvalidInput)

    Args:
        session: Fresh request-scoped Session (no transaction in progress)
        invoice_id: Invoice being paid
        amount: Payment amount (number or numeric string)
        payment_method: CASH, TRANSFER, ... (default CASH)
        reference_no: Optional external reference
        created_by: Optional user id of the recorder
        create_linked_transaction: Also write an INCOME ledger entry
        category_id: Income category for the linked entry
        use_default_category: Fall back to the default income category when
            no category_id is given
        payment_date: Caller-supplied payment time (default now)
        notes: Appended to the linked transaction description

    Returns:
        PaymentResult with the payment, new status, total paid and remaining

    Raises:
        InvalidInput, NotFound, InvalidState: see above. Nothing is written
        when any of them is raised.
    """
    value = parse_payment_amount(amount)
    method = normalize_payment_method(payment_method)

    logger.info(f"Recording payment for invoice_id={invoice_id}, method={method}")

    try:
        with write_transaction(session):
            return apply_payment(
                session,
                invoice_id=invoice_id,
                amount=value,
                payment_method=method,
                reference_no=reference_no,
                created_by=created_by,
                create_linked_transaction=create_linked_transaction,
                category_id=category_id,
                use_default_category=use_default_category,
                payment_date=payment_date,
                notes=notes,
            )
    except (IntegrityError, NoResultFound, StaleDataError) as e:
        logger.warning(f"Payment for invoice_id={invoice_id} rejected by database: {e}")
        raise map_database_error(e, "Payment") from e


def list_invoice_payments(session: Session, invoice_id: int) -> List[InvoicePayment]:
    """Payments of an invoice, newest first."""
    stmt = (
        select(InvoicePayment)
        .options(selectinload(InvoicePayment.user))
        .where(InvoicePayment.invoice_id == invoice_id)
        .order_by(InvoicePayment.payment_date.desc(), InvoicePayment.id.desc())
    )
    payments = list(session.scalars(stmt))
    logger.debug(f"Fetched {len(payments)} payments for invoice_id={invoice_id}")
    return payments
