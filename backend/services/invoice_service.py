"""
Invoice persistence service.

CRITICAL RULES:
1. Invoices are created as DRAFT and only move forward:
   DRAFT -> ISSUED -> PARTIAL -> PAID, or -> CANCELLED
2. DRAFT -> ISSUED only through issue_invoice(); PARTIAL/PAID are derived by
   payment_service from the running amount_paid
3. line subtotal = quantity * unit_price - line discount;
   total = sum(line subtotals) - discount + tax
4. PAID invoices are read-only and CANCELLED invoices keep their status.
   Editing an invoice to PAID records a settling payment (and its income
   transaction) in the same DB transaction. A total edited down to
   amount_paid makes the invoice PAID
5. Invoices with payments or linked transactions are only deleted with force
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, NoResultFound
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from backend.config import settings
from backend.db.models import (
    Customer,
    Invoice,
    InvoiceItem,
    InvoicePayment,
    Transaction,
    utcnow,
)
from backend.db.session import write_transaction
from backend.services.payment_service import apply_payment, derive_status
from backend.utils.constants import (
    OVERPAYMENT_TOLERANCE,
    PAYABLE_STATUSES,
    SYSTEM_GENERATED_KEYS,
    InvoiceStatus,
    PaymentMethod,
)
from backend.utils.errors import InvalidInput, InvalidState, NotFound, map_database_error
from backend.utils.serialization import money

logger = logging.getLogger(__name__)

_DETAIL_OPTIONS = (
    selectinload(Invoice.customer),
    selectinload(Invoice.user),
    selectinload(Invoice.items),
    selectinload(Invoice.payments).selectinload(InvoicePayment.user),
    selectinload(Invoice.transactions).selectinload(Transaction.category),
)

# Manual status edits allowed through update_invoice(); ISSUED/PARTIAL are
# only reachable through issue_invoice() and recorded payments
_EDITABLE_TARGET_STATUSES = (InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value)


@dataclass
class InvoiceSummary:
    total: int
    paid: int

    @property
    def pending(self) -> int:
        return self.total - self.paid


def generate_invoice_no(now: Optional[datetime] = None) -> str:
    """Invoice number in the form {PREFIX}-{YEAR}-{4 digits}."""
    now = now or utcnow()
    return f"{settings.INVOICE_NUMBER_PREFIX}-{now.year}-{random.randint(0, 9999):04d}"


def _decimal(value, field: str) -> Decimal:
    try:
        return money(value)
    except (InvalidOperation, ValueError):
        raise InvalidInput(f"Field '{field}' must be a number")


def build_items(items: Optional[List[Dict[str, Any]]]) -> List[InvoiceItem]:
    """
    Validate raw line items and compute their subtotals.

    Raises:
        InvalidInput: If the list is empty or an item lacks description,
                      quantity or unit price
    """
    if not items:
        raise InvalidInput("At least one item is required")

    built = []
    for item in items:
        description = item.get("description")
        quantity = item.get("quantity")
        unit_price = item.get("unit_price")
        if not description or not quantity or not unit_price:
            raise InvalidInput("All items must have description, quantity, and unit price")
        quantity = _decimal(quantity, "quantity")
        unit_price = _decimal(unit_price, "unit_price")
        discount = _decimal(item.get("discount") or 0, "discount")
        if quantity <= 0 or unit_price <= 0:
            raise InvalidInput("Item quantity and unit price must be greater than 0")
        built.append(
            InvoiceItem(
                description=description,
                product_sku=item.get("product_sku") or None,
                quantity=quantity,
                unit_price=unit_price,
                discount=discount,
                subtotal=money(quantity * unit_price - discount),
            )
        )
    return built


def compute_total(subtotal: Decimal, discount: Decimal, tax: Decimal) -> Decimal:
    return money(subtotal - discount + tax)


def _ensure_customer(session: Session, customer_id: Optional[int]) -> None:
    if customer_id is not None and session.get(Customer, customer_id) is None:
        raise NotFound("Customer not found")


def create_invoice(
    session: Session,
    items: Optional[List[Dict[str, Any]]],
    customer_id: Optional[int] = None,
    user_id: Optional[int] = None,
    issue_date: Optional[datetime] = None,
    due_date: Optional[datetime] = None,
    discount=None,
    tax=None,
    currency: Optional[str] = None,
    notes: Optional[str] = None,
) -> Invoice:
    """
    Create a DRAFT invoice with its line items.

    Returns:
        The created invoice with details loaded

    Raises:
        InvalidInput: Invalid items or amounts
        NotFound: Unknown customer
        Conflict: Generated invoice number already exists
    """
    line_items = build_items(items)
    discount_amount = _decimal(discount or 0, "discount")
    tax_amount = _decimal(tax or 0, "tax")
    subtotal = money(sum((item.subtotal for item in line_items), Decimal("0")))
    total = compute_total(subtotal, discount_amount, tax_amount)

    try:
        with write_transaction(session):
            _ensure_customer(session, customer_id)
            invoice = Invoice(
                invoice_no=generate_invoice_no(),
                customer_id=customer_id,
                user_id=user_id,
                status=InvoiceStatus.DRAFT.value,
                issue_date=issue_date,
                due_date=due_date,
                subtotal=subtotal,
                discount=discount_amount,
                tax=tax_amount,
                total=total,
                amount_paid=Decimal("0.00"),
                currency=currency or settings.DEFAULT_CURRENCY,
                notes=notes or None,
                items=line_items,
            )
            session.add(invoice)
            session.flush()
            invoice_id = invoice.id
    except IntegrityError as e:
        raise map_database_error(e, "Invoice number") from e

    logger.info(f"Invoice created: id={invoice_id}, items={len(line_items)}")
    return get_invoice_detail(session, invoice_id)


def get_invoices(
    session: Session,
    status: Optional[str] = None,
    customer_id: Optional[int] = None,
    user_id: Optional[int] = None,
    day: Optional[int] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
    search: Optional[str] = None,
    sort_by: str = "date-desc",
    page: int = 1,
    limit: int = 10,
    include_summary: bool = False,
) -> Tuple[List[Invoice], int, Optional[InvoiceSummary]]:
    """
    Fetch a page of invoices.

    Date filters apply to issue_date: day+month+year selects one day,
    month (year defaults to the current year) one month, year one year.

    Returns:
        (invoices, total_matching, summary or None)
    """
    filters = []
    if status:
        filters.append(Invoice.status == status.upper())
    if customer_id is not None:
        filters.append(Invoice.customer_id == customer_id)
    if user_id is not None:
        filters.append(Invoice.user_id == user_id)

    start = end = None
    try:
        if day and month and year:
            start = datetime(year, month, day)
            end = datetime.fromordinal(start.toordinal() + 1)
        elif month:
            year_num = year or utcnow().year
            start = datetime(year_num, month, 1)
            end = datetime(year_num + 1, 1, 1) if month == 12 else datetime(year_num, month + 1, 1)
        elif year:
            start = datetime(year, 1, 1)
            end = datetime(year + 1, 1, 1)
    except ValueError:
        raise InvalidInput("Invalid date filter")
    if start is not None:
        filters.append(Invoice.issue_date >= start)
        filters.append(Invoice.issue_date < end)

    base = select(Invoice).outerjoin(Invoice.customer)
    if search:
        pattern = f"%{search}%"
        filters.append(
            or_(
                Invoice.invoice_no.ilike(pattern),
                Customer.name.ilike(pattern),
                Invoice.notes.ilike(pattern),
            )
        )
    base = base.where(*filters)

    order = Invoice.created_at.asc() if sort_by == "date-asc" else Invoice.created_at.desc()
    stmt = (
        base.options(
            selectinload(Invoice.customer),
            selectinload(Invoice.user),
            selectinload(Invoice.items),
            selectinload(Invoice.payments),
        )
        .order_by(order, Invoice.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    invoices = list(session.scalars(stmt))
    total = session.scalar(select(func.count()).select_from(base.subquery())) or 0

    summary = None
    if include_summary:
        paid = session.scalar(
            select(func.count()).select_from(
                base.where(Invoice.status == InvoiceStatus.PAID.value).subquery()
            )
        ) or 0
        summary = InvoiceSummary(total=total, paid=paid)

    logger.info(f"Fetched {len(invoices)} of {total} invoices (page={page}, limit={limit})")
    return invoices, total, summary


def get_invoice_detail(session: Session, invoice_id: int) -> Invoice:
    """
    Fetch an invoice with customer, items, payments and linked transactions.

    Raises:
        NotFound: If the invoice does not exist
    """
    invoice = session.get(Invoice, invoice_id, options=list(_DETAIL_OPTIONS), populate_existing=True)
    if invoice is None:
        raise NotFound("Invoice not found")
    return invoice


def issue_invoice(
    session: Session,
    invoice_id: int,
    issue_date: Optional[datetime] = None,
    due_date: Optional[datetime] = None,
) -> Invoice:
    """
    Move a DRAFT invoice to ISSUED.

    The status check and the write are one conditional UPDATE, so issuing
    twice (or concurrently) succeeds exactly once.

    Raises:
        NotFound: If the invoice does not exist
        InvalidState: If the invoice is not a DRAFT
    """
    try:
        with write_transaction(session):
            result = session.execute(
                update(Invoice)
                .where(Invoice.id == invoice_id, Invoice.status == InvoiceStatus.DRAFT.value)
                .values(
                    status=InvoiceStatus.ISSUED.value,
                    issue_date=issue_date or utcnow(),
                    due_date=due_date,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                if session.get(Invoice, invoice_id) is None:
                    raise NotFound("Invoice not found")
                raise InvalidState("Only draft invoices can be issued")
    except (NoResultFound, StaleDataError) as e:
        raise map_database_error(e, "Invoice") from e

    logger.info(f"Invoice issued: id={invoice_id}")
    return get_invoice_detail(session, invoice_id)


def update_invoice(session: Session, invoice_id: int, changes: Dict[str, Any]) -> Invoice:
    """
    Apply a partial update to an invoice.

    Args:
        session: Fresh Session
        invoice_id: Invoice to edit
        changes: Only the fields the caller sent (customer_id, issue_date,
                 due_date, status, discount, tax, currency, notes, items)

    Returns:
        The updated invoice with details loaded

    Raises:
        NotFound: Unknown invoice or customer
        InvalidState: Invoice is PAID, or the requested status change is not
                      allowed (nothing leaves CANCELLED)
        InvalidInput: Invalid items/amounts, or the new total is below the
                      amount already paid
    """
    requested_status = changes.get("status")
    if requested_status:
        requested_status = requested_status.upper()
        if requested_status not in InvoiceStatus.__members__:
            raise InvalidInput(f"Invalid invoice status '{changes.get('status')}'")

    try:
        with write_transaction(session):
            invoice = session.get(
                Invoice,
                invoice_id,
                options=[selectinload(Invoice.items)],
                with_for_update=True,
            )
            if invoice is None:
                raise NotFound("Invoice not found")

            original_status = invoice.status
            if original_status == InvoiceStatus.PAID:
                raise InvalidState("Cannot update paid invoice")
            # CANCELLED is terminal
            if (
                original_status == InvoiceStatus.CANCELLED
                and requested_status
                and requested_status != original_status
            ):
                if requested_status == InvoiceStatus.PAID:
                    raise InvalidState("Cannot add payment to cancelled invoice")
                raise InvalidState("Cannot change status of cancelled invoice")
            if (
                requested_status
                and requested_status != original_status
                and requested_status not in _EDITABLE_TARGET_STATUSES
            ):
                raise InvalidState(
                    f"Cannot change status from {original_status} to {requested_status}; "
                    "use the issue or payment endpoints"
                )

            if changes.get("items"):
                invoice.items = build_items(changes["items"])
                subtotal = money(sum((item.subtotal for item in invoice.items), Decimal("0")))
            else:
                subtotal = money(sum((money(item.subtotal) for item in invoice.items), Decimal("0")))

            discount = _decimal(changes["discount"], "discount") if changes.get("discount") is not None else money(invoice.discount)
            tax = _decimal(changes["tax"], "tax") if changes.get("tax") is not None else money(invoice.tax)
            total = compute_total(subtotal, discount, tax)
            amount_paid = money(invoice.amount_paid)
            if total + OVERPAYMENT_TOLERANCE < amount_paid:
                raise InvalidInput("Invoice total cannot be lower than the amount already paid")

            if changes.get("customer_id") is not None:
                _ensure_customer(session, changes["customer_id"])
                invoice.customer_id = changes["customer_id"]
            if changes.get("issue_date") is not None:
                invoice.issue_date = changes["issue_date"]
            if changes.get("due_date") is not None:
                invoice.due_date = changes["due_date"]
            if changes.get("currency"):
                invoice.currency = changes["currency"]
            if "notes" in changes:
                invoice.notes = changes["notes"]

            invoice.subtotal = subtotal
            invoice.discount = discount
            invoice.tax = tax
            invoice.total = total

            # A total edited down to the amount already paid settles the invoice
            if amount_paid > 0 and invoice.status in PAYABLE_STATUSES:
                invoice.status = derive_status(amount_paid, total, invoice.status)

            settle = requested_status == InvoiceStatus.PAID and original_status != InvoiceStatus.PAID
            remaining = total - amount_paid
            if settle and remaining > 0:
                # The settling payment goes through the same conditional
                # update as any other payment
                if invoice.status not in PAYABLE_STATUSES:
                    invoice.status = InvoiceStatus.ISSUED.value
                    invoice.issue_date = invoice.issue_date or utcnow()
                session.flush()
                apply_payment(
                    session,
                    invoice_id=invoice_id,
                    amount=remaining,
                    payment_method=PaymentMethod.CASH.value,
                    reference_no=f"AUTO-{invoice.invoice_no}",
                    created_by=invoice.user_id,
                    use_default_category=True,
                    system_generated_key=SYSTEM_GENERATED_KEYS['INVOICE_SETTLEMENT'],
                )
                logger.info(f"Recorded settling payment for invoice_id={invoice_id}")
            elif requested_status:
                invoice.status = requested_status

            session.flush()
    except (IntegrityError, NoResultFound, StaleDataError) as e:
        raise map_database_error(e, "Invoice") from e

    logger.info(f"Invoice updated: id={invoice_id}")
    return get_invoice_detail(session, invoice_id)


def delete_invoice(session: Session, invoice_id: int, force: bool = False) -> Dict[str, int]:
    """
    Delete an invoice and its items.

    Args:
        force: Also delete the invoice's payments and linked transactions

    Returns:
        {"deleted_payments": n, "deleted_transactions": m}

    Raises:
        NotFound: If the invoice does not exist
        InvalidState: If related payments/transactions exist and force is False
    """
    with write_transaction(session):
        invoice = session.get(Invoice, invoice_id, with_for_update=True)
        if invoice is None:
            raise NotFound("Invoice not found")

        payments_count = session.scalar(
            select(func.count(InvoicePayment.id)).where(InvoicePayment.invoice_id == invoice_id)
        ) or 0
        transactions_count = session.scalar(
            select(func.count(Transaction.id)).where(Transaction.invoice_id == invoice_id)
        ) or 0

        if (payments_count or transactions_count) and not force:
            raise InvalidState(
                f"Invoice has {payments_count} payment(s) and {transactions_count} transaction(s). "
                "Delete the related data first or use force delete.",
                has_payments=payments_count > 0,
                has_transactions=transactions_count > 0,
                payments_count=payments_count,
                transactions_count=transactions_count,
            )

        if force:
            session.execute(
                delete(Transaction)
                .where(Transaction.invoice_id == invoice_id)
                .execution_options(synchronize_session=False)
            )
            session.execute(
                delete(InvoicePayment)
                .where(InvoicePayment.invoice_id == invoice_id)
                .execution_options(synchronize_session=False)
            )
            session.expire(invoice, ["payments", "transactions"])

        session.delete(invoice)

    logger.info(
        f"Invoice deleted: id={invoice_id}, payments={payments_count if force else 0}, "
        f"transactions={transactions_count if force else 0}"
    )
    return {
        "deleted_payments": payments_count if force else 0,
        "deleted_transactions": transactions_count if force else 0,
    }
