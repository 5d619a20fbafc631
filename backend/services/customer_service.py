"""
Customer persistence service.

Customer emails are unique when present; a duplicate raises Conflict.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from backend.db.models import Customer, Invoice
from backend.db.session import write_transaction
from backend.utils.errors import InvalidInput, NotFound, map_database_error

logger = logging.getLogger(__name__)


def get_customers(
    session: Session,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[Tuple[Customer, int]], int]:
    """
    Fetch a page of customers, newest first, each with its invoice count.

    Args:
        search: Case-insensitive match on name, email or phone

    Returns:
        ([(customer, invoice_count)], total_matching)
    """
    stmt = select(Customer)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(
            or_(
                Customer.name.ilike(pattern),
                Customer.email.ilike(pattern),
                Customer.phone.ilike(pattern),
            )
        )

    total = session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    invoice_count = (
        select(func.count(Invoice.id))
        .where(Invoice.customer_id == Customer.id)
        .correlate(Customer)
        .scalar_subquery()
    )
    page_stmt = (
        stmt.add_columns(invoice_count)
        .order_by(Customer.created_at.desc(), Customer.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    customers = [(customer, count) for customer, count in session.execute(page_stmt).all()]
    logger.info(f"Fetched {len(customers)} of {total} customers")
    return customers, total


def get_customer_by_id(session: Session, customer_id: int) -> Customer:
    """
    Fetch a customer with their invoices (newest first).

    Raises:
        NotFound: If the customer does not exist
    """
    customer = session.get(
        Customer,
        customer_id,
        options=[selectinload(Customer.invoices).selectinload(Invoice.items)],
        populate_existing=True,
    )
    if customer is None:
        raise NotFound("Customer not found")
    return customer


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def create_customer(
    session: Session,
    name: Optional[str],
    email: Optional[str] = None,
    phone: Optional[str] = None,
    address: Optional[str] = None,
) -> Customer:
    """
    Raises:
        InvalidInput: If name is missing
        Conflict: If the email is already used by another customer
    """
    if not _clean(name):
        raise InvalidInput("Customer name is required")

    try:
        with write_transaction(session):
            customer = Customer(
                name=_clean(name),
                email=_clean(email),
                phone=_clean(phone),
                address=_clean(address),
            )
            session.add(customer)
            session.flush()
    except IntegrityError as e:
        raise map_database_error(e, "Customer with this email") from e

    logger.info(f"Customer created: id={customer.id}")
    return customer


def update_customer(
    session: Session,
    customer_id: int,
    name: Optional[str],
    email: Optional[str] = None,
    phone: Optional[str] = None,
    address: Optional[str] = None,
) -> Customer:
    """
    Replace a customer's contact fields.

    Raises:
        InvalidInput, NotFound, Conflict
    """
    if not _clean(name):
        raise InvalidInput("Customer name is required")

    try:
        with write_transaction(session):
            customer = session.get(Customer, customer_id)
            if customer is None:
                raise NotFound("Customer not found")
            customer.name = _clean(name)
            customer.email = _clean(email)
            customer.phone = _clean(phone)
            customer.address = _clean(address)
            session.flush()
    except IntegrityError as e:
        raise map_database_error(e, "Customer with this email") from e

    logger.info(f"Customer updated: id={customer_id}")
    return customer


def delete_customer(session: Session, customer_id: int) -> None:
    """
    Delete a customer. Their invoices are kept without a customer.

    Raises:
        NotFound: If the customer does not exist
    """
    with write_transaction(session):
        customer = session.get(Customer, customer_id)
        if customer is None:
            raise NotFound("Customer not found")
        session.delete(customer)

    logger.info(f"Customer deleted: id={customer_id}")
