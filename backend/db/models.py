"""
SQLAlchemy ORM models.

Identifiers are 64-bit integers (plain INTEGER on SQLite so the rowid
autoincrement still applies). Money columns are NUMERIC(15, 2) and map to
Decimal on the Python side.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

from backend.utils.constants import InvoiceStatus, UserRole

Base = declarative_base()

IdType = BigInteger().with_variant(Integer, "sqlite")
Money = Numeric(15, 2)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(IdType, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    categories = relationship("Category", back_populates="user")
    transactions = relationship("Transaction", back_populates="user")
    invoices = relationship("Invoice", back_populates="user")


class Customer(Base):
    __tablename__ = "customers"

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    invoices = relationship(
        "Invoice",
        back_populates="customer",
        order_by=lambda: Invoice.created_at.desc(),
    )


class Category(Base):
    __tablename__ = "categories"

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False)
    type = Column(String(20), nullable=False)
    user_id = Column(IdType, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="categories")
    transactions = relationship("Transaction", back_populates="category")


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(IdType, primary_key=True, autoincrement=True)
    invoice_no = Column(String(50), unique=True, nullable=False)
    customer_id = Column(IdType, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)
    user_id = Column(IdType, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(20), nullable=False, default=InvoiceStatus.DRAFT.value)
    issue_date = Column(DateTime(timezone=True), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    subtotal = Column(Money, nullable=False, default=0)
    discount = Column(Money, nullable=False, default=0)
    tax = Column(Money, nullable=False, default=0)
    total = Column(Money, nullable=False, default=0)
    # Running sum of payment amounts, only ever changed by the conditional
    # update in payment_service
    amount_paid = Column(Money, nullable=False, default=0)
    currency = Column(String(10), nullable=False, default="IDR")
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    customer = relationship("Customer", back_populates="invoices")
    user = relationship("User", back_populates="invoices")
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by=lambda: InvoiceItem.id,
    )
    payments = relationship(
        "InvoicePayment",
        back_populates="invoice",
        order_by=lambda: (InvoicePayment.payment_date.desc(), InvoicePayment.id.desc()),
    )
    transactions = relationship("Transaction", back_populates="invoice")


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(IdType, primary_key=True, autoincrement=True)
    invoice_id = Column(IdType, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    description = Column(String(500), nullable=False)
    product_sku = Column(String(100), nullable=True)
    quantity = Column(Numeric(12, 2), nullable=False)
    unit_price = Column(Money, nullable=False)
    discount = Column(Money, nullable=False, default=0)
    subtotal = Column(Money, nullable=False)

    invoice = relationship("Invoice", back_populates="items")


class InvoicePayment(Base):
    __tablename__ = "invoice_payments"

    id = Column(IdType, primary_key=True, autoincrement=True)
    invoice_id = Column(IdType, ForeignKey("invoices.id"), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    payment_method = Column(String(20), nullable=False)
    reference_no = Column(String(255), nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    created_by = Column(IdType, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    invoice = relationship("Invoice", back_populates="payments")
    user = relationship("User")


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(IdType, primary_key=True, autoincrement=True)
    type = Column(String(20), nullable=False)
    transaction_date = Column(DateTime(timezone=True), nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)
    category_id = Column(IdType, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    amount = Column(Money, nullable=False)
    reference = Column(String(255), nullable=True)
    # Informational link only; the invoice does not own its transactions
    invoice_id = Column(IdType, ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True, index=True)
    user_id = Column(IdType, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    system_generated_key = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    category = relationship("Category", back_populates="transactions")
    invoice = relationship("Invoice", back_populates="transactions")
    user = relationship("User", back_populates="transactions")


class Setting(Base):
    __tablename__ = "settings"

    id = Column(IdType, primary_key=True, autoincrement=True)
    key = Column(String(100), unique=True, nullable=False)
    value = Column(Text, nullable=True)
    user_id = Column(IdType, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
