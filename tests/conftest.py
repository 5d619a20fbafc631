"""
Pytest configuration for the invoicing backend tests.

Sets up the test environment, a throwaway SQLite database per test and
factories for the common rows.
"""
import os
from datetime import datetime, timezone
from decimal import Decimal

import pytest

# Disable config validation during tests
os.environ["VALIDATE_CONFIG"] = "false"

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_PUBLISHABLE_KEY", "test-publishable-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from fastapi.testclient import TestClient  # noqa: E402

from backend.auth.dependencies import AuthenticatedUser, get_authenticated_user  # noqa: E402
from backend.db.models import (  # noqa: E402
    Base,
    Category,
    Customer,
    Invoice,
    InvoiceItem,
    User,
)
from backend.db.session import create_db_engine, create_session_factory  # noqa: E402
from backend.main import app  # noqa: E402


async def mock_get_authenticated_user_dependency():
    """Mock dependency that returns test AuthenticatedUser."""
    return AuthenticatedUser(
        user_id="test-user-id",
        access_token="test-access-token"
    )


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite engine so several connections see the same data."""
    db_engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def session(session_factory):
    db_session = session_factory()
    yield db_session
    db_session.close()


@pytest.fixture
def mock_auth():
    """Override get_authenticated_user dependency."""
    app.dependency_overrides[get_authenticated_user] = mock_get_authenticated_user_dependency
    yield
    app.dependency_overrides.pop(get_authenticated_user, None)


@pytest.fixture
def client(session_factory, mock_auth):
    """TestClient bound to the per-test database with auth mocked."""
    app.state.session_factory = session_factory
    yield TestClient(app)
    app.state.session_factory = None


@pytest.fixture
def anonymous_client(session_factory):
    """TestClient without the auth override."""
    app.state.session_factory = session_factory
    yield TestClient(app)
    app.state.session_factory = None


@pytest.fixture
def make_user(session_factory):
    def _make(username="cashier", name="Cashier", role="USER"):
        with session_factory() as db, db.begin():
            user = User(username=username, password_hash="not-a-real-hash", name=name, role=role)
            db.add(user)
            db.flush()
            return user.id
    return _make


@pytest.fixture
def make_customer(session_factory):
    def _make(name="PT Maju Jaya", email=None):
        with session_factory() as db, db.begin():
            customer = Customer(name=name, email=email)
            db.add(customer)
            db.flush()
            return customer.id
    return _make


@pytest.fixture
def make_category(session_factory):
    def _make(name="Sales", type="INCOME"):
        with session_factory() as db, db.begin():
            category = Category(name=name, type=type)
            db.add(category)
            db.flush()
            return category.id
    return _make


@pytest.fixture
def make_invoice(session_factory):
    """Insert an invoice with one line item worth `total`."""
    counter = {"n": 0}

    def _make(total="1000.00", status="ISSUED", customer_id=None, amount_paid="0.00", invoice_id=None):
        counter["n"] += 1
        total = Decimal(total)
        with session_factory() as db, db.begin():
            invoice = Invoice(
                id=invoice_id,
                invoice_no=f"TST-2024-{counter['n']:04d}",
                customer_id=customer_id,
                status=status,
                issue_date=datetime(2024, 5, 1, tzinfo=timezone.utc) if status != "DRAFT" else None,
                subtotal=total,
                discount=Decimal("0"),
                tax=Decimal("0"),
                total=total,
                amount_paid=Decimal(amount_paid),
                currency="IDR",
                items=[
                    InvoiceItem(
                        description="Consulting",
                        quantity=Decimal("1"),
                        unit_price=total,
                        discount=Decimal("0"),
                        subtotal=total,
                    )
                ],
            )
            db.add(invoice)
            db.flush()
            return invoice.id
    return _make
