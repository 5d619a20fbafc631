"""
Service layer for the invoicing backend.

Services hold the business rules and own the database transaction
boundaries. They take a request-scoped SQLAlchemy Session, raise
ServiceError subclasses (backend.utils.errors) for expected failures and
return ORM objects that routes map into Pydantic response models.
"""

from .category_service import (
    create_category,
    delete_category,
    get_all_categories,
    get_category_by_id,
    update_category,
)
from .customer_service import (
    create_customer,
    delete_customer,
    get_customer_by_id,
    get_customers,
    update_customer,
)
from .invoice_service import (
    create_invoice,
    delete_invoice,
    get_invoice_detail,
    get_invoices,
    issue_invoice,
    update_invoice,
)
from .payment_service import list_invoice_payments, record_payment
from .settings_service import get_setting, get_settings, upsert_setting
from .storage import delete_logo, upload_logo
from .transaction_service import (
    create_transaction,
    delete_transaction,
    get_transaction_by_id,
    get_transactions,
    import_transactions,
    update_transaction,
)
from .user_service import create_user, get_users

__all__ = [
    "get_all_categories",
    "get_category_by_id",
    "create_category",
    "update_category",
    "delete_category",
    "get_customers",
    "get_customer_by_id",
    "create_customer",
    "update_customer",
    "delete_customer",
    "get_invoices",
    "get_invoice_detail",
    "create_invoice",
    "update_invoice",
    "issue_invoice",
    "delete_invoice",
    "record_payment",
    "list_invoice_payments",
    "get_settings",
    "get_setting",
    "upsert_setting",
    "upload_logo",
    "delete_logo",
    "get_transactions",
    "get_transaction_by_id",
    "create_transaction",
    "update_transaction",
    "delete_transaction",
    "import_transactions",
    "get_users",
    "create_user",
]
