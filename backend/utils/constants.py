"""
Domain constants shared by models, services and schemas.

Status and type values are stored as their upper-case string value in the
database so they can be compared directly against ORM attributes.
"""

import enum
from decimal import Decimal


class InvoiceStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class TransactionType(str, enum.Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    TRANSFER = "TRANSFER"
    CARD = "CARD"
    CHEQUE = "CHEQUE"
    OTHER = "OTHER"


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    USER = "USER"


# Invoices that can receive payments
PAYABLE_STATUSES = (InvoiceStatus.ISSUED.value, InvoiceStatus.PARTIAL.value)

# |paid - total| below this counts as fully paid
STATUS_EPSILON = Decimal("0.01")

# Overshoot tolerance for the conditional payment update. Amounts are
# quantized to cents, so anything within half a cent is float noise.
OVERPAYMENT_TOLERANCE = Decimal("0.005")

# Income category that receives automatically created payment transactions
DEFAULT_INCOME_CATEGORY_NAME = "Invoice Payment"

# Setting key that stores the uploaded company logo storage path
COMPANY_LOGO_SETTING_KEY = "company_logo"

# Logo uploads
MAX_LOGO_SIZE_BYTES = 5 * 1024 * 1024
ALLOWED_LOGO_CONTENT_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")

# Tags for transactions the system created on the user's behalf
SYSTEM_GENERATED_KEYS = {
    # Linked transaction recorded together with an invoice payment
    'INVOICE_PAYMENT': 'invoice_payment',

    # Settling payment created when an invoice is edited to PAID
    'INVOICE_SETTLEMENT': 'invoice_settlement',

    # Rows created through POST /transactions/import/batch
    'BULK_IMPORT': 'bulk_import',
}
