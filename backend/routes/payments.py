"""
Standalone payment endpoint.

POST /payments records an invoice payment like POST /invoices/{id}/payments
but always writes the linked income transaction (default income category)
and honors a caller-supplied payment date.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from backend.auth.dependencies import AuthenticatedUser, get_authenticated_user
from backend.db.session import get_db_session
from backend.routes.invoices import build_payment_recorded_response
from backend.schemas.invoices import PaymentRecordedResponse, StandalonePaymentRequest
from backend.services import record_payment
from backend.utils.errors import InvalidInput, ServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "",
    response_model=PaymentRecordedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a payment with its income transaction",
    description="""
    Record a payment against an invoice.

    Same validation and atomicity as POST /invoices/{id}/payments. The income
    transaction is always created in the default "Invoice Payment" category;
    notes are appended to its description.
    """
)
def create_payment(
    request: StandalonePaymentRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> PaymentRecordedResponse:
    """Record a payment and its linked income transaction."""
    logger.info(f"Recording standalone payment for user {auth_user.user_id}: invoice={request.invoice_id}")

    try:
        if request.invoice_id is None:
            raise InvalidInput("Invoice ID and amount are required")
        result = record_payment(
            session,
            invoice_id=request.invoice_id,
            amount=request.amount,
            payment_method=request.payment_method,
            reference_no=request.reference_no,
            create_linked_transaction=True,
            use_default_category=True,
            payment_date=request.payment_date,
            notes=request.notes,
        )
    except ServiceError as e:
        raise e.to_http_exception()

    return build_payment_recorded_response(result)
