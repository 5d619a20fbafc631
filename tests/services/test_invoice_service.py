"""
Tests for the invoice service.

Tests cover:
- Creation with item/total arithmetic and generated numbers
- Issuing (DRAFT only, exactly once)
- Editing, including settlement to PAID and the PAID guard
- Deletion with and without force
- Listing filters and summary
"""

import re
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from backend.db.models import Invoice, InvoicePayment, Transaction
from backend.services.invoice_service import (
    create_invoice,
    delete_invoice,
    generate_invoice_no,
    get_invoice_detail,
    get_invoices,
    issue_invoice,
    update_invoice,
)
from backend.services.payment_service import record_payment
from backend.utils.errors import Conflict, InvalidInput, InvalidState, NotFound


ITEMS = [
    {"description": "Design", "quantity": "2", "unit_price": "150000", "discount": "10000"},
    {"description": "Hosting", "quantity": 1, "unit_price": 50000},
]


class TestCreateInvoice:

    def test_totals_computed_from_items(self, session, make_customer):
        customer_id = make_customer()

        invoice = create_invoice(
            session,
            items=ITEMS,
            customer_id=customer_id,
            discount="5000",
            tax="11000",
        )

        assert invoice.status == "DRAFT"
        assert invoice.currency == "IDR"
        assert [item.subtotal for item in invoice.items] == [Decimal("290000.00"), Decimal("50000.00")]
        assert invoice.subtotal == Decimal("340000.00")
        assert invoice.total == Decimal("346000.00")
        assert invoice.amount_paid == Decimal("0.00")
        assert re.fullmatch(r"ADY-\d{4}-\d{4}", invoice.invoice_no)

    def test_requires_items(self, session):
        with pytest.raises(InvalidInput) as exc:
            create_invoice(session, items=[])
        assert exc.value.details == "At least one item is required"

    def test_item_fields_required(self, session):
        with pytest.raises(InvalidInput):
            create_invoice(session, items=[{"description": "X", "quantity": 1}])

    def test_unknown_customer(self, session):
        with pytest.raises(NotFound):
            create_invoice(session, items=ITEMS, customer_id=999)

    def test_duplicate_number_is_conflict(self, session):
        with patch("backend.services.invoice_service.generate_invoice_no", return_value="ADY-2024-0001"):
            create_invoice(session, items=ITEMS)
            with pytest.raises(Conflict):
                create_invoice(session, items=ITEMS)

    def test_generate_invoice_no_uses_year(self):
        number = generate_invoice_no(datetime(2031, 1, 1, tzinfo=timezone.utc))
        assert number.startswith("ADY-2031-")


class TestIssueInvoice:

    def test_draft_becomes_issued(self, session, make_invoice):
        invoice_id = make_invoice(status="DRAFT")

        invoice = issue_invoice(session, invoice_id)

        assert invoice.status == "ISSUED"
        assert invoice.issue_date is not None
        assert invoice.due_date is None

    def test_explicit_dates(self, session, make_invoice):
        invoice_id = make_invoice(status="DRAFT")
        issued = datetime(2024, 6, 1, tzinfo=timezone.utc)
        due = datetime(2024, 7, 1, tzinfo=timezone.utc)

        invoice = issue_invoice(session, invoice_id, issue_date=issued, due_date=due)

        assert invoice.issue_date.date() == issued.date()
        assert invoice.due_date.date() == due.date()

    def test_issue_twice_fails(self, session, make_invoice):
        invoice_id = make_invoice(status="DRAFT")
        issue_invoice(session, invoice_id)

        with pytest.raises(InvalidState) as exc:
            issue_invoice(session, invoice_id)
        assert exc.value.details == "Only draft invoices can be issued"

    def test_issue_unknown(self, session):
        with pytest.raises(NotFound):
            issue_invoice(session, 12345)

    def test_issued_invoice_accepts_payment(self, session, make_invoice):
        invoice_id = make_invoice(status="DRAFT", total="100.00")
        issue_invoice(session, invoice_id)

        assert record_payment(session, invoice_id, "100").status == "PAID"


class TestUpdateInvoice:

    def test_items_replaced_and_totals_recomputed(self, session, make_invoice):
        invoice_id = make_invoice(status="DRAFT", total="100.00")

        invoice = update_invoice(
            session,
            invoice_id,
            {"items": [{"description": "New", "quantity": 3, "unit_price": "10"}], "tax": "3"},
        )

        assert len(invoice.items) == 1
        assert invoice.subtotal == Decimal("30.00")
        assert invoice.total == Decimal("33.00")

    def test_omitted_fields_keep_values(self, session, make_invoice):
        invoice_id = make_invoice(total="100.00")

        invoice = update_invoice(session, invoice_id, {"notes": "thanks"})

        assert invoice.notes == "thanks"
        assert invoice.total == Decimal("100.00")
        assert invoice.status == "ISSUED"

    def test_paid_invoice_is_read_only(self, session, make_invoice):
        invoice_id = make_invoice(status="PAID", amount_paid="1000.00")

        with pytest.raises(InvalidState) as exc:
            update_invoice(session, invoice_id, {"notes": "late edit"})
        assert exc.value.details == "Cannot update paid invoice"

    def test_settle_to_paid_records_payment_and_transaction(self, session, make_invoice):
        invoice_id = make_invoice(total="1000.00")
        record_payment(session, invoice_id, "250")

        invoice = update_invoice(session, invoice_id, {"status": "paid"})

        assert invoice.status == "PAID"
        assert invoice.amount_paid == Decimal("1000.00")
        settling = [p for p in invoice.payments if p.reference_no == f"AUTO-{invoice.invoice_no}"]
        assert len(settling) == 1
        assert settling[0].amount == Decimal("750.00")
        assert settling[0].payment_method == "CASH"
        assert len(invoice.transactions) == 1
        assert invoice.transactions[0].category.name == "Invoice Payment"
        assert invoice.transactions[0].system_generated_key == "invoice_settlement"

    def test_settle_draft_invoice(self, session, make_invoice):
        invoice_id = make_invoice(status="DRAFT", total="80.00")

        invoice = update_invoice(session, invoice_id, {"status": "PAID"})

        assert invoice.status == "PAID"
        assert invoice.issue_date is not None
        assert sum(p.amount for p in invoice.payments) == Decimal("80.00")

    def test_total_below_amount_paid_rejected(self, session, make_invoice):
        invoice_id = make_invoice(total="1000.00")
        record_payment(session, invoice_id, "600")

        with pytest.raises(InvalidInput):
            update_invoice(
                session,
                invoice_id,
                {"items": [{"description": "Cheaper", "quantity": 1, "unit_price": "500"}]},
            )

        assert get_invoice_detail(session, invoice_id).total == Decimal("1000.00")

    def test_cancel(self, session, make_invoice):
        invoice_id = make_invoice()

        assert update_invoice(session, invoice_id, {"status": "CANCELLED"}).status == "CANCELLED"

    def test_cancelled_invoice_cannot_be_settled(self, session, make_invoice):
        invoice_id = make_invoice(total="1000.00")
        update_invoice(session, invoice_id, {"status": "CANCELLED"})

        with pytest.raises(InvalidState) as exc:
            update_invoice(session, invoice_id, {"status": "PAID"})
        assert exc.value.details == "Cannot add payment to cancelled invoice"

        invoice = get_invoice_detail(session, invoice_id)
        assert invoice.status == "CANCELLED"
        assert invoice.amount_paid == Decimal("0.00")
        assert invoice.payments == []
        assert invoice.transactions == []

    @pytest.mark.parametrize("target", ["ISSUED", "DRAFT", "PARTIAL"])
    def test_cancelled_invoice_keeps_status(self, session, make_invoice, target):
        invoice_id = make_invoice(status="CANCELLED")

        with pytest.raises(InvalidState):
            update_invoice(session, invoice_id, {"status": target})

        assert get_invoice_detail(session, invoice_id).status == "CANCELLED"

    def test_cancelled_invoice_notes_still_editable(self, session, make_invoice):
        invoice_id = make_invoice(status="CANCELLED")

        invoice = update_invoice(session, invoice_id, {"notes": "void", "status": "CANCELLED"})

        assert invoice.notes == "void"
        assert invoice.status == "CANCELLED"

    def test_total_lowered_to_amount_paid_becomes_paid(self, session, make_invoice):
        invoice_id = make_invoice(total="1000.00")
        record_payment(session, invoice_id, "500")

        invoice = update_invoice(session, invoice_id, {"discount": "500"})

        assert invoice.total == Decimal("500.00")
        assert invoice.amount_paid == Decimal("500.00")
        assert invoice.status == "PAID"
        assert len(invoice.payments) == 1

    def test_total_lowered_above_amount_paid_stays_partial(self, session, make_invoice):
        invoice_id = make_invoice(total="1000.00")
        record_payment(session, invoice_id, "500")

        invoice = update_invoice(session, invoice_id, {"discount": "300"})

        assert invoice.status == "PARTIAL"
        assert record_payment(session, invoice_id, "200").status == "PAID"

    def test_manual_partial_not_allowed(self, session, make_invoice):
        invoice_id = make_invoice(status="DRAFT")

        with pytest.raises(InvalidState):
            update_invoice(session, invoice_id, {"status": "PARTIAL"})

    def test_unknown_status(self, session, make_invoice):
        invoice_id = make_invoice()

        with pytest.raises(InvalidInput):
            update_invoice(session, invoice_id, {"status": "ARCHIVED"})


class TestDeleteInvoice:

    def test_delete_plain_invoice(self, session, make_invoice):
        invoice_id = make_invoice(status="DRAFT")

        assert delete_invoice(session, invoice_id) == {"deleted_payments": 0, "deleted_transactions": 0}
        with pytest.raises(NotFound):
            get_invoice_detail(session, invoice_id)

    def test_refused_with_payments(self, session, make_invoice):
        invoice_id = make_invoice()
        record_payment(session, invoice_id, "10", use_default_category=True)

        with pytest.raises(InvalidState) as exc:
            delete_invoice(session, invoice_id)
        assert exc.value.extra["payments_count"] == 1
        assert exc.value.extra["transactions_count"] == 1

    def test_force_deletes_related_rows(self, session, make_invoice):
        invoice_id = make_invoice()
        record_payment(session, invoice_id, "10", use_default_category=True)

        assert delete_invoice(session, invoice_id, force=True) == {
            "deleted_payments": 1,
            "deleted_transactions": 1,
        }
        assert session.scalar(select(func.count()).select_from(InvoicePayment)) == 0
        assert session.scalar(select(func.count()).select_from(Transaction)) == 0
        assert session.get(Invoice, invoice_id, populate_existing=True) is None

    def test_delete_unknown(self, session):
        with pytest.raises(NotFound):
            delete_invoice(session, 777)


class TestListInvoices:

    def test_filters_and_summary(self, session, make_invoice, make_customer):
        customer_id = make_customer(name="Acme")
        make_invoice(status="PAID", customer_id=customer_id, amount_paid="1000.00")
        make_invoice(status="ISSUED", customer_id=customer_id)
        make_invoice(status="DRAFT")

        invoices, total, summary = get_invoices(session, customer_id=customer_id, include_summary=True)

        assert total == 2
        assert len(invoices) == 2
        assert summary.total == 2
        assert summary.paid == 1
        assert summary.pending == 1

    def test_status_search_and_pagination(self, session, make_invoice, make_customer):
        customer_id = make_customer(name="Globex")
        for _ in range(3):
            make_invoice(customer_id=customer_id)
        make_invoice(status="DRAFT")

        invoices, total, summary = get_invoices(session, status="issued", search="glob", page=2, limit=2)

        assert total == 3
        assert len(invoices) == 1
        assert summary is None

    def test_month_filter_on_issue_date(self, session, make_invoice):
        make_invoice()  # issued 2024-05-01

        assert get_invoices(session, month=5, year=2024)[1] == 1
        assert get_invoices(session, month=6, year=2024)[1] == 0
        assert get_invoices(session, day=1, month=5, year=2024)[1] == 1
