"""
Tests for the ledger (transaction) service.
"""

from decimal import Decimal

import pytest

from backend.services.transaction_service import (
    create_transaction,
    delete_transaction,
    get_transaction_by_id,
    get_transactions,
    import_transactions,
    parse_transaction_date,
    update_transaction,
)
from backend.utils.errors import InvalidInput, NotFound


class TestCreateTransaction:

    def test_month_and_year_derived_from_date(self, session, make_category):
        category_id = make_category(name="Rent", type="EXPENSE")

        transaction = create_transaction(
            session,
            type="expense",
            transaction_date="2024-03-15",
            amount="1500000",
            description="Office rent",
            category_id=category_id,
        )

        assert transaction.type == "EXPENSE"
        assert transaction.month == 3
        assert transaction.year == 2024
        assert transaction.amount == Decimal("1500000.00")
        assert transaction.category.name == "Rent"

    def test_required_fields(self, session):
        with pytest.raises(InvalidInput) as exc:
            create_transaction(session, type="income", transaction_date=None, amount="10")
        assert exc.value.details == "Type, transaction date, and amount are required"

    @pytest.mark.parametrize("amount", ["-1", "0", "ten"])
    def test_amount_must_be_positive(self, session, amount):
        with pytest.raises(InvalidInput):
            create_transaction(session, type="income", transaction_date="2024-01-01", amount=amount)

    def test_category_type_mismatch(self, session, make_category):
        category_id = make_category(name="Sales", type="INCOME")

        with pytest.raises(InvalidInput) as exc:
            create_transaction(
                session,
                type="EXPENSE",
                transaction_date="2024-01-01",
                amount="5",
                category_id=category_id,
            )
        assert "does not match" in exc.value.details

    def test_unknown_invoice(self, session):
        with pytest.raises(NotFound):
            create_transaction(
                session,
                type="INCOME",
                transaction_date="2024-01-01",
                amount="5",
                invoice_id=31337,
            )

    def test_invalid_date(self):
        with pytest.raises(InvalidInput):
            parse_transaction_date("15/03/2024")


class TestListTransactions:

    def test_filters_and_period_summary(self, session, make_category):
        sales = make_category(name="Sales", type="INCOME")
        rent = make_category(name="Rent", type="EXPENSE")
        create_transaction(session, "INCOME", "2024-03-01", "1000", category_id=sales)
        create_transaction(session, "INCOME", "2024-03-20", "500", category_id=sales, description="Retainer")
        create_transaction(session, "EXPENSE", "2024-03-05", "300", category_id=rent)
        create_transaction(session, "INCOME", "2024-04-01", "9999", category_id=sales)

        transactions, total, summary = get_transactions(session, type="income", month=3, year=2024)

        assert total == 2
        assert [t.amount for t in transactions] == [Decimal("500.00"), Decimal("1000.00")]
        assert summary.total_income == Decimal("1500.00")
        assert summary.total_expense == Decimal("300.00")
        assert summary.net == Decimal("1200.00")

    def test_search_matches_category_name(self, session, make_category):
        rent = make_category(name="Rent", type="EXPENSE")
        create_transaction(session, "EXPENSE", "2024-03-05", "300", category_id=rent)
        create_transaction(session, "EXPENSE", "2024-03-06", "20")

        transactions, total, _ = get_transactions(session, search="ren")

        assert total == 1
        assert transactions[0].category_id == rent


class TestUpdateAndDelete:

    def test_update_replaces_fields(self, session):
        created = create_transaction(session, "INCOME", "2024-01-10", "100", reference="A-1")

        updated = update_transaction(session, created.id, "EXPENSE", "2024-02-02", "40")

        assert updated.type == "EXPENSE"
        assert updated.month == 2
        assert updated.amount == Decimal("40.00")
        assert updated.reference is None

    def test_update_unknown(self, session):
        with pytest.raises(NotFound):
            update_transaction(session, 999, "INCOME", "2024-01-01", "1")

    def test_delete(self, session):
        created = create_transaction(session, "INCOME", "2024-01-10", "100")

        delete_transaction(session, created.id)

        with pytest.raises(NotFound):
            get_transaction_by_id(session, created.id)


class TestImportTransactions:

    def test_valid_rows_created_invalid_rows_reported(self, session, make_category):
        sales = make_category(name="Sales", type="INCOME")
        rows = [
            {"type": "income", "amount": "100", "transaction_date": "2024-05-01", "category_id": str(sales)},
            {"type": "income", "amount": "100"},
            {"type": "expense", "amount": "50", "transaction_date": "2024-05-02", "category_id": "abc"},
            {"type": "expense", "amount": "50", "transaction_date": "2024-05-02", "category_id": sales},
            {"type": "expense", "amount": "75", "transaction_date": "2024-05-03", "description": "Paper"},
        ]

        created, errors = import_transactions(session, rows)

        assert len(created) == 2
        assert all(t.system_generated_key == "bulk_import" for t in created)
        assert [e["error"] for e in errors] == [
            "Missing required fields: type, amount, or transactionDate",
            "Invalid category ID",
            "Category type (INCOME) does not match transaction type (EXPENSE)",
        ]
        assert errors[0]["data"] is rows[1]

    def test_unknown_category_reported_as_invalid(self, session):
        created, errors = import_transactions(
            session,
            [{"type": "income", "amount": "1", "transaction_date": "2024-05-01", "category_id": 404}],
        )

        assert created == []
        assert errors[0]["error"] == "Invalid category ID"

    def test_empty_batch_rejected(self, session):
        with pytest.raises(InvalidInput):
            import_transactions(session, [])
