"""
Tests for the /transactions endpoints.
"""

import pytest


@pytest.fixture
def income_category(make_category):
    return make_category(name="Sales", type="INCOME")


class TestTransactionCrud:

    def test_create_get_update_delete(self, client, income_category):
        created = client.post(
            "/transactions",
            json={
                "type": "income",
                "transactionDate": "2024-08-17T10:00:00Z",
                "amount": 125000,
                "description": "Walk-in sale",
                "categoryId": str(income_category),
            },
        )
        assert created.status_code == 201
        data = created.json()
        assert data["type"] == "INCOME"
        assert data["month"] == 8
        assert data["year"] == 2024
        assert data["amount"] == "125000.00"
        assert data["categoryId"] == str(income_category)
        assert data["category"]["name"] == "Sales"

        transaction_id = data["id"]
        assert client.get(f"/transactions/{transaction_id}").json()["description"] == "Walk-in sale"

        updated = client.put(
            f"/transactions/{transaction_id}",
            json={"type": "INCOME", "transactionDate": "2024-09-01", "amount": "1"},
        )
        assert updated.status_code == 200
        assert updated.json()["month"] == 9
        assert updated.json()["categoryId"] is None

        deleted = client.delete(f"/transactions/{transaction_id}")
        assert deleted.status_code == 200
        assert deleted.json()["status"] == "DELETED"
        assert client.get(f"/transactions/{transaction_id}").status_code == 404

    def test_missing_fields(self, client):
        response = client.post("/transactions", json={"type": "income"})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "invalid_request"

    def test_category_type_mismatch(self, client, income_category):
        response = client.post(
            "/transactions",
            json={
                "type": "expense",
                "transactionDate": "2024-08-17",
                "amount": 10,
                "categoryId": income_category,
            },
        )

        assert response.status_code == 400
        assert "does not match" in response.json()["detail"]["details"]


class TestListTransactions:

    def test_list_with_summary(self, client, income_category):
        client.post("/transactions", json={"type": "income", "transactionDate": "2024-08-01", "amount": 100, "categoryId": income_category})
        client.post("/transactions", json={"type": "expense", "transactionDate": "2024-08-02", "amount": 40})

        data = client.get("/transactions", params={"month": 8, "year": 2024}).json()

        assert data["pagination"]["total"] == 2
        assert data["summary"] == {"totalIncome": "100.00", "totalExpense": "40.00", "net": "60.00"}
        assert data["transactions"][0]["type"] == "EXPENSE"

    def test_filter_by_category_alias(self, client, income_category):
        client.post("/transactions", json={"type": "income", "transactionDate": "2024-08-01", "amount": 100, "categoryId": income_category})
        client.post("/transactions", json={"type": "income", "transactionDate": "2024-08-01", "amount": 5})

        data = client.get("/transactions", params={"categoryId": income_category}).json()

        assert data["pagination"]["total"] == 1


class TestBatchImport:

    def test_partial_success(self, client, income_category):
        response = client.post(
            "/transactions/import/batch",
            json={
                "transactions": [
                    {"type": "income", "amount": 10, "transactionDate": "2024-01-01", "categoryId": str(income_category)},
                    {"type": "income", "amount": -3, "transactionDate": "2024-01-01"},
                    {"description": "no type"},
                ]
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["total"] == 3
        assert len(data["transactions"]) == 1
        assert [e["error"] for e in data["errors"]] == [
            "Invalid amount. Must be a positive number",
            "Missing required fields: type, amount, or transactionDate",
        ]
        assert data["errors"][1]["data"]["description"] == "no type"

    def test_all_valid_has_no_errors(self, client):
        response = client.post(
            "/transactions/import/batch",
            json={"transactions": [{"type": "expense", "amount": "2.5", "transactionDate": "2024-01-01"}]},
        )

        assert response.json()["errors"] is None

    def test_empty_batch(self, client):
        response = client.post("/transactions/import/batch", json={"transactions": []})

        assert response.status_code == 400
