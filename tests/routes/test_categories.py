"""
Tests for the /categories endpoints.
"""


class TestCategories:

    def test_create_and_list_with_counts(self, client):
        created = client.post("/categories", json={"name": "Consulting", "type": "income"})
        assert created.status_code == 201
        category = created.json()
        assert category["type"] == "INCOME"
        assert category["transactionCount"] == 0

        client.post("/categories", json={"name": "Utilities", "type": "EXPENSE"})
        client.post(
            "/transactions",
            json={"type": "income", "transactionDate": "2024-02-02", "amount": 5, "categoryId": category["id"]},
        )

        data = client.get("/categories").json()
        assert data["count"] == 2
        assert [c["name"] for c in data["categories"]] == ["Consulting", "Utilities"]
        assert data["categories"][0]["transactionCount"] == 1

        expenses = client.get("/categories", params={"type": "expense"}).json()
        assert [c["name"] for c in expenses["categories"]] == ["Utilities"]

    def test_duplicate_name_conflict(self, client):
        client.post("/categories", json={"name": "Rent", "type": "expense"})

        response = client.post("/categories", json={"name": "Rent", "type": "expense"})

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "conflict"

    def test_invalid_type(self, client):
        response = client.post("/categories", json={"name": "Misc", "type": "transfer"})

        assert response.status_code == 400
        assert response.json()["detail"]["details"] == "Type must be income or expense"

    def test_update_and_delete_keeps_transactions(self, client, make_category):
        category_id = make_category(name="Old", type="EXPENSE")
        transaction = client.post(
            "/transactions",
            json={"type": "expense", "transactionDate": "2024-02-02", "amount": 5, "categoryId": category_id},
        ).json()

        updated = client.put(f"/categories/{category_id}", json={"name": "Office", "type": "expense"})
        assert updated.status_code == 200
        assert updated.json()["name"] == "Office"
        assert updated.json()["transactionCount"] == 1

        assert client.delete(f"/categories/{category_id}").status_code == 200
        assert client.get(f"/categories/{category_id}").status_code == 404
        assert client.get(f"/transactions/{transaction['id']}").json()["categoryId"] is None
