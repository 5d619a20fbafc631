"""
Tests for the /customers endpoints.
"""


class TestCustomers:

    def test_create_requires_name(self, client):
        response = client.post("/customers", json={"email": "x@example.com"})

        assert response.status_code == 400
        assert response.json()["detail"]["details"] == "Customer name is required"

    def test_duplicate_email_conflict(self, client):
        client.post("/customers", json={"name": "A", "email": "billing@example.com"})

        response = client.post("/customers", json={"name": "B", "email": "billing@example.com"})

        assert response.status_code == 409
        assert response.json()["detail"]["details"] == "Customer with this email already exists"

    def test_list_newest_first_with_invoice_counts(self, client, make_customer, make_invoice):
        first = make_customer(name="Alpha Corp")
        second = make_customer(name="Beta Ltd", email="beta@example.com")
        make_invoice(customer_id=first)
        make_invoice(customer_id=first)

        data = client.get("/customers").json()

        assert [c["id"] for c in data["customers"]] == [str(second), str(first)]
        assert data["customers"][1]["invoiceCount"] == 2
        assert data["pagination"]["total"] == 2

        searched = client.get("/customers", params={"search": "beta@"}).json()
        assert [c["name"] for c in searched["customers"]] == ["Beta Ltd"]

    def test_detail_includes_invoices(self, client, make_customer, make_invoice):
        customer_id = make_customer()
        make_invoice(customer_id=customer_id)

        data = client.get(f"/customers/{customer_id}").json()

        assert data["invoiceCount"] == 1
        assert data["invoices"][0]["customerId"] == str(customer_id)
        assert len(data["invoices"][0]["items"]) == 1

    def test_update_and_delete(self, client, make_customer, make_invoice):
        customer_id = make_customer()
        invoice_id = make_invoice(customer_id=customer_id)

        updated = client.put(f"/customers/{customer_id}", json={"name": "Renamed", "phone": "0812"})
        assert updated.status_code == 200
        assert updated.json()["name"] == "Renamed"
        assert updated.json()["phone"] == "0812"

        assert client.delete(f"/customers/{customer_id}").status_code == 200
        assert client.get(f"/customers/{customer_id}").status_code == 404
        assert client.get(f"/invoices/{invoice_id}").json()["customerId"] is None

    def test_unknown_customer(self, client):
        assert client.delete("/customers/31337").status_code == 404
